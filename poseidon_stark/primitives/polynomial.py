"""Polynomial operations used by the protocol layer.

The protocol speaks in terms of interpolation, low-degree extension and
evaluation at a point; whether that happens through NTTs is an implementation
detail kept here. Extension-field polynomials are handled component-wise over
the base field.
"""

from typing import List, Sequence

from poseidon_stark.primitives.field import (
    FF,
    FF3,
    ff3_components,
    ff3_from_components,
)
from poseidon_stark.primitives.ntt import NTT, coset_evaluate


def to_coefficients(evaluations: FF) -> FF:
    """Interpolate subgroup evaluations into coefficient form."""
    return NTT(len(evaluations)).intt(evaluations)


def extend_to_domain(evaluations: FF, extended_size: int) -> FF:
    """Low-degree extension of subgroup evaluations onto the LDE coset."""
    return NTT(len(evaluations)).extend_pol(evaluations, extended_size)


def coset_to_coefficients(evaluations: FF) -> FF:
    """Interpolate evaluations given on the LDE coset into coefficient form."""
    return NTT(len(evaluations)).coset_intt(evaluations)


def to_coefficients_cubic(evaluations: FF3) -> FF3:
    """FF3 variant of to_coefficients."""
    return ff3_from_components([to_coefficients(c) for c in ff3_components(evaluations)])


def extend_to_domain_cubic(evaluations: FF3, extended_size: int) -> FF3:
    """FF3 variant of extend_to_domain."""
    return ff3_from_components(
        [extend_to_domain(c, extended_size) for c in ff3_components(evaluations)]
    )


def coset_to_coefficients_cubic(evaluations: FF3) -> FF3:
    """FF3 variant of coset_to_coefficients."""
    return ff3_from_components([coset_to_coefficients(c) for c in ff3_components(evaluations)])


def coset_evaluate_cubic(coefficients: FF3, extended_size: int) -> FF3:
    """Evaluate FF3 coefficients on the LDE coset of the given size."""
    return ff3_from_components(
        [coset_evaluate(c, extended_size) for c in ff3_components(coefficients)]
    )


def evaluate_at(coefficients: Sequence, point: FF3) -> FF3:
    """Horner evaluation of a base- or extension-field polynomial at an FF3 point."""
    acc = FF3(0)
    for c in reversed(list(coefficients)):
        acc = acc * point + _as_ff3(c)
    return acc


def _as_ff3(value) -> FF3:
    if isinstance(value, FF3):
        return value
    return FF3(int(value))


def split_chunks(coefficients: FF3, chunk_size: int, n_chunks: int) -> List[FF3]:
    """Split P into n_chunks pieces with P = sum_t X^(t*chunk_size) * P_t.

    Raises:
        ValueError: If a coefficient beyond n_chunks * chunk_size is non-zero
    """
    limit = chunk_size * n_chunks
    components = [[int(c) for c in comp] for comp in ff3_components(coefficients)]
    for comp in components:
        if any(comp[limit:]):
            raise ValueError(f"polynomial degree exceeds {limit - 1}")

    pieces = []
    for t in range(n_chunks):
        parts = []
        for comp in components:
            chunk = comp[t * chunk_size:(t + 1) * chunk_size]
            chunk += [0] * (chunk_size - len(chunk))
            parts.append(FF(chunk))
        pieces.append(ff3_from_components(parts))
    return pieces
