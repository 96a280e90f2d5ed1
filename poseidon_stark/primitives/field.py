"""Goldilocks field GF(p) and cubic extension GF(p^3).

Uses galois library for all field arithmetic. FF and FF3 are the field types.
Values cross module boundaries as canonical ints in [0, p); FF3 elements cross
as ascending coefficient lists [a0, a1, a2].
"""

from functools import lru_cache
from typing import List, Sequence

import galois
import numpy as np

# --- Field Construction ---

GOLDILOCKS_PRIME = 0xFFFFFFFF00000001
FIELD_EXTENSION_DEGREE = 3

FF = galois.GF(GOLDILOCKS_PRIME)
"""Base field GF(p) - Goldilocks prime field."""

# x^3 - x - 1, coefficients in galois (descending) order
_irr_poly = galois.Poly([1, 0, GOLDILOCKS_PRIME - 1, GOLDILOCKS_PRIME - 1], field=FF)
FF3 = galois.GF(GOLDILOCKS_PRIME**3, irreducible_poly=_irr_poly)
"""Cubic extension field GF(p^3) with irreducible polynomial x^3 - x - 1."""

# Multiplicative generator of GF(p)*; also the LDE coset shift.
MULTIPLICATIVE_GENERATOR = 7

SHIFT = FF(MULTIPLICATIVE_GENERATOR)
SHIFT_INV = SHIFT ** -1


# --- Coefficient Order Conversion ---
# Galois uses descending order [a2, a1, a0], we use ascending [a0, a1, a2].


def ff3(coeffs: Sequence[int]) -> FF3:
    """Construct FF3 element from ascending-order coefficients [a0, a1, a2]."""
    return FF3.Vector([int(c) for c in coeffs][::-1])


def ff3_coeffs(elem: FF3) -> List[int]:
    """Extract ascending-order coefficients [a0, a1, a2] from FF3 element."""
    return [int(c) for c in elem.vector()[::-1]]


def ff3_array(c0: Sequence[int], c1: Sequence[int], c2: Sequence[int]) -> FF3:
    """Build an FF3 array from three ascending-order component sequences."""
    rows = [[int(a2), int(a1), int(a0)] for a0, a1, a2 in zip(c0, c1, c2)]
    return FF3.Vector(rows)


def ff3_components(arr: FF3) -> List[FF]:
    """Split an FF3 array into its three base-field components [c0, c1, c2]."""
    vec = arr.vector()
    return [FF(vec[:, 2]), FF(vec[:, 1]), FF(vec[:, 0])]


def ff3_from_components(components: Sequence[FF]) -> FF3:
    """Inverse of ff3_components."""
    c0, c1, c2 = components
    return FF3.Vector(np.stack([c2, c1, c0], axis=-1))


def lift(values) -> FF3:
    """Embed base-field values (FF array or ints) into FF3."""
    return FF3([int(v) for v in values])


def ff3_to_flat_list(arr: FF3) -> List[int]:
    """Flatten an FF3 array to [a0, a1, a2, a0, a1, a2, ...]."""
    result: List[int] = []
    for elem in arr:
        result.extend(ff3_coeffs(elem))
    return result


def ff3_from_flat_list(flat: Sequence[int]) -> FF3:
    """Inverse of ff3_to_flat_list."""
    if len(flat) % FIELD_EXTENSION_DEGREE != 0:
        raise ValueError(f"flat FF3 list length {len(flat)} is not a multiple of 3")
    return ff3_array(flat[0::3], flat[1::3], flat[2::3])


# --- Roots of Unity ---

# Two-adicity of p - 1
MAX_N_BITS = 32


@lru_cache(maxsize=None)
def get_omega(n_bits: int) -> int:
    """Primitive 2^n_bits-th root of unity, the one galois' NTT evaluates on."""
    if not 0 <= n_bits <= MAX_N_BITS:
        raise ValueError(f"n_bits must be in [0, {MAX_N_BITS}], got {n_bits}")
    return int(FF.primitive_root_of_unity(1 << n_bits))


def get_omega_inv(n_bits: int) -> int:
    """Return inverse of primitive 2^n_bits-th root of unity."""
    return pow(get_omega(n_bits), GOLDILOCKS_PRIME - 2, GOLDILOCKS_PRIME)


def domain_points(n_bits: int, shift: int = 1) -> FF:
    """Return [shift * w^i for i < 2^n_bits] as an FF array."""
    n = 1 << n_bits
    omega = get_omega(n_bits)
    points = [0] * n
    acc = shift % GOLDILOCKS_PRIME
    for i in range(n):
        points[i] = acc
        acc = (acc * omega) % GOLDILOCKS_PRIME
    return FF(points)


# --- Batch Inversion ---

def batch_inverse(values):
    """Invert every element of a galois array (FF or FF3) with one field inversion.

    Raises:
        ZeroDivisionError: If any element is zero
    """
    n = len(values)
    if n <= 1:
        return values ** -1 if n else values

    field_type = type(values)
    prefix = field_type.Ones(n)
    running = values[0]
    for i in range(1, n):
        prefix[i] = running
        running = running * values[i]

    inv = running ** -1
    out = field_type.Zeros(n)
    for i in reversed(range(n)):
        out[i] = inv * prefix[i]
        inv = inv * values[i]
    return out
