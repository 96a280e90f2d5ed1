"""Constraint composition shared by prover and verifier.

The prover evaluates the constraints over the LDE coset (gate residuals as FF
arrays, everything else as FF3 arrays); the verifier evaluates the same
generator at xi on FF3 scalars. Both fold the terms with powers of alpha in
the order `constraint_terms` yields them:

    gate regions (segment, instance slot, residual), copy permutation,
    public-input boundary terms
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple

from poseidon_stark.circuit.gates.base import ConstraintContext, Gate, GateRegion, region_terms
from poseidon_stark.primitives.field import FF, FF3, ff3_coeffs, ff3_from_components
from poseidon_stark.protocol.permutation import copy_permutation_terms, lagrange_basis

SETUP = "setup"
STAGE1 = "stage1"
STAGE2 = "stage2"
QUOTIENT = "quotient"


# --- Linear Combinations ---

class LinearCombination:
    """Sum of FF3 coefficients times FF or FF3 terms.

    Base-field terms are scaled component-wise so they never have to be lifted
    into the extension.
    """

    def __init__(self):
        self._base = None
        self._ext = None

    def add(self, coeff: FF3, term) -> None:
        if isinstance(term, FF3):
            scaled = coeff * term
            self._ext = scaled if self._ext is None else self._ext + scaled
            return
        parts = [FF(c) * term for c in ff3_coeffs(coeff)]
        if self._base is None:
            self._base = parts
        else:
            self._base = [a + b for a, b in zip(self._base, parts)]

    def value(self):
        if self._base is None:
            return self._ext if self._ext is not None else FF3(0)
        base = ff3_from_components(self._base)
        return base if self._ext is None else base + self._ext


def combine(terms: Iterable, alpha: FF3):
    """sum_t alpha^t * term_t."""
    lc = LinearCombination()
    power = FF3(1)
    for term in terms:
        lc.add(power, term)
        power = power * alpha
    return lc.value()


# --- Constraint Terms ---

@dataclass
class PermutationValues:
    """Copy-permutation inputs at the evaluation point(s), all FF3."""
    copy: Sequence
    sigma: Sequence
    z: object
    z_next: object
    partials: Sequence


def constraint_terms(
    gates: Sequence[Gate],
    regions: Sequence[GateRegion],
    gate_ctx: ConstraintContext,
    perm: PermutationValues,
    x,
    beta: FF3,
    gamma: FF3,
    n_bits: int,
    chunk_size: int,
    public_locations: Sequence[Tuple[int, int]],
    public_values: Sequence[int],
) -> Iterator:
    for gate, region in zip(gates, regions):
        for _, _, term in region_terms(gate, region, gate_ctx):
            yield term

    l0 = lagrange_basis(0, x, n_bits)
    yield from copy_permutation_terms(
        perm.copy, perm.sigma, x, perm.z, perm.z_next, perm.partials,
        beta, gamma, l0, chunk_size,
    )

    for (col, row), value in zip(public_locations, public_values):
        yield lagrange_basis(row, x, n_bits) * (perm.copy[col] - FF3(int(value)))


# --- Opening Layout ---

@dataclass(frozen=True)
class Opening:
    """One entry of the evaluation vector: a committed column at xi or xi*w."""
    tree: str
    column: int
    dim: int
    shifted: bool = False


def opening_layout(
    n_constants: int, n_copy: int, n_witness: int, n_stage2: int, n_quotient: int
) -> List[Opening]:
    """Canonical order of `Proof.evals`.

    Setup (constants, sigma), trace (copy, witness), stage 2, z at xi*w,
    quotient chunks.
    """
    layout = [Opening(SETUP, c, 1) for c in range(n_constants + n_copy)]
    layout += [Opening(STAGE1, c, 1) for c in range(n_copy + n_witness)]
    layout += [Opening(STAGE2, c, 3) for c in range(n_stage2)]
    layout.append(Opening(STAGE2, 0, 3, shifted=True))
    layout += [Opening(QUOTIENT, c, 3) for c in range(n_quotient)]
    return layout


def leaf_value(leaf: Sequence[int], opening: Opening) -> FF3:
    """Value of `opening`'s column inside a Merkle leaf row."""
    if opening.dim == 1:
        return FF3(int(leaf[opening.column]))
    start = opening.column * 3
    return FF3.Vector([int(leaf[start + 2]), int(leaf[start + 1]), int(leaf[start])])
