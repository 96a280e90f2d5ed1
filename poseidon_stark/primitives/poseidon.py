"""
Poseidon (HADES) reference permutation for the Goldilocks field.

Direct integer evaluation with no circuit machinery; the round-function gate
is checked against this.
"""

from dataclasses import dataclass
from typing import List, Sequence

from poseidon_stark.primitives.constants import poseidon_mds_matrix, poseidon_round_constants
from poseidon_stark.primitives.field import GOLDILOCKS_PRIME


@dataclass(frozen=True)
class PoseidonParams:
    """Permutation shape. Rounds run full / partial / full."""
    width: int = 12
    rate: int = 8
    capacity: int = 4
    alpha: int = 7
    full_rounds: int = 8
    partial_rounds: int = 22

    def __post_init__(self):
        if self.rate + self.capacity != self.width:
            raise ValueError(f"rate {self.rate} + capacity {self.capacity} != width {self.width}")
        if self.full_rounds % 2:
            raise ValueError(f"full_rounds must be even, got {self.full_rounds}")

    @property
    def half_full_rounds(self) -> int:
        return self.full_rounds // 2

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, rnd: int) -> bool:
        return rnd < self.half_full_rounds or rnd >= self.half_full_rounds + self.partial_rounds

    @property
    def round_constants(self):
        return poseidon_round_constants(self.width, self.total_rounds)

    @property
    def mds(self):
        return poseidon_mds_matrix(self.width)


POSEIDON_GOLDILOCKS = PoseidonParams()


def sbox(x: int, alpha: int = 7) -> int:
    return pow(x, alpha, GOLDILOCKS_PRIME)


def mds_multiply(state: Sequence[int], params: PoseidonParams = POSEIDON_GOLDILOCKS) -> List[int]:
    return [
        sum(m * s for m, s in zip(row, state)) % GOLDILOCKS_PRIME
        for row in params.mds
    ]


def full_round(state: Sequence[int], rnd: int, params: PoseidonParams = POSEIDON_GOLDILOCKS) -> List[int]:
    rc = params.round_constants[rnd]
    state = [sbox((s + c) % GOLDILOCKS_PRIME, params.alpha) for s, c in zip(state, rc)]
    return mds_multiply(state, params)


def partial_round(state: Sequence[int], rnd: int, params: PoseidonParams = POSEIDON_GOLDILOCKS) -> List[int]:
    rc = params.round_constants[rnd]
    state = [(s + c) % GOLDILOCKS_PRIME for s, c in zip(state, rc)]
    state[0] = sbox(state[0], params.alpha)
    return mds_multiply(state, params)


def poseidon_permutation(
    state: Sequence[int], params: PoseidonParams = POSEIDON_GOLDILOCKS
) -> List[int]:
    """Apply the full Poseidon permutation to `width` field elements."""
    if len(state) != params.width:
        raise ValueError(f"state must have {params.width} elements, got {len(state)}")

    state = [int(s) % GOLDILOCKS_PRIME for s in state]
    for rnd in range(params.total_rounds):
        if params.is_full_round(rnd):
            state = full_round(state, rnd, params)
        else:
            state = partial_round(state, rnd, params)
    return state


def poseidon_round_function_output(values: Sequence[int], params: PoseidonParams = POSEIDON_GOLDILOCKS) -> List[int]:
    """Permute rate values with a zero capacity and squeeze `capacity` elements."""
    if len(values) != params.rate:
        raise ValueError(f"expected {params.rate} rate elements, got {len(values)}")
    return poseidon_permutation(list(values) + [0] * params.capacity, params)[:params.capacity]
