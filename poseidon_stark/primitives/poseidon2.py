"""
Poseidon2 permutation and sponge helpers for the Goldilocks field.

Serves two roles: the reference permutation the Poseidon2 round-function gate
is checked against, and the hash behind Merkle trees, the Fiat-Shamir
transcript and proof-of-work grinding.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Sequence

from poseidon_stark.primitives.constants import (
    poseidon2_external_constants,
    poseidon2_internal_constants,
    poseidon2_internal_diagonal,
)
from poseidon_stark.primitives.field import GOLDILOCKS_PRIME

# Capacity is always 4 (hash output size)
CAPACITY = 4

SUPPORTED_WIDTHS = (4, 8, 12, 16)


@dataclass(frozen=True)
class Poseidon2Params:
    """Permutation shape: initial linear layer, full / partial / full rounds."""
    width: int = 12
    rate: int = 8
    capacity: int = CAPACITY
    alpha: int = 7
    full_rounds: int = 8
    partial_rounds: int = 22

    def __post_init__(self):
        if self.width not in SUPPORTED_WIDTHS:
            raise ValueError(f"width must be one of {SUPPORTED_WIDTHS}, got {self.width}")
        if self.rate + self.capacity != self.width:
            raise ValueError(f"rate {self.rate} + capacity {self.capacity} != width {self.width}")

    @property
    def half_full_rounds(self) -> int:
        return self.full_rounds // 2

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, rnd: int) -> bool:
        return rnd < self.half_full_rounds or rnd >= self.half_full_rounds + self.partial_rounds

    def external_round_index(self, rnd: int) -> int:
        """Map a global round index to its row in the external constants."""
        if rnd < self.half_full_rounds:
            return rnd
        return rnd - self.partial_rounds

    def internal_round_index(self, rnd: int) -> int:
        return rnd - self.half_full_rounds

    @property
    def external_constants(self):
        return poseidon2_external_constants(self.width, self.full_rounds)

    @property
    def internal_constants(self):
        return poseidon2_internal_constants(self.width, self.partial_rounds)

    @property
    def internal_diagonal(self):
        return poseidon2_internal_diagonal(self.width)


POSEIDON2_GOLDILOCKS = Poseidon2Params()


@lru_cache(maxsize=None)
def sponge_params(width: int) -> Poseidon2Params:
    """Parameters for the hashing sponge of the given width."""
    return Poseidon2Params(width=width, rate=width - CAPACITY)


def _pow7(x: int) -> int:
    """x^7 as x^3 * x^4."""
    p = GOLDILOCKS_PRIME
    x2 = (x * x) % p
    x3 = (x * x2) % p
    x4 = (x2 * x2) % p
    return (x3 * x4) % p


def _matmul_m4(x: Sequence[int]) -> List[int]:
    """4x4 block [[5,7,1,3],[4,6,1,1],[1,3,5,7],[1,1,4,6]] in 8 additions."""
    p = GOLDILOCKS_PRIME
    t0 = x[0] + x[1]
    t1 = x[2] + x[3]
    t2 = 2 * x[1] + t1
    t3 = 2 * x[3] + t0
    t4 = 4 * t1 + t3
    t5 = 4 * t0 + t2
    return [(t3 + t5) % p, t5 % p, (t2 + t4) % p, t4 % p]


def matmul_external(state: Sequence[int]) -> List[int]:
    """External linear layer: M4 per block, then add the per-lane column sums."""
    width = len(state)
    result: List[int] = []
    for i in range(0, width, 4):
        result.extend(_matmul_m4(state[i:i + 4]))

    if width > 4:
        sums = [sum(result[lane::4]) for lane in range(4)]
        result = [(v + sums[i % 4]) % GOLDILOCKS_PRIME for i, v in enumerate(result)]

    return result


def matmul_internal(state: Sequence[int], diagonal: Sequence[int]) -> List[int]:
    """Internal linear layer diag(D) + J: x_i -> x_i * D_i + sum(x)."""
    total = sum(state)
    return [(x * d + total) % GOLDILOCKS_PRIME for x, d in zip(state, diagonal)]


def poseidon2_permutation(
    state: Sequence[int], params: Poseidon2Params = POSEIDON2_GOLDILOCKS
) -> List[int]:
    """Apply the full Poseidon2 permutation to `width` field elements."""
    if len(state) != params.width:
        raise ValueError(f"state must have {params.width} elements, got {len(state)}")

    p = GOLDILOCKS_PRIME
    external = params.external_constants
    internal = params.internal_constants
    diagonal = params.internal_diagonal

    state = matmul_external([int(s) % p for s in state])

    for rnd in range(params.total_rounds):
        if params.is_full_round(rnd):
            rc = external[params.external_round_index(rnd)]
            state = matmul_external([_pow7((s + c) % p) for s, c in zip(state, rc)])
        else:
            state[0] = _pow7((state[0] + internal[params.internal_round_index(rnd)]) % p)
            state = matmul_internal(state, diagonal)

    return state


def poseidon2_hash(input_data: Sequence[int], width: int = 12) -> List[int]:
    """Permutation with the sponge parameters for `width` (all lanes returned)."""
    return poseidon2_permutation(input_data, sponge_params(width))


def poseidon2_round_function_output(values: Sequence[int], params: Poseidon2Params = POSEIDON2_GOLDILOCKS) -> List[int]:
    """Permute rate values with a zero capacity and squeeze `capacity` elements."""
    if len(values) != params.rate:
        raise ValueError(f"expected {params.rate} rate elements, got {len(values)}")
    return poseidon2_permutation(list(values) + [0] * params.capacity, params)[:params.capacity]


def linear_hash(input_data: Sequence[int], width: int = 8) -> List[int]:
    """Hash variable-length input with a sponge of the given width.

    Inputs of at most CAPACITY elements are returned zero-padded; longer inputs
    are absorbed `width - CAPACITY` elements at a time, chaining the first
    CAPACITY output lanes into the capacity part of the next block.
    """
    if width not in SUPPORTED_WIDTHS:
        raise ValueError(f"width must be one of {SUPPORTED_WIDTHS}, got {width}")

    data = [int(x) % GOLDILOCKS_PRIME for x in input_data]
    if len(data) <= CAPACITY:
        return data + [0] * (CAPACITY - len(data))

    rate = width - CAPACITY
    carry = [0] * CAPACITY
    for offset in range(0, len(data), rate):
        block = data[offset:offset + rate]
        block += [0] * (rate - len(block))
        carry = poseidon2_hash(block + carry, width)[:CAPACITY]

    return carry


def hash_seq(input_data: Sequence[int], width: int = 12) -> List[int]:
    """One permutation, first CAPACITY lanes out."""
    return poseidon2_hash(input_data, width)[:CAPACITY]


def grinding(challenge: Sequence[int], pow_bits: int) -> int:
    """Find a nonce with hash(challenge || nonce)[0] < 2^(64 - pow_bits).

    Raises:
        RuntimeError: If no valid nonce is found within the search space
    """
    if len(challenge) != 3:
        raise ValueError(f"challenge must have 3 elements, got {len(challenge)}")

    max_attempts = (1 << pow_bits) * 512
    for nonce in range(max_attempts):
        if verify_grinding(challenge, nonce, pow_bits):
            return nonce

    raise RuntimeError("grinding: could not find a valid nonce")


def verify_grinding(challenge: Sequence[int], nonce: int, pow_bits: int) -> bool:
    """Check a proof-of-work nonce; pow_bits == 0 accepts every nonce."""
    if pow_bits == 0:
        return True
    level = 1 << (64 - pow_bits)
    return poseidon2_hash(list(challenge) + [nonce], 4)[0] < level
