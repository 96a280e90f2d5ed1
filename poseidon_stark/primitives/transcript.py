"""
Fiat-Shamir transcript implementation using Poseidon2 sponge.

The prover and the verifier drive identical transcripts; every challenge is a
deterministic function of what was absorbed before it.
"""

from typing import List, Optional, Sequence

from poseidon_stark.primitives.field import FF3, GOLDILOCKS_PRIME, ff3
from poseidon_stark.primitives.poseidon2 import CAPACITY, poseidon2_hash

# Hash size (capacity of sponge)
HASH_SIZE = CAPACITY


class Transcript:
    """
    Fiat-Shamir transcript using a Poseidon2 sponge of width 4 * arity.

    Attributes:
        arity: Determines sponge width (2, 3, or 4 -> 8, 12, 16)
        state: Sponge output after the last permutation
        pending: Absorbed elements not yet permuted
        out: Output buffer squeezed from, last element first
    """

    def __init__(self, arity: int = 4):
        if arity not in [2, 3, 4]:
            raise ValueError(f"arity must be 2, 3, or 4, got {arity}")

        self.arity = arity
        self.sponge_width = HASH_SIZE * arity
        self.rate = self.sponge_width - HASH_SIZE

        self.state = [0] * self.sponge_width
        self.pending: List[int] = []
        self.out = [0] * self.sponge_width
        self.out_cursor = 0

    def put(self, input_data: Sequence[int]) -> None:
        """Absorb field elements."""
        for elem in input_data:
            self._add1(int(elem))

    def _add1(self, input_elem: int) -> None:
        self.pending.append(input_elem % GOLDILOCKS_PRIME)
        self.out_cursor = 0  # invalidate squeezed output

        if len(self.pending) == self.rate:
            self._update_state()

    def _update_state(self) -> None:
        """Permute pending (zero-padded rate) || state (capacity)."""
        block = self.pending + [0] * (self.rate - len(self.pending))
        self.out = poseidon2_hash(block + self.state[:HASH_SIZE], self.sponge_width)
        self.out_cursor = self.sponge_width
        self.pending = []
        self.state = list(self.out)

    def _get_fields1(self) -> int:
        """Squeeze one field element."""
        if self.out_cursor == 0:
            self._update_state()

        idx = (self.sponge_width - self.out_cursor) % self.sponge_width
        self.out_cursor -= 1
        return self.out[idx]

    def get_field(self) -> List[int]:
        """Squeeze 3 field elements (an FF3 challenge as ascending coefficients)."""
        return [self._get_fields1() for _ in range(3)]

    def get_challenge(self) -> FF3:
        return ff3(self.get_field())

    def get_state(self, n_outputs: Optional[int] = None) -> List[int]:
        """Flush pending input and return the first n_outputs state elements."""
        if self.pending:
            self._update_state()

        if n_outputs is None:
            n_outputs = HASH_SIZE

        return self.state[:n_outputs]

    def get_permutations(self, n: int, n_bits: int) -> List[int]:
        """Generate n values in [0, 2^n_bits), drawing 63 bits per field element."""
        n_fields = ((n * n_bits - 1) // 63) + 1
        fields = [self._get_fields1() for _ in range(n_fields)]

        result = []
        cur_bit = 0
        cur_field = 0

        for _ in range(n):
            a = 0
            for j in range(n_bits):
                bit = (fields[cur_field] >> cur_bit) & 1
                a += bit << j

                cur_bit += 1
                if cur_bit == 63:
                    cur_bit = 0
                    cur_field += 1

            result.append(a)

        return result
