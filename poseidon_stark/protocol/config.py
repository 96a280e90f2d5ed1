"""Proof parameters."""

import math
from dataclasses import dataclass
from typing import List

from poseidon_stark.errors import ConfigurationError


@dataclass(frozen=True)
class ProofConfig:
    """Prover knobs.

    Attributes:
        fri_lde_factor: Blowup of the low-degree extension (power of two)
        pow_bits: Grinding difficulty; 0 disables proof-of-work
        security_level: Target bits of query soundness
        fri_folding_bits: log2 of the folding factor per FRI round
        fri_final_bits: log2 size at which folding stops
        merkle_arity: Arity of every Merkle tree
        transcript_arity: Transcript sponge width / 4
    """
    fri_lde_factor: int = 32
    pow_bits: int = 0
    security_level: int = 100
    fri_folding_bits: int = 2
    fri_final_bits: int = 3
    merkle_arity: int = 4
    transcript_arity: int = 4

    def __post_init__(self):
        lde = self.fri_lde_factor
        if lde < 2 or lde & (lde - 1):
            raise ConfigurationError(f"fri_lde_factor must be a power of two >= 2, got {lde}")
        if not 0 <= self.pow_bits < 64:
            raise ConfigurationError(f"pow_bits must be in [0, 64), got {self.pow_bits}")
        if self.fri_folding_bits < 1:
            raise ConfigurationError(f"fri_folding_bits must be positive, got {self.fri_folding_bits}")
        if self.fri_final_bits < 0:
            raise ConfigurationError(f"fri_final_bits must be non-negative, got {self.fri_final_bits}")
        if self.security_level <= self.pow_bits:
            raise ConfigurationError("security_level must exceed pow_bits")

    @property
    def blowup_bits(self) -> int:
        return self.fri_lde_factor.bit_length() - 1

    @property
    def n_queries(self) -> int:
        return math.ceil((self.security_level - self.pow_bits) / self.blowup_bits)

    def check_quotient_chunks(self, n_chunks: int) -> None:
        """The LDE domain must hold every quotient chunk's product degree.

        Raises:
            ConfigurationError: If fri_lde_factor < n_chunks
        """
        if self.fri_lde_factor < n_chunks:
            raise ConfigurationError(
                f"fri_lde_factor {self.fri_lde_factor} is below the {n_chunks} quotient chunks "
                f"required by the constraint degree"
            )

    def fri_round_log_sizes(self, n_bits_ext: int) -> List[int]:
        """Domain bits of every FRI layer, from the LDE down to the final polynomial."""
        sizes = [n_bits_ext]
        while sizes[-1] > self.fri_final_bits:
            sizes.append(max(sizes[-1] - self.fri_folding_bits, self.fri_final_bits))
        return sizes
