"""Deterministic parameter generation for the Poseidon-family permutations.

Round constants and the Poseidon2 internal diagonal are derived by hashing a
domain tag and a (width, round, lane) label with SHA-256 and rejection
sampling into the Goldilocks field. Results are cached per width.
"""

import hashlib
from functools import lru_cache
from typing import Tuple

from poseidon_stark.primitives.field import GOLDILOCKS_PRIME

DOMAIN_POSEIDON_ROUND = b"poseidon-stark/poseidon/round-constants/v1"
DOMAIN_POSEIDON2_EXTERNAL = b"poseidon-stark/poseidon2/external-constants/v1"
DOMAIN_POSEIDON2_INTERNAL = b"poseidon-stark/poseidon2/internal-constants/v1"
DOMAIN_POSEIDON2_DIAGONAL = b"poseidon-stark/poseidon2/internal-diagonal/v1"

# Poseidon width-12 MDS: circulant first row plus a diagonal correction.
POSEIDON_MDS_CIRC = (17, 15, 41, 16, 2, 28, 13, 13, 39, 18, 34, 20)
POSEIDON_MDS_DIAG = (8, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)


def hash_to_field(domain: bytes, label: bytes) -> int:
    counter = 0
    while True:
        hasher = hashlib.sha256()
        hasher.update(domain)
        hasher.update(label)
        hasher.update(counter.to_bytes(4, "big"))
        candidate = int.from_bytes(hasher.digest()[:8], "big")
        if candidate < GOLDILOCKS_PRIME:
            return candidate
        counter += 1


def _label(*parts: int) -> bytes:
    return b"".join(p.to_bytes(4, "big") for p in parts)


@lru_cache(maxsize=None)
def poseidon_round_constants(width: int, n_rounds: int) -> Tuple[Tuple[int, ...], ...]:
    """One row of `width` constants per round (full and partial alike)."""
    return tuple(
        tuple(hash_to_field(DOMAIN_POSEIDON_ROUND, _label(width, r, i)) for i in range(width))
        for r in range(n_rounds)
    )


@lru_cache(maxsize=None)
def poseidon_mds_matrix(width: int) -> Tuple[Tuple[int, ...], ...]:
    """Dense MDS matrix M[row][col] = circ[(col - row) % width] + diag[row] * (row == col)."""
    if width != len(POSEIDON_MDS_CIRC):
        raise ValueError(f"Poseidon MDS is defined for width {len(POSEIDON_MDS_CIRC)}, got {width}")
    return tuple(
        tuple(
            POSEIDON_MDS_CIRC[(col - row) % width] + (POSEIDON_MDS_DIAG[row] if row == col else 0)
            for col in range(width)
        )
        for row in range(width)
    )


@lru_cache(maxsize=None)
def poseidon2_external_constants(width: int, n_full_rounds: int) -> Tuple[Tuple[int, ...], ...]:
    """One row of `width` constants per external (full) round."""
    return tuple(
        tuple(hash_to_field(DOMAIN_POSEIDON2_EXTERNAL, _label(width, r, i)) for i in range(width))
        for r in range(n_full_rounds)
    )


@lru_cache(maxsize=None)
def poseidon2_internal_constants(width: int, n_partial_rounds: int) -> Tuple[int, ...]:
    """One constant per internal round, added to lane 0 only."""
    return tuple(
        hash_to_field(DOMAIN_POSEIDON2_INTERNAL, _label(width, r)) for r in range(n_partial_rounds)
    )


@lru_cache(maxsize=None)
def poseidon2_internal_diagonal(width: int) -> Tuple[int, ...]:
    """Diagonal D of the internal matrix diag(D) + J.

    det(diag(D) + J) = prod(D) * (1 + sum(1 / D_i)), so candidates are redrawn
    until every D_i and the bracket are non-zero.
    """
    p = GOLDILOCKS_PRIME
    attempt = 0
    while True:
        diag = tuple(
            hash_to_field(DOMAIN_POSEIDON2_DIAGONAL, _label(width, attempt, i)) for i in range(width)
        )
        if all(diag):
            bracket = (1 + sum(pow(d, p - 2, p) for d in diag)) % p
            if bracket != 0:
                return diag
        attempt += 1
