"""Primitives - Field, polynomial, hashing and commitment building blocks."""

from poseidon_stark.primitives.field import (
    FF,
    FF3,
    GOLDILOCKS_PRIME,
    SHIFT,
    SHIFT_INV,
    ff3,
    ff3_coeffs,
    get_omega,
    get_omega_inv,
)
from poseidon_stark.primitives.merkle_tree import (
    HASH_SIZE,
    MerkleRoot,
    MerkleTree,
    QueryProof,
    transpose_for_merkle,
)
from poseidon_stark.primitives.ntt import NTT
from poseidon_stark.primitives.poseidon import (
    POSEIDON_GOLDILOCKS,
    PoseidonParams,
    poseidon_permutation,
)
from poseidon_stark.primitives.poseidon2 import (
    POSEIDON2_GOLDILOCKS,
    Poseidon2Params,
    linear_hash,
    poseidon2_permutation,
)
from poseidon_stark.primitives.transcript import Transcript
from poseidon_stark.primitives.worker import Worker

__all__ = [
    # Field
    "FF",
    "FF3",
    "ff3",
    "ff3_coeffs",
    "GOLDILOCKS_PRIME",
    "SHIFT",
    "SHIFT_INV",
    "get_omega",
    "get_omega_inv",
    # NTT
    "NTT",
    # Permutations
    "PoseidonParams",
    "POSEIDON_GOLDILOCKS",
    "poseidon_permutation",
    "Poseidon2Params",
    "POSEIDON2_GOLDILOCKS",
    "poseidon2_permutation",
    "linear_hash",
    # Merkle Tree
    "MerkleTree",
    "MerkleRoot",
    "QueryProof",
    "HASH_SIZE",
    "transpose_for_merkle",
    # Transcript
    "Transcript",
    # Parallelism
    "Worker",
]
