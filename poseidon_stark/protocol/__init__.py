"""Protocol - STARK prover and verifier over finalised assemblies."""

from poseidon_stark.protocol.config import ProofConfig
from poseidon_stark.protocol.fri import FRI
from poseidon_stark.protocol.pcs import FriPcs, FriPcsConfig, FriProof
from poseidon_stark.protocol.proof import (
    Proof,
    QueryOpening,
    VerificationKey,
    proof_from_json,
    proof_to_json,
    vk_from_json,
    vk_to_json,
)
from poseidon_stark.protocol.prover import prove
from poseidon_stark.protocol.verifier import verify

__all__ = [
    # Configuration
    "ProofConfig",
    # FRI
    "FRI",
    "FriPcs",
    "FriPcsConfig",
    "FriProof",
    # Proof
    "Proof",
    "QueryOpening",
    "VerificationKey",
    "proof_to_json",
    "proof_from_json",
    "vk_to_json",
    "vk_from_json",
    # Entry points
    "prove",
    "verify",
]
