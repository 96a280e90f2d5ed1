"""
Poseidon / Poseidon2 round-function circuits over Goldilocks.

This package provides:
- Goldilocks field arithmetic (via galois) and a cubic extension
- Reference Poseidon and Poseidon2 permutations
- A constraint system with general-purpose and specialized gate placement
- Flattened round-function gates for both permutation families
- Equivalence and satisfiability checks over the finalised trace
- A FRI-based STARK prover and verifier with JSON artifacts
"""

from poseidon_stark.circuit import (
    Assembly,
    ConstraintSystem,
    CsBuilder,
    CSGeometry,
    GatePlacementStrategy,
    ResolverOptions,
    Variable,
    check_if_satisfied,
    check_round_function_equivalence,
    find_first_violation,
)
from poseidon_stark.circuit.gates import (
    ConstantsAllocatorGate,
    NopGate,
    Poseidon2FlattenedGate,
    PoseidonFlattenedGate,
    RoundFunctionFamily,
)
from poseidon_stark.errors import (
    ArtifactIOError,
    ConfigurationError,
    EquivalenceMismatch,
    ForeignVariableError,
    PoseidonStarkError,
    UnboundVariableError,
    UnsatisfiedConstraint,
)
from poseidon_stark.protocol import Proof, ProofConfig, VerificationKey, prove, verify

__version__ = "0.1.0"

__all__ = [
    # Circuit
    "CSGeometry",
    "GatePlacementStrategy",
    "ResolverOptions",
    "CsBuilder",
    "ConstraintSystem",
    "Assembly",
    "Variable",
    "check_round_function_equivalence",
    "check_if_satisfied",
    "find_first_violation",
    # Gates
    "NopGate",
    "ConstantsAllocatorGate",
    "PoseidonFlattenedGate",
    "Poseidon2FlattenedGate",
    "RoundFunctionFamily",
    # Protocol
    "ProofConfig",
    "Proof",
    "VerificationKey",
    "prove",
    "verify",
    # Errors
    "PoseidonStarkError",
    "ConfigurationError",
    "ForeignVariableError",
    "UnboundVariableError",
    "EquivalenceMismatch",
    "UnsatisfiedConstraint",
    "ArtifactIOError",
]
