"""Circuit - Constraint-system construction, witness assignment and checks."""

from poseidon_stark.circuit.assembly import Assembly, PublicInput
from poseidon_stark.circuit.constraint_system import ConstraintSystem, CsBuilder
from poseidon_stark.circuit.equivalence import (
    EquivalenceReport,
    check_round_function_equivalence,
)
from poseidon_stark.circuit.geometry import (
    DEFAULT_MAX_TRACE_LEN,
    POSEIDON2_REFERENCE_GEOMETRY,
    POSEIDON_REFERENCE_GEOMETRY,
    CSGeometry,
    GatePlacementStrategy,
    ResolverOptions,
)
from poseidon_stark.circuit.satisfiability import check_if_satisfied, find_first_violation
from poseidon_stark.circuit.variable import CircuitPhase, Variable

__all__ = [
    "CSGeometry",
    "GatePlacementStrategy",
    "ResolverOptions",
    "POSEIDON_REFERENCE_GEOMETRY",
    "POSEIDON2_REFERENCE_GEOMETRY",
    "DEFAULT_MAX_TRACE_LEN",
    "Variable",
    "CircuitPhase",
    "CsBuilder",
    "ConstraintSystem",
    "Assembly",
    "PublicInput",
    "EquivalenceReport",
    "check_round_function_equivalence",
    "check_if_satisfied",
    "find_first_violation",
]
