"""Gates - Constraint patterns placed into the trace."""

from typing import Dict, Sequence, Tuple, Type

from poseidon_stark.circuit.gates.base import (
    ColumnContext,
    ConstraintContext,
    Gate,
    GateLayout,
    GateRegion,
    Segment,
    region_terms,
)
from poseidon_stark.circuit.gates.constants_allocator import ConstantsAllocatorGate
from poseidon_stark.circuit.gates.nop import NopGate
from poseidon_stark.circuit.gates.round_function import (
    Poseidon2FlattenedGate,
    PoseidonFlattenedGate,
    RoundFunctionFamily,
    RoundFunctionGate,
)

GATE_REGISTRY: Dict[str, Type[Gate]] = {
    cls.name: cls
    for cls in (NopGate, ConstantsAllocatorGate, PoseidonFlattenedGate, Poseidon2FlattenedGate)
}


def get_gate(name: str, parameters: Sequence[Tuple[str, int]] = ()) -> Gate:
    """Instantiate a registered gate by name from its recorded parameters.

    Raises:
        ValueError: If the name is unknown or the parameters are rejected
    """
    try:
        gate_cls = GATE_REGISTRY[name]
    except KeyError:
        raise ValueError(f"unknown gate: {name}") from None
    return gate_cls.from_parameters(parameters)


__all__ = [
    "Gate",
    "GateLayout",
    "GateRegion",
    "Segment",
    "ConstraintContext",
    "ColumnContext",
    "region_terms",
    "NopGate",
    "ConstantsAllocatorGate",
    "RoundFunctionGate",
    "PoseidonFlattenedGate",
    "Poseidon2FlattenedGate",
    "RoundFunctionFamily",
    "GATE_REGISTRY",
    "get_gate",
]
