"""In-circuit vs. reference permutation check."""

from dataclasses import dataclass
from typing import List, Sequence, Type

from poseidon_stark.circuit.gates.round_function import RoundFunctionGate
from poseidon_stark.circuit.variable import Variable
from poseidon_stark.errors import EquivalenceMismatch


@dataclass(frozen=True)
class EquivalenceReport:
    """CAPACITY output variables with their circuit and reference values."""
    outputs: List[Variable]
    circuit_values: List[int]
    reference_values: List[int]


def check_round_function_equivalence(
    cs, gate_cls: Type[RoundFunctionGate], values: Sequence[int]
) -> EquivalenceReport:
    """Run the gate on `values` with a zero capacity and compare to the reference.

    The CAPACITY lanes share one deduplicated zero constant.

    Raises:
        EquivalenceMismatch: On the first differing output lane
        ConfigurationError: If the gate or the constants allocator is not configured
    """
    gate, _ = cs.configured_gate(gate_cls)
    if len(values) != gate.rate:
        raise ValueError(f"expected {gate.rate} input values, got {len(values)}")

    inputs = [cs.allocate_witness(v) for v in values]
    zero = cs.allocate_constant(0)
    outputs = gate_cls.compute_round_function(cs, inputs, [zero] * gate.capacity)

    circuit_values = cs.read(outputs)
    reference = gate.reference_permutation(list(values) + [0] * gate.capacity)[:gate.capacity]

    for i, (got, want) in enumerate(zip(circuit_values, reference)):
        if got != want:
            raise EquivalenceMismatch(i, got, want)

    return EquivalenceReport(outputs, circuit_values, list(reference))
