"""Padding gate."""

from poseidon_stark.circuit.gates.base import Gate, GateLayout


class NopGate(Gate):
    """Marks padding rows: no cells, no selectors, no constraints.

    Must be configured for `pad_and_shrink` to be allowed.
    """

    name = "nop"

    def layout(self, num_copy, num_witness, max_degree):
        return GateLayout(
            segments=(),
            copy_per_instance=0,
            witness_per_instance=0,
            constants_per_instance=0,
            degree=0,
        )

    def evaluate(self, segment, ctx):
        return []
