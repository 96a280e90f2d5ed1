"""Gate pinning a copy cell to a fixed constant."""

from poseidon_stark.circuit.gates.base import Gate, GateLayout, Segment
from poseidon_stark.errors import ConfigurationError

CONSTANT_SEGMENT = Segment(kind="constant")


class ConstantsAllocatorGate(Gate):
    """`var - c = 0` with `c` stored in a constant column.

    One copy cell and one constant cell per instance; as many instances per
    row as the remaining columns allow.
    """

    name = "constants_allocator"

    def layout(self, num_copy, num_witness, max_degree):
        if num_copy < 1:
            raise ConfigurationError("constants allocator needs one copy-permutation column")
        if max_degree < 2:
            raise ConfigurationError("constants allocator needs degree 2 (selector * linear)")
        return GateLayout(
            segments=(CONSTANT_SEGMENT,),
            copy_per_instance=1,
            witness_per_instance=0,
            constants_per_instance=1,
            degree=1,
        )

    def evaluate(self, segment, ctx):
        return [ctx.copy(0) - ctx.constant(0)]
