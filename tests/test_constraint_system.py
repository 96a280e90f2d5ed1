"""Tests for geometry validation, gate configuration, variables and trace finalisation."""

import pytest

from poseidon_stark.circuit.constraint_system import CsBuilder, next_power_of_two
from poseidon_stark.circuit.geometry import (
    POSEIDON_REFERENCE_GEOMETRY,
    CSGeometry,
    GatePlacementStrategy,
    ResolverOptions,
)
from poseidon_stark.circuit.gates import (
    ConstantsAllocatorGate,
    NopGate,
    PoseidonFlattenedGate,
    get_gate,
)
from poseidon_stark.circuit.variable import CircuitPhase
from poseidon_stark.errors import (
    ConfigurationError,
    ForeignVariableError,
    UnboundVariableError,
)
from poseidon_stark.primitives.field import GOLDILOCKS_PRIME
from poseidon_stark.primitives.poseidon import PoseidonParams

SMALL_GEOMETRY = CSGeometry(
    num_columns_under_copy_permutation=4,
    num_witness_columns=0,
    num_constant_columns=5,
    max_allowed_constraint_degree=2,
)


def _constants_cs(geometry=SMALL_GEOMETRY, max_trace_len=8, **kwargs):
    builder = CsBuilder(geometry, max_trace_len=max_trace_len)
    builder.configure(ConstantsAllocatorGate())
    builder.configure(NopGate())
    return builder.build(**kwargs)


class TestGeometry:
    """CSGeometry validation."""

    @pytest.mark.parametrize("args", [(0, 0, 1, 8), (4, -1, 1, 8), (4, 0, -1, 8), (4, 0, 1, 1)])
    def test_invalid_geometry(self, args) -> None:
        with pytest.raises(ConfigurationError):
            CSGeometry(*args)

    def test_to_list(self) -> None:
        assert POSEIDON_REFERENCE_GEOMETRY.to_list() == [80, 0, 8, 8]

    @pytest.mark.parametrize("n,expected", [(0, 1), (1, 1), (3, 4), (4, 4), (5, 8)])
    def test_next_power_of_two(self, n: int, expected: int) -> None:
        assert next_power_of_two(n) == expected


class TestConfiguration:
    """Builder-time errors and region planning."""

    def test_degree_too_small_for_sbox(self) -> None:
        geometry = CSGeometry(80, 0, 8, 7)
        with pytest.raises(ConfigurationError, match="degree"):
            CsBuilder(geometry).configure(PoseidonFlattenedGate())

    def test_too_few_copy_columns(self) -> None:
        geometry = CSGeometry(20, 40, 8, 8)
        with pytest.raises(ConfigurationError, match="copy-permutation columns"):
            CsBuilder(geometry).configure(PoseidonFlattenedGate())

    def test_too_many_selectors(self) -> None:
        geometry = CSGeometry(80, 0, 2, 8)
        builder = CsBuilder(geometry)
        with pytest.raises(ConfigurationError, match="constant columns"):
            builder.configure(PoseidonFlattenedGate())
        # the failed gate is not kept
        builder.configure(NopGate())
        cs = builder.build()
        assert not cs.has_gate(PoseidonFlattenedGate)

    def test_duplicate_gate(self) -> None:
        builder = CsBuilder(SMALL_GEOMETRY)
        builder.configure(NopGate())
        with pytest.raises(ConfigurationError, match="already configured"):
            builder.configure(NopGate())

    def test_configure_after_build(self) -> None:
        builder = CsBuilder(SMALL_GEOMETRY)
        builder.build()
        assert builder.phase is CircuitPhase.BUILT
        with pytest.raises(ConfigurationError):
            builder.configure(NopGate())
        with pytest.raises(ConfigurationError):
            builder.build()

    @pytest.mark.parametrize("max_trace_len", [0, 1, 6])
    def test_invalid_max_trace_len(self, max_trace_len: int) -> None:
        with pytest.raises(ConfigurationError):
            CsBuilder(SMALL_GEOMETRY, max_trace_len=max_trace_len)

    def test_configure_builder_spelling(self) -> None:
        builder = CsBuilder(SMALL_GEOMETRY)
        ConstantsAllocatorGate.configure_builder(builder, GatePlacementStrategy.GENERAL_PURPOSE)
        assert builder.build().has_gate(ConstantsAllocatorGate)

    def test_general_purpose_regions(self) -> None:
        builder = CsBuilder(POSEIDON_REFERENCE_GEOMETRY)
        builder.configure(PoseidonFlattenedGate())
        builder.configure(ConstantsAllocatorGate())
        builder.configure(NopGate())
        cs = builder.build()
        poseidon, constants, nop = cs.regions

        assert poseidon.selector_offset == 0
        assert poseidon.layout.num_selectors == 3
        assert poseidon.layout.copy_per_instance == 60
        assert poseidon.instances_per_row == 1

        assert constants.selector_offset == 3
        assert constants.constant_offset == 4
        assert constants.instances_per_row == 4
        assert nop.layout.num_selectors == 0

    def test_specialized_region_takes_rightmost_columns(self) -> None:
        builder = CsBuilder(POSEIDON_REFERENCE_GEOMETRY)
        builder.configure(PoseidonFlattenedGate(), GatePlacementStrategy.SPECIALIZED)
        builder.configure(ConstantsAllocatorGate())
        cs = builder.build()
        poseidon, constants = cs.regions
        assert poseidon.copy_offset == 20
        assert poseidon.instances_per_row == 1
        assert constants.copy_offset == 0
        assert constants.instances_per_row == 4

    def test_unknown_gate_name(self) -> None:
        with pytest.raises(ValueError):
            get_gate("no_such_gate")

    def test_region_records_gate_parameters(self) -> None:
        params = PoseidonParams(partial_rounds=10)
        builder = CsBuilder(POSEIDON_REFERENCE_GEOMETRY)
        builder.configure(PoseidonFlattenedGate(params))
        builder.configure(ConstantsAllocatorGate())
        poseidon, constants = builder.build().regions
        assert dict(poseidon.parameters)["partial_rounds"] == 10
        assert constants.parameters == ()

        rebuilt = get_gate(poseidon.gate_name, poseidon.parameters)
        assert rebuilt.params == params
        assert get_gate(constants.gate_name, constants.parameters).name == constants.gate_name

    @pytest.mark.parametrize("name,parameters", [
        ("constants_allocator", (("width", 12),)),
        ("poseidon_flattened", (("no_such_field", 1),)),
        ("poseidon_flattened", (("full_rounds", 7),)),
    ])
    def test_rejected_gate_parameters(self, name, parameters) -> None:
        with pytest.raises(ValueError):
            get_gate(name, parameters)

    def test_configured_gate_lookup(self) -> None:
        cs = _constants_cs()
        gate, region = cs.configured_gate(ConstantsAllocatorGate)
        assert region.gate_name == gate.name
        with pytest.raises(ConfigurationError):
            cs.configured_gate(PoseidonFlattenedGate)


class TestVariables:
    """Allocation, binding and ownership."""

    def test_witness_values_reduced(self) -> None:
        cs = _constants_cs()
        var = cs.allocate_witness(GOLDILOCKS_PRIME + 3)
        assert cs.read([var]) == [3]

    def test_placeholder_lifecycle(self) -> None:
        cs = _constants_cs()
        var = cs.allocate_placeholder()
        with pytest.raises(UnboundVariableError):
            cs.read([var])
        cs.set_value(var, 11)
        assert cs.read([var]) == [11]
        with pytest.raises(ConfigurationError):
            cs.set_value(var, 12)

    def test_foreign_variable(self) -> None:
        cs1, cs2 = _constants_cs(), _constants_cs()
        var = cs1.allocate_witness(1)
        with pytest.raises(ForeignVariableError):
            cs2.read([var])
        with pytest.raises(ConfigurationError):
            cs2.declare_public_input(var)

    def test_variable_capacity(self) -> None:
        cs = _constants_cs(resolver_options=ResolverOptions(max_variables=2))
        cs.allocate_witness(1)
        cs.allocate_witness(2)
        with pytest.raises(ConfigurationError, match="capacity"):
            cs.allocate_witness(3)

    def test_constants_are_deduplicated(self) -> None:
        cs = _constants_cs()
        a = cs.allocate_constant(5)
        assert cs.allocate_constant(5) is a
        assert cs.allocate_constant(5 + GOLDILOCKS_PRIME) is a
        assert cs.allocate_constant(6) != a
        assert cs.read([a]) == [5]

    def test_constants_fill_rows(self) -> None:
        cs = _constants_cs()
        for v in range(4):
            cs.allocate_constant(v)
        assert cs.rows_used == 1
        cs.allocate_constant(4)
        assert cs.rows_used == 2

    def test_constant_needs_allocator(self) -> None:
        builder = CsBuilder(SMALL_GEOMETRY)
        builder.configure(NopGate())
        cs = builder.build()
        with pytest.raises(ConfigurationError):
            cs.allocate_constant(1)


class TestFinalisation:
    """pad_and_shrink and into_assembly."""

    def test_minimum_two_rows(self) -> None:
        cs = _constants_cs()
        cs.allocate_constant(1)
        assert cs.pad_and_shrink() == 2

    def test_rows_padded_to_power_of_two(self) -> None:
        cs = _constants_cs()
        for v in range(9):
            cs.allocate_constant(v)
        assert cs.rows_used == 3
        assert cs.pad_and_shrink() == 4
        assembly = cs.into_assembly()
        assert assembly.n_rows == 4
        assert assembly.n_bits == 2

    def test_open_row_filled_with_last_instance(self) -> None:
        cs = _constants_cs()
        cs.allocate_constant(7)
        cs.pad_and_shrink()
        assembly = cs.into_assembly()
        # slot 0 and the repeated slots all hold 7
        assert [assembly.copy_columns[c][0] for c in range(4)] == [7, 7, 7, 7]

    def test_pad_requires_nop(self) -> None:
        builder = CsBuilder(SMALL_GEOMETRY)
        builder.configure(ConstantsAllocatorGate())
        cs = builder.build()
        with pytest.raises(ConfigurationError, match="NopGate"):
            cs.pad_and_shrink()

    def test_trace_overflow(self) -> None:
        cs = _constants_cs(max_trace_len=2)
        for v in range(8):
            cs.allocate_constant(v)
        with pytest.raises(ConfigurationError, match="max_trace_len"):
            cs.allocate_constant(8)

    def test_into_assembly_requires_padding(self) -> None:
        cs = _constants_cs()
        with pytest.raises(ConfigurationError):
            cs.into_assembly()

    def test_no_placement_after_padding(self) -> None:
        cs = _constants_cs()
        cs.allocate_constant(1)
        cs.pad_and_shrink()
        with pytest.raises(ConfigurationError):
            cs.allocate_constant(2)

    def test_finalized_system_rejects_use(self) -> None:
        cs = _constants_cs()
        cs.allocate_constant(1)
        cs.pad_and_shrink()
        assembly = cs.into_assembly()
        assert cs.phase is CircuitPhase.FINALIZED
        assert assembly.phase is CircuitPhase.FINALIZED
        with pytest.raises(ConfigurationError, match="finalized"):
            cs.allocate_witness(1)
        with pytest.raises(ConfigurationError, match="finalized"):
            cs.into_assembly()

    def test_unbound_placed_variable(self) -> None:
        cs = _constants_cs()
        gate, _ = cs.configured_gate(ConstantsAllocatorGate)
        var = cs.allocate_placeholder()
        cs.place_gate_instance(gate, 0, copy_cells=[var], constant_cells=[3])
        cs.pad_and_shrink()
        with pytest.raises(UnboundVariableError):
            cs.into_assembly()

    def test_unplaced_public_input(self) -> None:
        cs = _constants_cs()
        cs.declare_public_input(cs.allocate_witness(5))
        cs.allocate_constant(1)
        cs.pad_and_shrink()
        with pytest.raises(ConfigurationError, match="public input"):
            cs.into_assembly()

    def test_public_input_location(self) -> None:
        cs = _constants_cs()
        cs.allocate_constant(1)
        var = cs.allocate_constant(9)
        cs.declare_public_input(var)
        cs.pad_and_shrink()
        assembly = cs.into_assembly()
        (pi,) = assembly.public_inputs
        assert (pi.column, pi.row, pi.value) == (1, 0, 9)
        assert assembly.public_input_values() == [9]

    def test_too_many_cells(self) -> None:
        cs = _constants_cs()
        gate, _ = cs.configured_gate(ConstantsAllocatorGate)
        with pytest.raises(ValueError):
            cs.place_gate_instance(gate, 0, copy_cells=[1, 2])
        with pytest.raises(ValueError):
            cs.place_gate_instance(gate, 1, copy_cells=[1])
