"""Constraint system lifecycle: configure, build, assign, finalise.

Three handle types carry the phase:

    CsBuilder         CONFIGURING  gates are registered against a geometry
    ConstraintSystem  BUILT        column layout is fixed; variables and gate
                                   instances are placed
    Assembly          FINALIZED    padded, immutable trace (circuit/assembly.py)

A handle that has moved on to the next phase refuses further use with
ConfigurationError.
"""

from itertools import count
from typing import Dict, List, Optional, Sequence, Tuple, Type

from poseidon_stark.circuit.assembly import Assembly, PublicInput
from poseidon_stark.circuit.gates.base import Gate, GateLayout, GateRegion
from poseidon_stark.circuit.gates.constants_allocator import ConstantsAllocatorGate
from poseidon_stark.circuit.gates.nop import NopGate
from poseidon_stark.circuit.geometry import (
    DEFAULT_MAX_TRACE_LEN,
    CSGeometry,
    GatePlacementStrategy,
    ResolverOptions,
)
from poseidon_stark.circuit.variable import CircuitPhase, Variable
from poseidon_stark.errors import (
    ConfigurationError,
    ForeignVariableError,
    UnboundVariableError,
)
from poseidon_stark.primitives.field import GOLDILOCKS_PRIME

_cs_ids = count(1)

Cell = Tuple[int, int]


def next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size <<= 1
    return size


# --- Column Planning ---

def plan_regions(
    geometry: CSGeometry, gates: Sequence[Tuple[Gate, GatePlacementStrategy]]
) -> List[GateRegion]:
    """Assign columns to every configured gate.

    Specialized gates take dedicated copy / witness columns from the right end
    of the trace, in configuration order; general-purpose gates share the rest.
    Every segment of every gate owns one selector constant column; specialized
    gate constants follow the selectors, general-purpose constants come last.

    Raises:
        ConfigurationError: If a gate does not fit the remaining budget
    """
    max_degree = geometry.max_allowed_constraint_degree
    copy_end = geometry.num_columns_under_copy_permutation
    witness_end = geometry.num_witness_columns

    layouts: Dict[str, GateLayout] = {}
    columns: Dict[str, Tuple[int, int]] = {}
    for gate, placement in gates:
        if placement is not GatePlacementStrategy.SPECIALIZED:
            continue
        layout = gate.layout(copy_end, witness_end, max_degree)
        if layout.copy_per_instance > copy_end or layout.witness_per_instance > witness_end:
            raise ConfigurationError(f"{gate.name}: not enough columns left for a specialized region")
        copy_end -= layout.copy_per_instance
        witness_end -= layout.witness_per_instance
        layouts[gate.name] = layout
        columns[gate.name] = (copy_end, witness_end)

    for gate, placement in gates:
        if placement is GatePlacementStrategy.GENERAL_PURPOSE:
            layouts[gate.name] = gate.layout(copy_end, witness_end, max_degree)

    for gate, _ in gates:
        layout = layouts[gate.name]
        if layout.segments and layout.degree + 1 > max_degree:
            raise ConfigurationError(
                f"{gate.name}: degree {layout.degree} plus selector exceeds {max_degree}"
            )

    num_selectors = sum(layouts[gate.name].num_selectors for gate, _ in gates)
    next_constant = num_selectors
    specialized_constants: Dict[str, int] = {}
    for gate, placement in gates:
        if placement is GatePlacementStrategy.SPECIALIZED:
            specialized_constants[gate.name] = next_constant
            next_constant += layouts[gate.name].constants_per_instance
    gp_constant_budget = geometry.num_constant_columns - next_constant
    if gp_constant_budget < 0:
        raise ConfigurationError(
            f"{num_selectors} selector columns and specialized constants need "
            f"{next_constant} constant columns, geometry has {geometry.num_constant_columns}"
        )

    regions = []
    selector = 0
    for gate, placement in gates:
        layout = layouts[gate.name]
        if placement is GatePlacementStrategy.SPECIALIZED:
            copy_offset, witness_offset = columns[gate.name]
            constant_offset = specialized_constants[gate.name]
            instances = 1
        else:
            copy_offset, witness_offset, constant_offset = 0, 0, next_constant
            instances = _instances_per_row(gate.name, layout, copy_end, witness_end, gp_constant_budget)
        regions.append(GateRegion(
            gate_name=gate.name,
            placement=placement,
            copy_offset=copy_offset,
            witness_offset=witness_offset,
            selector_offset=selector,
            constant_offset=constant_offset,
            instances_per_row=instances,
            layout=layout,
            parameters=gate.parameters(),
        ))
        selector += layout.num_selectors
    return regions


def _instances_per_row(name: str, layout: GateLayout, num_copy: int, num_witness: int, num_constants: int) -> int:
    limits = []
    for need, have in (
        (layout.copy_per_instance, num_copy),
        (layout.witness_per_instance, num_witness),
        (layout.constants_per_instance, num_constants),
    ):
        if need:
            limits.append(have // need)
    if not limits:
        return 1
    instances = min(limits)
    if instances == 0:
        raise ConfigurationError(f"{name}: one instance does not fit the general-purpose columns")
    return instances


# --- Configuration Phase ---

class CsBuilder:
    """Collects gate configurations for a fixed geometry."""

    def __init__(self, geometry: CSGeometry, max_trace_len: int = DEFAULT_MAX_TRACE_LEN):
        if max_trace_len < 2 or max_trace_len & (max_trace_len - 1):
            raise ConfigurationError(f"max_trace_len must be a power of two >= 2, got {max_trace_len}")
        self.geometry = geometry
        self.max_trace_len = max_trace_len
        self.phase = CircuitPhase.CONFIGURING
        self._gates: List[Tuple[Gate, GatePlacementStrategy]] = []

    def configure(self, gate: Gate, placement: GatePlacementStrategy = GatePlacementStrategy.GENERAL_PURPOSE) -> "CsBuilder":
        """Register a gate; the column budget is re-checked immediately.

        Raises:
            ConfigurationError: After build, on a duplicate gate, or if the
                gate cannot fit alongside what is already configured
        """
        self._require_configuring()
        if any(g.name == gate.name for g, _ in self._gates):
            raise ConfigurationError(f"gate {gate.name} is already configured")

        self._gates.append((gate, placement))
        try:
            plan_regions(self.geometry, self._gates)
        except ConfigurationError:
            self._gates.pop()
            raise
        return self

    def build(self, resolver_options: Optional[ResolverOptions] = None) -> "ConstraintSystem":
        self._require_configuring()
        regions = plan_regions(self.geometry, self._gates)
        self.phase = CircuitPhase.BUILT
        return ConstraintSystem(
            self.geometry,
            self.max_trace_len,
            [g for g, _ in self._gates],
            regions,
            resolver_options or ResolverOptions(),
        )

    def _require_configuring(self):
        if self.phase is not CircuitPhase.CONFIGURING:
            raise ConfigurationError("builder has already been built; configure a new one")


# --- Assignment Phase ---

class ConstraintSystem:
    """Built constraint system: allocate variables and place gate instances.

    Cells are recorded sparsely; columns are materialised by `into_assembly`.
    """

    def __init__(self, geometry, max_trace_len, gates, regions, resolver_options):
        self.cs_id = next(_cs_ids)
        self.geometry = geometry
        self.max_trace_len = max_trace_len
        self.phase = CircuitPhase.BUILT
        self.gates: List[Gate] = list(gates)
        self.regions: List[GateRegion] = list(regions)
        self._region_by_name = {r.gate_name: r for r in self.regions}
        self.max_variables = resolver_options.max_variables

        self._values: List[Optional[int]] = []
        self._placements: Dict[int, List[Cell]] = {}
        self._constants_cache: Dict[int, Variable] = {}
        self._public: List[Variable] = []

        self._copy_cells: Dict[Cell, object] = {}
        self._witness_cells: Dict[Cell, int] = {}
        self._constant_cells: Dict[Cell, int] = {}

        self._gp_rows = 0
        self._specialized_rows: Dict[str, int] = {}
        self._open_rows: Dict[Tuple[str, int], Tuple[int, int]] = {}
        self._last_instance: Dict[Tuple[str, int], tuple] = {}
        self._n_rows: Optional[int] = None

    # --- Lookups ---

    def configured_gate(self, gate_cls: Type[Gate]) -> Tuple[Gate, GateRegion]:
        for gate in self.gates:
            if isinstance(gate, gate_cls):
                return gate, self._region_by_name[gate.name]
        raise ConfigurationError(f"{gate_cls.__name__} is not configured")

    def has_gate(self, gate_cls: Type[Gate]) -> bool:
        return any(isinstance(g, gate_cls) for g in self.gates)

    @property
    def rows_used(self) -> int:
        return max([self._gp_rows] + list(self._specialized_rows.values()))

    # --- Variables ---

    def allocate_witness(self, value: int) -> Variable:
        return self._new_variable(int(value) % GOLDILOCKS_PRIME)

    def allocate_placeholder(self) -> Variable:
        return self._new_variable(None)

    def set_value(self, var: Variable, value: int) -> None:
        self._require_built()
        self._check_variable(var)
        if self._values[var.index] is not None:
            raise ConfigurationError(f"variable {var.index} already has a value")
        self._values[var.index] = int(value) % GOLDILOCKS_PRIME

    def read(self, variables: Sequence[Variable]) -> List[int]:
        """Current values of `variables` as canonical ints.

        Raises:
            UnboundVariableError: For a placeholder that was never set
        """
        result = []
        for var in variables:
            self._check_variable(var)
            value = self._values[var.index]
            if value is None:
                raise UnboundVariableError(var)
            result.append(value)
        return result

    def allocate_constant(self, value: int) -> Variable:
        """Variable pinned to `value` by a constants-allocator instance.

        Equal values share one Variable.
        """
        value = int(value) % GOLDILOCKS_PRIME
        cached = self._constants_cache.get(value)
        if cached is not None:
            return cached

        gate, _ = self.configured_gate(ConstantsAllocatorGate)
        var = self.allocate_witness(value)
        self.place_gate_instance(gate, 0, copy_cells=[var], constant_cells=[value])
        self._constants_cache[value] = var
        return var

    def declare_public_input(self, var: Variable) -> None:
        """Expose `var`; its first copy cell is bound to the value at proving time."""
        self._require_built()
        self._check_variable(var)
        if var not in self._public:
            self._public.append(var)

    def _new_variable(self, value: Optional[int]) -> Variable:
        self._require_built()
        if len(self._values) >= self.max_variables:
            raise ConfigurationError(f"variable capacity {self.max_variables} exhausted")
        var = Variable(len(self._values), self.cs_id)
        self._values.append(value)
        return var

    def _check_variable(self, var: Variable) -> None:
        if var.cs_id != self.cs_id or not 0 <= var.index < len(self._values):
            raise ForeignVariableError(var, self.cs_id)

    # --- Gate Placement ---

    def place_gate_instance(
        self,
        gate: Gate,
        segment_index: int,
        copy_cells: Sequence = (),
        witness_cells: Sequence[int] = (),
        constant_cells: Sequence[int] = (),
    ) -> int:
        """Write one gate instance into the next free slot; return its row.

        Copy cells take Variables (tied by the copy permutation) or plain
        ints; missing trailing cells are zero.
        """
        self._require_built()
        if self._n_rows is not None:
            raise ConfigurationError("trace is already padded; no more gate instances")
        region = self._region_by_name.get(gate.name)
        if region is None:
            raise ConfigurationError(f"gate {gate.name} is not configured")
        layout = region.layout
        if not 0 <= segment_index < layout.num_selectors:
            raise ValueError(f"{gate.name} has no segment {segment_index}")
        if (
            len(copy_cells) > layout.copy_per_instance
            or len(witness_cells) > layout.witness_per_instance
            or len(constant_cells) > layout.constants_per_instance
        ):
            raise ValueError(f"too many cells for one {gate.name} instance")
        for cell in copy_cells:
            if isinstance(cell, Variable):
                self._check_variable(cell)

        key = (gate.name, segment_index)
        row, slot = self._open_rows.pop(key, (None, 0))
        if row is None:
            row = self._claim_row(region)
            self._constant_cells[(region.selector_offset + segment_index, row)] = 1

        instance = (tuple(copy_cells), tuple(witness_cells), tuple(constant_cells))
        self._write_instance(region, row, slot, instance)
        self._last_instance[key] = instance
        if slot + 1 < region.instances_per_row:
            self._open_rows[key] = (row, slot + 1)
        return row

    def _claim_row(self, region: GateRegion) -> int:
        if region.placement is GatePlacementStrategy.SPECIALIZED:
            row = self._specialized_rows.get(region.gate_name, 0)
            self._specialized_rows[region.gate_name] = row + 1
        else:
            row = self._gp_rows
            self._gp_rows += 1
        if row >= self.max_trace_len:
            raise ConfigurationError(f"trace is full: max_trace_len {self.max_trace_len} rows")
        return row

    def _write_instance(self, region: GateRegion, row: int, slot: int, instance: tuple) -> None:
        layout = region.layout
        copy_cells, witness_cells, constant_cells = instance

        base = region.copy_offset + slot * layout.copy_per_instance
        for i, cell in enumerate(copy_cells):
            col = base + i
            if isinstance(cell, Variable):
                self._copy_cells[(col, row)] = cell
                self._placements.setdefault(cell.index, []).append((col, row))
            else:
                self._copy_cells[(col, row)] = int(cell) % GOLDILOCKS_PRIME

        base = region.witness_offset + slot * layout.witness_per_instance
        for i, value in enumerate(witness_cells):
            self._witness_cells[(base + i, row)] = int(value) % GOLDILOCKS_PRIME

        base = region.constant_offset + slot * layout.constants_per_instance
        for i, value in enumerate(constant_cells):
            self._constant_cells[(base + i, row)] = int(value) % GOLDILOCKS_PRIME

    def _fill_open_rows(self) -> None:
        """Repeat the last instance into every slot left free on a row."""
        for key, (row, slot) in sorted(self._open_rows.items()):
            region = self._region_by_name[key[0]]
            for s in range(slot, region.instances_per_row):
                self._write_instance(region, row, s, self._last_instance[key])
        self._open_rows.clear()

    # --- Finalisation ---

    def pad_and_shrink(self) -> int:
        """Close partly filled rows and fix the trace length; return it.

        Raises:
            ConfigurationError: Without a configured NopGate, or if the padded
                length exceeds max_trace_len
        """
        self._require_built()
        if not self.has_gate(NopGate):
            raise ConfigurationError("pad_and_shrink requires NopGate to be configured")
        if self._n_rows is not None:
            return self._n_rows

        self._fill_open_rows()
        n_rows = max(2, next_power_of_two(self.rows_used))
        if n_rows > self.max_trace_len:
            raise ConfigurationError(f"{n_rows} rows exceed max_trace_len {self.max_trace_len}")
        self._n_rows = n_rows
        return n_rows

    def into_assembly(self) -> Assembly:
        """Materialise the padded trace; this system is unusable afterwards.

        Raises:
            ConfigurationError: If pad_and_shrink was not called, or a public
                input never landed in a copy cell
            UnboundVariableError: If a placed variable has no value
        """
        self._require_built()
        if self._n_rows is None:
            raise ConfigurationError("call pad_and_shrink before into_assembly")
        n = self._n_rows
        geometry = self.geometry

        copy_columns = [[0] * n for _ in range(geometry.num_columns_under_copy_permutation)]
        for (col, row), cell in self._copy_cells.items():
            if isinstance(cell, Variable):
                value = self._values[cell.index]
                if value is None:
                    raise UnboundVariableError(cell)
                copy_columns[col][row] = value
            else:
                copy_columns[col][row] = cell

        witness_columns = _columns(self._witness_cells, geometry.num_witness_columns, n)
        constant_columns = _columns(self._constant_cells, geometry.num_constant_columns, n)

        public_inputs = []
        for var in self._public:
            cells = self._placements.get(var.index)
            if not cells:
                raise ConfigurationError(f"public input {var.index} is not placed in any copy cell")
            col, row = cells[0]
            public_inputs.append(PublicInput(column=col, row=row, value=self._values[var.index]))

        self.phase = CircuitPhase.FINALIZED
        return Assembly(
            cs_id=self.cs_id,
            geometry=geometry,
            gates=tuple(self.gates),
            regions=tuple(self.regions),
            copy_columns=tuple(tuple(c) for c in copy_columns),
            witness_columns=tuple(tuple(c) for c in witness_columns),
            constant_columns=tuple(tuple(c) for c in constant_columns),
            placements={idx: tuple(cells) for idx, cells in self._placements.items()},
            public_inputs=tuple(public_inputs),
        )

    def _require_built(self):
        if self.phase is not CircuitPhase.BUILT:
            raise ConfigurationError("constraint system is finalized")


def _columns(cells: Dict[Cell, int], n_cols: int, n_rows: int) -> List[List[int]]:
    columns = [[0] * n_rows for _ in range(n_cols)]
    for (col, row), value in cells.items():
        columns[col][row] = value
    return columns

