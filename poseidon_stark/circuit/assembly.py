"""Finalised, padded trace."""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Sequence, Tuple

from poseidon_stark.circuit.gates.base import Gate, GateRegion
from poseidon_stark.circuit.geometry import CSGeometry
from poseidon_stark.circuit.variable import CircuitPhase, Variable
from poseidon_stark.errors import ForeignVariableError
from poseidon_stark.primitives.field import FF, GOLDILOCKS_PRIME

Column = Tuple[int, ...]
Cell = Tuple[int, int]


@dataclass(frozen=True)
class PublicInput:
    """Copy cell whose value is claimed publicly."""
    column: int
    row: int
    value: int


@dataclass(frozen=True)
class Assembly:
    """Immutable trace: column values, gate regions and copy-cell placements.

    `placements` maps each placed variable index to its copy cells in
    placement order; the copy-permutation cycles are read off it.
    """
    cs_id: int
    geometry: CSGeometry
    gates: Tuple[Gate, ...]
    regions: Tuple[GateRegion, ...]
    copy_columns: Tuple[Column, ...]
    witness_columns: Tuple[Column, ...]
    constant_columns: Tuple[Column, ...]
    placements: Dict[int, Tuple[Cell, ...]] = field(hash=False)
    public_inputs: Tuple[PublicInput, ...] = ()

    phase = CircuitPhase.FINALIZED

    @property
    def n_rows(self) -> int:
        return len(self.copy_columns[0])

    @property
    def n_bits(self) -> int:
        return self.n_rows.bit_length() - 1

    def gate_regions(self) -> Iterator[Tuple[Gate, GateRegion]]:
        return zip(self.gates, self.regions)

    def public_input_values(self) -> List[int]:
        return [pi.value for pi in self.public_inputs]

    def field_columns(self) -> Tuple[List[FF], List[FF], List[FF]]:
        """Copy, witness and constant columns as FF arrays."""
        return (
            [FF(list(c)) for c in self.copy_columns],
            [FF(list(c)) for c in self.witness_columns],
            [FF(list(c)) for c in self.constant_columns],
        )

    def sigma_targets(self) -> List[List[Cell]]:
        """For every copy cell, the next cell of its copy cycle.

        Cells holding no variable, and variables placed once, map to themselves.
        """
        targets = [
            [(col, row) for row in range(self.n_rows)]
            for col in range(len(self.copy_columns))
        ]
        for cells in self.placements.values():
            for i, (col, row) in enumerate(cells):
                targets[col][row] = cells[(i + 1) % len(cells)]
        return targets

    # --- Derived Assemblies ---

    def padded(self, n_rows: int) -> "Assembly":
        """Append all-zero rows (no selector set) up to `n_rows`, a power of two."""
        if n_rows < self.n_rows or n_rows & (n_rows - 1):
            raise ValueError(f"cannot pad {self.n_rows} rows to {n_rows}")
        extra = (0,) * (n_rows - self.n_rows)
        return replace(
            self,
            copy_columns=tuple(c + extra for c in self.copy_columns),
            witness_columns=tuple(c + extra for c in self.witness_columns),
            constant_columns=tuple(c + extra for c in self.constant_columns),
        )

    def with_variable_value(self, var: Variable, value: int) -> "Assembly":
        """Overwrite every copy cell of `var`; gate witnesses are left alone."""
        if var.cs_id != self.cs_id:
            raise ForeignVariableError(var, self.cs_id)
        cells = self.placements.get(var.index, ())
        if not cells:
            raise ValueError(f"variable {var.index} is not placed in the trace")
        columns = [list(c) for c in self.copy_columns]
        for col, row in cells:
            columns[col][row] = int(value) % GOLDILOCKS_PRIME
        return replace(self, copy_columns=tuple(tuple(c) for c in columns))

    def with_copy_cell(self, column: int, row: int, value: int) -> "Assembly":
        """Overwrite a single copy cell."""
        columns = [list(c) for c in self.copy_columns]
        columns[column][row] = int(value) % GOLDILOCKS_PRIME
        return replace(self, copy_columns=tuple(tuple(c) for c in columns))

    def with_public_values(self, values: Sequence[int]) -> "Assembly":
        """Same trace, different claimed public values."""
        if len(values) != len(self.public_inputs):
            raise ValueError(f"expected {len(self.public_inputs)} public values, got {len(values)}")
        return replace(self, public_inputs=tuple(
            replace(pi, value=int(v) % GOLDILOCKS_PRIME)
            for pi, v in zip(self.public_inputs, values)
        ))
