"""Satisfiability check over a finalised assembly.

Gate residuals are evaluated column-wise over all rows at once, copy cycles
cell by cell. Violations are ordered by (row, region, constraint index); copy
and public-input checks rank after every gate region on the same row.
"""

from typing import List, Optional, Tuple

import numpy as np

from poseidon_stark.circuit.assembly import Assembly
from poseidon_stark.circuit.gates.base import ColumnContext, region_terms
from poseidon_stark.errors import UnsatisfiedConstraint
from poseidon_stark.primitives.field import FF

COPY_PERMUTATION = "copy_permutation"
PUBLIC_INPUT = "public_input"

# (row, region order, constraint index, gate name, segment kind)
Candidate = Tuple[int, int, int, str, Optional[str]]


def _first_nonzero_row(term) -> Optional[int]:
    rows = np.flatnonzero(term.view(np.ndarray))
    return int(rows[0]) if len(rows) else None


def _gate_violations(assembly: Assembly, worker) -> List[Candidate]:
    copy_cols, witness_cols, constant_cols = assembly.field_columns()
    ctx = ColumnContext(copy_cols, witness_cols, constant_cols, FF)

    def check_region(item) -> Optional[Candidate]:
        order, (gate, region) = item
        best = None
        for k, idx, term in region_terms(gate, region, ctx):
            row = _first_nonzero_row(term)
            if row is None:
                continue
            candidate = (row, order, idx, gate.name, region.layout.segments[k].kind)
            if best is None or candidate[:3] < best[:3]:
                best = candidate
        return best

    items = list(enumerate(assembly.gate_regions()))
    results = worker.map(check_region, items) if worker is not None else [check_region(i) for i in items]
    return [r for r in results if r is not None]


def _copy_violations(assembly: Assembly) -> List[Candidate]:
    order = len(assembly.regions)
    columns = assembly.copy_columns
    found = []
    for cells in assembly.placements.values():
        col0, row0 = cells[0]
        expected = columns[col0][row0]
        for col, row in cells[1:]:
            if columns[col][row] != expected:
                found.append((row, order, col, COPY_PERMUTATION, None))
                break
    return found


def _public_violations(assembly: Assembly) -> List[Candidate]:
    order = len(assembly.regions) + 1
    return [
        (pi.row, order, pi.column, PUBLIC_INPUT, None)
        for pi in assembly.public_inputs
        if assembly.copy_columns[pi.column][pi.row] != pi.value
    ]


def find_first_violation(assembly: Assembly, worker=None) -> Optional[UnsatisfiedConstraint]:
    """Return the first failing constraint, or None when every one holds."""
    candidates = (
        _gate_violations(assembly, worker)
        + _copy_violations(assembly)
        + _public_violations(assembly)
    )
    if not candidates:
        return None
    row, _, index, gate, segment = min(candidates, key=lambda c: c[:3])
    return UnsatisfiedConstraint(gate, row, index, segment)


def check_if_satisfied(assembly: Assembly, worker=None) -> bool:
    return find_first_violation(assembly, worker) is None
