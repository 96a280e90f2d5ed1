"""Column budgets and placement options for a constraint system."""

from dataclasses import dataclass
from enum import Enum

from poseidon_stark.errors import ConfigurationError


@dataclass(frozen=True)
class CSGeometry:
    """Per-row column budget and the highest constraint degree accepted.

    Attributes:
        num_columns_under_copy_permutation: Columns whose cells take part in the
            copy-permutation argument (gate inputs and outputs live here)
        num_witness_columns: Columns for gate-internal values only
        num_constant_columns: Fixed columns (selectors and gate constants)
        max_allowed_constraint_degree: Degree cap for any selector-gated constraint
    """
    num_columns_under_copy_permutation: int
    num_witness_columns: int
    num_constant_columns: int
    max_allowed_constraint_degree: int

    def __post_init__(self):
        if self.num_columns_under_copy_permutation < 1:
            raise ConfigurationError("geometry needs at least one copy-permutation column")
        if self.num_witness_columns < 0 or self.num_constant_columns < 0:
            raise ConfigurationError("column counts must be non-negative")
        if self.max_allowed_constraint_degree < 2:
            raise ConfigurationError(
                f"max_allowed_constraint_degree must be at least 2, "
                f"got {self.max_allowed_constraint_degree}"
            )

    def to_list(self):
        return [
            self.num_columns_under_copy_permutation,
            self.num_witness_columns,
            self.num_constant_columns,
            self.max_allowed_constraint_degree,
        ]


class GatePlacementStrategy(Enum):
    """Where a gate's instances go.

    GENERAL_PURPOSE shares the general-purpose columns with other gates, one
    gate kind per row. SPECIALIZED carves out dedicated columns for the gate,
    which then runs alongside general-purpose rows.
    """
    GENERAL_PURPOSE = "general_purpose"
    SPECIALIZED = "specialized"


@dataclass(frozen=True)
class ResolverOptions:
    """Capacity of the variable table."""
    max_variables: int = 1 << 16


# Reference configurations
POSEIDON_REFERENCE_GEOMETRY = CSGeometry(
    num_columns_under_copy_permutation=80,
    num_witness_columns=0,
    num_constant_columns=8,
    max_allowed_constraint_degree=8,
)

POSEIDON2_REFERENCE_GEOMETRY = CSGeometry(
    num_columns_under_copy_permutation=80,
    num_witness_columns=80,
    num_constant_columns=10,
    max_allowed_constraint_degree=8,
)

DEFAULT_MAX_TRACE_LEN = 8
