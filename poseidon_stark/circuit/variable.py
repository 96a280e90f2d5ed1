"""Variable handles."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Variable:
    """Handle into one constraint system's variable table.

    `cs_id` names the owning system; systems reject handles they did not
    allocate.
    """
    index: int
    cs_id: int


class CircuitPhase(Enum):
    """Lifecycle tag carried by every constraint-system handle."""
    CONFIGURING = "configuring"
    BUILT = "built"
    FINALIZED = "finalized"
