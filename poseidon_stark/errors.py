"""Error taxonomy.

Construction and configuration errors abort immediately. Verification never
raises: a rejected proof is a plain False from `protocol.verifier.verify`.
"""

from typing import Optional


class PoseidonStarkError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(PoseidonStarkError):
    """Gate, geometry or lifecycle mismatch detected at configure / build time."""


class ForeignVariableError(ConfigurationError):
    """A Variable handle was used with a constraint system that did not allocate it."""

    def __init__(self, variable, cs_id: int):
        self.variable = variable
        self.cs_id = cs_id
        super().__init__(
            f"variable {variable.index} belongs to constraint system {variable.cs_id}, "
            f"not {cs_id}"
        )


class UnboundVariableError(PoseidonStarkError):
    """A value was read before anything assigned it."""

    def __init__(self, variable):
        self.variable = variable
        super().__init__(f"variable {variable.index} has no value yet")


class EquivalenceMismatch(PoseidonStarkError):
    """In-circuit permutation output differs from the reference permutation."""

    def __init__(self, index: int, circuit_value: int, reference_value: int):
        self.index = index
        self.circuit_value = circuit_value
        self.reference_value = reference_value
        super().__init__(
            f"output {index}: circuit produced {circuit_value}, "
            f"reference produced {reference_value}"
        )


class UnsatisfiedConstraint(PoseidonStarkError):
    """First failing constraint found by the satisfiability check.

    Attributes:
        gate: Gate name, or "copy_permutation" / "public_input"
        row: Trace row
        constraint_index: Residual index within the gate's row constraints
            (copy column for copy-permutation failures)
        segment: Segment kind for gate failures
    """

    def __init__(self, gate: str, row: int, constraint_index: int, segment: Optional[str] = None):
        self.gate = gate
        self.row = row
        self.constraint_index = constraint_index
        self.segment = segment
        where = f"{gate}/{segment}" if segment else gate
        super().__init__(f"{where}: constraint {constraint_index} not satisfied at row {row}")

    @property
    def location(self):
        return (self.gate, self.row, self.constraint_index)


class ArtifactIOError(PoseidonStarkError):
    """Persisting or loading a proof artifact failed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
