"""Base classes for gates and for constraint evaluation.

ConstraintContext gives gates one interface to cell values that works for
every consumer:

    - satisfiability checker: FF arrays over the trace rows
    - prover: FF arrays over the LDE coset
    - verifier: FF3 scalars at the out-of-domain point xi

Gate residual code is written once against this interface; galois
broadcasting does the rest.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Dict, Iterator, List, Sequence, Tuple

from poseidon_stark.circuit.geometry import GatePlacementStrategy


# --- Layout Descriptions ---

@dataclass(frozen=True)
class Segment:
    """One row shape of a gate.

    A gate may need several row shapes (e.g. a run of full rounds vs. a run of
    partial rounds); each gets its own selector column.
    """
    kind: str
    first_round: int = 0
    num_rounds: int = 0
    initial_linear: bool = False


@dataclass(frozen=True)
class GateLayout:
    """Column footprint of one gate instance and the row shapes it uses."""
    segments: Tuple[Segment, ...]
    copy_per_instance: int
    witness_per_instance: int
    constants_per_instance: int
    degree: int

    @property
    def num_selectors(self) -> int:
        return len(self.segments)


@dataclass(frozen=True)
class GateRegion:
    """Where a configured gate lives in the trace.

    Copy and witness offsets are absolute column indices; selector_offset is the
    constant column of segment 0's selector (segment k uses selector_offset + k);
    constant_offset is the first constant column of instance slot 0.
    """
    gate_name: str
    placement: GatePlacementStrategy
    copy_offset: int
    witness_offset: int
    selector_offset: int
    constant_offset: int
    instances_per_row: int
    layout: GateLayout
    # (name, value) pairs the gate is rebuilt from
    parameters: Tuple[Tuple[str, int], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["placement"] = self.placement.value
        d["parameters"] = [list(p) for p in self.parameters]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GateRegion":
        layout = d["layout"]
        return cls(
            gate_name=str(d["gate_name"]),
            placement=GatePlacementStrategy(d["placement"]),
            copy_offset=int(d["copy_offset"]),
            witness_offset=int(d["witness_offset"]),
            selector_offset=int(d["selector_offset"]),
            constant_offset=int(d["constant_offset"]),
            instances_per_row=int(d["instances_per_row"]),
            layout=GateLayout(
                segments=tuple(
                    Segment(
                        kind=str(s["kind"]),
                        first_round=int(s["first_round"]),
                        num_rounds=int(s["num_rounds"]),
                        initial_linear=bool(s["initial_linear"]),
                    )
                    for s in layout["segments"]
                ),
                copy_per_instance=int(layout["copy_per_instance"]),
                witness_per_instance=int(layout["witness_per_instance"]),
                constants_per_instance=int(layout["constants_per_instance"]),
                degree=int(layout["degree"]),
            ),
            parameters=tuple((str(k), int(v)) for k, v in d["parameters"]),
        )


# --- Constraint Contexts ---

class ConstraintContext(ABC):
    """Uniform access to cell values for constraint evaluation."""

    @abstractmethod
    def copy(self, index: int):
        """Copy-permutation column `index`."""

    @abstractmethod
    def witness(self, index: int):
        """Witness column `index`."""

    @abstractmethod
    def constant(self, index: int):
        """Constant column `index`."""

    @abstractmethod
    def lift(self, value: int):
        """Embed an integer constant into the context's field."""


class ColumnContext(ConstraintContext):
    """Context over explicit column values (arrays or scalars) of one field."""

    def __init__(self, copy_cols: Sequence, witness_cols: Sequence, constant_cols: Sequence, field):
        self._copy = copy_cols
        self._witness = witness_cols
        self._constants = constant_cols
        self._field = field

    def copy(self, index: int):
        return self._copy[index]

    def witness(self, index: int):
        return self._witness[index]

    def constant(self, index: int):
        return self._constants[index]

    def lift(self, value: int):
        return self._field(value)


class InstanceContext(ConstraintContext):
    """Gate-local view: index 0 is the first column of one instance slot."""

    def __init__(self, parent: ConstraintContext, region: GateRegion, slot: int):
        self._parent = parent
        self.layout = layout = region.layout
        self._copy_base = region.copy_offset + slot * layout.copy_per_instance
        self._witness_base = region.witness_offset + slot * layout.witness_per_instance
        self._constant_base = region.constant_offset + slot * layout.constants_per_instance

    def copy(self, index: int):
        return self._parent.copy(self._copy_base + index)

    def witness(self, index: int):
        return self._parent.witness(self._witness_base + index)

    def constant(self, index: int):
        return self._parent.constant(self._constant_base + index)

    def lift(self, value: int):
        return self._parent.lift(value)


# --- Gates ---

class Gate(ABC):
    """A repeatable constraint pattern.

    Subclasses describe their footprint (`layout`) and their residuals
    (`evaluate`); the constraint system decides where instances go.
    """

    name: ClassVar[str]

    @abstractmethod
    def layout(self, num_copy: int, num_witness: int, max_degree: int) -> GateLayout:
        """Footprint given the columns available to the gate.

        Raises:
            ConfigurationError: If one instance cannot fit
        """

    @abstractmethod
    def evaluate(self, segment: Segment, ctx: ConstraintContext) -> List:
        """Residuals of one instance; all must vanish on a satisfied row."""

    def parameters(self) -> Tuple[Tuple[str, int], ...]:
        """Constructor arguments recorded in the region; none by default."""
        return ()

    @classmethod
    def from_parameters(cls, parameters: Sequence[Tuple[str, int]]) -> "Gate":
        """Rebuild a gate from `parameters()` output.

        Raises:
            ValueError: If the gate takes no parameters but some were given
        """
        if parameters:
            raise ValueError(f"{cls.name} takes no parameters")
        return cls()

    @classmethod
    def configure_builder(cls, builder, placement: GatePlacementStrategy, *args, **kwargs):
        """Gate-side spelling of `builder.configure(cls(...), placement)`."""
        return builder.configure(cls(*args, **kwargs), placement)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def region_terms(
    gate: Gate, region: GateRegion, ctx: ConstraintContext
) -> Iterator[Tuple[int, int, Any]]:
    """Yield (segment_index, constraint_index, selector * residual) for a region.

    Order is canonical: segments, then instance slots, then residuals.
    Prover, verifier and the satisfiability checker all rely on it.
    """
    for k, segment in enumerate(region.layout.segments):
        selector = ctx.constant(region.selector_offset + k)
        index = 0
        for slot in range(region.instances_per_row):
            for residual in gate.evaluate(segment, InstanceContext(ctx, region, slot)):
                yield k, index, selector * residual
                index += 1
