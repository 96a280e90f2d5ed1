"""Sponge permutation as a multi-row gate.

The permutation is cut into row segments: a run of full rounds or a run of
partial rounds. A segment row holds

    copy cells  [0, W)        state entering the segment
    copy cells  [W, 2W)       state leaving the segment
    intermediates             witness columns first, then copy cells from 2W

Inside a segment every round but the last stores its non-linear result in an
intermediate cell (all W lanes after a full round, the S-box output after a
partial round), so every residual is one S-box of a linear form: degree alpha.
Consecutive segments share their boundary state Variables, which the copy
permutation then ties together.
"""

from abc import abstractmethod
from dataclasses import asdict
from enum import Enum
from itertools import count
from typing import Callable, ClassVar, List, Sequence, Tuple

from poseidon_stark.circuit.gates.base import ConstraintContext, Gate, GateLayout, Segment
from poseidon_stark.circuit.geometry import (
    POSEIDON2_REFERENCE_GEOMETRY,
    POSEIDON_REFERENCE_GEOMETRY,
)
from poseidon_stark.errors import ConfigurationError
from poseidon_stark.primitives.field import FF
from poseidon_stark.primitives.poseidon import (
    POSEIDON_GOLDILOCKS,
    PoseidonParams,
    poseidon_permutation,
)
from poseidon_stark.primitives.poseidon2 import (
    POSEIDON2_GOLDILOCKS,
    Poseidon2Params,
    poseidon2_permutation,
)

FULL_ROUNDS = "full_rounds"
PARTIAL_ROUNDS = "partial_rounds"


def _dot(row: Sequence[int], state: Sequence, lift: Callable):
    acc = lift(row[0]) * state[0]
    for m, s in zip(row[1:], state[1:]):
        acc = acc + lift(m) * s
    return acc


def _total(state: Sequence):
    acc = state[0]
    for s in state[1:]:
        acc = acc + s
    return acc


class RoundFunctionGate(Gate):
    """One full sponge permutation, lowered to selector-gated row segments.

    Strategies supply the round algebra over generic field values; `lift`
    embeds integer constants into whatever field the values live in.
    """

    has_initial_linear_layer = False
    params_class: ClassVar[type]

    def __init__(self, params):
        self.params = params

    def parameters(self) -> Tuple[Tuple[str, int], ...]:
        return tuple(asdict(self.params).items())

    @classmethod
    def from_parameters(cls, parameters: Sequence[Tuple[str, int]]) -> "RoundFunctionGate":
        try:
            params = cls.params_class(**dict(parameters))
        except TypeError as e:
            raise ValueError(f"{cls.name}: {e}") from None
        return cls(params)

    @property
    def width(self) -> int:
        return self.params.width

    @property
    def rate(self) -> int:
        return self.params.rate

    @property
    def capacity(self) -> int:
        return self.params.capacity

    # --- Round Algebra ---

    def initial_linear_layer(self, state: List, lift: Callable) -> List:
        return state

    @abstractmethod
    def full_round(self, state: List, rnd: int, lift: Callable) -> List:
        """Constants, S-box on every lane, linear layer."""

    @abstractmethod
    def partial_round_sbox(self, state: List, rnd: int, lift: Callable) -> List:
        """Constants and the lane-0 S-box (no linear layer)."""

    @abstractmethod
    def partial_round_mix(self, state: List, lift: Callable) -> List:
        """Linear layer of a partial round."""

    @abstractmethod
    def reference_permutation(self, state: Sequence[int]) -> List[int]:
        """Out-of-circuit permutation the gate must agree with."""

    def run_segment(self, segment: Segment, state: List, lift: Callable, bind: Callable) -> List:
        """Apply a segment's rounds; `bind` is called on every intermediate value.

        `bind` returns what the computation continues with: the value itself
        when generating a witness, the cell holding it when building residuals.
        """
        state = list(state)
        if segment.initial_linear:
            state = self.initial_linear_layer(state, lift)

        last = segment.first_round + segment.num_rounds - 1
        for rnd in range(segment.first_round, last + 1):
            if segment.kind == FULL_ROUNDS:
                state = self.full_round(state, rnd, lift)
                if rnd != last:
                    state = [bind(s) for s in state]
            else:
                state = self.partial_round_sbox(state, rnd, lift)
                if rnd != last:
                    state[0] = bind(state[0])
                state = self.partial_round_mix(state, lift)
        return state

    def num_intermediates(self, segment: Segment) -> int:
        if segment.kind == FULL_ROUNDS:
            return self.width * (segment.num_rounds - 1)
        return segment.num_rounds - 1

    # --- Gate Interface ---

    def layout(self, num_copy: int, num_witness: int, max_degree: int) -> GateLayout:
        width = self.width
        degree = self.params.alpha
        if degree + 1 > max_degree:
            raise ConfigurationError(
                f"{self.name}: S-box degree {degree} plus selector exceeds "
                f"max_allowed_constraint_degree {max_degree}"
            )
        if num_copy < 2 * width:
            raise ConfigurationError(
                f"{self.name}: needs {2 * width} copy-permutation columns for one round "
                f"layer, only {num_copy} available"
            )

        spare = num_witness + num_copy - 2 * width
        per_full = spare // width + 1
        per_partial = spare + 1

        half = self.params.half_full_rounds
        partial = self.params.partial_rounds
        segments = (
            _chunk(FULL_ROUNDS, 0, half, per_full, self.has_initial_linear_layer)
            + _chunk(PARTIAL_ROUNDS, half, partial, per_partial)
            + _chunk(FULL_ROUNDS, half + partial, half, per_full)
        )

        needed = max(self.num_intermediates(s) for s in segments)
        in_witness = min(num_witness, needed)
        return GateLayout(
            segments=tuple(segments),
            copy_per_instance=2 * width + (needed - in_witness),
            witness_per_instance=in_witness,
            constants_per_instance=0,
            degree=degree,
        )

    def evaluate(self, segment: Segment, ctx: ConstraintContext) -> List:
        width = self.width
        layout = ctx.layout
        slots = count()
        residuals = []

        def bind(value):
            cell = self._intermediate_cell(ctx, layout, next(slots))
            residuals.append(cell - value)
            return cell

        state = self.run_segment(segment, [ctx.copy(i) for i in range(width)], ctx.lift, bind)
        residuals.extend(ctx.copy(width + i) - s for i, s in enumerate(state))
        return residuals

    def _intermediate_cell(self, ctx: ConstraintContext, layout: GateLayout, j: int):
        if j < layout.witness_per_instance:
            return ctx.witness(j)
        return ctx.copy(2 * self.width + j - layout.witness_per_instance)

    # --- Assignment ---

    @classmethod
    def compute_round_function(cls, cs, inputs: Sequence, capacity_inputs: Sequence) -> List:
        """Permute inputs || capacity_inputs inside `cs`; return CAPACITY output Variables.

        Raises:
            ConfigurationError: If the gate was not configured on `cs`
            UnboundVariableError: If an input has no value yet
        """
        gate, region = cs.configured_gate(cls)
        if len(inputs) != gate.rate:
            raise ValueError(f"expected {gate.rate} rate inputs, got {len(inputs)}")
        if len(capacity_inputs) != gate.capacity:
            raise ValueError(f"expected {gate.capacity} capacity inputs, got {len(capacity_inputs)}")

        state_vars = list(inputs) + list(capacity_inputs)
        state = [FF(v) for v in cs.read(state_vars)]
        in_witness = region.layout.witness_per_instance

        for k, segment in enumerate(region.layout.segments):
            intermediates: List[int] = []

            def record(value):
                intermediates.append(int(value))
                return value

            state = gate.run_segment(segment, state, FF, record)
            out_vars = [cs.allocate_witness(int(v)) for v in state]
            cs.place_gate_instance(
                gate,
                segment_index=k,
                copy_cells=state_vars + out_vars + intermediates[in_witness:],
                witness_cells=intermediates[:in_witness],
            )
            state_vars = out_vars

        return state_vars[:gate.capacity]


def _chunk(kind: str, start: int, n_rounds: int, per_row: int, initial_linear: bool = False) -> List[Segment]:
    segments = []
    rnd = start
    while rnd < start + n_rounds:
        n = min(per_row, start + n_rounds - rnd)
        segments.append(Segment(kind, rnd, n, initial_linear and rnd == start))
        rnd += n
    return segments


class PoseidonFlattenedGate(RoundFunctionGate):
    """Poseidon: constants on every lane, circulant-plus-diagonal MDS."""

    name = "poseidon_flattened"
    params_class = PoseidonParams

    def __init__(self, params: PoseidonParams = POSEIDON_GOLDILOCKS):
        super().__init__(params)

    def _mds(self, state, lift):
        return [_dot(row, state, lift) for row in self.params.mds]

    def full_round(self, state, rnd, lift):
        rc = self.params.round_constants[rnd]
        alpha = self.params.alpha
        return self._mds([(s + lift(c)) ** alpha for s, c in zip(state, rc)], lift)

    def partial_round_sbox(self, state, rnd, lift):
        rc = self.params.round_constants[rnd]
        state = [s + lift(c) for s, c in zip(state, rc)]
        state[0] = state[0] ** self.params.alpha
        return state

    def partial_round_mix(self, state, lift):
        return self._mds(state, lift)

    def reference_permutation(self, state):
        return poseidon_permutation(state, self.params)


class Poseidon2FlattenedGate(RoundFunctionGate):
    """Poseidon2: external M4-block layer up front and in full rounds, diag + J inside."""

    name = "poseidon2_flattened"
    params_class = Poseidon2Params
    has_initial_linear_layer = True

    def __init__(self, params: Poseidon2Params = POSEIDON2_GOLDILOCKS):
        super().__init__(params)

    def _m4(self, x, lift):
        four = lift(4)
        t0 = x[0] + x[1]
        t1 = x[2] + x[3]
        t2 = x[1] + x[1] + t1
        t3 = x[3] + x[3] + t0
        t4 = four * t1 + t3
        t5 = four * t0 + t2
        return [t3 + t5, t5, t2 + t4, t4]

    def _external(self, state, lift):
        result = []
        for i in range(0, len(state), 4):
            result.extend(self._m4(state[i:i + 4], lift))
        if len(state) > 4:
            sums = [_total(result[lane::4]) for lane in range(4)]
            result = [v + sums[i % 4] for i, v in enumerate(result)]
        return result

    def initial_linear_layer(self, state, lift):
        return self._external(state, lift)

    def full_round(self, state, rnd, lift):
        rc = self.params.external_constants[self.params.external_round_index(rnd)]
        alpha = self.params.alpha
        return self._external([(s + lift(c)) ** alpha for s, c in zip(state, rc)], lift)

    def partial_round_sbox(self, state, rnd, lift):
        state = list(state)
        c = self.params.internal_constants[self.params.internal_round_index(rnd)]
        state[0] = (state[0] + lift(c)) ** self.params.alpha
        return state

    def partial_round_mix(self, state, lift):
        total = _total(state)
        return [s * lift(d) + total for s, d in zip(state, self.params.internal_diagonal)]

    def reference_permutation(self, state):
        return poseidon2_permutation(state, self.params)


class RoundFunctionFamily(Enum):
    """Gate-family selector."""
    POSEIDON = "poseidon"
    POSEIDON2 = "poseidon2"

    @property
    def gate_class(self):
        return {
            RoundFunctionFamily.POSEIDON: PoseidonFlattenedGate,
            RoundFunctionFamily.POSEIDON2: Poseidon2FlattenedGate,
        }[self]

    @property
    def reference_geometry(self):
        return {
            RoundFunctionFamily.POSEIDON: POSEIDON_REFERENCE_GEOMETRY,
            RoundFunctionFamily.POSEIDON2: POSEIDON2_REFERENCE_GEOMETRY,
        }[self]
