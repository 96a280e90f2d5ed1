"""Tests for the reference Poseidon and Poseidon2 permutations and the sponge helpers."""

import pytest

from poseidon_stark.primitives.constants import (
    hash_to_field,
    poseidon2_internal_diagonal,
    poseidon_mds_matrix,
    poseidon_round_constants,
)
from poseidon_stark.primitives.field import GOLDILOCKS_PRIME
from poseidon_stark.primitives.poseidon import (
    POSEIDON_GOLDILOCKS,
    PoseidonParams,
    full_round,
    partial_round,
    poseidon_permutation,
    poseidon_round_function_output,
)
from poseidon_stark.primitives.poseidon2 import (
    CAPACITY,
    POSEIDON2_GOLDILOCKS,
    Poseidon2Params,
    grinding,
    hash_seq,
    linear_hash,
    matmul_external,
    poseidon2_hash,
    poseidon2_permutation,
    poseidon2_round_function_output,
    verify_grinding,
)

PERMUTATIONS = [
    pytest.param(poseidon_permutation, id="poseidon"),
    pytest.param(poseidon2_permutation, id="poseidon2"),
]


class TestParameters:
    """Round counts and generated constants."""

    def test_poseidon_shape(self) -> None:
        p = POSEIDON_GOLDILOCKS
        assert (p.width, p.rate, p.capacity) == (12, 8, 4)
        assert (p.full_rounds, p.partial_rounds, p.alpha) == (8, 22, 7)
        assert [p.is_full_round(r) for r in (0, 3, 4, 25, 26, 29)] == [True, True, False, False, True, True]

    def test_poseidon2_round_indices(self) -> None:
        p = POSEIDON2_GOLDILOCKS
        assert p.external_round_index(3) == 3
        assert p.external_round_index(26) == 4
        assert p.internal_round_index(4) == 0
        assert p.internal_round_index(25) == 21

    @pytest.mark.parametrize("cls,kwargs", [
        (PoseidonParams, {"rate": 7}),
        (PoseidonParams, {"full_rounds": 7}),
        (Poseidon2Params, {"width": 10, "rate": 6}),
    ])
    def test_invalid_parameters(self, cls, kwargs) -> None:
        with pytest.raises(ValueError):
            cls(**kwargs)

    def test_constants_are_field_elements(self) -> None:
        rc = poseidon_round_constants(12, 30)
        assert len(rc) == 30 and all(len(row) == 12 for row in rc)
        assert all(0 <= c < GOLDILOCKS_PRIME for row in rc for c in row)

    def test_constants_are_deterministic(self) -> None:
        assert hash_to_field(b"domain", b"label") == hash_to_field(b"domain", b"label")
        assert hash_to_field(b"domain", b"label") != hash_to_field(b"domain", b"other")

    def test_mds_is_circulant_plus_diagonal(self) -> None:
        mds = poseidon_mds_matrix(12)
        assert mds[0][0] == 17 + 8
        assert mds[1][1] == 17
        assert mds[1][2] == mds[0][1]

    def test_mds_width_checked(self) -> None:
        with pytest.raises(ValueError):
            poseidon_mds_matrix(8)

    def test_internal_diagonal_invertible(self) -> None:
        diag = poseidon2_internal_diagonal(12)
        assert all(diag)
        p = GOLDILOCKS_PRIME
        assert (1 + sum(pow(d, p - 2, p) for d in diag)) % p != 0


class TestReferencePermutations:
    """Shared permutation properties."""

    @pytest.mark.parametrize("perm", PERMUTATIONS)
    def test_deterministic_and_width_preserving(self, perm) -> None:
        state = list(range(12))
        out = perm(state)
        assert out == perm(state)
        assert len(out) == 12
        assert all(0 <= v < GOLDILOCKS_PRIME for v in out)

    @pytest.mark.parametrize("perm", PERMUTATIONS)
    def test_changes_every_lane(self, perm) -> None:
        a = perm([0] * 12)
        b = perm([1] + [0] * 11)
        assert all(x != y for x, y in zip(a, b))

    @pytest.mark.parametrize("perm", PERMUTATIONS)
    def test_reduces_inputs(self, perm) -> None:
        state = list(range(12))
        shifted = [v + GOLDILOCKS_PRIME for v in state]
        assert perm(state) == perm(shifted)

    @pytest.mark.parametrize("perm", PERMUTATIONS)
    def test_wrong_width(self, perm) -> None:
        with pytest.raises(ValueError):
            perm([0] * 11)

    def test_poseidon_round_composition(self) -> None:
        p = POSEIDON_GOLDILOCKS
        state = list(range(12))
        for rnd in range(p.total_rounds):
            state = full_round(state, rnd) if p.is_full_round(rnd) else partial_round(state, rnd)
        assert state == poseidon_permutation(list(range(12)))

    def test_partial_round_touches_lane_zero_only_before_mixing(self) -> None:
        a = partial_round([0] * 12, 4)
        b = partial_round([0] * 11 + [1], 4)
        # lane 11 enters linearly, so the difference is the last MDS column
        diff = [(y - x) % GOLDILOCKS_PRIME for x, y in zip(a, b)]
        assert diff == [row[11] for row in poseidon_mds_matrix(12)]

    def test_external_matrix_is_linear(self) -> None:
        x = list(range(1, 13))
        doubled = matmul_external([2 * v for v in x])
        assert doubled == [(2 * v) % GOLDILOCKS_PRIME for v in matmul_external(x)]

    @pytest.mark.parametrize("fn,perm", [
        (poseidon_round_function_output, poseidon_permutation),
        (poseidon2_round_function_output, poseidon2_permutation),
    ])
    def test_round_function_output_is_capacity_prefix(self, fn, perm) -> None:
        values = list(range(8))
        assert fn(values) == perm(values + [0] * 4)[:4]

    @pytest.mark.parametrize("fn", [poseidon_round_function_output, poseidon2_round_function_output])
    def test_round_function_output_needs_rate_inputs(self, fn) -> None:
        with pytest.raises(ValueError):
            fn(list(range(12)))


class TestSponge:
    """Poseidon2 hashing used by Merkle trees and the transcript."""

    @pytest.mark.parametrize("width", [4, 8, 12, 16])
    def test_poseidon2_hash_widths(self, width: int) -> None:
        assert len(poseidon2_hash(list(range(width)), width)) == width

    def test_linear_hash_short_input_is_padded(self) -> None:
        assert linear_hash([1, 2], 8) == [1, 2, 0, 0]

    def test_linear_hash_long_input(self) -> None:
        data = list(range(20))
        h = linear_hash(data, 16)
        assert len(h) == CAPACITY
        assert h == linear_hash(data, 16)
        assert h != linear_hash(data[:-1] + [99], 16)

    def test_linear_hash_single_block(self) -> None:
        data = list(range(1, 9))
        assert linear_hash(data, 12) == hash_seq(data + [0] * 4, 12)

    def test_linear_hash_rejects_width(self) -> None:
        with pytest.raises(ValueError):
            linear_hash([1, 2, 3, 4, 5], 10)

    def test_grinding_zero_bits(self) -> None:
        assert grinding([1, 2, 3], 0) == 0
        assert verify_grinding([1, 2, 3], 12345, 0)

    def test_grinding_finds_valid_nonce(self) -> None:
        challenge = [7, 8, 9]
        nonce = grinding(challenge, 4)
        assert verify_grinding(challenge, nonce, 4)
        assert all(not verify_grinding(challenge, n, 4) for n in range(nonce))

    def test_grinding_challenge_size(self) -> None:
        with pytest.raises(ValueError):
            grinding([1, 2], 1)
