"""Tests for Merkle commitments and the Fiat-Shamir transcript."""

import pytest

from poseidon_stark.primitives.field import FF3, GOLDILOCKS_PRIME
from poseidon_stark.primitives.merkle_tree import (
    HASH_SIZE,
    MerkleTree,
    merkle_proof_length,
    transpose_for_merkle,
)
from poseidon_stark.primitives.transcript import Transcript
from poseidon_stark.primitives.worker import Worker


def _rows(n_rows: int, width: int):
    return [[r * width + c for c in range(width)] for r in range(n_rows)]


class TestMerkleTree:
    """Poseidon2 Merkle tree."""

    @pytest.mark.parametrize("arity", [2, 3, 4])
    @pytest.mark.parametrize("n_rows", [1, 5, 16])
    def test_every_opening_verifies(self, arity: int, n_rows: int) -> None:
        tree = MerkleTree(arity=arity)
        root = tree.merkelize(_rows(n_rows, 6))
        assert len(root) == HASH_SIZE
        for idx in range(n_rows):
            qp = tree.get_query_proof(idx)
            assert len(qp.mp) == tree.get_merkle_proof_length()
            assert tree.verify_group_proof(root, qp.mp, idx, qp.v)

    def test_tampered_leaf_fails(self) -> None:
        tree = MerkleTree()
        root = tree.merkelize(_rows(16, 4))
        qp = tree.get_query_proof(3)
        leaf = list(qp.v)
        leaf[0] += 1
        assert not tree.verify_group_proof(root, qp.mp, 3, leaf)

    def test_wrong_index_fails(self) -> None:
        tree = MerkleTree()
        root = tree.merkelize(_rows(16, 4))
        qp = tree.get_query_proof(3)
        assert not tree.verify_group_proof(root, qp.mp, 4, qp.v)

    def test_truncated_sibling_level_fails(self) -> None:
        tree = MerkleTree()
        root = tree.merkelize(_rows(16, 4))
        qp = tree.get_query_proof(0)
        mp = [list(level) for level in qp.mp]
        mp[0] = mp[0][:-1]
        assert not tree.verify_group_proof(root, mp, 0, qp.v)

    def test_worker_gives_same_root(self) -> None:
        rows = _rows(32, 5)
        assert MerkleTree().merkelize(rows, Worker(4)) == MerkleTree().merkelize(rows)

    def test_empty_tree(self) -> None:
        tree = MerkleTree()
        assert tree.merkelize([]) == [0] * HASH_SIZE

    def test_query_out_of_range(self) -> None:
        tree = MerkleTree()
        tree.merkelize(_rows(4, 2))
        with pytest.raises(ValueError):
            tree.get_query_proof(4)

    def test_query_before_merkelize(self) -> None:
        with pytest.raises(ValueError):
            MerkleTree().get_query_proof(0)

    def test_invalid_arity(self) -> None:
        with pytest.raises(ValueError):
            MerkleTree(arity=5)

    @pytest.mark.parametrize("height,arity,expected", [(1, 4, 0), (4, 4, 1), (5, 4, 2), (32, 2, 5), (27, 3, 3)])
    def test_proof_length(self, height: int, arity: int, expected: int) -> None:
        assert merkle_proof_length(height, arity) == expected

    def test_transpose_groups_by_height(self) -> None:
        values = [[i] for i in range(8)]
        assert transpose_for_merkle(values, 2) == [[0, 2, 4, 6], [1, 3, 5, 7]]


class TestTranscript:
    """Fiat-Shamir transcript."""

    def test_deterministic(self) -> None:
        a, b = Transcript(), Transcript()
        a.put([1, 2, 3])
        b.put([1, 2, 3])
        assert a.get_field() == b.get_field()
        assert a.get_state() == b.get_state()

    def test_absorbed_data_changes_challenges(self) -> None:
        a, b = Transcript(), Transcript()
        a.put([1, 2, 3])
        b.put([1, 2, 4])
        assert a.get_field() != b.get_field()

    def test_successive_challenges_differ(self) -> None:
        t = Transcript()
        t.put([42])
        assert t.get_challenge() != t.get_challenge()

    def test_challenge_is_extension_element(self) -> None:
        t = Transcript()
        t.put([5])
        assert isinstance(t.get_challenge(), FF3)

    def test_values_in_field(self) -> None:
        t = Transcript()
        t.put([GOLDILOCKS_PRIME + 5])
        assert all(0 <= v < GOLDILOCKS_PRIME for v in t.get_field())

    def test_input_reduced_mod_p(self) -> None:
        a, b = Transcript(), Transcript()
        a.put([GOLDILOCKS_PRIME + 5])
        b.put([5])
        assert a.get_field() == b.get_field()

    def test_get_state_flushes_pending(self) -> None:
        t = Transcript()
        t.put([1])
        state = t.get_state(3)
        assert len(state) == 3
        assert t.pending == []

    @pytest.mark.parametrize("arity", [2, 3, 4])
    def test_permutations_in_range(self, arity: int) -> None:
        t = Transcript(arity=arity)
        t.put([9, 9, 9])
        indices = t.get_permutations(20, 7)
        assert len(indices) == 20
        assert all(0 <= i < 128 for i in indices)

    def test_invalid_arity(self) -> None:
        with pytest.raises(ValueError):
            Transcript(arity=1)
