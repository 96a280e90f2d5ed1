"""Merkle tree commitment using Poseidon2."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from poseidon_stark.primitives.poseidon2 import hash_seq, linear_hash

# --- Constants ---

HASH_SIZE = 4

# --- Type Aliases ---

MerkleRoot = List[int]
LeafRow = List[int]


# --- Data Classes ---

@dataclass
class QueryProof:
    """Leaf values at a query index plus the authentication path.

    Attributes:
        v: The full leaf row (all committed columns, FF3 columns flattened)
        mp: Sibling hashes per level, leaf to root; each level holds
            (arity - 1) * HASH_SIZE elements
    """
    v: List[int] = field(default_factory=list)
    mp: List[List[int]] = field(default_factory=list)


# --- Data Layout ---

def transpose_for_merkle(values: Sequence[List[int]], height: int) -> List[LeafRow]:
    """Group evaluations so that positions i, i + height, i + 2*height, ... share leaf i.

    `values` holds one element (a list of ints) per domain position.
    """
    n_groups = len(values) // height
    rows: List[LeafRow] = []
    for i in range(height):
        row: LeafRow = []
        for g in range(n_groups):
            row.extend(values[i + g * height])
        rows.append(row)
    return rows


# --- Merkle Tree ---

class MerkleTree:
    """Variable-arity Merkle tree using Poseidon2 hashing."""

    def __init__(self, arity: int = 4):
        if arity not in [2, 3, 4]:
            raise ValueError(f"arity must be 2, 3, or 4, got {arity}")

        self.arity = arity
        self.sponge_width = {2: 8, 3: 12, 4: 16}[arity]

        self.height = 0
        self.levels: List[List[List[int]]] = []
        self.rows: Optional[List[LeafRow]] = None

    # --- Core Operations ---

    def merkelize(self, rows: Sequence[Sequence[int]], worker=None) -> MerkleRoot:
        """Build the tree over leaf rows and return its root.

        Leaf hashing is dispatched through `worker` when one is given.
        """
        self.rows = [[int(x) for x in row] for row in rows]
        self.height = len(self.rows)
        if self.height == 0:
            self.levels = []
            return self.get_root()

        width = self.sponge_width
        if worker is None:
            level = [linear_hash(row, width) for row in self.rows]
        else:
            level = worker.map(lambda row: linear_hash(row, width), self.rows)
        self.levels = [level]

        while len(level) > 1:
            level = self._hash_level(level)
            self.levels.append(level)

        return self.get_root()

    def get_root(self) -> MerkleRoot:
        """Return the Merkle root commitment."""
        if not self.levels:
            return [0] * HASH_SIZE
        return list(self.levels[-1][0])

    def get_group_proof(self, idx: int) -> List[List[int]]:
        """Siblings (excluding the node itself) at every level below the root."""
        path: List[List[int]] = []
        for level in self.levels[:-1]:
            base = idx - idx % self.arity
            siblings: List[int] = []
            for i in range(self.arity):
                if base + i != idx:
                    siblings.extend(self._node(level, base + i))
            path.append(siblings)
            idx //= self.arity
        return path

    def get_query_proof(self, idx: int) -> QueryProof:
        """Leaf row and authentication path for leaf `idx`.

        Raises:
            ValueError: If the tree is empty or idx out of range
        """
        if self.rows is None:
            raise ValueError("tree has not been merkelized")
        if idx < 0 or idx >= self.height:
            raise ValueError(f"Query index {idx} out of range [0, {self.height})")
        return QueryProof(v=list(self.rows[idx]), mp=self.get_group_proof(idx))

    def verify_group_proof(
        self,
        root: MerkleRoot,
        proof: Sequence[Sequence[int]],
        idx: int,
        leaf_data: Sequence[int],
    ) -> bool:
        """Verify an authentication path for a leaf row."""
        sibling_len = (self.arity - 1) * HASH_SIZE
        computed = linear_hash([int(x) for x in leaf_data], self.sponge_width)

        for level_siblings in proof:
            if len(level_siblings) != sibling_len:
                return False
            curr_idx = idx % self.arity
            idx //= self.arity

            inputs: List[int] = []
            p = 0
            for i in range(self.arity):
                if i == curr_idx:
                    inputs.extend(computed)
                else:
                    inputs.extend(int(x) for x in level_siblings[p * HASH_SIZE:(p + 1) * HASH_SIZE])
                    p += 1

            computed = hash_seq(inputs, self.sponge_width)

        return idx == 0 and computed == [int(r) for r in root[:HASH_SIZE]]

    # --- Proof Size Utilities ---

    def get_merkle_proof_length(self) -> int:
        """Number of levels in a Merkle proof."""
        return merkle_proof_length(self.height, self.arity)

    # --- Internal Helpers ---

    def _hash_level(self, level: List[List[int]]) -> List[List[int]]:
        next_level = []
        for start in range(0, len(level), self.arity):
            inputs: List[int] = []
            for i in range(self.arity):
                inputs.extend(self._node(level, start + i))
            next_level.append(hash_seq(inputs, self.sponge_width))
        return next_level

    @staticmethod
    def _node(level: List[List[int]], i: int) -> List[int]:
        """Node i of a level; positions past the end read as zero hashes."""
        if i < len(level):
            return level[i]
        return [0] * HASH_SIZE


def merkle_proof_length(height: int, arity: int) -> int:
    """Number of sibling levels for a tree with `height` leaves."""
    levels = 0
    while height > 1:
        height = (height + arity - 1) // arity
        levels += 1
    return levels
