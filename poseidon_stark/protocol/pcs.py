"""FRI commitment to the DEEP composition polynomial.

The prover commits every folded layer except the last, which is sent in the
clear. After the final layer is absorbed, the transcript state is ground for
`pow_bits` and the query positions are drawn from the grinding output.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from poseidon_stark.primitives.field import FF3, ff3_to_flat_list
from poseidon_stark.primitives.merkle_tree import HASH_SIZE, MerkleRoot, MerkleTree, QueryProof
from poseidon_stark.primitives.poseidon2 import grinding, linear_hash
from poseidon_stark.primitives.transcript import Transcript
from poseidon_stark.protocol.fri import FRI

Nonce = int
QueryIndex = int


@dataclass
class FriPcsConfig:
    """Layer sizes and query parameters of one FRI run."""
    n_bits_ext: int
    fri_round_log_sizes: List[int]
    n_queries: int
    merkle_arity: int = 4
    pow_bits: int = 0
    transcript_arity: int = 4

    @property
    def n_layers(self) -> int:
        """Committed layers (every size but the final one)."""
        return len(self.fri_round_log_sizes) - 1

    def layer_bits(self, layer: int) -> Tuple[int, int]:
        """(domain bits, domain bits after folding) of a committed layer."""
        return self.fri_round_log_sizes[layer], self.fri_round_log_sizes[layer + 1]


@dataclass
class FriProof:
    """Layer roots, final layer, grinding nonce and openings.

    query_proofs[layer][i] opens the tree of `layer` at query i.
    """
    fri_roots: List[MerkleRoot] = field(default_factory=list)
    final_pol: FF3 = field(default_factory=lambda: FF3([]))
    nonce: Nonce = 0
    query_proofs: List[List[QueryProof]] = field(default_factory=list)
    query_indices: List[QueryIndex] = field(default_factory=list)


class FriPcs:
    """Prover side of the FRI commitment."""

    def __init__(self, config: FriPcsConfig):
        self.config = config
        self.layer_trees = [MerkleTree(arity=config.merkle_arity) for _ in range(config.n_layers)]

    def prove(self, polynomial: FF3, transcript: Transcript, worker=None) -> FriProof:
        cfg = self.config
        roots, final_layer = self._commit_layers(polynomial, transcript, worker)
        transcript.put(final_pol_digest(final_layer, cfg.transcript_arity))

        seed = transcript.get_state(3)
        nonce = grinding(seed, cfg.pow_bits)
        queries = derive_query_indices(cfg, seed, nonce)

        openings = []
        for layer, tree in enumerate(self.layer_trees):
            _, folded_bits = cfg.layer_bits(layer)
            openings.append(FRI.prove_queries(queries, tree, folded_bits))

        return FriProof(
            fri_roots=roots,
            final_pol=final_layer,
            nonce=nonce,
            query_proofs=openings,
            query_indices=queries,
        )

    def _commit_layers(self, layer_values: FF3, transcript: Transcript, worker) -> Tuple[List[MerkleRoot], FF3]:
        """Commit each layer, draw its folding challenge and fold it."""
        cfg = self.config
        roots: List[MerkleRoot] = []
        for layer, tree in enumerate(self.layer_trees):
            bits, folded_bits = cfg.layer_bits(layer)
            root = FRI.merkelize(layer_values, tree, bits, folded_bits, worker)
            roots.append(list(root))
            transcript.put(root)
            challenge = transcript.get_challenge()
            layer_values = FRI.fold(layer, layer_values, challenge, cfg.n_bits_ext, bits, folded_bits)
        return roots, layer_values


def final_pol_digest(final_pol: FF3, transcript_arity: int) -> List[int]:
    """What the transcript absorbs for the final layer."""
    return linear_hash(ff3_to_flat_list(final_pol), transcript_arity * HASH_SIZE)


def derive_query_indices(cfg: FriPcsConfig, seed: List[int], nonce: Nonce) -> List[QueryIndex]:
    """Query positions on the LDE domain, drawn from a fresh transcript over (seed, nonce)."""
    draw = Transcript(arity=cfg.transcript_arity)
    draw.put(seed)
    draw.put([nonce])
    return draw.get_permutations(cfg.n_queries, cfg.n_bits_ext)
