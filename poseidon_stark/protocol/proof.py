"""Proof and verification-key data structures and serialization."""

from dataclasses import dataclass, field
from typing import Any, List, Tuple

from poseidon_stark.circuit.gates.base import GateRegion
from poseidon_stark.circuit.geometry import CSGeometry
from poseidon_stark.primitives.field import FIELD_EXTENSION_DEGREE, GOLDILOCKS_PRIME
from poseidon_stark.primitives.merkle_tree import HASH_SIZE, QueryProof
from poseidon_stark.primitives.poseidon2 import linear_hash

# --- Type Aliases ---
Hash = List[int]  # Poseidon2 hash output [h0, h1, h2, h3]

DIGEST_WIDTH = 16


# --- Canonical Encoding ---

def _encode_text(text: str) -> List[int]:
    """Length-prefixed, 7 bytes per field element."""
    data = text.encode()
    return [len(data)] + [int.from_bytes(data[i:i + 7], "little") for i in range(0, len(data), 7)]


def encode_region(region: GateRegion) -> List[int]:
    layout = region.layout
    out = _encode_text(region.gate_name) + _encode_text(region.placement.value)
    out += [
        region.copy_offset,
        region.witness_offset,
        region.selector_offset,
        region.constant_offset,
        region.instances_per_row,
        layout.copy_per_instance,
        layout.witness_per_instance,
        layout.constants_per_instance,
        layout.degree,
        len(layout.segments),
    ]
    for s in layout.segments:
        out += _encode_text(s.kind) + [s.first_round, s.num_rounds, int(s.initial_linear)]
    out.append(len(region.parameters))
    for key, value in region.parameters:
        out += _encode_text(key) + [value]
    return out


def gate_set_commitment(regions: List[GateRegion]) -> Hash:
    """Hash binding the configured gates, their parameters and their column placement."""
    data = [len(regions)]
    for region in regions:
        data += encode_region(region)
    return linear_hash(data, DIGEST_WIDTH)


# --- Data Structures ---

@dataclass
class VerificationKey:
    """Everything the verifier needs besides the proof and the public values.

    Attributes:
        geometry: Column budget the circuit was built for
        regions: Gate placements, in constraint order
        n_bits: log2 of the trace length
        n_bits_ext: log2 of the LDE domain
        public_input_locations: (copy column, row) of every public input
        setup_root: Merkle root of constant and sigma columns on the LDE
        fri_round_log_sizes: Domain bits per FRI layer
        chunk_size: Copy columns per grand-product chunk
        n_quotient_chunks: Pieces the quotient is split into
        gate_set_commitment: Hash of `regions`
    """
    geometry: CSGeometry
    regions: List[GateRegion]
    n_bits: int
    n_bits_ext: int
    public_input_locations: List[Tuple[int, int]]
    setup_root: Hash
    fri_round_log_sizes: List[int]
    n_queries: int
    pow_bits: int
    merkle_arity: int
    transcript_arity: int
    chunk_size: int
    n_quotient_chunks: int
    gate_set_commitment: Hash = field(default_factory=list)

    @property
    def n_rows(self) -> int:
        return 1 << self.n_bits

    @property
    def n_copy_columns(self) -> int:
        return self.geometry.num_columns_under_copy_permutation

    @property
    def n_stage2_columns(self) -> int:
        return -(-self.n_copy_columns // self.chunk_size)

    def digest(self) -> Hash:
        """Hash of every field; seeds the Fiat-Shamir transcript."""
        data = list(self.geometry.to_list())
        data += [self.n_bits, self.n_bits_ext, len(self.public_input_locations)]
        for col, row in self.public_input_locations:
            data += [col, row]
        data += list(self.setup_root)
        data += [len(self.fri_round_log_sizes)] + list(self.fri_round_log_sizes)
        data += [
            self.n_queries,
            self.pow_bits,
            self.merkle_arity,
            self.transcript_arity,
            self.chunk_size,
            self.n_quotient_chunks,
        ]
        data += list(self.gate_set_commitment)
        return linear_hash(data, DIGEST_WIDTH)


@dataclass
class QueryOpening:
    """Openings of every committed tree at one FRI query."""
    index: int
    setup: QueryProof
    stage1: QueryProof
    stage2: QueryProof
    quotient: QueryProof
    fri: List[QueryProof] = field(default_factory=list)


@dataclass
class Proof:
    """STARK proof for one finalised assembly.

    Attributes:
        public_inputs: Claimed public values
        stage1_root: Root of the trace (copy + witness) columns
        stage2_root: Root of the grand-product columns
        quotient_root: Root of the quotient chunks
        evals: Openings at xi (and z at xi*w); each [c0, c1, c2]
        fri_roots: One root per FRI folding round
        final_pol: Last FRI layer, evaluations as [c0, c1, c2]
        nonce: Proof-of-work nonce
        queries: Per-query openings
    """
    public_inputs: List[int] = field(default_factory=list)
    stage1_root: Hash = field(default_factory=list)
    stage2_root: Hash = field(default_factory=list)
    quotient_root: Hash = field(default_factory=list)
    evals: List[List[int]] = field(default_factory=list)
    fri_roots: List[Hash] = field(default_factory=list)
    final_pol: List[List[int]] = field(default_factory=list)
    nonce: int = 0
    queries: List[QueryOpening] = field(default_factory=list)


# --- JSON Serialization ---

def _strs(values) -> List[str]:
    return [str(v) for v in values]


def _ints(values) -> List[int]:
    return [int(v) for v in values]


def _query_proof_to_json(qp: QueryProof) -> dict:
    return {"v": _strs(qp.v), "mp": [_strs(level) for level in qp.mp]}


def _query_proof_from_json(j: dict) -> QueryProof:
    return QueryProof(v=_ints(j["v"]), mp=[_ints(level) for level in j["mp"]])


def proof_to_json(proof: Proof) -> dict[str, Any]:
    """Convert a proof to a JSON-serializable dictionary (integers as strings)."""
    return {
        "publics": _strs(proof.public_inputs),
        "root1": _strs(proof.stage1_root),
        "root2": _strs(proof.stage2_root),
        "rootQ": _strs(proof.quotient_root),
        "evals": [_strs(ev) for ev in proof.evals],
        "friRoots": [_strs(r) for r in proof.fri_roots],
        "finalPol": [_strs(c) for c in proof.final_pol],
        "nonce": str(proof.nonce),
        "queries": [
            {
                "index": str(q.index),
                "setup": _query_proof_to_json(q.setup),
                "stage1": _query_proof_to_json(q.stage1),
                "stage2": _query_proof_to_json(q.stage2),
                "quotient": _query_proof_to_json(q.quotient),
                "fri": [_query_proof_to_json(f) for f in q.fri],
            }
            for q in proof.queries
        ],
    }


def proof_from_json(j: dict[str, Any]) -> Proof:
    """Inverse of proof_to_json.

    Raises:
        KeyError, TypeError, ValueError: On malformed input
    """
    return Proof(
        public_inputs=_ints(j["publics"]),
        stage1_root=_ints(j["root1"]),
        stage2_root=_ints(j["root2"]),
        quotient_root=_ints(j["rootQ"]),
        evals=[_ints(ev) for ev in j["evals"]],
        fri_roots=[_ints(r) for r in j["friRoots"]],
        final_pol=[_ints(c) for c in j["finalPol"]],
        nonce=int(j["nonce"]),
        queries=[
            QueryOpening(
                index=int(q["index"]),
                setup=_query_proof_from_json(q["setup"]),
                stage1=_query_proof_from_json(q["stage1"]),
                stage2=_query_proof_from_json(q["stage2"]),
                quotient=_query_proof_from_json(q["quotient"]),
                fri=[_query_proof_from_json(f) for f in q["fri"]],
            )
            for q in j["queries"]
        ],
    )


def vk_to_json(vk: VerificationKey) -> dict[str, Any]:
    return {
        "geometry": _strs(vk.geometry.to_list()),
        "regions": [r.to_dict() for r in vk.regions],
        "nBits": str(vk.n_bits),
        "nBitsExt": str(vk.n_bits_ext),
        "publicInputLocations": [_strs(loc) for loc in vk.public_input_locations],
        "setupRoot": _strs(vk.setup_root),
        "friRoundLogSizes": _strs(vk.fri_round_log_sizes),
        "nQueries": str(vk.n_queries),
        "powBits": str(vk.pow_bits),
        "merkleArity": str(vk.merkle_arity),
        "transcriptArity": str(vk.transcript_arity),
        "chunkSize": str(vk.chunk_size),
        "nQuotientChunks": str(vk.n_quotient_chunks),
        "gateSetCommitment": _strs(vk.gate_set_commitment),
    }


def vk_from_json(j: dict[str, Any]) -> VerificationKey:
    return VerificationKey(
        geometry=CSGeometry(*_ints(j["geometry"])),
        regions=[GateRegion.from_dict(r) for r in j["regions"]],
        n_bits=int(j["nBits"]),
        n_bits_ext=int(j["nBitsExt"]),
        public_input_locations=[tuple(_ints(loc)) for loc in j["publicInputLocations"]],
        setup_root=_ints(j["setupRoot"]),
        fri_round_log_sizes=_ints(j["friRoundLogSizes"]),
        n_queries=int(j["nQueries"]),
        pow_bits=int(j["powBits"]),
        merkle_arity=int(j["merkleArity"]),
        transcript_arity=int(j["transcriptArity"]),
        chunk_size=int(j["chunkSize"]),
        n_quotient_chunks=int(j["nQuotientChunks"]),
        gate_set_commitment=_ints(j["gateSetCommitment"]),
    )


# --- Validation ---

def _in_field(values) -> bool:
    return all(isinstance(v, int) and 0 <= v < GOLDILOCKS_PRIME for v in values)


def _is_opening(qp) -> bool:
    return (
        isinstance(qp, QueryProof)
        and isinstance(qp.v, list)
        and isinstance(qp.mp, list)
        and all(isinstance(level, list) for level in qp.mp)
    )


def validate_proof_structure(proof: Proof, vk: VerificationKey, n_evals: int) -> List[str]:
    """Shape and range checks; an empty list means the proof is well formed."""
    errors = []

    for name, root in (
        ("stage 1", proof.stage1_root),
        ("stage 2", proof.stage2_root),
        ("quotient", proof.quotient_root),
    ):
        if len(root) != HASH_SIZE or not _in_field(root):
            errors.append(f"Malformed {name} root")

    if len(proof.evals) != n_evals:
        errors.append(f"Expected {n_evals} evaluations, got {len(proof.evals)}")
    for i, ev in enumerate(proof.evals):
        if len(ev) != FIELD_EXTENSION_DEGREE or not _in_field(ev):
            errors.append(f"Evaluation {i} is not a field extension element")

    n_fri_trees = len(vk.fri_round_log_sizes) - 1
    if len(proof.fri_roots) != n_fri_trees:
        errors.append(f"Expected {n_fri_trees} FRI roots, got {len(proof.fri_roots)}")
    for root in proof.fri_roots:
        if len(root) != HASH_SIZE or not _in_field(root):
            errors.append("Malformed FRI root")

    expected_final = 1 << vk.fri_round_log_sizes[-1]
    if len(proof.final_pol) != expected_final:
        errors.append(f"Final polynomial size {len(proof.final_pol)}, expected {expected_final}")
    for c in proof.final_pol:
        if len(c) != FIELD_EXTENSION_DEGREE or not _in_field(c):
            errors.append("Final polynomial entry is not a field extension element")
            break

    if len(proof.queries) != vk.n_queries:
        errors.append(f"Expected {vk.n_queries} queries, got {len(proof.queries)}")
    for i, q in enumerate(proof.queries):
        if not isinstance(q, QueryOpening):
            errors.append(f"Query {i} is not a query opening")
        elif not isinstance(q.fri, list) or len(q.fri) != n_fri_trees:
            errors.append(f"Query {i}: expected {n_fri_trees} FRI openings")
        elif not all(_is_opening(o) for o in [q.setup, q.stage1, q.stage2, q.quotient] + q.fri):
            errors.append(f"Query {i}: malformed Merkle opening")

    if not isinstance(proof.nonce, int) or proof.nonce < 0:
        errors.append("Malformed nonce")

    return errors
