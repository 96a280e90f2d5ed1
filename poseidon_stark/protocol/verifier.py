"""STARK proof verification.

The verifier sees only the verification key, the proof and the claimed public
inputs. It re-derives every challenge, checks the composition identity at xi,
checks every Merkle opening, ties the openings to the first FRI layer through
the DEEP polynomial, and checks FRI folding down to a low-degree final
polynomial.

Verification never raises: malformed proofs are reported and rejected.
"""

from typing import Dict, List, Sequence

from poseidon_stark.circuit.gates import get_gate
from poseidon_stark.circuit.gates.base import ColumnContext
from poseidon_stark.errors import PoseidonStarkError
from poseidon_stark.primitives.field import (
    FF3,
    GOLDILOCKS_PRIME,
    MULTIPLICATIVE_GENERATOR,
    ff3,
    ff3_array,
    get_omega,
)
from poseidon_stark.primitives.merkle_tree import HASH_SIZE, MerkleTree, merkle_proof_length
from poseidon_stark.primitives.poseidon2 import linear_hash, verify_grinding
from poseidon_stark.primitives.transcript import Transcript
from poseidon_stark.protocol.composition import (
    QUOTIENT,
    SETUP,
    STAGE1,
    STAGE2,
    PermutationValues,
    combine,
    constraint_terms,
    leaf_value,
    opening_layout,
)
from poseidon_stark.protocol.fri import FRI
from poseidon_stark.protocol.pcs import FriPcsConfig, derive_query_indices, final_pol_digest
from poseidon_stark.protocol.proof import (
    Proof,
    VerificationKey,
    gate_set_commitment,
    validate_proof_structure,
)

# --- Type Aliases ---

Challenges = Dict[str, object]


# --- Main Entry Point ---

def verify(vk: VerificationKey, proof: Proof, public_inputs: Sequence[int]) -> bool:
    """Verify a STARK proof.

    Args:
        vk: Verification key produced alongside the proof
        proof: The proof
        public_inputs: Values the verifier expects at the public-input cells

    Returns:
        True if proof is valid, False otherwise
    """
    try:
        return _verify(vk, proof, public_inputs)
    except (
        AttributeError, ValueError, IndexError, KeyError, TypeError, ZeroDivisionError, PoseidonStarkError
    ) as e:
        print(f"ERROR: Malformed proof: {e}")
        return False


def _verify(vk: VerificationKey, proof: Proof, public_inputs: Sequence[int]) -> bool:
    # --- Structural checks ---
    public_inputs = [int(v) for v in public_inputs]
    if len(public_inputs) != len(vk.public_input_locations):
        print("ERROR: Public input count does not match the verification key")
        return False
    if public_inputs != list(proof.public_inputs):
        print("ERROR: Public inputs do not match the proof")
        return False
    if any(not 0 <= v < GOLDILOCKS_PRIME for v in public_inputs):
        print("ERROR: Public input out of range")
        return False

    if gate_set_commitment(vk.regions) != list(vk.gate_set_commitment):
        print("ERROR: Gate set commitment mismatch")
        return False

    n_bits_ext = vk.n_bits_ext
    sizes = vk.fri_round_log_sizes
    if not sizes or sizes[0] != n_bits_ext or n_bits_ext <= vk.n_bits:
        print("ERROR: Inconsistent FRI domain sizes")
        return False

    layout = opening_layout(
        vk.geometry.num_constant_columns,
        vk.n_copy_columns,
        vk.geometry.num_witness_columns,
        vk.n_stage2_columns,
        vk.n_quotient_chunks,
    )
    errors = validate_proof_structure(proof, vk, len(layout))
    if errors:
        for err in errors:
            print(f"ERROR: {err}")
        return False

    # --- Reconstruct Fiat-Shamir transcript ---
    challenges = _reconstruct_transcript(vk, proof)

    # --- Verify proof-of-work ---
    if not verify_grinding(challenges["grinding"], proof.nonce, vk.pow_bits):
        print("ERROR: PoW verification failed")
        return False

    # --- Derive FRI query indices ---
    fri_cfg = FriPcsConfig(
        n_bits_ext=n_bits_ext,
        fri_round_log_sizes=list(sizes),
        n_queries=vk.n_queries,
        merkle_arity=vk.merkle_arity,
        pow_bits=vk.pow_bits,
        transcript_arity=vk.transcript_arity,
    )
    fri_queries = derive_query_indices(fri_cfg, challenges["grinding"], proof.nonce)
    if [q.index for q in proof.queries] != fri_queries:
        print("ERROR: Query indices do not match the transcript")
        return False

    evals = [ff3(e) for e in proof.evals]

    is_valid = True

    print("Verifying evaluations")
    if not _verify_evaluations(vk, proof, layout, evals, challenges):
        print("ERROR: Invalid evaluations")
        is_valid = False

    print("Verifying stage Merkle trees")
    if not _verify_stage_trees(vk, proof):
        print("ERROR: Stage Merkle tree verification failed")
        is_valid = False

    print("Verifying FRI queries consistency")
    if not _verify_fri_consistency(vk, proof, layout, evals, challenges):
        print("ERROR: Verify FRI query consistency failed")
        is_valid = False

    print("Verifying FRI foldings Merkle Trees")
    if not _verify_fri_trees(vk, proof):
        print("ERROR: FRI folding Merkle Tree verification failed")
        is_valid = False

    print("Verifying FRI foldings")
    if not _verify_fri_folding(vk, proof, challenges):
        print("ERROR: FRI folding verification failed")
        is_valid = False

    print("Verifying final pol")
    if not _verify_final_polynomial(vk, proof):
        print("ERROR: Final polynomial verification failed")
        is_valid = False

    return is_valid


# --- Transcript ---

def _reconstruct_transcript(vk: VerificationKey, proof: Proof) -> Challenges:
    """Replay the prover's transcript and collect every challenge."""
    transcript = Transcript(arity=vk.transcript_arity)
    transcript.put(vk.digest())
    transcript.put(proof.public_inputs)

    transcript.put(proof.stage1_root)
    beta = transcript.get_challenge()
    gamma = transcript.get_challenge()

    transcript.put(proof.stage2_root)
    alpha = transcript.get_challenge()

    transcript.put(proof.quotient_root)
    xi = transcript.get_challenge()

    evals_flat = [c for e in proof.evals for c in e]
    transcript.put(linear_hash(evals_flat, vk.transcript_arity * HASH_SIZE))
    v = transcript.get_challenge()

    fri_challenges = []
    for root in proof.fri_roots:
        transcript.put(root)
        fri_challenges.append(transcript.get_challenge())

    transcript.put(final_pol_digest(_final_pol(proof), vk.transcript_arity))
    grinding = transcript.get_state(3)

    return {
        "beta": beta,
        "gamma": gamma,
        "alpha": alpha,
        "xi": xi,
        "v": v,
        "fri": fri_challenges,
        "grinding": grinding,
    }


def _final_pol(proof: Proof) -> FF3:
    return ff3_array(*zip(*proof.final_pol))


# --- Evaluation Check ---

def _split_evals(layout, evals: List[FF3]) -> Dict[str, List[FF3]]:
    """Group evaluations by tree; z at xi*w under the key 'z_next'."""
    groups: Dict[str, List[FF3]] = {SETUP: [], STAGE1: [], STAGE2: [], QUOTIENT: [], "z_next": []}
    for opening, value in zip(layout, evals):
        groups["z_next" if opening.shifted else opening.tree].append(value)
    return groups


def _verify_evaluations(vk: VerificationKey, proof: Proof, layout, evals: List[FF3], challenges: Challenges) -> bool:
    """Check Q(xi) * Z_H(xi) = C(xi)."""
    xi = challenges["xi"]
    n_constants = vk.geometry.num_constant_columns
    n_copy = vk.n_copy_columns
    groups = _split_evals(layout, evals)

    setup, trace, stage2 = groups[SETUP], groups[STAGE1], groups[STAGE2]
    gates = [get_gate(region.gate_name, region.parameters) for region in vk.regions]
    gate_ctx = ColumnContext(trace[:n_copy], trace[n_copy:], setup[:n_constants], FF3)
    perm = PermutationValues(
        copy=trace[:n_copy],
        sigma=setup[n_constants:],
        z=stage2[0],
        z_next=groups["z_next"][0],
        partials=stage2[1:],
    )
    composition = combine(
        constraint_terms(
            gates, vk.regions, gate_ctx, perm, xi,
            challenges["beta"], challenges["gamma"], vk.n_bits, vk.chunk_size,
            vk.public_input_locations, proof.public_inputs,
        ),
        challenges["alpha"],
    )

    n = vk.n_rows
    xi_n = xi ** n
    quotient = FF3(0)
    power = FF3(1)
    for chunk in groups[QUOTIENT]:
        quotient = quotient + power * chunk
        power = power * xi_n

    return bool(quotient * (xi_n - FF3(1)) == composition)


# --- Merkle Checks ---

def _tree_ok(tree: MerkleTree, root, qp, idx: int, leaf_len: int, proof_len: int) -> bool:
    if len(qp.v) != leaf_len or len(qp.mp) != proof_len:
        return False
    return tree.verify_group_proof(root, qp.mp, idx, qp.v)


def _verify_stage_trees(vk: VerificationKey, proof: Proof) -> bool:
    tree = MerkleTree(arity=vk.merkle_arity)
    proof_len = merkle_proof_length(1 << vk.n_bits_ext, vk.merkle_arity)
    n_copy = vk.n_copy_columns
    leaf_lens = {
        "setup": vk.geometry.num_constant_columns + n_copy,
        "stage1": n_copy + vk.geometry.num_witness_columns,
        "stage2": 3 * vk.n_stage2_columns,
        "quotient": 3 * vk.n_quotient_chunks,
    }
    roots = {
        "setup": vk.setup_root,
        "stage1": proof.stage1_root,
        "stage2": proof.stage2_root,
        "quotient": proof.quotient_root,
    }

    for q in proof.queries:
        for name, leaf_len in leaf_lens.items():
            if not _tree_ok(tree, roots[name], getattr(q, name), q.index, leaf_len, proof_len):
                print(f"ERROR: {name} opening at query {q.index} does not match its root")
                return False
    return True


def _verify_fri_trees(vk: VerificationKey, proof: Proof) -> bool:
    tree = MerkleTree(arity=vk.merkle_arity)
    sizes = vk.fri_round_log_sizes
    for r, root in enumerate(proof.fri_roots):
        height = 1 << sizes[r + 1]
        leaf_len = 3 * (1 << (sizes[r] - sizes[r + 1]))
        proof_len = merkle_proof_length(height, vk.merkle_arity)
        for q in proof.queries:
            if not _tree_ok(tree, root, q.fri[r], q.index % height, leaf_len, proof_len):
                return False
    return True


# --- FRI Checks ---

def _fri_layer_value(vk: VerificationKey, proof: Proof, query, layer: int) -> FF3:
    """Value of FRI layer `layer` at the query's folded position."""
    sizes = vk.fri_round_log_sizes
    pos = query.index % (1 << sizes[layer])
    if layer == len(sizes) - 1:
        return ff3(proof.final_pol[pos])
    slot = pos >> sizes[layer + 1]
    return ff3(query.fri[layer].v[3 * slot:3 * slot + 3])


def _verify_fri_consistency(vk: VerificationKey, proof: Proof, layout, evals: List[FF3], challenges: Challenges) -> bool:
    """DEEP polynomial from the stage openings must match FRI layer 0."""
    xi = challenges["xi"]
    xi_w = xi * FF3(get_omega(vk.n_bits))
    v = challenges["v"]
    omega_ext = get_omega(vk.n_bits_ext)

    for q in proof.queries:
        x = FF3((MULTIPLICATIVE_GENERATOR * pow(omega_ext, q.index, GOLDILOCKS_PRIME)) % GOLDILOCKS_PRIME)
        leaves = {SETUP: q.setup.v, STAGE1: q.stage1.v, STAGE2: q.stage2.v, QUOTIENT: q.quotient.v}

        sum_xi, sum_xi_w = FF3(0), FF3(0)
        power = FF3(1)
        for opening, value in zip(layout, evals):
            term = power * (leaf_value(leaves[opening.tree], opening) - value)
            if opening.shifted:
                sum_xi_w = sum_xi_w + term
            else:
                sum_xi = sum_xi + term
            power = power * v

        deep = sum_xi / (x - xi) + sum_xi_w / (x - xi_w)
        if deep != _fri_layer_value(vk, proof, q, 0):
            print(f"ERROR: DEEP value mismatch at query {q.index}")
            return False
    return True


def _verify_fri_folding(vk: VerificationKey, proof: Proof, challenges: Challenges) -> bool:
    sizes = vk.fri_round_log_sizes
    for r in range(len(sizes) - 1):
        challenge = challenges["fri"][r]
        for q in proof.queries:
            leaf = q.fri[r].v
            siblings = [ff3(leaf[3 * i:3 * i + 3]) for i in range(len(leaf) // 3)]
            folded = FRI.verify_fold(
                r, vk.n_bits_ext, sizes[r + 1], sizes[r], challenge,
                q.index % (1 << sizes[r + 1]), siblings,
            )
            if folded != _fri_layer_value(vk, proof, q, r + 1):
                print(f"ERROR: FRI fold {r} mismatch at query {q.index}")
                return False
    return True


def _verify_final_polynomial(vk: VerificationKey, proof: Proof) -> bool:
    """Coefficients above the folded degree bound must vanish."""
    last = vk.fri_round_log_sizes[-1]
    blowup_bits = vk.n_bits_ext - vk.n_bits
    bound = 1 << (last - blowup_bits) if last > blowup_bits else 1

    coeffs = FRI.final_coefficients(_final_pol(proof), vk.n_bits_ext, last)
    for i in range(bound, len(coeffs)):
        if any(coeffs[i]):
            print(f"ERROR: Final polynomial coefficient {i} is non-zero")
            return False
    return True
