"""Top-level STARK proof generation.

Stages, each closed by a transcript absorption:

    setup     constants + sigma on the LDE coset (root goes in the VK)
    stage 1   trace columns                         -> beta, gamma
    stage 2   grand product z and partial products  -> alpha
    quotient  Q = C / Z_H split into chunks         -> xi
    openings  every column at xi, z at xi*w         -> v
    FRI       DEEP polynomial committed and queried
"""

from typing import List, Optional, Tuple

import numpy as np

from poseidon_stark.circuit.assembly import Assembly
from poseidon_stark.circuit.gates.base import ColumnContext
from poseidon_stark.circuit.satisfiability import find_first_violation
from poseidon_stark.primitives.field import (
    FF,
    FF3,
    MULTIPLICATIVE_GENERATOR,
    batch_inverse,
    domain_points,
    ff3_components,
    ff3_coeffs,
    ff3_from_components,
    ff3_to_flat_list,
    get_omega,
    lift,
)
from poseidon_stark.primitives.merkle_tree import HASH_SIZE, MerkleRoot, MerkleTree
from poseidon_stark.primitives.poseidon2 import linear_hash
from poseidon_stark.primitives.polynomial import (
    coset_evaluate_cubic,
    coset_to_coefficients_cubic,
    evaluate_at,
    extend_to_domain,
    extend_to_domain_cubic,
    split_chunks,
    to_coefficients,
    to_coefficients_cubic,
)
from poseidon_stark.primitives.transcript import Transcript
from poseidon_stark.primitives.worker import Worker
from poseidon_stark.protocol.composition import (
    QUOTIENT,
    SETUP,
    STAGE1,
    STAGE2,
    LinearCombination,
    PermutationValues,
    combine,
    constraint_terms,
    opening_layout,
)
from poseidon_stark.protocol.config import ProofConfig
from poseidon_stark.protocol.pcs import FriPcs, FriPcsConfig
from poseidon_stark.protocol.permutation import grand_product, sigma_columns
from poseidon_stark.protocol.proof import (
    Proof,
    QueryOpening,
    VerificationKey,
    gate_set_commitment,
)


# --- Helper Functions ---

def _map(worker: Optional[Worker], fn, items) -> list:
    if worker is None:
        return [fn(item) for item in items]
    return worker.map(fn, items)


def _commit_base(columns: List[FF], tree: MerkleTree, worker) -> MerkleRoot:
    """Commit base-field LDE columns: leaf i is row i across all columns."""
    ints = [[int(v) for v in col] for col in columns]
    rows = [list(row) for row in zip(*ints)]
    return tree.merkelize(rows, worker)


def _commit_cubic(columns: List[FF3], tree: MerkleTree, worker) -> MerkleRoot:
    """Commit FF3 LDE columns, each value flattened to [c0, c1, c2]."""
    flat = [ff3_to_flat_list(col) for col in columns]
    n = len(columns[0])
    rows = []
    for i in range(n):
        row: List[int] = []
        for col in flat:
            row.extend(col[3 * i:3 * i + 3])
        rows.append(row)
    return tree.merkelize(rows, worker)


def derive_challenge_point(xi: FF3, n_bits: int) -> FF3:
    """xi * w, where z is opened the second time."""
    return xi * FF3(get_omega(n_bits))


def compute_evals(
    setup_cols: List[List[int]],
    trace_cols: List[List[int]],
    stage2: List[FF3],
    quotient_chunks: List[FF3],
    xi: FF3,
    n_bits: int,
    worker=None,
) -> List[FF3]:
    """Every committed polynomial at its opening point, in canonical order."""
    xi_w = derive_challenge_point(xi, n_bits)

    def base_eval(col):
        return evaluate_at(to_coefficients(FF(list(col))), xi)

    evals = _map(worker, base_eval, setup_cols)
    evals += _map(worker, base_eval, trace_cols)
    stage2_coeffs = [to_coefficients_cubic(c) for c in stage2]
    evals += [evaluate_at(c, xi) for c in stage2_coeffs]
    evals.append(evaluate_at(stage2_coeffs[0], xi_w))
    evals += [evaluate_at(c, xi) for c in quotient_chunks]
    return evals


def deep_polynomial(
    layout,
    sources,
    evals: List[FF3],
    x: FF,
    xi: FF3,
    xi_w: FF3,
    v: FF3,
) -> FF3:
    """F = sum_t v^t * (P_t(X) - P_t(z_t)) / (X - z_t) over the LDE coset."""
    at_xi, at_xi_w = LinearCombination(), LinearCombination()
    const_xi, const_xi_w = FF3(0), FF3(0)

    power = FF3(1)
    for opening, value in zip(layout, evals):
        column = sources[opening.tree][opening.column]
        if opening.shifted:
            at_xi_w.add(power, column)
            const_xi_w = const_xi_w + power * value
        else:
            at_xi.add(power, column)
            const_xi = const_xi + power * value
        power = power * v

    x3 = lift(x)
    inv_xi = batch_inverse(x3 - xi)
    inv_xi_w = batch_inverse(x3 - xi_w)
    return (at_xi.value() - const_xi) * inv_xi + (at_xi_w.value() - const_xi_w) * inv_xi_w


# --- Main Entry Point ---

def prove(
    assembly: Assembly,
    config: Optional[ProofConfig] = None,
    worker: Optional[Worker] = None,
) -> Tuple[Proof, VerificationKey]:
    """Generate a STARK proof that `assembly` is satisfied.

    Raises:
        UnsatisfiedConstraint: If the assembly violates any constraint
        ConfigurationError: If the LDE factor cannot hold the quotient
    """
    config = config or ProofConfig()

    violation = find_first_violation(assembly, worker)
    if violation is not None:
        raise violation

    geometry = assembly.geometry
    max_degree = geometry.max_allowed_constraint_degree
    chunk_size = max_degree - 1
    n_quotient_chunks = max_degree - 1
    config.check_quotient_chunks(n_quotient_chunks)

    n_bits = assembly.n_bits
    n = assembly.n_rows
    n_bits_ext = n_bits + config.blowup_bits
    n_ext = 1 << n_bits_ext
    blowup = n_ext // n
    n_copy = geometry.num_columns_under_copy_permutation
    n_constants = geometry.num_constant_columns
    fri_round_log_sizes = config.fri_round_log_sizes(n_bits_ext)

    def extend(col):
        return extend_to_domain(FF(list(col)), n_ext)

    # --- Setup: constants and sigma ---
    sigma = sigma_columns(assembly)
    setup_cols = [list(c) for c in assembly.constant_columns] + sigma
    setup_ext = _map(worker, extend, setup_cols)
    setup_tree = MerkleTree(arity=config.merkle_arity)
    setup_root = _commit_base(setup_ext, setup_tree, worker)

    vk = VerificationKey(
        geometry=geometry,
        regions=list(assembly.regions),
        n_bits=n_bits,
        n_bits_ext=n_bits_ext,
        public_input_locations=[(pi.column, pi.row) for pi in assembly.public_inputs],
        setup_root=setup_root,
        fri_round_log_sizes=fri_round_log_sizes,
        n_queries=config.n_queries,
        pow_bits=config.pow_bits,
        merkle_arity=config.merkle_arity,
        transcript_arity=config.transcript_arity,
        chunk_size=chunk_size,
        n_quotient_chunks=n_quotient_chunks,
        gate_set_commitment=gate_set_commitment(list(assembly.regions)),
    )
    public_values = assembly.public_input_values()

    transcript = Transcript(arity=config.transcript_arity)
    transcript.put(vk.digest())
    transcript.put(public_values)

    # --- Stage 1: trace ---
    trace_cols = [list(c) for c in assembly.copy_columns] + [list(c) for c in assembly.witness_columns]
    trace_ext = _map(worker, extend, trace_cols)
    stage1_tree = MerkleTree(arity=config.merkle_arity)
    stage1_root = _commit_base(trace_ext, stage1_tree, worker)
    transcript.put(stage1_root)

    beta = transcript.get_challenge()
    gamma = transcript.get_challenge()

    # --- Stage 2: copy-permutation grand product ---
    z, partials = grand_product(assembly.copy_columns, sigma, beta, gamma, n_bits, chunk_size)
    stage2 = [z] + partials
    stage2_ext = [extend_to_domain_cubic(c, n_ext) for c in stage2]
    stage2_tree = MerkleTree(arity=config.merkle_arity)
    stage2_root = _commit_cubic(stage2_ext, stage2_tree, worker)
    transcript.put(stage2_root)

    alpha = transcript.get_challenge()

    # --- Quotient ---
    x = domain_points(n_bits_ext, shift=MULTIPLICATIVE_GENERATOR)
    copy_ext = trace_ext[:n_copy]
    gate_ctx = ColumnContext(copy_ext, trace_ext[n_copy:], setup_ext[:n_constants], FF)
    z_ext = stage2_ext[0]
    perm = PermutationValues(
        copy=_map(worker, lift, copy_ext),
        sigma=_map(worker, lift, setup_ext[n_constants:]),
        z=z_ext,
        z_next=z_ext[(np.arange(n_ext) + blowup) % n_ext],
        partials=stage2_ext[1:],
    )
    composition = combine(
        constraint_terms(
            assembly.gates, assembly.regions, gate_ctx, perm, lift(x),
            beta, gamma, n_bits, chunk_size,
            vk.public_input_locations, public_values,
        ),
        alpha,
    )

    zh_inv = batch_inverse(x ** n - FF(1))
    quotient = ff3_from_components([c * zh_inv for c in ff3_components(composition)])
    quotient_chunks = split_chunks(coset_to_coefficients_cubic(quotient), n, n_quotient_chunks)
    quotient_ext = [coset_evaluate_cubic(chunk, n_ext) for chunk in quotient_chunks]
    quotient_tree = MerkleTree(arity=config.merkle_arity)
    quotient_root = _commit_cubic(quotient_ext, quotient_tree, worker)
    transcript.put(quotient_root)

    xi = transcript.get_challenge()

    # --- Openings ---
    evals = compute_evals(setup_cols, trace_cols, stage2, quotient_chunks, xi, n_bits, worker)
    evals_flat = [c for e in evals for c in ff3_coeffs(e)]
    transcript.put(linear_hash(evals_flat, config.transcript_arity * HASH_SIZE))

    v = transcript.get_challenge()

    # --- FRI on the DEEP polynomial ---
    layout = opening_layout(
        n_constants, n_copy, geometry.num_witness_columns, len(stage2), n_quotient_chunks
    )
    sources = {SETUP: setup_ext, STAGE1: trace_ext, STAGE2: stage2_ext, QUOTIENT: quotient_ext}
    deep = deep_polynomial(layout, sources, evals, x, xi, derive_challenge_point(xi, n_bits), v)

    pcs = FriPcs(FriPcsConfig(
        n_bits_ext=n_bits_ext,
        fri_round_log_sizes=fri_round_log_sizes,
        n_queries=config.n_queries,
        merkle_arity=config.merkle_arity,
        pow_bits=config.pow_bits,
        transcript_arity=config.transcript_arity,
    ))
    fri_proof = pcs.prove(deep, transcript, worker)

    queries = [
        QueryOpening(
            index=q,
            setup=setup_tree.get_query_proof(q),
            stage1=stage1_tree.get_query_proof(q),
            stage2=stage2_tree.get_query_proof(q),
            quotient=quotient_tree.get_query_proof(q),
            fri=[layer[i] for layer in fri_proof.query_proofs],
        )
        for i, q in enumerate(fri_proof.query_indices)
    ]

    proof = Proof(
        public_inputs=public_values,
        stage1_root=stage1_root,
        stage2_root=stage2_root,
        quotient_root=quotient_root,
        evals=[ff3_coeffs(e) for e in evals],
        fri_roots=fri_proof.fri_roots,
        final_pol=[ff3_coeffs(e) for e in fri_proof.final_pol],
        nonce=fri_proof.nonce,
        queries=queries,
    )
    return proof, vk
