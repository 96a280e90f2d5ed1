"""Command-line demo: build a round-function circuit, check it, optionally prove it.

Usage:
    python -m poseidon_stark --family poseidon2
    python -m poseidon_stark --family poseidon --prove --lde-factor 8 --out-dir proofs/
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from poseidon_stark.artifacts import save_artifacts
from poseidon_stark.circuit.assembly import Assembly
from poseidon_stark.circuit.constraint_system import CsBuilder
from poseidon_stark.circuit.equivalence import EquivalenceReport, check_round_function_equivalence
from poseidon_stark.circuit.geometry import DEFAULT_MAX_TRACE_LEN, ResolverOptions
from poseidon_stark.circuit.gates import ConstantsAllocatorGate, NopGate
from poseidon_stark.circuit.gates.round_function import RoundFunctionFamily
from poseidon_stark.circuit.satisfiability import check_if_satisfied
from poseidon_stark.errors import PoseidonStarkError
from poseidon_stark.primitives.worker import Worker
from poseidon_stark.protocol.config import ProofConfig
from poseidon_stark.protocol.prover import prove
from poseidon_stark.protocol.verifier import verify


def build_round_function_assembly(
    family: RoundFunctionFamily,
    values: Optional[Sequence[int]] = None,
    max_trace_len: int = DEFAULT_MAX_TRACE_LEN,
    params=None,
) -> Tuple[Assembly, EquivalenceReport]:
    """Run one permutation in-circuit and finalise the trace.

    The CAPACITY outputs are declared public. `values` defaults to 0..RATE-1;
    `params` overrides the family's default permutation parameters.
    """
    gate_cls = family.gate_class
    gate = gate_cls() if params is None else gate_cls(params)
    builder = CsBuilder(family.reference_geometry, max_trace_len=max_trace_len)
    builder.configure(gate)
    builder.configure(ConstantsAllocatorGate())
    builder.configure(NopGate())
    cs = builder.build(ResolverOptions(max_variables=128))

    if values is None:
        values = list(range(gate.rate))
    report = check_round_function_equivalence(cs, gate_cls, values)
    for var in report.outputs:
        cs.declare_public_input(var)

    cs.pad_and_shrink()
    return cs.into_assembly(), report


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Poseidon / Poseidon2 round-function circuit demo"
    )
    parser.add_argument(
        "--family",
        choices=[f.value for f in RoundFunctionFamily],
        default=RoundFunctionFamily.POSEIDON2.value,
        help="Round-function gate family (default: poseidon2)",
    )
    parser.add_argument(
        "--prove",
        action="store_true",
        help="Generate and verify a STARK proof after the satisfiability check",
    )
    parser.add_argument(
        "--lde-factor",
        type=int,
        default=ProofConfig.fri_lde_factor,
        help="FRI low-degree-extension factor (power of two, >= 7)",
    )
    parser.add_argument(
        "--pow-bits",
        type=int,
        default=ProofConfig.pow_bits,
        help="Proof-of-work grinding bits (0 disables)",
    )
    parser.add_argument(
        "--security-level",
        type=int,
        default=ProofConfig.security_level,
        help="Target query soundness in bits",
    )
    parser.add_argument(
        "--max-trace-len",
        type=int,
        default=DEFAULT_MAX_TRACE_LEN,
        help="Upper bound on the padded trace length",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=None,
        help="Directory for proof_<ts>.json, vk_<ts>.json and public_<ts>.json",
    )
    parser.add_argument(
        "--threads",
        type=_positive_int,
        default=None,
        help="Worker threads (default: os.cpu_count())",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    family = RoundFunctionFamily(args.family)

    try:
        assembly, report = build_round_function_assembly(family, max_trace_len=args.max_trace_len)
    except PoseidonStarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Out of circuit result = {report.reference_values}")
    print(f"Circuit result = {report.circuit_values}")

    worker = Worker(args.threads)
    print("Checking if satisfied")
    satisfied = check_if_satisfied(assembly, worker)
    print(f"Satisfied = {satisfied}")
    if not satisfied:
        return 1
    if not args.prove:
        return 0

    try:
        config = ProofConfig(
            fri_lde_factor=args.lde_factor,
            pow_bits=args.pow_bits,
            security_level=args.security_level,
        )
        config.check_quotient_chunks(assembly.geometry.max_allowed_constraint_degree - 1)
        print(f"Proving {assembly.n_rows} rows with LDE factor {config.fri_lde_factor}")
        proof, vk = prove(assembly, config, worker)
    except PoseidonStarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    public_inputs = assembly.public_input_values()
    valid = verify(vk, proof, public_inputs)
    print(f"Proof valid = {valid}")

    if args.out_dir is not None:
        try:
            paths = save_artifacts(proof, vk, public_inputs, args.out_dir)
        except PoseidonStarkError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        for kind, path in paths.items():
            print(f"Written {kind} to {path}")

    return 0 if valid else 1


if __name__ == "__main__":
    sys.exit(main())
