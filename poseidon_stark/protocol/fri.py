"""FRI folding protocol."""

from typing import List, Sequence

from poseidon_stark.primitives.field import (
    FF3,
    GOLDILOCKS_PRIME,
    MULTIPLICATIVE_GENERATOR,
    ff3,
    ff3_array,
    ff3_coeffs,
    ff3_components,
    get_omega,
    get_omega_inv,
)
from poseidon_stark.primitives.merkle_tree import MerkleRoot, MerkleTree, transpose_for_merkle
from poseidon_stark.primitives.ntt import NTT
from poseidon_stark.primitives.polynomial import evaluate_at

# --- Internal Helpers ---


def _layer_shift(step: int, n_bits_ext: int, prev_bits: int) -> int:
    """Coset shift of FRI layer `step`: SHIFT^(2^k), k = bits folded so far."""
    k = n_bits_ext - prev_bits if step > 0 else 0
    return pow(MULTIPLICATIVE_GENERATOR, 1 << k, GOLDILOCKS_PRIME)


def _inv(x: int) -> int:
    return pow(x, GOLDILOCKS_PRIME - 2, GOLDILOCKS_PRIME)


def _components_as_ints(pol: FF3) -> List[List[int]]:
    return [[int(c) for c in comp] for comp in ff3_components(pol)]


# --- FRI Protocol ---

class FRI:
    """FRI protocol: folding, commitment, and verification."""

    @staticmethod
    def fold(
        step: int,
        pol: FF3,
        challenge: FF3,
        n_bits_ext: int,
        prev_bits: int,
        current_bits: int,
    ) -> FF3:
        """Fold polynomial by factor 2^(prev_bits - current_bits) using challenge."""
        p = GOLDILOCKS_PRIME
        shift_inv = _inv(_layer_shift(step, n_bits_ext, prev_bits))
        w_inv = get_omega_inv(prev_bits)

        n_out = 1 << current_bits
        fold_factor = (1 << prev_bits) // n_out
        ntt = NTT(fold_factor) if fold_factor > 1 else None
        components = _components_as_ints(pol)

        out = [[], [], []]
        w_inv_g = 1
        for g in range(n_out):
            # Group values -> coefficients of the fold_factor sub-polynomials
            group = [[comp[g + i * n_out] for i in range(fold_factor)] for comp in components]
            if ntt is not None:
                group = [[int(c) for c in ntt.intt(values)] for values in group]

            # Undo the coset offset (shift * w^g)^i
            scale = (shift_inv * w_inv_g) % p
            acc = 1
            coeffs = []
            for i in range(fold_factor):
                coeffs.append(ff3([(group[d][i] * acc) % p for d in range(3)]))
                acc = (acc * scale) % p

            folded = ff3_coeffs(evaluate_at(coeffs, challenge))
            for d in range(3):
                out[d].append(folded[d])
            w_inv_g = (w_inv_g * w_inv) % p

        return ff3_array(*out)

    @staticmethod
    def merkelize(pol: FF3, tree: MerkleTree, current_bits: int, next_bits: int, worker=None) -> MerkleRoot:
        """Commit to FRI layer via Merkle tree.

        Leaf i holds the fold group {i + g * 2^next_bits}, FF3 values flattened.
        """
        assert len(pol) == 1 << current_bits
        components = _components_as_ints(pol)
        values = [[c0, c1, c2] for c0, c1, c2 in zip(*components)]
        rows = transpose_for_merkle(values, 1 << next_bits)
        return tree.merkelize(rows, worker)

    @staticmethod
    def verify_fold(
        step: int,
        n_bits_ext: int,
        current_bits: int,
        prev_bits: int,
        challenge: FF3,
        idx: int,
        siblings: Sequence[FF3],
    ) -> FF3:
        """Recompute the folded value at `idx` from one opened leaf group."""
        p = GOLDILOCKS_PRIME
        shift = _layer_shift(step, n_bits_ext, prev_bits)
        fold_factor = 1 << (prev_bits - current_bits)
        if len(siblings) != fold_factor:
            raise ValueError(f"expected {fold_factor} group values, got {len(siblings)}")

        coeffs = list(siblings)
        if fold_factor > 1:
            coeffs = FRI._intt_cubic(coeffs, fold_factor)

        # challenge / (shift * w^idx)
        point_inv = _inv((shift * pow(get_omega(prev_bits), idx, p)) % p)
        return evaluate_at(coeffs, challenge * FF3(point_inv))

    @staticmethod
    def final_coefficients(final_pol: FF3, n_bits_ext: int, last_bits: int) -> List[List[int]]:
        """Interpolate the final layer (given on its coset) into coefficient triples."""
        p = GOLDILOCKS_PRIME
        n_final = 1 << last_bits
        assert len(final_pol) == n_final
        shift_inv = _inv(pow(MULTIPLICATIVE_GENERATOR, 1 << (n_bits_ext - last_bits), p))

        ntt = NTT(n_final)
        components = [[int(c) for c in ntt.intt(comp)] for comp in _components_as_ints(final_pol)]
        result = []
        acc = 1
        for i in range(n_final):
            result.append([(components[d][i] * acc) % p for d in range(3)])
            acc = (acc * shift_inv) % p
        return result

    @staticmethod
    def prove_queries(queries: Sequence[int], tree: MerkleTree, next_bits: int):
        """Leaf openings of one FRI tree for every query."""
        return [tree.get_query_proof(q % (1 << next_bits)) for q in queries]

    # --- Internal ---

    @staticmethod
    def _intt_cubic(values: Sequence[FF3], n: int) -> List[FF3]:
        """INTT on cubic extension elements (component-wise over base field)."""
        triples = [ff3_coeffs(v) for v in values]
        ntt = NTT(n)
        results = [[int(c) for c in ntt.intt([t[d] for t in triples])] for d in range(3)]
        return [ff3([results[0][i], results[1][i], results[2][i]]) for i in range(n)]
