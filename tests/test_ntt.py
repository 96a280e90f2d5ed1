"""Tests for the NTT engine and the polynomial helpers built on it."""

import galois
import numpy as np
import pytest

from poseidon_stark.primitives.field import (
    FF,
    FF3,
    GOLDILOCKS_PRIME,
    SHIFT,
    domain_points,
    ff3,
    ff3_coeffs,
    get_omega,
)
from poseidon_stark.primitives.ntt import NTT, coset_evaluate
from poseidon_stark.primitives.polynomial import (
    coset_to_coefficients,
    coset_to_coefficients_cubic,
    evaluate_at,
    extend_to_domain,
    extend_to_domain_cubic,
    split_chunks,
    to_coefficients,
    to_coefficients_cubic,
)


def _horner(coeffs, x):
    acc = FF(0)
    for c in reversed(list(coeffs)):
        acc = acc * x + c
    return acc


class TestNTT:
    """Test NTT operations."""

    @pytest.mark.parametrize("n_bits", [0, 1, 3, 5])
    def test_ntt_intt_roundtrip(self, n_bits: int) -> None:
        n = 1 << n_bits
        ntt = NTT(n)
        coeffs = FF.Random(n)
        assert np.array_equal(ntt.intt(ntt.ntt(coeffs)), coeffs)

    def test_ntt_evaluates_on_subgroup(self) -> None:
        coeffs = FF([3, 1, 4, 1, 5, 9, 2, 6])
        evals = NTT(8).ntt(coeffs)
        w = FF(get_omega(3))
        for i in range(8):
            assert evals[i] == _horner(coeffs, w ** i)

    @pytest.mark.parametrize("n_bits", [1, 4])
    def test_matches_galois_transform(self, n_bits: int) -> None:
        n = 1 << n_bits
        coeffs = FF.Random(n)
        expected = galois.ntt([int(c) for c in coeffs], modulus=GOLDILOCKS_PRIME)
        assert [int(v) for v in NTT(n).ntt(coeffs)] == [int(v) for v in expected]

    def test_ntt_linearity(self) -> None:
        ntt = NTT(16)
        x, y = FF.Random(16), FF.Random(16)
        a, b = FF(5), FF(7)
        assert np.array_equal(ntt.ntt(a * x + b * y), a * ntt.ntt(x) + b * ntt.ntt(y))

    @pytest.mark.parametrize("size", [0, 3, 12])
    def test_invalid_domain_size(self, size: int) -> None:
        with pytest.raises(ValueError):
            NTT(size)

    def test_wrong_input_length(self) -> None:
        with pytest.raises(ValueError):
            NTT(4).ntt(FF([1, 2, 3]))

    def test_extend_pol_evaluates_on_coset(self) -> None:
        """extend_pol(evals)[i] == P(SHIFT * w_ext^i)."""
        coeffs = FF([2, 7, 1, 8])
        evals = NTT(4).ntt(coeffs)
        extended = NTT(4).extend_pol(evals, 16)
        points = domain_points(4, shift=int(SHIFT))
        for i in range(16):
            assert extended[i] == _horner(coeffs, points[i])

    def test_extend_pol_rejects_bad_size(self) -> None:
        with pytest.raises(ValueError):
            NTT(8).extend_pol(FF.Random(8), 12)

    def test_coset_evaluate_and_interpolate(self) -> None:
        coeffs = FF([11, 0, 5])
        evals = coset_evaluate(coeffs, 8)
        recovered = NTT(8).coset_intt(evals)
        assert [int(c) for c in recovered] == [11, 0, 5, 0, 0, 0, 0, 0]

    def test_coset_evaluate_too_many_coefficients(self) -> None:
        with pytest.raises(ValueError):
            coset_evaluate(FF.Random(9), 8)


class TestPolynomial:
    """Protocol-facing polynomial helpers."""

    def test_to_coefficients_inverts_ntt(self) -> None:
        coeffs = FF.Random(8)
        assert np.array_equal(to_coefficients(NTT(8).ntt(coeffs)), coeffs)

    def test_extension_keeps_degree(self) -> None:
        evals = FF.Random(4)
        ext = extend_to_domain(evals, 32)
        coeffs = coset_to_coefficients(ext)
        assert not np.any(coeffs[4:])
        assert np.array_equal(coeffs[:4], to_coefficients(evals))

    def test_cubic_variants_match_components(self) -> None:
        evals = FF3.Random(8)
        ext = extend_to_domain_cubic(evals, 16)
        coeffs = coset_to_coefficients_cubic(ext)
        assert np.array_equal(coeffs[:8], to_coefficients_cubic(evals))
        assert np.all(coeffs[8:] == FF3(0))

    def test_evaluate_at_base_coefficients(self) -> None:
        point = ff3([2, 1, 0])
        value = evaluate_at(FF([1, 2, 3]), point)
        assert value == FF3(1) + FF3(2) * point + FF3(3) * point * point

    def test_evaluate_at_matches_trace_values(self) -> None:
        evals = FF([5, 6, 7, 8])
        coeffs = to_coefficients(evals)
        w = get_omega(2)
        for i in range(4):
            assert ff3_coeffs(evaluate_at(coeffs, FF3(pow(w, i, int(FF.order))))) == [int(evals[i]), 0, 0]

    def test_split_chunks(self) -> None:
        coeffs = FF3([1, 2, 3, 4, 5, 6])
        chunks = split_chunks(coeffs, 2, 3)
        assert [[int(c) for c in ch] for ch in chunks] == [[1, 2], [3, 4], [5, 6]]

        # P(x) = sum_t x^(2t) * P_t(x)
        x = ff3([3, 1, 4])
        total = sum(
            (evaluate_at(ch, x) * x ** (2 * t) for t, ch in enumerate(chunks)),
            FF3(0),
        )
        assert total == evaluate_at(coeffs, x)

    def test_split_chunks_pads_short_input(self) -> None:
        chunks = split_chunks(FF3([1, 2, 3]), 2, 3)
        assert [[int(c) for c in ch] for ch in chunks] == [[1, 2], [3, 0], [0, 0]]

    def test_split_chunks_rejects_high_degree(self) -> None:
        with pytest.raises(ValueError):
            split_chunks(FF3([0, 0, 0, 0, 0, 0, 1]), 2, 3)
