"""Tests for the chunked grand-product copy-permutation argument."""

import numpy as np
import pytest

from poseidon_stark.primitives.field import FF3, GOLDILOCKS_PRIME, ff3, get_omega, lift
from poseidon_stark.protocol.permutation import (
    chunk_ranges,
    copy_permutation_terms,
    grand_product,
    lagrange_basis,
    non_residues,
    sigma_columns,
)

CHUNK_SIZE = 7
BETA = ff3([11, 3, 5])
GAMMA = ff3([2, 17, 9])


def _domain(n_bits: int):
    omega = get_omega(n_bits)
    return [pow(omega, r, GOLDILOCKS_PRIME) for r in range(1 << n_bits)]


def _terms_on_trace_domain(assembly):
    sigma = sigma_columns(assembly)
    z, partials = grand_product(
        assembly.copy_columns, sigma, BETA, GAMMA, assembly.n_bits, CHUNK_SIZE
    )
    n = assembly.n_rows
    z_next = z[[(r + 1) % n for r in range(n)]]
    l0 = lift([1] + [0] * (n - 1))
    return z, copy_permutation_terms(
        [lift(c) for c in assembly.copy_columns],
        [lift(s) for s in sigma],
        lift(_domain(assembly.n_bits)),
        z,
        z_next,
        partials,
        BETA,
        GAMMA,
        l0,
        CHUNK_SIZE,
    )


class TestLayout:
    """Coset identifiers and chunking."""

    def test_non_residues(self) -> None:
        assert non_residues(3) == [1, 7, 49]

    @pytest.mark.parametrize("n_cols,expected", [(80, 12), (14, 2), (7, 1), (1, 1)])
    def test_chunk_count(self, n_cols: int, expected: int) -> None:
        ranges = chunk_ranges(n_cols, CHUNK_SIZE)
        assert len(ranges) == expected
        assert ranges[0][0] == 0 and ranges[-1][1] == n_cols

    def test_last_chunk_is_short(self) -> None:
        assert chunk_ranges(80, CHUNK_SIZE)[-1] == (77, 80)


class TestSigma:
    """Sigma columns follow the copy cycles."""

    def test_unused_column_is_identity(self, poseidon2_assembly) -> None:
        sigma = sigma_columns(poseidon2_assembly)
        k = non_residues(80)[79]
        domain = _domain(poseidon2_assembly.n_bits)
        assert sigma[79] == [(k * w) % GOLDILOCKS_PRIME for w in domain]

    def test_cycle_points_to_next_cell(self, poseidon2_build) -> None:
        assembly, report = poseidon2_build
        cells = assembly.placements[report.outputs[0].index]
        sigma = sigma_columns(assembly)
        (c0, r0), (c1, r1) = cells[0], cells[1]
        k = non_residues(80)
        omega = get_omega(assembly.n_bits)
        assert sigma[c0][r0] == (k[c1] * pow(omega, r1, GOLDILOCKS_PRIME)) % GOLDILOCKS_PRIME
        assert sigma[c1][r1] == (k[c0] * pow(omega, r0, GOLDILOCKS_PRIME)) % GOLDILOCKS_PRIME


class TestGrandProduct:
    """Running product and its constraints on the trace domain."""

    def test_starts_at_one(self, assembly) -> None:
        sigma = sigma_columns(assembly)
        z, partials = grand_product(
            assembly.copy_columns, sigma, BETA, GAMMA, assembly.n_bits, CHUNK_SIZE
        )
        assert z[0] == FF3(1)
        assert len(z) == assembly.n_rows
        assert len(partials) == len(chunk_ranges(80, CHUNK_SIZE)) - 1

    def test_terms_vanish_for_honest_assembly(self, assembly) -> None:
        _, terms = _terms_on_trace_domain(assembly)
        assert len(terms) == 1 + len(chunk_ranges(80, CHUNK_SIZE))
        for term in terms:
            assert np.all(term == 0)

    def test_broken_cycle_leaves_residual(self, poseidon2_build) -> None:
        assembly, report = poseidon2_build
        col, row = assembly.placements[report.outputs[0].index][0]
        tampered = assembly.with_copy_cell(col, row, (assembly.copy_columns[col][row] + 1) % GOLDILOCKS_PRIME)
        _, terms = _terms_on_trace_domain(tampered)
        assert any(np.any(term != 0) for term in terms[1:])


class TestLagrangeBasis:
    """Lagrange basis outside the trace domain."""

    @pytest.mark.parametrize("n_bits", [1, 2, 3])
    def test_partition_of_unity(self, n_bits: int) -> None:
        x = ff3([3, 1, 4])
        total = FF3(0)
        for row in range(1 << n_bits):
            total = total + lagrange_basis(row, x, n_bits)
        assert total == FF3(1)

    def test_interpolates_identity(self) -> None:
        x = ff3([5, 0, 2])
        n_bits = 2
        total = FF3(0)
        for row, w in enumerate(_domain(n_bits)):
            total = total + lagrange_basis(row, x, n_bits) * FF3(w)
        assert total == x
