"""Copy-permutation argument (grand product over chunked columns).

Copy column c at row r is identified by k_c * w^r with k_c = 7^c; sigma maps
every cell to the identifier of the next cell in its copy cycle. With
challenges beta, gamma the grand product

    z(w^(r+1)) = z(w^r) * prod_c (v_c + beta*k_c*w^r + gamma) / (v_c + beta*sigma_c + gamma)

returns to 1 exactly when each cycle carries one value. Columns are grouped in
chunks of `chunk_size` so each chunk constraint stays within the degree cap;
chunk j's running product lives in its own stage-2 column.
"""

from typing import List, Sequence, Tuple

from poseidon_stark.circuit.assembly import Assembly
from poseidon_stark.primitives.field import (
    FF3,
    GOLDILOCKS_PRIME,
    MULTIPLICATIVE_GENERATOR,
    batch_inverse,
    ff3_array,
    ff3_coeffs,
    get_omega,
    lift,
)


def non_residues(n_cols: int) -> List[int]:
    """Coset representatives k_c = 7^c; the cosets k_c * H are disjoint."""
    return [pow(MULTIPLICATIVE_GENERATOR, c, GOLDILOCKS_PRIME) for c in range(n_cols)]


def chunk_ranges(n_cols: int, chunk_size: int) -> List[Tuple[int, int]]:
    return [(start, min(start + chunk_size, n_cols)) for start in range(0, n_cols, chunk_size)]


def sigma_columns(assembly: Assembly) -> List[List[int]]:
    """Sigma values k_{c'} * w^{r'} of every copy cell's successor (c', r')."""
    p = GOLDILOCKS_PRIME
    omega = get_omega(assembly.n_bits)
    n = assembly.n_rows
    ks = non_residues(len(assembly.copy_columns))
    powers = [1] * n
    for r in range(1, n):
        powers[r] = (powers[r - 1] * omega) % p
    return [
        [(ks[c] * powers[r]) % p for c, r in column]
        for column in assembly.sigma_targets()
    ]


def grand_product(
    copy_columns: Sequence[Sequence[int]],
    sigma: Sequence[Sequence[int]],
    beta: FF3,
    gamma: FF3,
    n_bits: int,
    chunk_size: int,
) -> Tuple[FF3, List[FF3]]:
    """Compute z and the partial-product columns on the trace domain.

    Returns:
        (z, partials) with len(partials) == n_chunks - 1
    """
    n = 1 << n_bits
    omega = get_omega(n_bits)
    domain = [1] * n
    for r in range(1, n):
        domain[r] = (domain[r - 1] * omega) % GOLDILOCKS_PRIME
    x = lift(domain)
    ks = non_residues(len(copy_columns))

    ratios = []
    for start, end in chunk_ranges(len(copy_columns), chunk_size):
        num = den = None
        for c in range(start, end):
            v = lift(copy_columns[c]) + gamma
            n_term = v + beta * FF3(ks[c]) * x
            d_term = v + beta * lift(sigma[c])
            num = n_term if num is None else num * n_term
            den = d_term if den is None else den * d_term
        ratios.append(num * batch_inverse(den))

    step = ratios[0]
    for ratio in ratios[1:]:
        step = step * ratio

    z_values = [[1, 0, 0]]
    acc = FF3(1)
    for r in range(n - 1):
        acc = acc * step[r]
        z_values.append(ff3_coeffs(acc))
    z = ff3_array(*zip(*z_values))

    partials = []
    acc = z
    for ratio in ratios[:-1]:
        acc = acc * ratio
        partials.append(acc)
    return z, partials


def lagrange_basis(row: int, x, n_bits: int):
    """L_row(x) = w^row * (x^N - 1) / (N * (x - w^row)) for x outside the domain."""
    n = 1 << n_bits
    w_r = pow(get_omega(n_bits), row, GOLDILOCKS_PRIME)
    field = type(x)
    return field(w_r) * (x ** n - field(1)) / (field(n) * (x - field(w_r)))


def copy_permutation_terms(
    copy_vals: Sequence,
    sigma_vals: Sequence,
    x,
    z,
    z_next,
    partials: Sequence,
    beta: FF3,
    gamma: FF3,
    l0,
    chunk_size: int,
) -> List:
    """Constraint residuals of the argument, in canonical order.

    Works on FF3 scalars (at an opening point) and FF3 arrays (on a domain).
    """
    ks = non_residues(len(copy_vals))
    one = FF3(1)
    terms = [l0 * (z - one)]

    ranges = chunk_ranges(len(copy_vals), chunk_size)
    prev = z
    for j, (start, end) in enumerate(ranges):
        nxt = partials[j] if j < len(ranges) - 1 else z_next
        num = den = None
        for c in range(start, end):
            v = copy_vals[c] + gamma
            n_term = v + beta * FF3(ks[c]) * x
            d_term = v + beta * sigma_vals[c]
            num = n_term if num is None else num * n_term
            den = d_term if den is None else den * d_term
        terms.append(nxt * den - prev * num)
        prev = nxt
    return terms
