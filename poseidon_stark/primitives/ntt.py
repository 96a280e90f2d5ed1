"""Number Theoretic Transform for Goldilocks field."""

import galois
import numpy as np

from poseidon_stark.primitives.field import FF, GOLDILOCKS_PRIME, SHIFT, SHIFT_INV

# --- NTT Engine ---


class NTT:
    """NTT engine for polynomial operations over Goldilocks field.

    Evaluation order is natural: evals[i] = P(shift * w^i) where w = get_omega(n_bits),
    the root of unity galois picks for a transform of this size.
    """

    def __init__(self, domain_size: int) -> None:
        """Initialize NTT engine for given domain size."""
        if domain_size <= 0 or domain_size & (domain_size - 1):
            raise ValueError(f"Domain size must be a positive power of 2, got {domain_size}")

        self.n = domain_size
        self.n_bits = _log2(domain_size)

    def ntt(self, coeffs: np.ndarray) -> FF:
        """Forward NTT: coefficients -> evaluations on the subgroup."""
        values = _as_field(coeffs, self.n)
        return _transform(values, inverse=False)

    def intt(self, evals: np.ndarray, extend: bool = False) -> FF:
        """Inverse NTT: evaluations -> coefficients.

        With extend=True the coefficients are pre-multiplied by SHIFT^i, so a
        forward NTT of the (zero-padded) result evaluates on the shifted coset.
        """
        values = _as_field(evals, self.n)
        coeffs = _transform(values, inverse=True)
        if extend:
            coeffs = coeffs * _powers(SHIFT, self.n)
        return coeffs

    def coset_intt(self, evals: np.ndarray) -> FF:
        """Interpolate evaluations on the coset SHIFT * <w> back to coefficients."""
        return self.intt(evals) * _powers(SHIFT_INV, self.n)

    def extend_pol(self, src: np.ndarray, n_extended: int) -> FF:
        """Extend subgroup evaluations to the coset SHIFT * <w_ext> of size n_extended."""
        if n_extended < self.n or n_extended % self.n != 0:
            raise ValueError(f"Extended size {n_extended} must be a multiple of {self.n}")

        padded = FF.Zeros(n_extended)
        padded[:self.n] = self.intt(src, extend=True)
        return NTT(n_extended).ntt(padded)


def coset_evaluate(coeffs: np.ndarray, n_extended: int) -> FF:
    """Evaluate a coefficient vector (len <= n_extended) on SHIFT * <w_ext>."""
    values = FF([int(c) for c in coeffs])
    if len(values) > n_extended:
        raise ValueError(f"{len(values)} coefficients do not fit a domain of {n_extended}")
    padded = FF.Zeros(n_extended)
    padded[:len(values)] = values * _powers(SHIFT, len(values))
    return NTT(n_extended).ntt(padded)


# --- Helpers ---

def _log2(size: int) -> int:
    """Compute log2 of size (must be power of 2)."""
    assert size != 0
    res = 0
    while size != 1:
        size >>= 1
        res += 1
    return res


def _as_field(arr, n: int) -> FF:
    values = FF([int(v) for v in arr])
    if len(values) != n:
        raise ValueError(f"Expected {n} values, got {len(values)}")
    return values


def _powers(base: FF, n: int) -> FF:
    """[base^0, base^1, ..., base^(n-1)]."""
    out = FF.Ones(n)
    for i in range(1, n):
        out[i] = out[i - 1] * base
    return out


def _transform(values: FF, inverse: bool) -> FF:
    """galois NTT/INTT over GF(p); the inverse is normalised by 1/N."""
    if len(values) == 1:
        return values
    ints = [int(v) for v in values]
    fn = galois.intt if inverse else galois.ntt
    return FF([int(v) for v in fn(ints, modulus=GOLDILOCKS_PRIME)])
