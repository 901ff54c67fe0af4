"""Tests for evaluation domains."""

import secrets

import pytest

from zkpool.crypto.polynomial import EvaluationDomain, P


def _evaluate(coeffs, x):
    result = 0
    for c in reversed(coeffs):
        result = (result * x + c) % P
    return result


class TestEvaluationDomain:
    """Tests for the radix-2 domain."""

    def test_size_rounds_up(self):
        assert EvaluationDomain(5).size == 8
        assert EvaluationDomain(512).size == 512
        assert EvaluationDomain(513).size == 1024

    def test_omega_is_primitive_root(self):
        domain = EvaluationDomain(16)
        assert pow(domain.omega, 16, P) == 1
        assert pow(domain.omega, 8, P) != 1

    def test_fft_evaluates_polynomial(self):
        domain = EvaluationDomain(8)
        coeffs = [secrets.randbelow(P) for _ in range(8)]
        evals = domain.fft(coeffs)
        for i, point in enumerate(domain.elements()):
            assert evals[i] == _evaluate(coeffs, point)

    def test_ifft_inverts_fft(self):
        domain = EvaluationDomain(32)
        coeffs = [secrets.randbelow(P) for _ in range(32)]
        assert domain.ifft(domain.fft(coeffs)) == coeffs

    def test_coset_roundtrip(self):
        domain = EvaluationDomain(16)
        coeffs = [secrets.randbelow(P) for _ in range(16)]
        evals = domain.coset_fft(coeffs)
        assert evals[1] == _evaluate(coeffs, domain.coset_shift * domain.omega % P)
        assert domain.coset_ifft(evals) == coeffs

    def test_lagrange_basis(self):
        domain = EvaluationDomain(8)
        tau = secrets.randbelow(P)
        lagrange = domain.lagrange_coefficients(tau)
        # The basis sums to one and interpolates the domain values.
        assert sum(lagrange) % P == 1
        evals = [secrets.randbelow(P) for _ in range(8)]
        coeffs = domain.ifft(evals)
        assert sum(e * l for e, l in zip(evals, lagrange)) % P == _evaluate(coeffs, tau)

    def test_lagrange_rejects_domain_point(self):
        domain = EvaluationDomain(8)
        with pytest.raises(ValueError):
            domain.lagrange_coefficients(domain.omega)

    def test_too_many_values_rejected(self):
        with pytest.raises(ValueError):
            EvaluationDomain(4).fft([1] * 5)
