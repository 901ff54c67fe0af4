"""Radix-2 evaluation domains over the BN254 scalar field."""

from typing import List, Sequence

from zkpool.utils.encoding import FIELD_MODULUS

P = FIELD_MODULUS

# Multiplicative generator of the scalar field; also used as the coset shift.
GENERATOR = 5
TWO_ADICITY = 28


def _batch_inverse(values: Sequence[int]) -> List[int]:
    """Invert many nonzero field elements with a single exponentiation."""
    prefix = [1] * (len(values) + 1)
    for i, v in enumerate(values):
        prefix[i + 1] = prefix[i] * v % P
    inv = pow(prefix[-1], P - 2, P)
    result = [0] * len(values)
    for i in range(len(values) - 1, -1, -1):
        result[i] = prefix[i] * inv % P
        inv = inv * values[i] % P
    return result


def _fft_in_place(a: List[int], omega: int) -> None:
    n = len(a)
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j ^= bit
        if i < j:
            a[i], a[j] = a[j], a[i]

    length = 2
    while length <= n:
        w_len = pow(omega, n // length, P)
        half = length // 2
        twiddles = [1] * half
        for k in range(1, half):
            twiddles[k] = twiddles[k - 1] * w_len % P
        for start in range(0, n, length):
            for k in range(half):
                u = a[start + k]
                v = a[start + k + half] * twiddles[k] % P
                a[start + k] = (u + v) % P
                a[start + k + half] = (u - v) % P
        length <<= 1


class EvaluationDomain:
    """
    Multiplicative subgroup of order 2^k used for QAP interpolation.

    Constraint row ``i`` is interpolated at ``omega^i``; the vanishing
    polynomial of the domain is ``Z(X) = X^N - 1``.
    """

    def __init__(self, min_size: int):
        size = 1
        while size < max(min_size, 2):
            size <<= 1
        if size.bit_length() - 1 > TWO_ADICITY:
            raise ValueError(f"Domain of size {size} exceeds field two-adicity")

        self.size = size
        self.omega = pow(GENERATOR, (P - 1) // size, P)
        self.omega_inv = pow(self.omega, P - 2, P)
        self.size_inv = pow(size, P - 2, P)
        self.coset_shift = GENERATOR
        self.coset_shift_inv = pow(GENERATOR, P - 2, P)

    def elements(self) -> List[int]:
        points = [1] * self.size
        for i in range(1, self.size):
            points[i] = points[i - 1] * self.omega % P
        return points

    def vanishing_at(self, tau: int) -> int:
        return (pow(tau, self.size, P) - 1) % P

    def _pad(self, values: Sequence[int]) -> List[int]:
        if len(values) > self.size:
            raise ValueError(f"{len(values)} values do not fit a domain of size {self.size}")
        return [v % P for v in values] + [0] * (self.size - len(values))

    def fft(self, coeffs: Sequence[int]) -> List[int]:
        """Coefficients -> evaluations at omega^i."""
        a = self._pad(coeffs)
        _fft_in_place(a, self.omega)
        return a

    def ifft(self, evals: Sequence[int]) -> List[int]:
        """Evaluations at omega^i -> coefficients."""
        a = self._pad(evals)
        _fft_in_place(a, self.omega_inv)
        return [x * self.size_inv % P for x in a]

    def coset_fft(self, coeffs: Sequence[int]) -> List[int]:
        """Coefficients -> evaluations at g * omega^i."""
        a = self._pad(coeffs)
        shift = 1
        for i in range(self.size):
            a[i] = a[i] * shift % P
            shift = shift * self.coset_shift % P
        _fft_in_place(a, self.omega)
        return a

    def coset_ifft(self, evals: Sequence[int]) -> List[int]:
        """Evaluations at g * omega^i -> coefficients."""
        a = self.ifft(evals)
        shift = 1
        for i in range(self.size):
            a[i] = a[i] * shift % P
            shift = shift * self.coset_shift_inv % P
        return a

    def lagrange_coefficients(self, tau: int) -> List[int]:
        """
        Evaluate every Lagrange basis polynomial of the domain at ``tau``.

        L_j(tau) = Z(tau) * omega^j / (N * (tau - omega^j))

        Raises:
            ValueError: If tau lies inside the domain
        """
        z_tau = self.vanishing_at(tau)
        if z_tau == 0:
            raise ValueError("Evaluation point lies in the domain")

        points = self.elements()
        denominators = [self.size * (tau - w) % P for w in points]
        inverses = _batch_inverse(denominators)
        return [z_tau * w % P * inv % P for w, inv in zip(points, inverses)]

    def divide_by_vanishing_on_coset(self, evals: List[int]) -> List[int]:
        """Divide coset evaluations by Z(X), which is constant on the coset."""
        z_inv = pow((pow(self.coset_shift, self.size, P) - 1) % P, P - 2, P)
        return [e * z_inv % P for e in evals]
