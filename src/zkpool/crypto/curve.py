"""BN254 group helpers built on py_ecc's optimized alt_bn128 arithmetic.

Points are kept in py_ecc's projective form ``(x, y, z)``. This module adds
what the Groth16 code needs on top of py_ecc:

    - Canonical compressed encoding (G1: 32 bytes, G2: 64 bytes)
    - Fixed-base window tables for bulk scalar multiplication during setup
    - Pippenger multi-scalar multiplication for the prover

Compressed layout (big-endian):
    G1: x                  flags in the top two bits of byte 0
    G2: x.c1 || x.c0       flags in the top two bits of byte 0

Flag bits: 0x80 marks the point at infinity, 0x40 marks the lexicographically
larger y (for G2 compared on c1, or on c0 when c1 is zero).
"""

import threading
from typing import List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    G1,
    G2,
    Z1,
    Z2,
    add,
    b2,
    curve_order,
    double,
    is_inf,
    multiply,
    normalize,
)

from zkpool.exceptions import DeserializationError, ProofCancelledError

FIELD_P = FQ.field_modulus
G1_SIZE = 32
G2_SIZE = 64
SCALAR_BITS = curve_order.bit_length()

FLAG_INFINITY = 0x80
FLAG_Y_GREATER = 0x40
FLAG_MASK = FLAG_INFINITY | FLAG_Y_GREATER

HALF_P = (FIELD_P - 1) // 2


def _coeff(c) -> int:
    return c if isinstance(c, int) else c.n


def _fq2_parts(value) -> Tuple[int, int]:
    c0, c1 = value.coeffs
    return _coeff(c0), _coeff(c1)


def _fq2_is_greater(value) -> bool:
    c0, c1 = _fq2_parts(value)
    if c1:
        return c1 > HALF_P
    return c0 > HALF_P


# -- G1 -------------------------------------------------------------------


def compress_g1(point) -> bytes:
    if is_inf(point):
        return bytes([FLAG_INFINITY]) + b"\x00" * (G1_SIZE - 1)

    x, y = normalize(point)
    out = bytearray(x.n.to_bytes(G1_SIZE, 'big'))
    if y.n > HALF_P:
        out[0] |= FLAG_Y_GREATER
    return bytes(out)


def decompress_g1(data: bytes):
    """
    Decode a compressed G1 point.

    Raises:
        DeserializationError: If the encoding is malformed or off-curve
    """
    if len(data) != G1_SIZE:
        raise DeserializationError(f"G1 point must be {G1_SIZE} bytes")

    flags = data[0] & FLAG_MASK
    x_int = int.from_bytes(bytes([data[0] & ~FLAG_MASK & 0xFF]) + data[1:], 'big')

    if flags & FLAG_INFINITY:
        if flags != FLAG_INFINITY or x_int:
            raise DeserializationError("Non-canonical encoding of infinity")
        return Z1

    if x_int >= FIELD_P:
        raise DeserializationError("G1 x-coordinate is not reduced")

    rhs = (pow(x_int, 3, FIELD_P) + 3) % FIELD_P
    y_int = pow(rhs, (FIELD_P + 1) // 4, FIELD_P)
    if y_int * y_int % FIELD_P != rhs:
        raise DeserializationError("G1 point is not on the curve")
    if (y_int > HALF_P) != bool(flags & FLAG_Y_GREATER):
        y_int = FIELD_P - y_int

    return (FQ(x_int), FQ(y_int), FQ.one())


# -- G2 -------------------------------------------------------------------


def _fq2_sqrt(a) -> Optional[FQ2]:
    """Square root in Fq2 for p = 3 mod 4, or None if a is a non-residue."""
    if a == FQ2.zero():
        return FQ2.zero()

    minus_one = -FQ2.one()
    a1 = a ** ((FIELD_P - 3) // 4)
    alpha = a1 * a1 * a
    c0, c1 = _fq2_parts(alpha)
    conjugate = FQ2([c0, (-c1) % FIELD_P])
    if conjugate * alpha == minus_one:
        return None

    x0 = a1 * a
    if alpha == minus_one:
        root = FQ2([0, 1]) * x0
    else:
        root = (FQ2.one() + alpha) ** ((FIELD_P - 1) // 2) * x0

    if root * root != a:
        return None
    return root


def compress_g2(point) -> bytes:
    if is_inf(point):
        return bytes([FLAG_INFINITY]) + b"\x00" * (G2_SIZE - 1)

    x, y = normalize(point)
    x0, x1 = _fq2_parts(x)
    out = bytearray(x1.to_bytes(32, 'big') + x0.to_bytes(32, 'big'))
    if _fq2_is_greater(y):
        out[0] |= FLAG_Y_GREATER
    return bytes(out)


def decompress_g2(data: bytes, check_subgroup: bool = False):
    """
    Decode a compressed G2 point.

    Args:
        data: 64-byte encoding
        check_subgroup: Also reject points outside the prime-order subgroup

    Raises:
        DeserializationError: If the encoding is malformed or invalid
    """
    if len(data) != G2_SIZE:
        raise DeserializationError(f"G2 point must be {G2_SIZE} bytes")

    flags = data[0] & FLAG_MASK
    x1 = int.from_bytes(bytes([data[0] & ~FLAG_MASK & 0xFF]) + data[1:32], 'big')
    x0 = int.from_bytes(data[32:], 'big')

    if flags & FLAG_INFINITY:
        if flags != FLAG_INFINITY or x0 or x1:
            raise DeserializationError("Non-canonical encoding of infinity")
        return Z2

    if x0 >= FIELD_P or x1 >= FIELD_P:
        raise DeserializationError("G2 x-coordinate is not reduced")

    x = FQ2([x0, x1])
    y = _fq2_sqrt(x * x * x + b2)
    if y is None:
        raise DeserializationError("G2 point is not on the curve")
    if _fq2_is_greater(y) != bool(flags & FLAG_Y_GREATER):
        y = -y

    point = (x, y, FQ2.one())
    if check_subgroup and not is_inf(multiply(point, curve_order)):
        raise DeserializationError("G2 point is not in the prime-order subgroup")
    return point


# -- Scalar multiplication -------------------------------------------------


class FixedBaseTable:
    """
    Precomputed multiples of one base point for repeated scalar multiplication.

    Window ``i`` stores ``d * 2^(w*i) * base`` for every nonzero digit ``d``,
    so a multiplication costs one addition per nonzero digit.
    """

    def __init__(self, base, window: int = 8):
        self.window = window
        self.identity = Z1 if isinstance(base[0], FQ) else Z2
        digits = 1 << window
        num_windows = (SCALAR_BITS + window - 1) // window

        self.tables: List[List] = []
        window_base = base
        for _ in range(num_windows):
            row = [self.identity, window_base]
            for _ in range(2, digits):
                row.append(add(row[-1], window_base))
            self.tables.append(row)
            window_base = add(row[-1], window_base)

    def multiply(self, scalar: int):
        scalar %= curve_order
        mask = (1 << self.window) - 1
        acc = self.identity
        for row in self.tables:
            digit = scalar & mask
            if digit:
                acc = add(acc, row[digit])
            scalar >>= self.window
            if not scalar:
                break
        return acc

    def batch_multiply(self, scalars: Sequence[int]) -> List:
        return [self.multiply(s) for s in scalars]


_g1_table: Optional[FixedBaseTable] = None
_g2_table: Optional[FixedBaseTable] = None
_table_lock = threading.Lock()


def generator_tables() -> Tuple[FixedBaseTable, FixedBaseTable]:
    """Window tables for the G1 and G2 generators, built on first use."""
    global _g1_table, _g2_table
    with _table_lock:
        if _g1_table is None:
            _g1_table = FixedBaseTable(G1)
            _g2_table = FixedBaseTable(G2)
        return _g1_table, _g2_table


def _msm_window(count: int) -> int:
    if count < 32:
        return 3
    return max(4, count.bit_length() - 2)


def multi_exp(
    points: Sequence,
    scalars: Sequence[int],
    identity,
    cancel_event: Optional[threading.Event] = None,
):
    """
    Pippenger multi-scalar multiplication: sum of scalars[i] * points[i].

    Raises:
        ValueError: If points and scalars differ in length
        ProofCancelledError: If cancel_event is set between windows
    """
    if len(points) != len(scalars):
        raise ValueError("Points and scalars must have the same length")

    pairs = []
    for point, scalar in zip(points, scalars):
        scalar %= curve_order
        if scalar and not is_inf(point):
            pairs.append((point, scalar))
    if not pairs:
        return identity

    c = _msm_window(len(pairs))
    mask = (1 << c) - 1
    window_sums = []

    for shift in range(0, SCALAR_BITS, c):
        if cancel_event is not None and cancel_event.is_set():
            raise ProofCancelledError("Multi-exponentiation cancelled")

        buckets: List = [None] * mask
        for point, scalar in pairs:
            digit = (scalar >> shift) & mask
            if digit:
                slot = buckets[digit - 1]
                buckets[digit - 1] = point if slot is None else add(slot, point)

        running = identity
        total = identity
        for bucket in reversed(buckets):
            if bucket is not None:
                running = add(running, bucket)
            total = add(total, running)
        window_sums.append(total)

    result = identity
    for total in reversed(window_sums):
        if not is_inf(result):
            for _ in range(c):
                result = double(result)
        result = add(result, total)
    return result
