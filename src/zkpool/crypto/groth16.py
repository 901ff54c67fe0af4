"""Groth16 proving system over BN254.

Reference: Groth, "On the Size of Pairing-based Non-interactive Arguments"
(EUROCRYPT 2016).

Keys are derived from a synthesized ConstraintSystem. Constraint row ``i`` is
interpolated at the ``i``-th element of a radix-2 evaluation domain, giving
QAP polynomials u_k, v_k, w_k for every variable ``k``.

Verification equation:
    e(A, B) = e(alpha, beta) * e(sum x_i * IC_i, gamma) * e(C, delta)
"""

import logging
import secrets
import struct
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ12,
    Z1,
    Z2,
    add,
    curve_order,
    final_exponentiate,
    is_inf,
    neg,
    pairing,
)

from zkpool.crypto.curve import (
    G1_SIZE,
    G2_SIZE,
    compress_g1,
    compress_g2,
    decompress_g1,
    decompress_g2,
    generator_tables,
    multi_exp,
)
from zkpool.crypto.polynomial import EvaluationDomain
from zkpool.crypto.r1cs import ConstraintSystem
from zkpool.exceptions import (
    CircuitMismatchError,
    DeserializationError,
    ProofCancelledError,
    SerializationError,
    SetupError,
    UnsatisfiedWitnessError,
)

logger = logging.getLogger(__name__)

R = curve_order

FORMAT_VERSION = 1
PROVING_KEY_MAGIC = b"ZKPK"
VERIFYING_KEY_MAGIC = b"ZKVK"
PROOF_MAGIC = b"ZKPF"
CIRCUIT_ID_SIZE = 32
HEADER_SIZE = 4 + 2 + CIRCUIT_ID_SIZE


class SetupRandomness:
    """Source of toxic-waste scalars for key generation (OS randomness)."""

    def scalar(self) -> int:
        """Return a uniformly random nonzero scalar."""
        return 1 + secrets.randbelow(R - 1)


# -- Encoding helpers ------------------------------------------------------


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        if self.offset + size > len(self.data):
            raise DeserializationError("Unexpected end of data")
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def u32(self) -> int:
        return struct.unpack(">I", self.take(4))[0]

    def g1(self):
        return decompress_g1(self.take(G1_SIZE))

    def g2(self, check_subgroup: bool = False):
        return decompress_g2(self.take(G2_SIZE), check_subgroup)

    def g1_list(self) -> List:
        return [self.g1() for _ in range(self.u32())]

    def g2_list(self) -> List:
        return [self.g2() for _ in range(self.u32())]

    def finish(self) -> None:
        if self.offset != len(self.data):
            raise DeserializationError("Trailing bytes after encoded object")


def _header(magic: bytes, circuit_id: bytes) -> bytes:
    if len(circuit_id) != CIRCUIT_ID_SIZE:
        raise SerializationError("Circuit id must be 32 bytes")
    return magic + struct.pack(">H", FORMAT_VERSION) + circuit_id


def _read_header(reader: _Reader, magic: bytes) -> bytes:
    if reader.take(4) != magic:
        raise DeserializationError(f"Bad magic, expected {magic!r}")
    version = struct.unpack(">H", reader.take(2))[0]
    if version != FORMAT_VERSION:
        raise DeserializationError(f"Unsupported format version: {version}")
    return reader.take(CIRCUIT_ID_SIZE)


def _g1_list_bytes(points: Sequence) -> bytes:
    return struct.pack(">I", len(points)) + b"".join(compress_g1(p) for p in points)


def _g2_list_bytes(points: Sequence) -> bytes:
    return struct.pack(">I", len(points)) + b"".join(compress_g2(p) for p in points)


# -- Artifacts -------------------------------------------------------------


@dataclass
class VerifyingKey:
    """Public verification parameters tagged with their circuit id."""

    circuit_id: bytes
    alpha_g1: tuple
    beta_g2: tuple
    gamma_g2: tuple
    delta_g2: tuple
    gamma_abc_g1: List[tuple]

    @property
    def num_public_inputs(self) -> int:
        return len(self.gamma_abc_g1) - 1

    def to_bytes(self) -> bytes:
        return (
            _header(VERIFYING_KEY_MAGIC, self.circuit_id)
            + compress_g1(self.alpha_g1)
            + compress_g2(self.beta_g2)
            + compress_g2(self.gamma_g2)
            + compress_g2(self.delta_g2)
            + _g1_list_bytes(self.gamma_abc_g1)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "VerifyingKey":
        reader = _Reader(data)
        circuit_id = _read_header(reader, VERIFYING_KEY_MAGIC)
        vk = cls(
            circuit_id=circuit_id,
            alpha_g1=reader.g1(),
            beta_g2=reader.g2(check_subgroup=True),
            gamma_g2=reader.g2(check_subgroup=True),
            delta_g2=reader.g2(check_subgroup=True),
            gamma_abc_g1=reader.g1_list(),
        )
        reader.finish()
        if not vk.gamma_abc_g1:
            raise DeserializationError("Verifying key has no input commitments")
        return vk


@dataclass
class ProvingKey:
    """Prover parameters; embeds the matching verifying key."""

    circuit_id: bytes
    num_instance: int
    alpha_g1: tuple
    beta_g1: tuple
    beta_g2: tuple
    delta_g1: tuple
    delta_g2: tuple
    a_query: List[tuple]
    b_g1_query: List[tuple]
    b_g2_query: List[tuple]
    h_query: List[tuple]
    l_query: List[tuple]
    vk: VerifyingKey = field(repr=False)

    @property
    def num_variables(self) -> int:
        return len(self.a_query)

    @property
    def domain_size(self) -> int:
        return len(self.h_query) + 1

    def to_bytes(self) -> bytes:
        vk_bytes = self.vk.to_bytes()
        return b"".join([
            _header(PROVING_KEY_MAGIC, self.circuit_id),
            struct.pack(">I", self.num_instance),
            compress_g1(self.alpha_g1),
            compress_g1(self.beta_g1),
            compress_g2(self.beta_g2),
            compress_g1(self.delta_g1),
            compress_g2(self.delta_g2),
            _g1_list_bytes(self.a_query),
            _g1_list_bytes(self.b_g1_query),
            _g2_list_bytes(self.b_g2_query),
            _g1_list_bytes(self.h_query),
            _g1_list_bytes(self.l_query),
            struct.pack(">I", len(vk_bytes)),
            vk_bytes,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProvingKey":
        reader = _Reader(data)
        circuit_id = _read_header(reader, PROVING_KEY_MAGIC)
        num_instance = reader.u32()
        alpha_g1 = reader.g1()
        beta_g1 = reader.g1()
        beta_g2 = reader.g2()
        delta_g1 = reader.g1()
        delta_g2 = reader.g2()
        a_query = reader.g1_list()
        b_g1_query = reader.g1_list()
        b_g2_query = reader.g2_list()
        h_query = reader.g1_list()
        l_query = reader.g1_list()
        vk = VerifyingKey.from_bytes(reader.take(reader.u32()))
        reader.finish()

        if vk.circuit_id != circuit_id:
            raise CircuitMismatchError("Embedded verifying key belongs to another circuit")
        if not (len(a_query) == len(b_g1_query) == len(b_g2_query)):
            raise DeserializationError("Inconsistent query lengths in proving key")
        if len(l_query) != len(a_query) - num_instance:
            raise DeserializationError("Inconsistent witness query length in proving key")

        return cls(
            circuit_id=circuit_id,
            num_instance=num_instance,
            alpha_g1=alpha_g1,
            beta_g1=beta_g1,
            beta_g2=beta_g2,
            delta_g1=delta_g1,
            delta_g2=delta_g2,
            a_query=a_query,
            b_g1_query=b_g1_query,
            b_g2_query=b_g2_query,
            h_query=h_query,
            l_query=l_query,
            vk=vk,
        )


@dataclass
class Proof:
    """Groth16 proof (A in G1, B in G2, C in G1) tagged with its circuit id."""

    circuit_id: bytes
    a: tuple
    b: tuple
    c: tuple

    SIZE = HEADER_SIZE + G1_SIZE + G2_SIZE + G1_SIZE

    def to_bytes(self) -> bytes:
        return (
            _header(PROOF_MAGIC, self.circuit_id)
            + compress_g1(self.a)
            + compress_g2(self.b)
            + compress_g1(self.c)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        reader = _Reader(data)
        circuit_id = _read_header(reader, PROOF_MAGIC)
        proof = cls(
            circuit_id=circuit_id,
            a=reader.g1(),
            b=reader.g2(check_subgroup=True),
            c=reader.g1(),
        )
        reader.finish()
        return proof


# -- Setup -----------------------------------------------------------------


def _qap_at(cs: ConstraintSystem, domain: EvaluationDomain, tau: int) -> Tuple[List[int], List[int], List[int]]:
    """Evaluate u_k, v_k, w_k at tau for every variable."""
    lagrange = domain.lagrange_coefficients(tau)
    n = cs.num_variables
    u, v, w = [0] * n, [0] * n, [0] * n
    for row, (a, b, c) in enumerate(cs.constraints):
        l_row = lagrange[row]
        for index, coeff in a.terms.items():
            u[index] = (u[index] + coeff * l_row) % R
        for index, coeff in b.terms.items():
            v[index] = (v[index] + coeff * l_row) % R
        for index, coeff in c.terms.items():
            w[index] = (w[index] + coeff * l_row) % R
    return u, v, w


def setup(
    cs: ConstraintSystem,
    circuit_id: bytes,
    randomness: Optional[SetupRandomness] = None,
) -> Tuple[ProvingKey, VerifyingKey]:
    """
    Generate a proving/verifying key pair for the shape of ``cs``.

    Args:
        cs: Synthesized constraint system (witness values are ignored)
        circuit_id: 32-byte id of the circuit revision
        randomness: Toxic-waste source; defaults to OS randomness

    Raises:
        SetupError: If the circuit does not fit a supported domain
    """
    randomness = randomness or SetupRandomness()
    try:
        domain = EvaluationDomain(cs.num_constraints)
    except ValueError as e:
        raise SetupError(str(e)) from e

    tau = randomness.scalar()
    while domain.vanishing_at(tau) == 0:
        tau = randomness.scalar()
    alpha = randomness.scalar()
    beta = randomness.scalar()
    gamma = randomness.scalar()
    delta = randomness.scalar()

    logger.info(
        f"Running setup: {cs.num_constraints} constraints, "
        f"{cs.num_variables} variables, domain {domain.size}"
    )

    u, v, w = _qap_at(cs, domain, tau)
    gamma_inv = pow(gamma, R - 2, R)
    delta_inv = pow(delta, R - 2, R)

    g1, g2 = generator_tables()

    abc = [(beta * u[k] + alpha * v[k] + w[k]) % R for k in range(cs.num_variables)]
    gamma_abc = [x * gamma_inv % R for x in abc[:cs.num_instance]]
    l_scalars = [x * delta_inv % R for x in abc[cs.num_instance:]]

    z_over_delta = domain.vanishing_at(tau) * delta_inv % R
    h_scalars = []
    tau_power = 1
    for _ in range(domain.size - 1):
        h_scalars.append(tau_power * z_over_delta % R)
        tau_power = tau_power * tau % R

    vk = VerifyingKey(
        circuit_id=circuit_id,
        alpha_g1=g1.multiply(alpha),
        beta_g2=g2.multiply(beta),
        gamma_g2=g2.multiply(gamma),
        delta_g2=g2.multiply(delta),
        gamma_abc_g1=g1.batch_multiply(gamma_abc),
    )
    pk = ProvingKey(
        circuit_id=circuit_id,
        num_instance=cs.num_instance,
        alpha_g1=vk.alpha_g1,
        beta_g1=g1.multiply(beta),
        beta_g2=vk.beta_g2,
        delta_g1=g1.multiply(delta),
        delta_g2=vk.delta_g2,
        a_query=g1.batch_multiply(u),
        b_g1_query=g1.batch_multiply(v),
        b_g2_query=g2.batch_multiply(v),
        h_query=g1.batch_multiply(h_scalars),
        l_query=g1.batch_multiply(l_scalars),
        vk=vk,
    )

    logger.info("Setup complete")
    return pk, vk


# -- Prove -----------------------------------------------------------------


def _compute_h(cs: ConstraintSystem, domain: EvaluationDomain) -> List[int]:
    """Coefficients of h(X) = (A(X) * B(X) - C(X)) / Z(X)."""
    z = cs.assignment
    a_evals = [a.evaluate(z) for a, _, _ in cs.constraints]
    b_evals = [b.evaluate(z) for _, b, _ in cs.constraints]
    c_evals = [c.evaluate(z) for _, _, c in cs.constraints]

    a_coset = domain.coset_fft(domain.ifft(a_evals))
    b_coset = domain.coset_fft(domain.ifft(b_evals))
    c_coset = domain.coset_fft(domain.ifft(c_evals))

    quotient = [(x * y - c) % R for x, y, c in zip(a_coset, b_coset, c_coset)]
    h = domain.coset_ifft(domain.divide_by_vanishing_on_coset(quotient))
    # deg h <= N - 2
    return h[:domain.size - 1]


def prove(
    pk: ProvingKey,
    cs: ConstraintSystem,
    cancel_event: Optional[threading.Event] = None,
) -> Proof:
    """
    Produce a proof that the assignment in ``cs`` satisfies its constraints.

    Touches no shared state; a cancelled run leaves nothing behind.

    Raises:
        CircuitMismatchError: If ``cs`` does not have the key's shape
        UnsatisfiedWitnessError: If a constraint is violated
        ProofCancelledError: If cancel_event is set before completion
    """
    if cs.num_variables != pk.num_variables or cs.num_instance != pk.num_instance:
        raise CircuitMismatchError("Constraint system does not match the proving key")
    domain = EvaluationDomain(cs.num_constraints)
    if domain.size != pk.domain_size:
        raise CircuitMismatchError("Constraint count does not match the proving key")

    row = cs.first_unsatisfied()
    if row is not None:
        label = cs.annotations[row] or "unnamed"
        raise UnsatisfiedWitnessError(f"Constraint {row} ({label}) is not satisfied")

    def check_cancel():
        if cancel_event is not None and cancel_event.is_set():
            raise ProofCancelledError("Proof generation cancelled")

    check_cancel()
    z = cs.assignment
    h = _compute_h(cs, domain)
    r = secrets.randbelow(R)
    s = secrets.randbelow(R)

    check_cancel()
    a_sum = multi_exp(pk.a_query, z, Z1, cancel_event)
    proof_a = add(add(pk.alpha_g1, a_sum), multi_exp([pk.delta_g1], [r], Z1))

    check_cancel()
    b2_sum = multi_exp(pk.b_g2_query, z, Z2, cancel_event)
    proof_b = add(add(pk.beta_g2, b2_sum), multi_exp([pk.delta_g2], [s], Z2))

    check_cancel()
    b1_sum = multi_exp(pk.b_g1_query, z, Z1, cancel_event)
    b1 = add(add(pk.beta_g1, b1_sum), multi_exp([pk.delta_g1], [s], Z1))

    check_cancel()
    l_sum = multi_exp(pk.l_query, z[pk.num_instance:], Z1, cancel_event)
    check_cancel()
    h_sum = multi_exp(pk.h_query, h, Z1, cancel_event)

    proof_c = add(l_sum, h_sum)
    proof_c = add(proof_c, multi_exp([proof_a, b1, pk.delta_g1], [s, r, (-r * s) % R], Z1))

    return Proof(circuit_id=pk.circuit_id, a=proof_a, b=proof_b, c=proof_c)


# -- Verify ----------------------------------------------------------------


def verify(vk: VerifyingKey, proof: Proof, public_inputs: Sequence[int]) -> bool:
    """
    Check a proof against public inputs.

    Returns False (never raises) for proofs from another circuit revision,
    wrong input counts, or unreduced inputs.
    """
    if proof.circuit_id != vk.circuit_id:
        logger.warning("Proof circuit id does not match verifying key")
        return False
    if len(public_inputs) != vk.num_public_inputs:
        return False
    if any(not 0 <= x < R for x in public_inputs):
        return False

    acc = multi_exp(vk.gamma_abc_g1[1:], list(public_inputs), Z1)
    acc = add(vk.gamma_abc_g1[0], acc)

    if is_inf(proof.a) or is_inf(proof.b):
        return False

    product = (
        pairing(proof.b, proof.a, final_exponentiate=False)
        * pairing(vk.beta_g2, neg(vk.alpha_g1), final_exponentiate=False)
        * pairing(vk.gamma_g2, neg(acc), final_exponentiate=False)
        * pairing(vk.delta_g2, neg(proof.c), final_exponentiate=False)
    )
    return final_exponentiate(product) == FQ12.one()
