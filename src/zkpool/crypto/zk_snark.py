"""zk-SNARK interface for withdrawals.

Ties the withdrawal circuit to the Groth16 backend and owns the parameter
lifecycle. Production keys come from an audited setup ceremony and are loaded
with ``load_parameters``; ``setup`` exists for ceremonies and tests.

Example Usage:
    >>> from zkpool.crypto.zk_snark import load_parameters, WithdrawalProver
    >>> pk, vk = load_parameters("withdraw.pk", "withdraw.vk")
    >>> prover = WithdrawalProver(pk)
    >>> proof = prover.prove(witness)
    >>> WithdrawalVerifier(vk).verify(proof, witness.public_inputs())
    True
"""

import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives.constant_time import bytes_eq

from zkpool.crypto import groth16
from zkpool.crypto.circuit import PublicInputs, WithdrawalCircuit, WithdrawalWitness
from zkpool.crypto.groth16 import Proof, ProvingKey, SetupRandomness, VerifyingKey
from zkpool.exceptions import (
    CircuitMismatchError,
    FieldEncodingError,
    SetupError,
    StorageError,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@lru_cache(maxsize=1)
def default_circuit() -> WithdrawalCircuit:
    return WithdrawalCircuit()


def current_circuit_id() -> bytes:
    """Id of the circuit revision this build proves and verifies."""
    return default_circuit().circuit_id


def setup(randomness: Optional[SetupRandomness] = None) -> Tuple[ProvingKey, VerifyingKey]:
    """
    Generate withdrawal circuit parameters.

    Args:
        randomness: Toxic-waste source. Defaults to OS randomness; seeded
            sources are only available from ``zkpool.testing``.

    Returns:
        Tuple of (ProvingKey, VerifyingKey)
    """
    circuit = default_circuit()
    return groth16.setup(circuit.synthesize(), circuit.circuit_id, randomness)


def prove(
    pk: ProvingKey,
    witness: WithdrawalWitness,
    cancel_event: Optional[threading.Event] = None,
    public_inputs: Optional[PublicInputs] = None,
) -> Proof:
    """
    Prove knowledge of the deposit behind ``witness``.

    Raises:
        CircuitMismatchError: If pk was generated for another circuit revision
        UnsatisfiedWitnessError: If the witness does not match the public inputs
        ProofCancelledError: If cancel_event is set while proving
    """
    circuit = default_circuit()
    if not bytes_eq(pk.circuit_id, circuit.circuit_id):
        raise CircuitMismatchError("Proving key belongs to another circuit revision")

    cs = circuit.synthesize(witness, public_inputs)
    proof = groth16.prove(pk, cs, cancel_event)
    logger.debug("Withdrawal proof generated")
    return proof


def verify(vk: VerifyingKey, proof: Proof, public_inputs: PublicInputs) -> bool:
    """True iff ``proof`` attests the circuit for exactly ``public_inputs``."""
    if not bytes_eq(vk.circuit_id, current_circuit_id()):
        logger.warning("Verifying key belongs to another circuit revision")
        return False

    try:
        elements = public_inputs.to_field_elements()
    except FieldEncodingError:
        return False

    return groth16.verify(vk, proof, elements)


def save_parameters(pk: ProvingKey, vk: VerifyingKey, pk_path: PathLike, vk_path: PathLike) -> None:
    """Write both keys in their canonical binary encoding."""
    try:
        Path(pk_path).write_bytes(pk.to_bytes())
        Path(vk_path).write_bytes(vk.to_bytes())
    except OSError as e:
        raise SetupError(f"Failed to write parameters: {e}") from e
    logger.info(f"Saved parameters to {pk_path} and {vk_path}")


def load_verifying_key(vk_path: PathLike) -> VerifyingKey:
    """
    Load a verifying key and check it belongs to this circuit revision.

    Raises:
        SetupError: If the file cannot be read or decoded
        CircuitMismatchError: If the key is for another circuit revision
    """
    try:
        vk = VerifyingKey.from_bytes(Path(vk_path).read_bytes())
    except OSError as e:
        raise SetupError(f"Failed to read verifying key: {e}") from e
    except StorageError as e:
        raise SetupError(f"Malformed verifying key: {e}") from e

    if not bytes_eq(vk.circuit_id, current_circuit_id()):
        raise CircuitMismatchError("Verifying key belongs to another circuit revision")
    return vk


def load_parameters(pk_path: PathLike, vk_path: PathLike) -> Tuple[ProvingKey, VerifyingKey]:
    """
    Load ceremony parameters and check they match each other and this circuit.

    Raises:
        SetupError: If a file cannot be read, decoded, or the pair disagrees
        CircuitMismatchError: If either key is for another circuit revision
    """
    vk = load_verifying_key(vk_path)
    try:
        pk = ProvingKey.from_bytes(Path(pk_path).read_bytes())
    except OSError as e:
        raise SetupError(f"Failed to read proving key: {e}") from e
    except StorageError as e:
        raise SetupError(f"Malformed proving key: {e}") from e

    if not bytes_eq(pk.circuit_id, current_circuit_id()):
        raise CircuitMismatchError("Proving key belongs to another circuit revision")
    if not bytes_eq(pk.vk.to_bytes(), vk.to_bytes()):
        raise SetupError("Proving key and verifying key are not from the same setup")

    logger.info(f"Loaded parameters for circuit {current_circuit_id().hex()[:16]}")
    return pk, vk


class WithdrawalProver:
    """Holds a proving key and produces withdrawal proofs."""

    def __init__(self, pk: ProvingKey):
        self.pk = pk

    def prove(
        self,
        witness: WithdrawalWitness,
        cancel_event: Optional[threading.Event] = None,
    ) -> Proof:
        return prove(self.pk, witness, cancel_event)


class WithdrawalVerifier:
    """Holds a verifying key and checks withdrawal proofs."""

    def __init__(self, vk: VerifyingKey):
        self.vk = vk

    def verify(self, proof: Proof, public_inputs: PublicInputs) -> bool:
        return verify(self.vk, proof, public_inputs)
