"""Withdrawal circuit.

Public inputs (in order):
    1. nullifier_hash  - canonical field element
    2. merkle_root     - 32 bytes reduced mod r
    3. binding_data    - 32 bytes reduced mod r (hash of the payout outputs)

Private witnesses:
    nullifier and secret, split into the same 31-byte limbs the field hash uses

Constraints:
    commitment          = Poseidon(n_lo, n_hi + 2^8 * s_lo, s_hi)
    nullifier_hash      = Poseidon(n_lo, n_hi)       (enforced equal to input 1)
    input consistency   = one row per public variable

The limb split reproduces ``field_hash(nullifier || secret)`` and
``field_hash(nullifier)`` exactly:

    nullifier || secret = n[0:31] | n[31] s[0:30] | s[30:32]
    nullifier           = n[0:31] | n[31]

Merkle membership is not proven inside the circuit; the accumulator hashes
with Blake2s. The root is a public input only, so a proof is bound to the
root it was built against and to the payout binding but says nothing about
inclusion. A prover can pick a fresh nullifier that was never deposited,
prove it against the current root and withdraw. Pools built on this circuit
must not hold value until a membership gadget is added.
"""

from dataclasses import dataclass
from typing import List, Optional

from zkpool.crypto.poseidon import DEFAULT_PERMUTATION, FieldPermutation, field_hash
from zkpool.crypto.r1cs import ConstraintSystem
from zkpool.exceptions import InvalidCommitmentError, InvalidNullifierError
from zkpool.utils.encoding import bytes_to_field, bytes_to_field_mod
from zkpool.utils.hash import blake2s

CIRCUIT_VERSION = "zkpool-withdraw-v1"
NUM_PUBLIC_INPUTS = 3
VALUE_SIZE = 32


@dataclass(frozen=True)
class PublicInputs:
    """Values a verifier sees; the proof is bound to all three."""

    nullifier_hash: bytes
    merkle_root: bytes
    binding_data: bytes

    def to_field_elements(self) -> List[int]:
        """
        Map the inputs onto scalar field elements.

        Raises:
            FieldEncodingError: If a value is malformed or the nullifier hash
                is not a canonical field element
        """
        return [
            bytes_to_field(self.nullifier_hash),
            bytes_to_field_mod(self.merkle_root),
            bytes_to_field_mod(self.binding_data),
        ]


@dataclass(frozen=True)
class WithdrawalWitness:
    """Everything the prover knows: the deposit secrets plus the public context."""

    nullifier: bytes
    secret: bytes
    merkle_root: bytes
    binding_data: bytes

    def __post_init__(self):
        if not isinstance(self.nullifier, bytes) or len(self.nullifier) != VALUE_SIZE:
            raise InvalidNullifierError("Nullifier must be 32 bytes")
        if not isinstance(self.secret, bytes) or len(self.secret) != VALUE_SIZE:
            raise InvalidCommitmentError("Secret must be 32 bytes")

    def public_inputs(self) -> PublicInputs:
        return PublicInputs(
            nullifier_hash=field_hash(self.nullifier),
            merkle_root=self.merkle_root,
            binding_data=self.binding_data,
        )


def nullifier_limbs(nullifier: bytes) -> List[int]:
    return [int.from_bytes(nullifier[:31], 'little'), nullifier[31]]


def secret_limbs(secret: bytes) -> List[int]:
    return [int.from_bytes(secret[:30], 'little'), int.from_bytes(secret[30:], 'little')]


_PLACEHOLDER = b"\x00" * VALUE_SIZE


class WithdrawalCircuit:
    """Synthesizes the withdrawal constraint system."""

    def __init__(self, permutation: Optional[FieldPermutation] = None):
        self.permutation = permutation or DEFAULT_PERMUTATION
        self._circuit_id: Optional[bytes] = None

    def synthesize(
        self,
        witness: Optional[WithdrawalWitness] = None,
        public_inputs: Optional[PublicInputs] = None,
    ) -> ConstraintSystem:
        """
        Build the constraint system.

        Without a witness a zero placeholder is used; the shape is the same
        either way. ``public_inputs`` defaults to the witness's own inputs.
        """
        if witness is None:
            witness = WithdrawalWitness(_PLACEHOLDER, _PLACEHOLDER, _PLACEHOLDER, _PLACEHOLDER)
        if public_inputs is None:
            public_inputs = witness.public_inputs()

        nh_value, root_value, binding_value = public_inputs.to_field_elements()

        cs = ConstraintSystem()
        nullifier_hash = cs.alloc_input(nh_value)
        merkle_root = cs.alloc_input(root_value)
        binding_data = cs.alloc_input(binding_value)

        n_lo, n_hi = (cs.alloc(x) for x in nullifier_limbs(witness.nullifier))
        s_lo, s_hi = (cs.alloc(x) for x in secret_limbs(witness.secret))

        # Output unused: these rows constrain nothing until a membership gadget
        # consumes the commitment, and s_lo, s_hi are otherwise free.
        self.permutation.hash_gadget(cs, [n_lo, n_hi + s_lo * 256, s_hi])

        computed = self.permutation.hash_gadget(cs, [n_lo, n_hi])
        cs.enforce_equal(computed, nullifier_hash, "nullifier hash")

        for name, var in (
            ("one", cs.one),
            ("nullifier_hash", nullifier_hash),
            ("merkle_root", merkle_root),
            ("binding_data", binding_data),
        ):
            cs.enforce(var, cs.one, var, f"input {name}")

        return cs

    @property
    def circuit_id(self) -> bytes:
        """Digest identifying this circuit revision and constraint shape."""
        if self._circuit_id is None:
            shape = self.synthesize().shape_digest()
            self._circuit_id = blake2s(
                CIRCUIT_VERSION.encode() + b"\x00" + self.permutation.name.encode() + b"\x00" + shape
            )
        return self._circuit_id
