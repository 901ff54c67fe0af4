"""Tests for the withdrawal circuit."""

import os

import pytest

from zkpool.core.commitment import generate_nullifier_hash
from zkpool.core.merkle_tree import MerkleTree
from zkpool.crypto.circuit import (
    NUM_PUBLIC_INPUTS,
    PublicInputs,
    WithdrawalCircuit,
    WithdrawalWitness,
    nullifier_limbs,
    secret_limbs,
)
from zkpool.crypto.poseidon import bytes_to_limbs
from zkpool.exceptions import (
    FieldEncodingError,
    InvalidCommitmentError,
    InvalidNullifierError,
)
from zkpool.utils.encoding import FIELD_MODULUS


def make_witness(nullifier=None, secret=None):
    return WithdrawalWitness(
        nullifier=nullifier or os.urandom(32),
        secret=secret or os.urandom(32),
        merkle_root=os.urandom(32),
        binding_data=os.urandom(32),
    )


class TestLimbSplit:
    """The circuit limbs must reproduce the field hash limbs."""

    def test_nullifier_limbs(self):
        nullifier = os.urandom(32)
        assert nullifier_limbs(nullifier) == bytes_to_limbs(nullifier)

    def test_commitment_limbs(self):
        nullifier, secret = os.urandom(32), os.urandom(32)
        n_lo, n_hi = nullifier_limbs(nullifier)
        s_lo, s_hi = secret_limbs(secret)
        assert [n_lo, n_hi + 256 * s_lo, s_hi] == bytes_to_limbs(nullifier + secret)


class TestSynthesis:
    """Tests for constraint generation."""

    def test_valid_witness_satisfies(self):
        cs = WithdrawalCircuit().synthesize(make_witness())
        assert cs.is_satisfied()

    def test_public_input_layout(self):
        witness = make_witness()
        cs = WithdrawalCircuit().synthesize(witness)
        assert cs.num_instance == 1 + NUM_PUBLIC_INPUTS
        assert cs.instance() == witness.public_inputs().to_field_elements()

    def test_constraint_count(self):
        """88 S-boxes for the commitment, 81 for the nullifier hash, plus five rows."""
        cs = WithdrawalCircuit().synthesize()
        assert cs.num_constraints == 3 * (88 + 81) + 1 + 4

    def test_wrong_nullifier_hash_unsatisfied(self):
        witness = make_witness()
        public = PublicInputs(
            nullifier_hash=generate_nullifier_hash(os.urandom(32)),
            merkle_root=witness.merkle_root,
            binding_data=witness.binding_data,
        )
        cs = WithdrawalCircuit().synthesize(witness, public)
        row = cs.first_unsatisfied()
        assert row is not None
        assert cs.annotations[row] == "nullifier hash"

    def test_shape_independent_of_witness(self):
        circuit = WithdrawalCircuit()
        assert circuit.synthesize(make_witness()).shape_digest() == circuit.synthesize().shape_digest()

    def test_circuit_id_stable(self):
        assert WithdrawalCircuit().circuit_id == WithdrawalCircuit().circuit_id
        assert len(WithdrawalCircuit().circuit_id) == 32

    def test_secret_is_unconstrained(self):
        nullifier = os.urandom(32)
        first = make_witness(nullifier=nullifier)
        public = first.public_inputs()
        other = WithdrawalWitness(nullifier, os.urandom(32), first.merkle_root, first.binding_data)

        circuit = WithdrawalCircuit()
        assert circuit.synthesize(first, public).is_satisfied()
        assert circuit.synthesize(other, public).is_satisfied()

    def test_root_does_not_attest_membership(self):
        """A nullifier that was never deposited satisfies the circuit under any root."""
        tree = MerkleTree(height=4)
        tree.insert(os.urandom(32))
        witness = WithdrawalWitness(os.urandom(32), os.urandom(32), tree.root, os.urandom(32))
        assert WithdrawalCircuit().synthesize(witness).is_satisfied()

    def test_public_nullifier_hash_matches_scheme(self):
        witness = make_witness()
        assert witness.public_inputs().nullifier_hash == generate_nullifier_hash(witness.nullifier)


class TestWitnessValidation:
    """Tests for witness and public input checks."""

    def test_bad_nullifier(self):
        with pytest.raises(InvalidNullifierError):
            WithdrawalWitness(b"\x00" * 31, b"\x00" * 32, b"\x00" * 32, b"\x00" * 32)

    def test_bad_secret(self):
        with pytest.raises(InvalidCommitmentError):
            WithdrawalWitness(b"\x00" * 32, b"\x00" * 33, b"\x00" * 32, b"\x00" * 32)

    def test_non_canonical_nullifier_hash(self):
        public = PublicInputs(
            nullifier_hash=FIELD_MODULUS.to_bytes(32, "little"),
            merkle_root=b"\x00" * 32,
            binding_data=b"\x00" * 32,
        )
        with pytest.raises(FieldEncodingError):
            public.to_field_elements()

    def test_root_and_binding_reduced(self):
        public = PublicInputs(
            nullifier_hash=b"\x00" * 32,
            merkle_root=b"\xff" * 32,
            binding_data=b"\xff" * 32,
        )
        elements = public.to_field_elements()
        assert all(0 <= x < FIELD_MODULUS for x in elements)
