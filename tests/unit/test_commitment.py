"""Tests for commitment and nullifier generation."""

import os

import pytest
from pydantic import ValidationError

from zkpool.core.commitment import (
    generate_commitment,
    generate_deposit_note,
    generate_nullifier,
    generate_nullifier_hash,
    generate_pool_id,
    generate_secret,
    verify_commitment,
    verify_deposit_note,
    verify_nullifier_hash,
)
from zkpool.exceptions import InvalidCommitmentError, InvalidNullifierError
from zkpool.models.schemas import AssetId, DepositNote, PoolConfig
from zkpool.utils.encoding import FIELD_MODULUS


class TestSecretGeneration:
    """Tests for secret and nullifier generation."""

    def test_generate_secret(self):
        secret1 = generate_secret()
        secret2 = generate_secret()

        assert isinstance(secret1, bytes)
        assert len(secret1) == 32
        assert secret1 != secret2

    def test_generate_nullifier(self):
        nullifiers = {generate_nullifier() for _ in range(100)}
        assert len(nullifiers) == 100
        assert all(len(n) == 32 for n in nullifiers)


class TestCommitmentComputation:
    """Tests for commitment computation."""

    def test_commitment_is_deterministic(self, test_data):
        nullifier, secret = test_data["nullifier"], test_data["secret"]
        assert generate_commitment(nullifier, secret) == generate_commitment(nullifier, secret)
        assert generate_commitment(nullifier, secret) == test_data["commitment"]

    def test_commitment_is_canonical_field_element(self):
        commitment = generate_commitment(os.urandom(32), os.urandom(32))
        assert len(commitment) == 32
        assert int.from_bytes(commitment, "little") < FIELD_MODULUS

    def test_commitment_binds_both_halves(self, test_data):
        nullifier, secret = test_data["nullifier"], test_data["secret"]
        base = generate_commitment(nullifier, secret)
        assert generate_commitment(nullifier, os.urandom(32)) != base
        assert generate_commitment(os.urandom(32), secret) != base

    def test_swapped_inputs_differ(self, test_data):
        nullifier, secret = test_data["nullifier"], test_data["secret"]
        assert generate_commitment(secret, nullifier) != generate_commitment(nullifier, secret)

    def test_invalid_nullifier_length(self):
        with pytest.raises(InvalidNullifierError):
            generate_commitment(b"\x00" * 31, b"\x00" * 32)

    def test_invalid_secret_length(self):
        with pytest.raises(InvalidCommitmentError):
            generate_commitment(b"\x00" * 32, b"\x00" * 33)

    def test_non_bytes_rejected(self):
        with pytest.raises(InvalidNullifierError):
            generate_commitment("00" * 32, b"\x00" * 32)


class TestNullifierHash:
    """Tests for nullifier hashing."""

    def test_deterministic(self, test_data):
        assert generate_nullifier_hash(test_data["nullifier"]) == test_data["nullifier_hash"]

    def test_distinct_from_commitment(self, test_data):
        assert test_data["nullifier_hash"] != test_data["commitment"]

    def test_different_nullifiers(self):
        assert generate_nullifier_hash(os.urandom(32)) != generate_nullifier_hash(os.urandom(32))

    def test_invalid_length(self):
        with pytest.raises(InvalidNullifierError):
            generate_nullifier_hash(b"")


class TestVerification:
    """Tests for opening checks."""

    def test_verify_commitment(self, test_data):
        assert verify_commitment(test_data["commitment"], test_data["nullifier"], test_data["secret"])

    def test_verify_commitment_wrong_secret(self, test_data):
        assert not verify_commitment(test_data["commitment"], test_data["nullifier"], os.urandom(32))

    def test_verify_commitment_bad_length(self, test_data):
        with pytest.raises(InvalidCommitmentError):
            verify_commitment(b"\x00" * 16, test_data["nullifier"], test_data["secret"])

    def test_verify_nullifier_hash(self, test_data):
        assert verify_nullifier_hash(test_data["nullifier_hash"], test_data["nullifier"])
        assert not verify_nullifier_hash(test_data["nullifier_hash"], os.urandom(32))

    def test_verify_nullifier_hash_bad_length(self, test_data):
        with pytest.raises(InvalidNullifierError):
            verify_nullifier_hash(b"\x00" * 33, test_data["nullifier"])


class TestDepositNote:
    """Tests for deposit notes."""

    def test_generate_and_verify(self, test_data):
        note = generate_deposit_note(test_data["asset_id"], test_data["denomination"])
        assert verify_deposit_note(note)
        assert note.leaf_index is None
        assert note.commitment == generate_commitment(note.nullifier, note.secret)

    def test_notes_are_unique(self, test_data):
        a = generate_deposit_note(test_data["asset_id"], test_data["denomination"])
        b = generate_deposit_note(test_data["asset_id"], test_data["denomination"])
        assert a.commitment != b.commitment

    def test_tampered_note_fails(self, test_data):
        note = generate_deposit_note(test_data["asset_id"], test_data["denomination"])
        tampered = note.model_copy(update={"secret": os.urandom(32)})
        assert not verify_deposit_note(tampered)

    def test_text_roundtrip(self, test_data):
        note = DepositNote(
            asset_id=test_data["asset_id"],
            denomination=test_data["denomination"],
            nullifier=test_data["nullifier"],
            secret=test_data["secret"],
            commitment=test_data["commitment"],
        )
        text = note.to_text()
        assert text.startswith("zkpool-1-2:1-1000000-0x")

        parsed = DepositNote.from_text(text)
        assert parsed == note

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "zkpool-1-2:1-1000000",
            "tornado-1-2:1-1000000-0x" + "00" * 64,
            "zkpool-2-2:1-1000000-0x" + "00" * 64,
            "zkpool-1-2:1-lots-0x" + "00" * 64,
            "zkpool-1-2:1-1000000-0x" + "00" * 63,
            "zkpool-1-2:1-1000000-0x" + "zz" * 64,
            "zkpool-1-21-1000000-0x" + "00" * 64,
            "zkpool-1-2:1-0-0x" + "00" * 64,
        ],
    )
    def test_malformed_text(self, text):
        with pytest.raises(ValueError):
            DepositNote.from_text(text)

    def test_wrong_secret_length_rejected(self, test_data):
        with pytest.raises(ValidationError):
            DepositNote(
                asset_id=test_data["asset_id"],
                denomination=1,
                nullifier=b"\x00" * 31,
                secret=test_data["secret"],
                commitment=test_data["commitment"],
            )

    def test_hex_string_rejected(self, test_data):
        with pytest.raises(ValidationError):
            DepositNote(
                asset_id=test_data["asset_id"],
                denomination=1,
                nullifier=test_data["nullifier"].hex(),
                secret=test_data["secret"],
                commitment=test_data["commitment"],
            )


class TestPoolId:
    """Tests for pool identifiers and configuration."""

    def test_pool_id_folds_fields(self):
        pool_id = generate_pool_id(AssetId(block=2, tx=1), 1_000_000)
        assert pool_id == AssetId(block=6, tx=2 ^ 1 ^ 1_000_000)

    def test_pool_id_depends_on_denomination(self):
        asset = AssetId(block=2, tx=1)
        assert generate_pool_id(asset, 100) != generate_pool_id(asset, 200)

    def test_pool_id_rejects_oversized_denomination(self):
        with pytest.raises(ValueError):
            generate_pool_id(AssetId(block=2, tx=1), 2**128)

    def test_asset_id_text(self):
        asset = AssetId.parse("840000:17")
        assert asset == AssetId(block=840000, tx=17)
        assert str(asset) == "840000:17"

    @pytest.mark.parametrize("text", ["", "1", "1:", ":2", "a:b", "1:-2"])
    def test_asset_id_parse_errors(self, text):
        with pytest.raises(ValueError):
            AssetId.parse(text)

    def test_pool_config_defaults(self, test_data):
        config = PoolConfig(asset_id=test_data["asset_id"], denomination=5)
        assert config.tree_height == 20
        assert config.max_deposits == 2**20
        assert config.counter_asset_allowlist is None

    @pytest.mark.parametrize("height", [0, 33])
    def test_pool_config_height_bounds(self, test_data, height):
        with pytest.raises(ValidationError):
            PoolConfig(asset_id=test_data["asset_id"], denomination=5, tree_height=height)
