"""Integration tests for the complete deposit and withdrawal workflow.

These tests use the real Groth16 verifier against the session proof built in
conftest, which attests the fixture commitment under a fresh height-20 tree.
"""

import os

import pytest

from zkpool.core.commitment import generate_deposit_note, verify_commitment
from zkpool.core.merkle_tree import verify_merkle_path
from zkpool.core.pool import PrivacyPool
from zkpool.exceptions import (
    AlreadySpentError,
    CommitmentNotFoundError,
    InvalidProofError,
)
from zkpool.models.schemas import DepositNote, PoolConfig

SCENARIO_HEIGHT = 20


@pytest.fixture
def scenario_pool(test_data, provider, groth16_keys):
    """Height-20 pool verifying with the session keys."""
    _, vk = groth16_keys
    config = PoolConfig(
        asset_id=test_data["asset_id"],
        denomination=test_data["denomination"],
        tree_height=SCENARIO_HEIGHT,
    )
    return PrivacyPool(config, provider, vk)


@pytest.fixture
def funded_pool(scenario_pool, provider, test_data):
    provider.add_deposit("deposit-0", test_data["commitment"], amount=test_data["denomination"])
    scenario_pool.add_commitment("deposit-0")
    return scenario_pool


class TestDepositWorkflow:
    """Deposits observed through the chain-data provider."""

    def test_first_deposit(self, scenario_pool, provider, test_data, scenario_root):
        provider.add_deposit("deposit-0", test_data["commitment"], amount=test_data["denomination"])

        assert scenario_pool.add_commitment("deposit-0") == 0
        assert scenario_pool.commitment_count() == 1
        assert scenario_pool.merkle_root() == scenario_root

        path = scenario_pool.generate_merkle_proof(0)
        assert len(path) == SCENARIO_HEIGHT
        assert verify_merkle_path(test_data["commitment"], 0, path, scenario_root, SCENARIO_HEIGHT)

    def test_transaction_without_marker(self, scenario_pool, provider):
        provider.add_transaction("payment", [])
        with pytest.raises(CommitmentNotFoundError):
            scenario_pool.add_commitment("payment")

    def test_note_drives_deposit(self, scenario_pool, provider, test_data):
        note = generate_deposit_note(test_data["asset_id"], test_data["denomination"])
        restored = DepositNote.from_text(note.to_text())
        provider.add_deposit("note-deposit", restored.commitment)

        leaf_index = scenario_pool.add_commitment("note-deposit")
        stored = scenario_pool.commitment_records()[leaf_index].commitment
        assert verify_commitment(stored, note.nullifier, note.secret)


class TestWithdrawalWorkflow:
    """Withdrawals checked by the real verifier."""

    def test_deposit_then_withdraw(self, funded_pool, valid_proof, test_data, scenario_root):
        receipt = funded_pool.withdraw(
            valid_proof,
            test_data["nullifier_hash"],
            scenario_root,
            test_data["binding_data"],
        )

        assert receipt.binding_data == test_data["binding_data"]
        assert funded_pool.is_nullifier_spent(test_data["nullifier_hash"])
        assert funded_pool.stats().spent_nullifier_count == 1

        with pytest.raises(AlreadySpentError):
            funded_pool.withdraw(
                valid_proof,
                test_data["nullifier_hash"],
                scenario_root,
                test_data["binding_data"],
            )

    def test_redirected_payout_rejected(self, funded_pool, valid_proof, test_data, scenario_root):
        with pytest.raises(InvalidProofError):
            funded_pool.withdraw(
                valid_proof,
                test_data["nullifier_hash"],
                scenario_root,
                os.urandom(32),
            )
        assert not funded_pool.is_nullifier_spent(test_data["nullifier_hash"])

    def test_serialized_proof(self, funded_pool, valid_proof, test_data, scenario_root):
        receipt = funded_pool.withdraw(
            valid_proof.to_bytes(),
            test_data["nullifier_hash"],
            scenario_root,
            test_data["binding_data"],
        )
        assert receipt.nullifier_hash == test_data["nullifier_hash"]

    def test_withdraw_against_recent_root(self, funded_pool, provider, valid_proof, test_data, scenario_root):
        provider.add_deposit("deposit-1", os.urandom(32))
        funded_pool.add_commitment("deposit-1")
        assert funded_pool.merkle_root() != scenario_root

        funded_pool.withdraw(
            valid_proof,
            test_data["nullifier_hash"],
            scenario_root,
            test_data["binding_data"],
        )

        assert funded_pool.get_state().num_nullifiers == 1
