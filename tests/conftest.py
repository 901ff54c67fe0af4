"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from py_ecc.optimized_bn128 import G1, G2

from zkpool.core.commitment import generate_commitment, generate_nullifier_hash
from zkpool.core.merkle_tree import MerkleTree
from zkpool.crypto import zk_snark
from zkpool.crypto.circuit import WithdrawalWitness
from zkpool.crypto.groth16 import VerifyingKey
from zkpool.models.schemas import AssetId, PoolConfig
from zkpool.testing import InMemoryChainProvider, SeededSetupRandomness
from zkpool.utils.hash import calculate_outputs_hash

SCENARIO_HEIGHT = 20
RECIPIENT_OUTPUTS = [(1_000_000, b"\x00\x14" + b"\x42" * 20)]


@pytest.fixture(scope="session")
def test_data():
    """Fixture providing fixed deposit material."""
    nullifier = bytes(range(1, 33))
    secret = bytes(range(101, 133))
    return {
        "nullifier": nullifier,
        "secret": secret,
        "commitment": generate_commitment(nullifier, secret),
        "nullifier_hash": generate_nullifier_hash(nullifier),
        "asset_id": AssetId(block=2, tx=1),
        "denomination": 1_000_000,
        "binding_data": calculate_outputs_hash(RECIPIENT_OUTPUTS),
    }


@pytest.fixture(scope="session")
def scenario_root(test_data):
    """Root of a height-20 tree holding only the fixture commitment."""
    tree = MerkleTree(SCENARIO_HEIGHT)
    tree.insert(test_data["commitment"])
    return tree.root


@pytest.fixture(scope="session")
def groth16_keys():
    """Seeded key pair for the withdrawal circuit (expensive, built once)."""
    return zk_snark.setup(SeededSetupRandomness(b"zkpool-test-suite"))


@pytest.fixture(scope="session")
def withdrawal_witness(test_data, scenario_root):
    return WithdrawalWitness(
        nullifier=test_data["nullifier"],
        secret=test_data["secret"],
        merkle_root=scenario_root,
        binding_data=test_data["binding_data"],
    )


@pytest.fixture(scope="session")
def valid_proof(groth16_keys, withdrawal_witness):
    """One real proof shared by every test that needs a valid one."""
    pk, _ = groth16_keys
    return zk_snark.prove(pk, withdrawal_witness)


@pytest.fixture
def stub_verifying_key():
    """Verifying key with the current circuit id but meaningless points."""
    return VerifyingKey(
        circuit_id=zk_snark.current_circuit_id(),
        alpha_g1=G1,
        beta_g2=G2,
        gamma_g2=G2,
        delta_g2=G2,
        gamma_abc_g1=[G1, G1, G1, G1],
    )


@pytest.fixture
def provider():
    return InMemoryChainProvider(block_count=100)


@pytest.fixture
def pool_config(test_data):
    return PoolConfig(
        asset_id=test_data["asset_id"],
        denomination=test_data["denomination"],
        tree_height=4,
    )

