"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ZK Privacy Pool Team"
__description__ = "Privacy pool engine: commitments, Merkle accumulator, Groth16 withdrawals"

from .core.commitment import (
    generate_commitment,
    generate_nullifier_hash,
    verify_commitment,
    verify_nullifier_hash,
    generate_deposit_note,
    verify_deposit_note,
)
from .core.merkle_tree import MerkleTree, MerklePath, verify_merkle_path
from .core.pool import PrivacyPool, WithdrawalReceipt
from .crypto.circuit import PublicInputs, WithdrawalWitness
from .models.schemas import AssetId, PoolConfig, DepositNote

__all__ = [
    "generate_commitment",
    "generate_nullifier_hash",
    "verify_commitment",
    "verify_nullifier_hash",
    "generate_deposit_note",
    "verify_deposit_note",
    "MerkleTree",
    "MerklePath",
    "verify_merkle_path",
    "PrivacyPool",
    "WithdrawalReceipt",
    "PublicInputs",
    "WithdrawalWitness",
    "AssetId",
    "PoolConfig",
    "DepositNote",
]
