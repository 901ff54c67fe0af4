#!/usr/bin/env python3
"""
Quick start guide for the privacy pool.

Runs a throwaway key generation, one deposit and one withdrawal. Key
generation and proving take a while in pure Python.
"""

import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zkpool.config import PoolSettings, setup_logging
from zkpool.core.commitment import generate_deposit_note, generate_nullifier_hash
from zkpool.core.pool import PrivacyPool
from zkpool.crypto import zk_snark
from zkpool.crypto.circuit import WithdrawalWitness
from zkpool.models.schemas import AssetId, DepositNote, PoolConfig
from zkpool.testing import InMemoryChainProvider, SeededSetupRandomness
from zkpool.utils.hash import calculate_outputs_hash


def main():
    """Run a simple example of the privacy pool."""
    setup_logging(PoolSettings(log_level="WARNING"))
    logging.getLogger("zkpool").setLevel(logging.INFO)

    print("=" * 70)
    print("PRIVACY POOL QUICK START EXAMPLE")
    print("=" * 70)
    print()

    # Step 1: Parameters
    print("Step 1: Generate demo parameters (insecure, seeded)")
    print("-" * 70)
    pk, vk = zk_snark.setup(SeededSetupRandomness(b"quick-start"))
    print(f"Circuit id: {vk.circuit_id.hex()[:32]}...")
    print()

    # Step 2: Pool
    print("Step 2: Create a pool for 1,000,000 units of asset 2:1")
    print("-" * 70)
    provider = InMemoryChainProvider(block_count=840_000)
    config = PoolConfig(asset_id=AssetId(block=2, tx=1), denomination=1_000_000, tree_height=8)
    pool = PrivacyPool(config, provider, vk)
    print(f"Pool id: {pool.pool_id}  capacity: {pool.max_capacity()} deposits")
    print()

    # Step 3: Deposit
    print("Step 3: Alice deposits")
    print("-" * 70)
    note = generate_deposit_note(config.asset_id, config.denomination)
    note_text = note.to_text()
    provider.add_deposit("alice-deposit", note.commitment, amount=config.denomination)
    leaf_index = pool.add_commitment("alice-deposit")
    print(f"Leaf index: {leaf_index}")
    print(f"Keep this note secret: {note_text[:40]}...")
    print()

    # Step 4: Withdraw
    print("Step 4: Alice withdraws to a fresh address")
    print("-" * 70)
    restored = DepositNote.from_text(note_text)
    binding = calculate_outputs_hash([(config.denomination, b"\x00\x14" + b"\x42" * 20)])
    witness = WithdrawalWitness(
        nullifier=restored.nullifier,
        secret=restored.secret,
        merkle_root=pool.merkle_root(),
        binding_data=binding,
    )
    proof = zk_snark.WithdrawalProver(pk).prove(witness)
    receipt = pool.withdraw(
        proof.to_bytes(),
        generate_nullifier_hash(restored.nullifier),
        witness.merkle_root,
        binding,
    )
    print(f"Withdrawal accepted: {receipt.to_dict()['nullifier_hash'][:34]}...")
    print()

    print("Pool state:")
    for key, value in pool.stats().model_dump().items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
