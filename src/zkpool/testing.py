"""Test-only capabilities.

Nothing in the library imports this module. Keys generated with a seeded
source are reproducible by anyone who knows the seed and must never be used
outside test fixtures.
"""

import threading
from typing import Dict, List, Optional

from Crypto.Hash import SHAKE256

from zkpool.core.provider import ChainTransaction, TxOutput, marker_output
from zkpool.crypto.groth16 import R, SetupRandomness


class SeededSetupRandomness(SetupRandomness):
    """Deterministic setup randomness expanded from a seed with SHAKE-256."""

    def __init__(self, seed: bytes):
        if not isinstance(seed, bytes) or not seed:
            raise ValueError("Seed must be non-empty bytes")
        self._stream = SHAKE256.new(data=b"zkpool/testing/setup" + seed)

    def scalar(self) -> int:
        while True:
            value = int.from_bytes(self._stream.read(64), 'big') % R
            if value:
                return value


class InMemoryChainProvider:
    """Chain-data provider backed by a dict, for tests and demos."""

    def __init__(self, block_count: int = 0):
        self._transactions: Dict[str, ChainTransaction] = {}
        self._block_count = block_count
        self._lock = threading.Lock()
        self.fail_with: Optional[Exception] = None

    def add_transaction(self, txid: str, outputs: List[TxOutput]) -> ChainTransaction:
        tx = ChainTransaction(txid=txid, outputs=list(outputs))
        with self._lock:
            self._transactions[txid] = tx
            self._block_count += 1
        return tx

    def add_deposit(self, txid: str, commitment: bytes, amount: int = 0) -> ChainTransaction:
        """Record a deposit transaction carrying a commitment marker."""
        outputs = []
        if amount:
            outputs.append(TxOutput(script_payload=b"\x51", value=amount))
        outputs.append(marker_output(commitment))
        return self.add_transaction(txid, outputs)

    def fetch_transaction(self, tx_ref: str) -> ChainTransaction:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            try:
                return self._transactions[tx_ref]
            except KeyError:
                raise LookupError(f"Unknown transaction: {tx_ref}") from None

    def fetch_block_count(self) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            return self._block_count
