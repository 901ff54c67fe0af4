"""Privacy pool orchestrator.

One pool serves one (asset, denomination) pair and owns exactly one Merkle
accumulator and one spent-nullifier set.

Transaction Flow:

    DEPOSIT (observed on chain):
        1. Depositor publishes a transaction with a commitment marker output
        2. add_commitment(tx_ref) fetches it through the chain-data provider
        3. The commitment is appended to the accumulator
        4. The previous root enters the recent-root window

    WITHDRAWAL:
        1. Depositor proves knowledge of (nullifier, secret) off-line
        2. withdraw() rejects spent nullifier hashes and unknown roots
        3. The proof is verified outside the pool lock
        4. The nullifier hash is recorded with an atomic compare-and-insert
        5. The receipt authorizes a payout bound to binding_data

Key Invariants:
    - Leaf indices are assigned from 0 upward and never reused
    - A nullifier hash is accepted at most once
    - commitment_count() always equals the accumulator leaf count
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional, Set, Union

from zkpool.config import PoolSettings
from zkpool.core.commitment import generate_pool_id
from zkpool.core.merkle_tree import MerklePath, MerkleTree
from zkpool.core.provider import ChainDataProvider, extract_commitment
from zkpool.crypto import zk_snark
from zkpool.crypto.circuit import PublicInputs
from zkpool.crypto.groth16 import Proof, VerifyingKey
from zkpool.exceptions import (
    AlreadySpentError,
    CapacityExceededError,
    CircuitMismatchError,
    CommitmentNotFoundError,
    DeserializationError,
    DuplicateCommitmentError,
    FieldEncodingError,
    InvalidNullifierError,
    InvalidProofError,
    PoolConfigError,
    ProviderError,
    UnknownRootError,
)
from zkpool.models.schemas import AssetId, PoolConfig, PoolStats
from zkpool.utils.encoding import bytes_to_hex

logger = logging.getLogger(__name__)

ProofVerifier = Callable[[VerifyingKey, Proof, PublicInputs], bool]


def _short(value: bytes) -> str:
    return value.hex()[:16]


class CommitmentRecord:
    """Where and when a commitment was observed."""

    def __init__(self, commitment: bytes, leaf_index: int, tx_ref: str, block_count: int):
        self.commitment = commitment
        self.leaf_index = leaf_index
        self.tx_ref = tx_ref
        self.block_count = block_count

    def to_dict(self) -> dict:
        return {
            "commitment": bytes_to_hex(self.commitment),
            "leaf_index": self.leaf_index,
            "tx_ref": self.tx_ref,
            "block_count": self.block_count,
        }


class WithdrawalReceipt:
    """Authorization for one payout, bound to its binding data."""

    def __init__(
        self,
        nullifier_hash: bytes,
        merkle_root: bytes,
        binding_data: bytes,
        timestamp: datetime,
    ):
        self.nullifier_hash = nullifier_hash
        self.merkle_root = merkle_root
        self.binding_data = binding_data
        self.timestamp = timestamp

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "nullifier_hash": bytes_to_hex(self.nullifier_hash),
            "merkle_root": bytes_to_hex(self.merkle_root),
            "binding_data": bytes_to_hex(self.binding_data),
            "timestamp": self.timestamp.isoformat(),
        }


class PoolState:
    """Snapshot of a pool."""

    def __init__(
        self,
        pool_id: AssetId,
        merkle_root: bytes,
        tree_height: int,
        num_commitments: int,
        num_nullifiers: int,
        known_roots: List[bytes],
    ):
        self.pool_id = pool_id
        self.merkle_root = merkle_root
        self.tree_height = tree_height
        self.num_commitments = num_commitments
        self.num_nullifiers = num_nullifiers
        self.known_roots = known_roots

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pool_id": str(self.pool_id),
            "merkle_root": bytes_to_hex(self.merkle_root),
            "tree_height": self.tree_height,
            "num_commitments": self.num_commitments,
            "num_nullifiers": self.num_nullifiers,
            "known_roots": [bytes_to_hex(r) for r in self.known_roots],
        }


class PrivacyPool:
    """
    Accumulator plus spent set for one (asset, denomination) configuration.

    Pools are constructed explicitly with their chain-data provider and
    verifying key; there is no shared default instance.
    """

    DEFAULT_ROOT_HISTORY_SIZE = 30

    def __init__(
        self,
        config: PoolConfig,
        provider: ChainDataProvider,
        verifying_key: VerifyingKey,
        root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
        verifier: Optional[ProofVerifier] = None,
    ):
        """
        Args:
            config: Pool configuration
            provider: Chain-data access used by add_commitment
            verifying_key: Verifying key of the withdrawal circuit
            root_history_size: Number of superseded roots still accepted
            verifier: Proof check, defaults to the Groth16 verifier

        Raises:
            PoolConfigError: If root_history_size is negative
            CircuitMismatchError: If the key is for another circuit revision
        """
        if root_history_size < 0:
            raise PoolConfigError("root_history_size must be non-negative")
        if verifying_key.circuit_id != zk_snark.current_circuit_id():
            raise CircuitMismatchError("Verifying key belongs to another circuit revision")

        self.config = config
        self.provider = provider
        self.verifying_key = verifying_key
        self.root_history_size = root_history_size
        self._verify = verifier or zk_snark.verify

        self._tree = MerkleTree(config.tree_height)
        self._spent: Set[bytes] = set()
        self._commitments: Set[bytes] = set()
        self._history: Deque[bytes] = deque(maxlen=root_history_size)
        self._records: List[CommitmentRecord] = []
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        asset_id: AssetId,
        denomination: int,
        provider: ChainDataProvider,
        settings: Optional[PoolSettings] = None,
    ) -> "PrivacyPool":
        """
        Build a pool from engine settings, loading the ceremony verifying key.

        Raises:
            PoolConfigError: If no verifying key path is configured
            SetupError: If the key cannot be loaded
        """
        settings = settings or PoolSettings()
        if settings.verifying_key_path is None:
            raise PoolConfigError("ZKPOOL_VERIFYING_KEY_PATH is not set")

        config = PoolConfig(
            asset_id=asset_id,
            denomination=denomination,
            tree_height=settings.tree_height,
        )
        vk = zk_snark.load_verifying_key(settings.verifying_key_path)
        return cls(config, provider, vk, root_history_size=settings.root_history_size)

    @property
    def pool_id(self) -> AssetId:
        return generate_pool_id(self.config.asset_id, self.config.denomination)

    # -- Deposits ----------------------------------------------------------

    def add_commitment(self, tx_ref: str) -> int:
        """
        Ingest the commitment published by a transaction.

        Args:
            tx_ref: Transaction reference understood by the provider

        Returns:
            int: Leaf index assigned to the commitment

        Raises:
            ProviderError: If the provider fails
            CommitmentNotFoundError: If the transaction has no marker output
            DuplicateCommitmentError: If the commitment is already in the tree
            CapacityExceededError: If the pool's tree is full
        """
        try:
            tx = self.provider.fetch_transaction(tx_ref)
            block_count = self.provider.fetch_block_count()
        except Exception as e:
            raise ProviderError(f"Failed to fetch transaction {tx_ref}: {e}") from e

        commitment = extract_commitment(tx)
        if commitment is None:
            raise CommitmentNotFoundError(f"No commitment output in transaction {tx_ref}")

        with self._lock:
            if commitment in self._commitments:
                raise DuplicateCommitmentError(
                    f"Commitment {_short(commitment)} from {tx_ref} is already in the pool"
                )

            previous_root = self._tree.root
            try:
                leaf_index = self._tree.insert(commitment)
            except CapacityExceededError:
                logger.error(
                    f"Pool {self.pool_id} is full at {self._tree.max_leaves} commitments; "
                    f"a new pool must be provisioned"
                )
                raise

            if leaf_index > 0:
                self._history.append(previous_root)
            self._commitments.add(commitment)
            self._records.append(CommitmentRecord(commitment, leaf_index, tx_ref, block_count))

        logger.info(f"Commitment {_short(commitment)} added at leaf {leaf_index} from {tx_ref}")
        return leaf_index

    def commitment_count(self) -> int:
        return self._tree.leaf_count

    def commitment_records(self) -> List[CommitmentRecord]:
        with self._lock:
            return list(self._records)

    # -- Withdrawals -------------------------------------------------------

    def withdraw(
        self,
        proof: Union[Proof, bytes],
        nullifier_hash: bytes,
        merkle_root: bytes,
        binding_data: bytes,
    ) -> WithdrawalReceipt:
        """
        Validate a withdrawal and mark its nullifier hash spent.

        Checks run in order: spent set, root window, proof.

        Raises:
            AlreadySpentError: If the nullifier hash was already withdrawn
            UnknownRootError: If merkle_root is neither current nor recent
            InvalidProofError: If the proof does not verify
        """
        if not isinstance(nullifier_hash, bytes) or len(nullifier_hash) != 32:
            raise InvalidNullifierError("Nullifier hash must be 32 bytes")
        for name, value in (("merkle_root", merkle_root), ("binding_data", binding_data)):
            if not isinstance(value, bytes) or len(value) != 32:
                raise FieldEncodingError(f"{name} must be 32 bytes")

        with self._lock:
            if nullifier_hash in self._spent:
                raise AlreadySpentError(f"Nullifier hash {_short(nullifier_hash)} already spent")
            if not self._is_known_root(merkle_root):
                raise UnknownRootError(f"Unknown merkle root {_short(merkle_root)}")

        if isinstance(proof, bytes):
            try:
                proof = Proof.from_bytes(proof)
            except DeserializationError as e:
                raise InvalidProofError(f"Malformed proof: {e}") from e

        public_inputs = PublicInputs(
            nullifier_hash=nullifier_hash,
            merkle_root=merkle_root,
            binding_data=binding_data,
        )
        if not self._verify(self.verifying_key, proof, public_inputs):
            logger.warning(f"Rejected proof for nullifier hash {_short(nullifier_hash)}")
            raise InvalidProofError("Withdrawal proof verification failed")

        with self._lock:
            if nullifier_hash in self._spent:
                raise AlreadySpentError(f"Nullifier hash {_short(nullifier_hash)} already spent")
            self._spent.add(nullifier_hash)

        logger.info(f"Withdrawal accepted for nullifier hash {_short(nullifier_hash)}")
        return WithdrawalReceipt(
            nullifier_hash=nullifier_hash,
            merkle_root=merkle_root,
            binding_data=binding_data,
            timestamp=datetime.now(),
        )

    def is_nullifier_spent(self, nullifier_hash: bytes) -> bool:
        with self._lock:
            return nullifier_hash in self._spent

    # -- Roots -------------------------------------------------------------

    def _is_known_root(self, root: bytes) -> bool:
        if self._tree.leaf_count == 0:
            return False
        return root == self._tree.root or root in self._history

    def is_known_root(self, root: bytes) -> bool:
        with self._lock:
            return self._is_known_root(root)

    def known_roots(self) -> List[bytes]:
        """Current root first, then superseded roots from newest to oldest."""
        with self._lock:
            if self._tree.leaf_count == 0:
                return []
            return [self._tree.root] + list(reversed(self._history))

    def merkle_root(self) -> bytes:
        return self._tree.root

    def generate_merkle_proof(self, leaf_index: int) -> MerklePath:
        return self._tree.generate_path(leaf_index)

    # -- Capacity and reporting ----------------------------------------------

    def max_capacity(self) -> int:
        return self._tree.max_leaves

    def is_full(self) -> bool:
        return self._tree.is_full

    def accepts_asset(self, asset_id: AssetId) -> bool:
        """Whether ``asset_id`` may be paired with this pool."""
        allowlist = self.config.counter_asset_allowlist
        if allowlist is None:
            return True
        return asset_id == self.config.asset_id or asset_id in allowlist

    def stats(self) -> PoolStats:
        with self._lock:
            spent = len(self._spent)
        return PoolStats(
            commitment_count=self.commitment_count(),
            spent_nullifier_count=spent,
            max_capacity=self.max_capacity(),
        )

    def get_state(self) -> PoolState:
        with self._lock:
            return PoolState(
                pool_id=self.pool_id,
                merkle_root=self._tree.root,
                tree_height=self._tree.height,
                num_commitments=self._tree.leaf_count,
                num_nullifiers=len(self._spent),
                known_roots=[self._tree.root] + list(reversed(self._history))
                if self._tree.leaf_count else [],
            )

    def __repr__(self) -> str:
        return (
            f"PrivacyPool(asset={self.config.asset_id}, "
            f"denomination={self.config.denomination}, "
            f"commitments={self.commitment_count()}/{self.max_capacity()})"
        )
