"""Custom exceptions for the privacy pool engine."""


class ZKPoolException(Exception):
    """Base exception for all privacy pool errors."""
    pass


# Cryptography Errors
class CryptoError(ZKPoolException):
    """Base exception for hashing and field-encoding errors."""
    pass


class FieldEncodingError(CryptoError):
    """Raised when bytes cannot be encoded as (or decoded from) field elements."""
    pass


class InvalidCommitmentError(CryptoError):
    """Raised when commitment inputs are malformed."""
    pass


class InvalidNullifierError(CryptoError):
    """Raised when nullifier inputs are malformed."""
    pass


# Proof Errors
class ProofError(ZKPoolException):
    """Base exception for proof-system errors."""
    pass


class InvalidProofError(ProofError):
    """Raised when a withdrawal proof does not verify."""
    pass


class UnsatisfiedWitnessError(ProofError):
    """Raised when a witness does not satisfy the circuit constraints."""
    pass


class ProofCancelledError(ProofError):
    """Raised when proof generation is cancelled by the caller."""
    pass


class CircuitMismatchError(ProofError):
    """Raised when a key or proof belongs to a different circuit revision."""
    pass


class SetupError(ProofError):
    """Raised when parameter setup or loading fails."""
    pass


# Merkle Tree Errors
class MerkleTreeError(ZKPoolException):
    """Base exception for Merkle accumulator errors."""
    pass


class CapacityExceededError(MerkleTreeError):
    """Raised when inserting into a full tree.

    Fatal for further deposits into that tree: a new pool must be provisioned.
    """
    pass


class IndexOutOfRangeError(MerkleTreeError):
    """Raised when a leaf index does not refer to an inserted leaf."""
    pass


# Pool Errors
class PoolError(ZKPoolException):
    """Base exception for pool operation errors."""
    pass


class CommitmentNotFoundError(PoolError):
    """Raised when a transaction carries no commitment marker output."""
    pass


class DuplicateCommitmentError(PoolError):
    """Raised when a commitment is already in the pool."""
    pass


class AlreadySpentError(PoolError):
    """Raised when a nullifier hash has already been withdrawn."""
    pass


class UnknownRootError(PoolError):
    """Raised when a withdrawal references a root outside the history window."""
    pass


class PoolConfigError(PoolError):
    """Raised when a pool is constructed with inconsistent parameters."""
    pass


# Chain access
class ProviderError(ZKPoolException):
    """Raised when the chain-data provider fails.

    Retries belong to the provider, never to the pool.
    """
    pass


# Storage Errors
class StorageError(ZKPoolException):
    """Base exception for encoding and persistence errors."""
    pass


class SerializationError(StorageError):
    """Raised when serialization fails."""
    pass


class DeserializationError(StorageError):
    """Raised when deserialization fails."""
    pass
