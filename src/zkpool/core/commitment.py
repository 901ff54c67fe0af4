"""Commitment and nullifier scheme.

    commitment     = field_hash(nullifier || secret)
    nullifier_hash = field_hash(nullifier)

Both are deterministic; all hiding comes from the 32 random bytes of the
secret and nullifier.
"""

import secrets

from cryptography.hazmat.primitives.constant_time import bytes_eq

from zkpool.crypto.poseidon import field_hash
from zkpool.exceptions import InvalidCommitmentError, InvalidNullifierError
from zkpool.models.schemas import AssetId, DepositNote

SECRET_SIZE = 32
NULLIFIER_SIZE = 32
HASH_SIZE = 32

POOL_INSTANCE_BLOCK = 6


def _check_nullifier(nullifier: bytes) -> None:
    if not isinstance(nullifier, bytes) or len(nullifier) != NULLIFIER_SIZE:
        raise InvalidNullifierError("Nullifier must be 32 bytes")


def _check_secret(secret: bytes) -> None:
    if not isinstance(secret, bytes) or len(secret) != SECRET_SIZE:
        raise InvalidCommitmentError("Secret must be 32 bytes")


def generate_secret() -> bytes:
    """Return 32 bytes from the OS CSPRNG."""
    return secrets.token_bytes(SECRET_SIZE)


def generate_nullifier() -> bytes:
    return secrets.token_bytes(NULLIFIER_SIZE)


def generate_commitment(nullifier: bytes, secret: bytes) -> bytes:
    """
    Compute the deposit commitment.

    Args:
        nullifier: 32-byte nullifier
        secret: 32-byte secret

    Returns:
        bytes: 32-byte commitment

    Raises:
        InvalidNullifierError: If nullifier is not 32 bytes
        InvalidCommitmentError: If secret is not 32 bytes
    """
    _check_nullifier(nullifier)
    _check_secret(secret)
    return field_hash(nullifier + secret)


def generate_nullifier_hash(nullifier: bytes) -> bytes:
    """
    Compute the nullifier hash revealed at withdrawal.

    Raises:
        InvalidNullifierError: If nullifier is not 32 bytes
    """
    _check_nullifier(nullifier)
    return field_hash(nullifier)


def verify_commitment(commitment: bytes, nullifier: bytes, secret: bytes) -> bool:
    """
    Check a commitment against its opening in constant time.

    Raises:
        CryptoError: If any input has the wrong length
    """
    if not isinstance(commitment, bytes) or len(commitment) != HASH_SIZE:
        raise InvalidCommitmentError("Commitment must be 32 bytes")
    return bytes_eq(generate_commitment(nullifier, secret), commitment)


def verify_nullifier_hash(nullifier_hash: bytes, nullifier: bytes) -> bool:
    if not isinstance(nullifier_hash, bytes) or len(nullifier_hash) != HASH_SIZE:
        raise InvalidNullifierError("Nullifier hash must be 32 bytes")
    return bytes_eq(generate_nullifier_hash(nullifier), nullifier_hash)


def generate_deposit_note(asset_id: AssetId, denomination: int) -> DepositNote:
    """
    Create fresh deposit secrets for one pool.

    Args:
        asset_id: Asset the pool holds
        denomination: Fixed deposit amount of the pool

    Returns:
        DepositNote: Secrets plus the commitment to publish
    """
    nullifier = generate_nullifier()
    secret = generate_secret()
    return DepositNote(
        asset_id=asset_id,
        denomination=denomination,
        nullifier=nullifier,
        secret=secret,
        commitment=generate_commitment(nullifier, secret),
    )


def verify_deposit_note(note: DepositNote) -> bool:
    """True iff the note's commitment opens to its nullifier and secret."""
    return verify_commitment(note.commitment, note.nullifier, note.secret)


def generate_pool_id(asset_id: AssetId, denomination: int) -> AssetId:
    """
    Deterministic identifier of the pool for (asset, denomination).

    The block, tx and denomination are encoded as little-endian u128 values
    and XOR-folded into the tx field of an id on the pool instance block.
    """
    if not 0 <= denomination < 2**128:
        raise ValueError("Denomination must fit in 128 bits")

    folded = asset_id.block ^ asset_id.tx ^ denomination
    return AssetId(block=POOL_INSTANCE_BLOCK, tx=folded)
