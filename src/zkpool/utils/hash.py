"""Byte-oriented hash utilities.

Tree hashing is domain separated: leaves are hashed with a 0x00 prefix and
internal nodes with a 0x01 prefix, so a leaf preimage can never be confused
with an internal-node preimage.
"""

import hashlib
from typing import Iterable, Tuple, Union

from zkpool.exceptions import FieldEncodingError

LEAF_PREFIX = b"\x00"
INTERNAL_PREFIX = b"\x01"
HASH_SIZE = 32


def sha256(data: Union[bytes, str]) -> bytes:
    """
    Compute SHA-256 hash of data.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte SHA-256 hash
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def blake2s(data: bytes) -> bytes:
    """Compute the 32-byte Blake2s digest of data."""
    return hashlib.blake2s(data, digest_size=HASH_SIZE).digest()


def hash_leaf(leaf: bytes) -> bytes:
    """
    Hash a leaf value for tree inclusion: H(0x00 || leaf).

    Args:
        leaf: Leaf value (32 bytes)

    Returns:
        bytes: Leaf node hash (32 bytes)

    Raises:
        FieldEncodingError: If leaf is not 32 bytes
    """
    if not isinstance(leaf, bytes) or len(leaf) != HASH_SIZE:
        raise FieldEncodingError("Leaf must be 32 bytes")

    return blake2s(LEAF_PREFIX + leaf)


def hash_internal(left: bytes, right: bytes) -> bytes:
    """
    Hash two children into their parent: H(0x01 || left || right).

    Args:
        left: Left child hash (32 bytes)
        right: Right child hash (32 bytes)

    Returns:
        bytes: Parent hash (32 bytes)

    Raises:
        FieldEncodingError: If either child is not 32 bytes
    """
    if not isinstance(left, bytes) or len(left) != HASH_SIZE:
        raise FieldEncodingError("Left hash must be 32 bytes")
    if not isinstance(right, bytes) or len(right) != HASH_SIZE:
        raise FieldEncodingError("Right hash must be 32 bytes")

    return blake2s(INTERNAL_PREFIX + left + right)


def calculate_outputs_hash(outputs: Iterable[Tuple[int, bytes]]) -> bytes:
    """
    Hash the recipient outputs a withdrawal pays to.

    Each output contributes its value as a little-endian u64 followed by its
    script. The digest is used as the binding data of a withdrawal proof, so
    a captured proof cannot be redirected to different outputs.

    Args:
        outputs: (value, script) pairs in transaction order

    Returns:
        bytes: SHA-256 digest (32 bytes)
    """
    hasher = hashlib.sha256()
    for value, script in outputs:
        if value < 0 or value >= 2**64:
            raise ValueError(f"Output value out of range: {value}")
        hasher.update(value.to_bytes(8, 'little'))
        hasher.update(script)
    return hasher.digest()
