"""Append-only Merkle accumulator for deposit commitments."""

import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from zkpool.exceptions import CapacityExceededError, FieldEncodingError, IndexOutOfRangeError
from zkpool.utils.hash import HASH_SIZE, hash_internal, hash_leaf

ZERO_VALUE = b"\x00" * HASH_SIZE
MAX_HEIGHT = 32


def compute_zero_hashes(height: int) -> List[bytes]:
    """Roots of empty subtrees for levels 0..height."""
    zeros = [hash_leaf(ZERO_VALUE)]
    for _ in range(height):
        zeros.append(hash_internal(zeros[-1], zeros[-1]))
    return zeros


@dataclass(frozen=True)
class MerklePath:
    """
    Authentication path for one leaf.

    ``indices[i]`` is True when the node at level ``i`` on the path is a
    right child, so its sibling ``elements[i]`` is on the left.
    """

    elements: Tuple[bytes, ...]
    indices: Tuple[bool, ...]

    def __post_init__(self):
        if len(self.elements) != len(self.indices):
            raise ValueError("Path elements and directions differ in length")

    def __len__(self) -> int:
        return len(self.elements)

    def pairs(self) -> List[Tuple[bytes, bool]]:
        return list(zip(self.elements, self.indices))

    def to_dict(self) -> dict:
        return {
            "elements": [e.hex() for e in self.elements],
            "indices": list(self.indices),
        }


def compute_root_from_path(commitment: bytes, path: MerklePath) -> bytes:
    current = hash_leaf(commitment)
    for sibling, is_right in path.pairs():
        if is_right:
            current = hash_internal(sibling, current)
        else:
            current = hash_internal(current, sibling)
    return current


def verify_merkle_path(
    commitment: bytes,
    leaf_index: int,
    path: MerklePath,
    root: bytes,
    height: Optional[int] = None,
) -> bool:
    """
    Check that ``commitment`` sits at ``leaf_index`` under ``root``.

    The path directions must spell out the leaf index, and when ``height``
    is given the path must have exactly that many levels.

    Returns:
        bool: True if the path replays to the root
    """
    try:
        if not isinstance(commitment, bytes) or len(commitment) != HASH_SIZE:
            return False
        if height is not None and len(path) != height:
            return False
        if leaf_index < 0 or leaf_index >= 1 << len(path):
            return False
        for level, is_right in enumerate(path.indices):
            if bool((leaf_index >> level) & 1) != is_right:
                return False
        return compute_root_from_path(commitment, path) == root
    except (FieldEncodingError, TypeError):
        return False


class MerkleTree:
    """
    Fixed-height, append-only binary Merkle tree.

    Nodes are kept in one list per level (level 0 holds leaf hashes); any
    node not yet stored is the empty-subtree hash for its level. All access
    goes through one lock, so readers never see a half-applied insert.
    """

    DEFAULT_HEIGHT = 20

    def __init__(self, height: int = DEFAULT_HEIGHT):
        """
        Initialize an empty tree.

        Args:
            height: Number of levels above the leaves (capacity 2^height)

        Raises:
            ValueError: If height is out of range
        """
        if height < 1 or height > MAX_HEIGHT:
            raise ValueError(f"Tree height must be between 1 and {MAX_HEIGHT}")

        self._height = height
        self._capacity = 1 << height
        self._zeros = compute_zero_hashes(height)
        self._leaves: List[bytes] = []
        self._levels: List[List[bytes]] = [[] for _ in range(height + 1)]
        self._lock = threading.Lock()

    @property
    def height(self) -> int:
        return self._height

    @property
    def max_leaves(self) -> int:
        return self._capacity

    @property
    def leaf_count(self) -> int:
        with self._lock:
            return len(self._leaves)

    @property
    def is_full(self) -> bool:
        with self._lock:
            return len(self._leaves) >= self._capacity

    @property
    def root(self) -> bytes:
        with self._lock:
            return self._root()

    def _root(self) -> bytes:
        top = self._levels[self._height]
        return top[0] if top else self._zeros[self._height]

    def _node(self, level: int, position: int) -> bytes:
        nodes = self._levels[level]
        return nodes[position] if position < len(nodes) else self._zeros[level]

    def insert(self, commitment: bytes) -> int:
        """
        Append a commitment and return its leaf index.

        Raises:
            FieldEncodingError: If commitment is not 32 bytes
            CapacityExceededError: If the tree already holds 2^height leaves
        """
        if not isinstance(commitment, bytes) or len(commitment) != HASH_SIZE:
            raise FieldEncodingError("Commitment must be 32 bytes")

        with self._lock:
            index = len(self._leaves)
            if index >= self._capacity:
                raise CapacityExceededError(f"Tree is full ({self._capacity} leaves)")

            self._leaves.append(commitment)
            node = hash_leaf(commitment)
            position = index
            for level in range(self._height):
                nodes = self._levels[level]
                if position == len(nodes):
                    nodes.append(node)
                else:
                    nodes[position] = node

                if position & 1:
                    node = hash_internal(nodes[position - 1], node)
                else:
                    node = hash_internal(node, self._zeros[level])
                position >>= 1

            top = self._levels[self._height]
            if top:
                top[0] = node
            else:
                top.append(node)
            return index

    def generate_path(self, leaf_index: int) -> MerklePath:
        """
        Authentication path for an inserted leaf.

        Raises:
            IndexOutOfRangeError: If no leaf has that index
        """
        with self._lock:
            if leaf_index < 0 or leaf_index >= len(self._leaves):
                raise IndexOutOfRangeError(
                    f"Leaf index {leaf_index} out of range (count {len(self._leaves)})"
                )

            elements = []
            indices = []
            position = leaf_index
            for level in range(self._height):
                elements.append(self._node(level, position ^ 1))
                indices.append(bool(position & 1))
                position >>= 1
            return MerklePath(tuple(elements), tuple(indices))

    def get_leaf(self, leaf_index: int) -> bytes:
        with self._lock:
            if leaf_index < 0 or leaf_index >= len(self._leaves):
                raise IndexOutOfRangeError(f"Leaf index {leaf_index} out of range")
            return self._leaves[leaf_index]

    def verify_path(self, commitment: bytes, leaf_index: int, path: MerklePath) -> bool:
        """Check a path against the current root and this tree's height."""
        return verify_merkle_path(commitment, leaf_index, path, self.root, self._height)

    def verify_integrity(self) -> bool:
        """Recompute the root from the leaves alone and compare with the arena."""
        with self._lock:
            level = [hash_leaf(leaf) for leaf in self._leaves]
            for depth in range(self._height):
                if len(level) % 2:
                    level.append(self._zeros[depth])
                level = [hash_internal(level[i], level[i + 1]) for i in range(0, len(level), 2)]
            recomputed = level[0] if level else self._zeros[self._height]
            return recomputed == self._root()

    def get_state(self) -> dict:
        with self._lock:
            return {
                "height": self._height,
                "max_leaves": self._capacity,
                "num_leaves": len(self._leaves),
                "root": self._root().hex(),
            }

    def __len__(self) -> int:
        return self.leaf_count

    def __repr__(self) -> str:
        root = self.root
        return (
            f"MerkleTree(height={self._height}, "
            f"leaves={self.leaf_count}/{self._capacity}, "
            f"root={root.hex()[:16]}...)"
        )
