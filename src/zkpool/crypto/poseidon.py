"""Algebraic field hash shared by commitments and the withdrawal circuit.

Commitments and nullifier hashes are computed with a Poseidon-style
permutation over the BN254 scalar field. The same permutation object is used
natively (``permute``) and as an R1CS gadget (``permute_gadget``); both walk
the identical round schedule, so the hash checked inside a proof is the hash
computed outside it.

Parameters:
    - S-box: x^5 (gcd(5, r - 1) = 1 on BN254)
    - Width t = number of inputs + 1, capacity element first
    - Full rounds: 8 (4 before and 4 after the partial rounds)
    - Partial rounds: 56 / 57 / 56 / 60 for t = 2 / 3 / 4 / 5
    - MDS: Cauchy matrix M[i][j] = 1 / (i + t + j)
    - Round constants: SHAKE-256 expansion of a fixed domain tag

Example:
    >>> from zkpool.crypto.poseidon import field_hash
    >>> digest = field_hash(b"\\x01" * 32)
    >>> len(digest)
    32
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Sequence

from Crypto.Hash import SHAKE256

from zkpool.crypto.r1cs import ConstraintSystem, LinearCombination
from zkpool.exceptions import FieldEncodingError
from zkpool.utils.encoding import FIELD_MODULUS, field_to_bytes

P = FIELD_MODULUS

LIMB_SIZE = 31  # bytes per limb, keeps every limb below the field modulus
MAX_LIMBS = 4
FULL_ROUNDS = 8
PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56, 5: 60}
SBOX_POWER = 5
DOMAIN_TAG = b"zkpool/poseidon/bn254/x5"


@dataclass(frozen=True)
class PoseidonParameters:
    """Round schedule and constants for one permutation width."""

    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple  # one tuple of `width` constants per round
    mds: tuple  # width x width

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, round_index: int) -> bool:
        half = self.full_rounds // 2
        return round_index < half or round_index >= half + self.partial_rounds


def _expand_constants(width: int, count: int) -> List[int]:
    tag = DOMAIN_TAG + bytes([width, FULL_ROUNDS, PARTIAL_ROUNDS[width]])
    shake = SHAKE256.new(data=tag)
    # 64 bytes per constant makes the modular bias negligible
    return [int.from_bytes(shake.read(64), 'big') % P for _ in range(count)]


def _cauchy_mds(width: int) -> tuple:
    return tuple(
        tuple(pow(i + width + j, P - 2, P) for j in range(width))
        for i in range(width)
    )


@lru_cache(maxsize=None)
def poseidon_parameters(width: int) -> PoseidonParameters:
    """Return (and cache) the parameters for a permutation width."""
    if width not in PARTIAL_ROUNDS:
        raise FieldEncodingError(f"Unsupported permutation width: {width}")

    partial = PARTIAL_ROUNDS[width]
    flat = _expand_constants(width, (FULL_ROUNDS + partial) * width)
    constants = tuple(
        tuple(flat[r * width:(r + 1) * width]) for r in range(FULL_ROUNDS + partial)
    )
    return PoseidonParameters(
        width=width,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial,
        round_constants=constants,
        mds=_cauchy_mds(width),
    )


class FieldPermutation(ABC):
    """
    Strategy interface for the algebraic hash.

    Implementations must provide a native evaluation and an R1CS gadget that
    agree on every input. Swapping the permutation touches only this seam.
    """

    name: str = "abstract"

    @abstractmethod
    def permute(self, state: Sequence[int]) -> List[int]:
        """Apply the permutation to a full state of field elements."""

    @abstractmethod
    def permute_gadget(
        self, cs: ConstraintSystem, state: Sequence[LinearCombination]
    ) -> List[LinearCombination]:
        """Constrain the permutation of a state of linear combinations."""

    def hash(self, inputs: Sequence[int]) -> int:
        """Hash field elements: permute [0, inputs...] and take element 0."""
        return self.permute([0] + [x % P for x in inputs])[0]

    def hash_gadget(
        self, cs: ConstraintSystem, inputs: Sequence[LinearCombination]
    ) -> LinearCombination:
        state = [LinearCombination()] + list(inputs)
        return self.permute_gadget(cs, state)[0]


class PoseidonPermutation(FieldPermutation):
    """Poseidon over the BN254 scalar field with an x^5 S-box."""

    name = "poseidon-bn254-x5"

    def permute(self, state: Sequence[int]) -> List[int]:
        params = poseidon_parameters(len(state))
        state = [x % P for x in state]

        for r in range(params.total_rounds):
            state = [(x + c) % P for x, c in zip(state, params.round_constants[r])]
            if params.is_full_round(r):
                state = [pow(x, SBOX_POWER, P) for x in state]
            else:
                state[0] = pow(state[0], SBOX_POWER, P)
            state = [
                sum(m * x for m, x in zip(row, state)) % P for row in params.mds
            ]

        return state

    def permute_gadget(
        self, cs: ConstraintSystem, state: Sequence[LinearCombination]
    ) -> List[LinearCombination]:
        params = poseidon_parameters(len(state))
        state = list(state)

        for r in range(params.total_rounds):
            state = [x + c for x, c in zip(state, params.round_constants[r])]
            if params.is_full_round(r):
                state = [self._sbox_gadget(cs, x) for x in state]
            else:
                state[0] = self._sbox_gadget(cs, state[0])
            state = [self._mix(row, state) for row in params.mds]

        return state

    @staticmethod
    def _mix(row: Sequence[int], state: Sequence[LinearCombination]) -> LinearCombination:
        result = LinearCombination()
        for m, x in zip(row, state):
            result = result + x * m
        return result

    @staticmethod
    def _sbox_gadget(cs: ConstraintSystem, x: LinearCombination) -> LinearCombination:
        # x^5 costs three multiplication constraints
        x2 = cs.mul(x, x, "sbox x^2")
        x4 = cs.mul(x2, x2, "sbox x^4")
        return cs.mul(x4, x, "sbox x^5")


DEFAULT_PERMUTATION: FieldPermutation = PoseidonPermutation()


def bytes_to_limbs(data: bytes) -> List[int]:
    """
    Split bytes into 31-byte little-endian limbs.

    Raises:
        FieldEncodingError: If data is not bytes or needs too many limbs
    """
    if not isinstance(data, bytes):
        raise FieldEncodingError("Field hash input must be bytes")

    limbs = [
        int.from_bytes(data[i:i + LIMB_SIZE], 'little')
        for i in range(0, len(data), LIMB_SIZE)
    ]
    if not limbs:
        limbs = [0]
    if len(limbs) > MAX_LIMBS:
        raise FieldEncodingError(
            f"Input of {len(data)} bytes exceeds {MAX_LIMBS * LIMB_SIZE} byte limit"
        )
    return limbs


def field_hash(data: bytes, permutation: Optional[FieldPermutation] = None) -> bytes:
    """
    Algebraic hash of bytes, serialized as a canonical 32-byte field element.

    Args:
        data: Input bytes (at most 124)
        permutation: Permutation strategy (defaults to Poseidon)

    Returns:
        bytes: 32-byte little-endian field element
    """
    permutation = permutation or DEFAULT_PERMUTATION
    return field_to_bytes(permutation.hash(bytes_to_limbs(data)))


def poseidon_hash_two(left: bytes, right: bytes) -> bytes:
    """Field hash of two 32-byte values concatenated."""
    return field_hash(left + right)


def poseidon_hash_single(value: bytes) -> bytes:
    """Field hash of a single 32-byte value."""
    return field_hash(value)
