"""Pydantic data models for the privacy pool."""

from typing import Annotated, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zkpool.crypto.poseidon import field_hash

U128_LIMIT = 2**128
NOTE_PREFIX = "zkpool"
NOTE_VERSION = 1

Bytes32 = Annotated[bytes, Field(min_length=32, max_length=32)]


class AssetId(BaseModel):
    """Ledger asset identifier, written as ``block:tx``."""

    model_config = ConfigDict(frozen=True)

    block: int = Field(..., ge=0, lt=U128_LIMIT)
    tx: int = Field(..., ge=0, lt=U128_LIMIT)

    def __str__(self) -> str:
        return f"{self.block}:{self.tx}"

    @classmethod
    def parse(cls, text: str) -> "AssetId":
        block, sep, tx = text.partition(":")
        if not sep or not block.isdigit() or not tx.isdigit():
            raise ValueError(f"Invalid asset id: {text!r}")
        return cls(block=int(block), tx=int(tx))


class PoolConfig(BaseModel):
    """Immutable configuration of one (asset, denomination) pool."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    denomination: int = Field(..., gt=0, lt=U128_LIMIT, description="Fixed deposit amount")
    tree_height: int = Field(20, ge=1, le=32, description="Merkle tree height")
    counter_asset_allowlist: Optional[FrozenSet[AssetId]] = Field(
        None, description="Assets accepted as counterparts; None accepts any"
    )

    @property
    def max_deposits(self) -> int:
        return 1 << self.tree_height


class DepositNote(BaseModel):
    """
    Everything a depositor must keep to withdraw later.

    Text form: ``zkpool-1-<block>:<tx>-<denomination>-0x<nullifier||secret>``
    """

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    denomination: int = Field(..., gt=0, lt=U128_LIMIT)
    nullifier: Bytes32
    secret: Bytes32
    commitment: Bytes32
    leaf_index: Optional[int] = Field(None, ge=0, description="Set once the deposit is observed")

    @field_validator("nullifier", "secret", "commitment", mode="before")
    @classmethod
    def _require_bytes(cls, value):
        if not isinstance(value, bytes):
            raise ValueError("Expected raw bytes")
        return value

    def to_text(self) -> str:
        payload = (self.nullifier + self.secret).hex()
        return f"{NOTE_PREFIX}-{NOTE_VERSION}-{self.asset_id}-{self.denomination}-0x{payload}"

    @classmethod
    def from_text(cls, text: str) -> "DepositNote":
        """
        Parse the text form; the commitment is recomputed from the secrets.

        Raises:
            ValueError: If the text is not a well-formed note
        """
        parts = text.strip().split("-")
        if len(parts) != 5 or parts[0] != NOTE_PREFIX:
            raise ValueError("Not a deposit note")
        if parts[1] != str(NOTE_VERSION):
            raise ValueError(f"Unsupported note version: {parts[1]}")
        if not parts[3].isdigit():
            raise ValueError("Invalid denomination")
        if not parts[4].startswith("0x") or len(parts[4]) != 2 + 128:
            raise ValueError("Invalid note payload")

        payload = bytes.fromhex(parts[4][2:])
        nullifier, secret = payload[:32], payload[32:]
        return cls(
            asset_id=AssetId.parse(parts[2]),
            denomination=int(parts[3]),
            nullifier=nullifier,
            secret=secret,
            commitment=field_hash(nullifier + secret),
        )


class PoolStats(BaseModel):
    """Counters reported by a pool."""

    commitment_count: int
    spent_nullifier_count: int
    max_capacity: int
