"""Chain-data access contract consumed by the pool.

The pool never talks to a node itself; it is handed an object satisfying
``ChainDataProvider``. Retries and transport errors are the provider's
concern.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable

OP_RETURN = 0x6A
COMMITMENT_SIZE = 32
MARKER_SCRIPT_SIZE = 1 + COMMITMENT_SIZE


@dataclass(frozen=True)
class TxOutput:
    """One transaction output as seen by the pool."""

    script_payload: bytes
    value: int


@dataclass(frozen=True)
class ChainTransaction:
    txid: str
    outputs: List[TxOutput] = field(default_factory=list)


@runtime_checkable
class ChainDataProvider(Protocol):
    """Narrow read interface onto the host ledger."""

    def fetch_transaction(self, tx_ref: str) -> ChainTransaction:
        ...

    def fetch_block_count(self) -> int:
        ...


def is_commitment_marker(output: TxOutput) -> bool:
    """Zero value, script ``OP_RETURN`` followed by exactly 32 bytes."""
    script = output.script_payload
    return (
        output.value == 0
        and len(script) == MARKER_SCRIPT_SIZE
        and script[0] == OP_RETURN
    )


def extract_commitment(tx: ChainTransaction) -> Optional[bytes]:
    """Commitment carried by the first marker output, if any."""
    for output in tx.outputs:
        if is_commitment_marker(output):
            return bytes(output.script_payload[1:])
    return None


def marker_output(commitment: bytes) -> TxOutput:
    """Build the marker output that publishes ``commitment``."""
    if len(commitment) != COMMITMENT_SIZE:
        raise ValueError("Commitment must be 32 bytes")
    return TxOutput(script_payload=bytes([OP_RETURN]) + commitment, value=0)
