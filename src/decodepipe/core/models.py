"""Core data models shared by the registry, the transform and the portal client.

This module defines:
- `RawLog`, `Transaction`, `BlockHeader`, `Block`: upstream block data,
   already normalized (lowercased hex) by the source client.
- `Filters`: caller-supplied stream request.
- `DecodedEvent`: one matched + decoded log, enriched with chain metadata.
- `HandlerOutcome`: tagged result of trying one candidate handler on one log.

Design notes
------------
- All upstream records are frozen; the transform never mutates them.
- `DecodedEvent.params` keeps the handler output as-is; metadata lives in
  dedicated fields so a parameter named like a metadata field cannot clobber it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from decodepipe.core.errors import StreamSetupError

# === Upstream records ===


@dataclass(slots=True, frozen=True)
class RawLog:
    """Raw log as produced by the block source."""

    address: str  # lowercased 0x...
    topics: tuple[str, ...]  # lowercased 0x..., topics[0] is the signature topic
    data: str  # "0x..."
    transaction_hash: str  # lowercased 0x...
    log_index: int
    transaction_index: int | None = None

    @property
    def topic0(self) -> str | None:
        return self.topics[0] if self.topics else None

    def data_bytes(self) -> bytes:
        """Return the data payload as bytes (raises ValueError on bad hex)."""
        raw = self.data[2:] if self.data[:2].lower() == "0x" else self.data
        return bytes.fromhex(raw) if raw else b""


@dataclass(slots=True, frozen=True)
class Transaction:
    hash: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    transaction_index: int | None = None


@dataclass(slots=True, frozen=True)
class BlockHeader:
    number: int
    hash: str | None = None
    timestamp: int | None = None


@dataclass(slots=True, frozen=True)
class Block:
    """One block with the logs (and transactions) selected by the upstream filter."""

    header: BlockHeader
    logs: tuple[RawLog, ...] = ()
    transactions: tuple[Transaction, ...] = ()

    @property
    def number(self) -> int:
        return self.header.number


# === Stream request ===


@dataclass(frozen=True)
class Filters:
    """Block range and address filters for one stream request.

    `from_address` / `to_address` are forwarded to the source and never
    re-checked by the transform.
    """

    start_block: int
    end_block: int | None = None
    contract_addresses: tuple[str, ...] | None = None
    from_address: str | None = None
    to_address: str | None = None

    def validate(self) -> None:
        """Raise `StreamSetupError` if the range is unusable."""
        if self.start_block < 0:
            raise StreamSetupError(f"start_block must be >= 0 (got {self.start_block})")
        if self.end_block is not None and self.end_block < self.start_block:
            raise StreamSetupError(
                f"end_block ({self.end_block}) must be >= start_block ({self.start_block})"
            )


# === Decoded output ===

_META_KEYS = ("address", "block_number", "tx_hash", "log_index", "type", "signature", "topic")


@dataclass(slots=True, frozen=True)
class DecodedEvent:
    """Decoded parameters of one log plus the metadata of where it was found."""

    address: str
    block_number: int
    tx_hash: str
    type: str  # event-type name from the definition set
    signature: str
    topic: str
    log_index: int | None = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        if key in _META_KEYS:
            return getattr(self, key)
        return self.params[key]

    def as_dict(self) -> dict[str, Any]:
        """Flat dict: decoded parameters overlaid with metadata fields."""
        out = dict(self.params)
        for key in _META_KEYS:
            out[key] = getattr(self, key)
        return out


OutcomeStatus = Literal["matched", "not_applicable", "faulted"]
FaultPhase = Literal["is_applicable", "decode"]


@dataclass(slots=True, frozen=True)
class HandlerOutcome:
    """Result of trying one candidate handler against one log."""

    status: OutcomeStatus
    name: str
    block_number: int
    log_index: int
    event: DecodedEvent | None = None
    error: Exception | None = None
    phase: FaultPhase | None = None

    @property
    def matched(self) -> bool:
        return self.status == "matched"

    @property
    def faulted(self) -> bool:
        return self.status == "faulted"
