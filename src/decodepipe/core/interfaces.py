from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from decodepipe.core.models import Block, DecodedEvent, RawLog


# ---------------------------------------------------------------------------
# IEventHandler
# ---------------------------------------------------------------------------

@runtime_checkable
class IEventHandler(Protocol):
    """
    Capability that recognizes and decodes one on-chain event type.

    Domain expectations:
    - `topic` is the lowercased 0x-hex fingerprint of the primary signature.
    - `is_applicable` and `decode` may raise; the pipe contains such faults
      per candidate and never lets them reach the outgoing stream.
    - Handlers are immutable once registered.
    """

    topic: str
    signature: str

    def is_applicable(self, log: RawLog) -> bool:
        """Return True if `log` has the shape of this event."""
        ...

    def decode(self, log: RawLog) -> Mapping[str, Any]:
        """Return the decoded parameters of `log` keyed by parameter name."""
        ...


# ---------------------------------------------------------------------------
# IBlockStreamProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class IBlockStreamProvider(Protocol):
    """
    Abstract source of block batches.

    Domain expectations:
    - `open_stream` establishes the upstream request and raises on failure
      (this is the stream setup fault surfaced to callers).
    - The returned iterator yields lists of `Block` in chain order and
      pre-filters logs by the query's address/topic0 selection. The
      pre-filter is advisory; the pipe re-checks every log.
    - Closing the iterator (`aclose`) stops all upstream pulls.
    """

    async def open_stream(self, query: Mapping[str, Any]) -> AsyncIterator[list[Block]]:
        """
        Open a stream for `query` (see `build_portal_query`).

        Implementations:
        - Portal HTTP client (`PortalClient`)
        - In-memory replay for testing
        """
        ...


# ---------------------------------------------------------------------------
# IDecodedEventSink
# ---------------------------------------------------------------------------

@runtime_checkable
class IDecodedEventSink(Protocol):
    """
    Destination for decoded event batches.

    Domain expectations:
    - `add` accepts one outgoing batch and returns the files it (re)wrote.
    - `close` flushes buffered rows and returns the last file written.
    """

    def add(self, batch: Sequence[DecodedEvent]) -> list[Path]:
        ...

    def close(self) -> Path | None:
        ...
