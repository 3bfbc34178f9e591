from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from decodepipe.core.config import PipeOptions
from decodepipe.core.errors import PipeBusyError, StreamSetupError
from decodepipe.core.interfaces import IBlockStreamProvider, IEventHandler
from decodepipe.core.models import Block, DecodedEvent, Filters, HandlerOutcome, RawLog
from decodepipe.decoding.registry import EventDefinitionSet, RegisteredHandler, TopicRegistry

logger = logging.getLogger(__name__)

OutcomeHook = Callable[[HandlerOutcome], None]


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class PipeStats:
    """
    Counters for the current (or last) stream of a pipe.

    Reset at the start of every `stream()` call:
    - batches pulled / emitted / dropped on a batch fault
    - blocks, logs and decoded events seen
    - logs with no candidate, topic-less fallback scans, candidate faults
    """

    batches_in: int = 0
    batches_out: int = 0
    batches_failed: int = 0
    blocks: int = 0
    logs: int = 0
    events: int = 0
    unmatched_logs: int = 0
    fallback_scans: int = 0
    candidate_faults: int = 0


# ---------------------------------------------------------------------------
# Upstream query
# ---------------------------------------------------------------------------

QUERY_FIELDS: dict[str, dict[str, bool]] = {
    "block": {
        "number": True,
        "hash": True,
        "timestamp": True,
    },
    "log": {
        "address": True,
        "topics": True,
        "data": True,
        "transactionHash": True,
        "logIndex": True,
        "transactionIndex": True,
    },
}


def build_portal_query(filters: Filters, topics: Sequence[str]) -> dict[str, Any]:
    """
    Build the upstream request for `filters`, narrowed to the known `topics`.

    `toBlock` and the log `address` selector are omitted when not given.
    Sender/recipient filters become a transaction selector and are not
    re-checked downstream.
    """
    log_request: dict[str, Any] = {}
    if filters.contract_addresses:
        log_request["address"] = [a.lower() for a in filters.contract_addresses]
    log_request["topic0"] = [t.lower() for t in topics]
    log_request["transaction"] = True

    query: dict[str, Any] = {
        "type": "evm",
        "fromBlock": filters.start_block,
        "fields": {kind: dict(fields) for kind, fields in QUERY_FIELDS.items()},
        "logs": [log_request],
    }
    if filters.end_block is not None:
        query["toBlock"] = filters.end_block

    if filters.from_address or filters.to_address:
        tx_request: dict[str, Any] = {}
        if filters.from_address:
            tx_request["from"] = [filters.from_address.lower()]
        if filters.to_address:
            tx_request["to"] = [filters.to_address.lower()]
        query["transactions"] = [tx_request]

    return query


# ---------------------------------------------------------------------------
# Per-candidate dispatch
# ---------------------------------------------------------------------------


def try_candidate(name: str, handler: IEventHandler, log: RawLog, block_number: int) -> HandlerOutcome:
    """
    Try one candidate handler on one log.

    Never raises: a fault in `is_applicable` or `decode` is returned as a
    `faulted` outcome carrying the exception and the failing phase.
    """
    try:
        applicable = handler.is_applicable(log)
    except Exception as e:
        return HandlerOutcome(
            status="faulted",
            name=name,
            block_number=block_number,
            log_index=log.log_index,
            error=e,
            phase="is_applicable",
        )
    if not applicable:
        return HandlerOutcome(
            status="not_applicable",
            name=name,
            block_number=block_number,
            log_index=log.log_index,
        )

    try:
        params = handler.decode(log)
    except Exception as e:
        return HandlerOutcome(
            status="faulted",
            name=name,
            block_number=block_number,
            log_index=log.log_index,
            error=e,
            phase="decode",
        )

    event = DecodedEvent(
        address=log.address,
        block_number=block_number,
        tx_hash=log.transaction_hash,
        type=name,
        signature=handler.signature,
        topic=handler.topic,
        log_index=log.log_index,
        params=dict(params),
    )
    return HandlerOutcome(
        status="matched",
        name=name,
        block_number=block_number,
        log_index=log.log_index,
        event=event,
    )


# ---------------------------------------------------------------------------
# Decoded stream
# ---------------------------------------------------------------------------


class DecodedEventStream:
    """
    Async iterator over the non-empty decoded batches of one pipe stream.

    Owns the upstream iterator: `aclose()` closes it and frees the pipe,
    whether or not a batch was ever pulled. Exhaustion or an upstream error
    closes the stream the same way. Usable as an async context manager.
    """

    def __init__(self, pipe: EventDecodingPipe, upstream: AsyncIterator[list[Block]]) -> None:
        self._pipe = pipe
        self._upstream = upstream
        self._batches = pipe._decode_stream(upstream)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> DecodedEventStream:
        return self

    async def __anext__(self) -> list[DecodedEvent]:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._batches.__anext__()
        except BaseException:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        """Stop decoding and close the upstream; idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._batches.aclose()
        finally:
            self._pipe._release()
            aclose = getattr(self._upstream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def __aenter__(self) -> DecodedEventStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


# ---------------------------------------------------------------------------
# Pipe
# ---------------------------------------------------------------------------


class EventDecodingPipe:
    """
    Streaming transform: block batches in, non-empty decoded-event batches out.

    Dispatch per log:
    - `topics[0]` is looked up in the topic registry; every candidate is
      tried in registration order and each match yields one event, so a log
      shared by several handlers yields several events.
    - a log without topics falls back to a linear scan of every handler.

    Faults are contained where they happen: a failing candidate is skipped,
    a failing batch is dropped, and the stream carries on. Only stream setup
    failures reach the caller.

    One active stream per instance; the registry itself is read-only and may
    be shared across instances.
    """

    def __init__(
        self,
        source: IBlockStreamProvider,
        definition_sets: Iterable[EventDefinitionSet],
        options: PipeOptions | None = None,
        *,
        on_outcome: OutcomeHook | None = None,
    ) -> None:
        self._source = source
        self._options = options or PipeOptions()
        self._on_outcome = on_outcome
        self._registry = TopicRegistry(definition_sets)
        self._active = False
        self.stats = PipeStats()

        self._log_debug("Initialized topic map with %d unique topics", len(self._registry))

    @property
    def registry(self) -> TopicRegistry:
        return self._registry

    @property
    def options(self) -> PipeOptions:
        return self._options

    # ---------- stream ----------

    async def stream(self, filters: Filters) -> DecodedEventStream:
        """
        Open the upstream stream for `filters` and return the decoded stream.

        The returned stream owns the upstream: closing it (even before the
        first batch is pulled) closes the upstream and frees this pipe.

        Raises
        ------
        StreamSetupError
            Invalid filters, or the upstream request could not be established.
        PipeBusyError
            This instance already has an active stream.
        """
        if self._active:
            raise PipeBusyError("EventDecodingPipe already has an active stream")
        self._active = True

        upstream: AsyncIterator[list[Block]] | None = None
        try:
            filters.validate()
            topics = self._registry.topic_list()
            self._log_debug(
                "Setting up stream from block %d to %s with %d topics",
                filters.start_block,
                filters.end_block if filters.end_block is not None else "head",
                len(topics),
            )
            upstream = await self._source.open_stream(build_portal_query(filters, topics))
        except StreamSetupError:
            logger.error("Failed to create stream", exc_info=True)
            raise
        except Exception as e:
            logger.error("Failed to create stream", exc_info=True)
            raise StreamSetupError(f"Failed to create stream: {e}") from e
        finally:
            if upstream is None:
                self._active = False

        self.stats = PipeStats()
        return DecodedEventStream(self, upstream)

    async def _decode_stream(self, upstream: AsyncIterator[list[Block]]) -> AsyncIterator[list[DecodedEvent]]:
        async for blocks in upstream:
            self.stats.batches_in += 1
            decoded = self._process_blocks(blocks)
            if decoded:
                self.stats.batches_out += 1
                yield decoded

    def _release(self) -> None:
        self._active = False

    # ---------- batch ----------

    def _process_blocks(self, blocks: Sequence[Block]) -> list[DecodedEvent]:
        """Decode one incoming batch; a fault drops the whole batch."""
        if not blocks:
            return []

        start = time.perf_counter()
        try:
            decoded = self.process_batch(blocks)
        except Exception:
            self.stats.batches_failed += 1
            logger.error("Error processing blocks, dropping batch of %d blocks", len(blocks), exc_info=True)
            return []

        self._log_debug(
            "Processed %d blocks in %.1fms (%d events)",
            len(blocks),
            (time.perf_counter() - start) * 1000,
            len(decoded),
        )
        return decoded

    def process_batch(self, blocks: Iterable[Block]) -> list[DecodedEvent]:
        """Decode every log of every block, in block then log order."""
        decoded: list[DecodedEvent] = []

        for block in blocks:
            self.stats.blocks += 1
            if not block.logs:
                continue

            self._log_debug("Processing %d logs from block %d", len(block.logs), block.header.number)

            for log in block.logs:
                self.stats.logs += 1
                decoded.extend(self.decode_log(log, block.header.number))

        self.stats.events += len(decoded)
        return decoded

    # ---------- log ----------

    def decode_log(self, log: RawLog, block_number: int) -> list[DecodedEvent]:
        """Decode one log against its candidates (or every handler if topic-less)."""
        if log.topics:
            candidates: Sequence[RegisteredHandler] = self._registry.lookup(log.topics[0])
            if not candidates:
                self.stats.unmatched_logs += 1
                return []
        else:
            self.stats.fallback_scans += 1
            candidates = self._registry.all_handlers()

        events: list[DecodedEvent] = []
        for candidate in candidates:
            outcome = try_candidate(candidate.name, candidate.handler, log, block_number)
            if outcome.faulted:
                self.stats.candidate_faults += 1
                logger.warning(
                    "Error decoding event %s (%s) at block %d log %d",
                    outcome.name,
                    outcome.phase,
                    block_number,
                    log.log_index,
                    exc_info=outcome.error,
                )
            elif outcome.event is not None:
                events.append(outcome.event)
            if self._on_outcome is not None:
                self._notify(outcome)
        return events

    def _notify(self, outcome: HandlerOutcome) -> None:
        try:
            self._on_outcome(outcome)
        except Exception:
            logger.warning("on_outcome hook failed for %s at block %d", outcome.name, outcome.block_number, exc_info=True)

    def _log_debug(self, msg: str, *args: Any) -> None:
        if self._options.debug:
            logger.debug(msg, *args)
