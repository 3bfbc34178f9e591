from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from decodepipe.abi_events import make_definition_set_from_abi
from decodepipe.clients.portal import PortalClient
from decodepipe.core.config import StreamConfig
from decodepipe.core.interfaces import IBlockStreamProvider, IDecodedEventSink
from decodepipe.core.models import DecodedEvent
from decodepipe.core.use_cases.decode_stream import EventDecodingPipe, PipeStats
from decodepipe.decoding.registries import make_erc20_events, make_erc721_events
from decodepipe.decoding.registry import EventDefinitionSet
from decodepipe.storage.jsonl import JsonlEventWriter
from decodepipe.storage.shards import EventShardWriter

logger = logging.getLogger(__name__)

BatchCallback = Callable[[Sequence[DecodedEvent]], None]


def build_definition_sets(config: StreamConfig) -> list[EventDefinitionSet]:
    """Definition sets in registration order: ERC-721, ERC-20, then each ABI file."""
    sets: list[EventDefinitionSet] = []
    if config.erc721:
        sets.append(make_erc721_events())
    if config.erc20:
        sets.append(make_erc20_events())
    for path in config.abi_paths:
        sets.append(make_definition_set_from_abi(path))
    return sets


def open_sinks(config: StreamConfig) -> list[IDecodedEventSink]:
    sinks: list[IDecodedEventSink] = []
    if config.jsonl_out is not None:
        sinks.append(JsonlEventWriter(config.jsonl_out))
    if config.parquet_out is not None:
        sinks.append(EventShardWriter(config.parquet_out, rows_per_shard=config.rows_per_shard))
    return sinks


async def run_stream(
    config: StreamConfig,
    *,
    source: IBlockStreamProvider | None = None,
    on_batch: BatchCallback | None = None,
) -> PipeStats:
    """
    High-level convenience API for scripts and the CLI.

    Streams decoded batches for `config.filters`, hands each to the sinks and
    `on_batch`, and returns the pipe counters once the range is exhausted.
    A `PortalClient` is created (and closed) unless `source` is given.
    """
    client: PortalClient | None = None
    if source is None:
        client = source = PortalClient(config.portal)
    sinks: list[IDecodedEventSink] = []
    try:
        sinks.extend(open_sinks(config))
        pipe = EventDecodingPipe(
            source,
            build_definition_sets(config),
            config.options,
        )
        async with await pipe.stream(config.filters) as batches:
            async for batch in batches:
                for sink in sinks:
                    sink.add(batch)
                if on_batch is not None:
                    on_batch(batch)
        logger.info(
            "stream finished: %d events in %d batches (%d blocks, %d logs)",
            pipe.stats.events,
            pipe.stats.batches_out,
            pipe.stats.blocks,
            pipe.stats.logs,
        )
        return pipe.stats
    finally:
        for sink in sinks:
            sink.close()
        if client is not None:
            await client.aclose()
