"""Sinks for decoded event batches.

This package provides:
- EventShardWriter: Parquet shard writer with dynamic columns
- JsonlEventWriter: append-only JSON-lines writer
"""

from decodepipe.storage.jsonl import JsonlEventWriter
from decodepipe.storage.shards import EventColumns, EventShardWriter

__all__ = [
    "EventColumns",
    "EventShardWriter",
    "JsonlEventWriter",
]
