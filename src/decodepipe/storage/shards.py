"""Parquet sink for decoded event batches.

- `EventColumns`: dynamic, append-only columnar buffer where every decoded
   parameter name becomes its own column.
- `EventShardWriter`: buffers batches and writes fixed-size Parquet shards.

Design notes
------------
- Dynamic columns are stored as strings for Arrow safety (uint256, hex).
- Base columns are strongly typed and always present.
- Shards are sorted on (block_number, log_index) and written atomically
  (tmp + replace). A new writer continues after the last existing shard.
"""

from __future__ import annotations

import glob
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

from decodepipe.core.interfaces import IDecodedEventSink
from decodepipe.core.models import DecodedEvent

logger = logging.getLogger(__name__)

# === Base schema (Arrow) ===

_BASE_FIELDS: list[tuple[str, pa.DataType]] = [
    ("block_number", pa.uint64()),
    ("log_index", pa.uint64()),
    ("tx_hash", pa.string()),
    ("address", pa.string()),
    ("event", pa.string()),
    ("signature", pa.string()),
    ("topic", pa.string()),
]


@dataclass(slots=True)
class EventColumns:
    """Dynamic columnar buffer for decoded events.

    - Base columns mirror the `DecodedEvent` metadata.
    - Dynamic columns are created lazily upon first parameter appearance and
      padded with None for rows that lack the parameter.
    """

    block_number: list[int] = field(default_factory=list)
    log_index: list[int | None] = field(default_factory=list)
    tx_hash: list[str] = field(default_factory=list)
    address: list[str] = field(default_factory=list)
    event: list[str] = field(default_factory=list)
    signature: list[str] = field(default_factory=list)
    topic: list[str] = field(default_factory=list)

    dyn: dict[str, list[str | None]] = field(default_factory=dict)
    _rows: int = 0

    def size(self) -> int:
        """Number of rows currently stored."""
        return self._rows

    def append(self, ev: DecodedEvent) -> None:
        """Append one decoded event (every parameter becomes a column)."""
        self.block_number.append(ev.block_number)
        self.log_index.append(ev.log_index)
        self.tx_hash.append(ev.tx_hash)
        self.address.append(ev.address)
        self.event.append(ev.type)
        self.signature.append(ev.signature)
        self.topic.append(ev.topic)
        self._rows += 1
        for col in self.dyn.values():
            col.append(None)

        for k, v in ev.params.items():
            col = self.dyn.get(k)
            if col is None:
                col = [None] * self._rows
                self.dyn[k] = col
            col[-1] = None if v is None else str(v)

    def take_first(self, n: int) -> EventColumns:
        """Detach and return the first `n` rows as a new buffer slice."""
        out = EventColumns()
        out.block_number, self.block_number = self.block_number[:n], self.block_number[n:]
        out.log_index, self.log_index = self.log_index[:n], self.log_index[n:]
        out.tx_hash, self.tx_hash = self.tx_hash[:n], self.tx_hash[n:]
        out.address, self.address = self.address[:n], self.address[n:]
        out.event, self.event = self.event[:n], self.event[n:]
        out.signature, self.signature = self.signature[:n], self.signature[n:]
        out.topic, self.topic = self.topic[:n], self.topic[n:]
        for k, col in self.dyn.items():
            out.dyn[k] = col[:n]
            self.dyn[k] = col[n:]
        out._rows = min(n, self._rows)
        self._rows -= out._rows
        return out

    def to_arrow_table(self) -> pa.Table:
        """Convert the buffer to a sorted Arrow table with deterministic schema."""
        fields = [pa.field(n, t) for n, t in _BASE_FIELDS]
        arrays: dict[str, pa.Array] = {
            "block_number": pa.array(self.block_number, type=pa.uint64()),
            "log_index": pa.array(self.log_index, type=pa.uint64()),
            "tx_hash": pa.array(self.tx_hash, type=pa.string()),
            "address": pa.array(self.address, type=pa.string()),
            "event": pa.array(self.event, type=pa.string()),
            "signature": pa.array(self.signature, type=pa.string()),
            "topic": pa.array(self.topic, type=pa.string()),
        }
        # Dynamic columns in deterministic order; skip names clashing with base columns
        for name in sorted(self.dyn.keys()):
            if name in arrays:
                continue
            fields.append(pa.field(name, pa.string()))
            arrays[name] = pa.array(self.dyn[name], type=pa.string())
        schema = pa.schema(fields)
        return pa.Table.from_pydict(arrays, schema=schema).sort_by(
            [("block_number", "ascending"), ("log_index", "ascending")]
        )


class EventShardWriter(IDecodedEventSink):
    """Write decoded batches to `<out_dir>/shard_XXXXX.parquet` files."""

    def __init__(
        self,
        out_dir: Path,
        *,
        rows_per_shard: int = 250_000,
        codec: str = "zstd",
        write_final_partial: bool = True,
    ) -> None:
        if rows_per_shard <= 0:
            raise ValueError("rows_per_shard must be > 0")
        self.out_dir = out_dir
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self.rows_per_shard = rows_per_shard
        self.codec = codec
        self.write_final_partial = write_final_partial
        self.buf = EventColumns()
        self.shard_idx = self._next_index()

    # ---------- helpers ----------

    def shards_files_pattern(self) -> str:
        return (self.out_dir / "shard_*.parquet").as_posix()

    def list_shards(self) -> list[str]:
        return sorted(glob.glob(self.shards_files_pattern()))

    def shard_path(self, idx: int) -> Path:
        return self.out_dir / f"shard_{idx:05d}.parquet"

    def _next_index(self) -> int:
        existing = self.list_shards()
        if not existing:
            return 0
        last_idx = int(os.path.basename(existing[-1]).split("_")[1].split(".")[0])
        return last_idx + 1

    def _atomic_write(self, out_path: Path, table: pa.Table) -> Path | None:
        """Write Parquet atomically (tmp + replace)."""
        if len(table) == 0:
            return None
        tmp = out_path.with_suffix(".tmp")
        pq.write_table(table, tmp, compression=self.codec)
        os.replace(tmp, out_path)
        logger.info("wrote %s (rows=%d, cols=%d)", out_path, len(table), len(table.schema))
        return out_path

    def _write_slice(self, n: int) -> Path | None:
        out_path = self._atomic_write(self.shard_path(self.shard_idx), self.buf.take_first(n).to_arrow_table())
        if out_path:
            self.shard_idx += 1
        return out_path

    # ---------- core API ----------

    def add(self, batch: Sequence[DecodedEvent]) -> list[Path]:
        """Buffer `batch`; write shards as they become full.

        Returns the shard paths written by this call.
        """
        for ev in batch:
            self.buf.append(ev)

        written: list[Path] = []
        while self.buf.size() >= self.rows_per_shard:
            out_path = self._write_slice(self.rows_per_shard)
            if out_path:
                written.append(out_path)
        return written

    def close(self) -> Path | None:
        """Flush remaining rows as a final (short) shard.

        With `write_final_partial=False` the remainder is dropped instead.
        """
        remaining = self.buf.size()
        if remaining == 0:
            return None
        if not self.write_final_partial:
            self.buf = EventColumns()
            return None
        return self._write_slice(remaining)
