from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from decodepipe.core.models import Filters


@dataclass(frozen=True)
class PipeOptions:
    """Options for `EventDecodingPipe`."""

    # per-batch timing and topic-count diagnostics on the `decodepipe` logger
    debug: bool = False


@dataclass(frozen=True)
class PortalConfig:
    """Configuration for the portal block-stream client."""

    url: str
    timeout_s: float = 60.0
    max_connections: int = 8
    http2: bool = True
    head_poll_interval_s: float = 2.0
    max_blocks_per_batch: int | None = 1_000


@dataclass(frozen=True)
class StreamConfig:
    """Configuration for one `decodepipe stream` run (CLI)."""

    portal: PortalConfig
    filters: Filters
    erc20: bool = True
    erc721: bool = True
    abi_paths: tuple[Path, ...] = ()
    jsonl_out: Path | None = None
    parquet_out: Path | None = None
    rows_per_shard: int = 250_000
    options: PipeOptions = field(default_factory=PipeOptions)
