import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from decodepipe.api.stream_events import build_definition_sets, run_stream
from decodepipe.constants import DEFAULT_PORTAL_URL
from decodepipe.core.config import PipeOptions, PortalConfig, StreamConfig
from decodepipe.core.errors import DecodePipeError, StreamSetupError
from decodepipe.core.models import DecodedEvent, Filters
from decodepipe.decoding.registry import TopicRegistry

console = Console()


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


@click.group()
def cli() -> None:
    """decodepipe: decode contract events from a portal block stream."""


def _config_options(fn):
    """Options shared by every command that builds definition sets."""
    fn = click.option("--erc20/--no-erc20", default=True, show_default=True, help="Register ERC-20 events")(fn)
    fn = click.option("--erc721/--no-erc721", default=True, show_default=True, help="Register ERC-721 events")(fn)
    fn = click.option(
        "--abi",
        "abi_paths",
        multiple=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="ABI JSON (or build artifact) whose events are registered; repeatable",
    )(fn)
    return fn


@cli.command("stream")
@click.option("--portal", envvar="PORTAL_URL", default=DEFAULT_PORTAL_URL, show_default=True, help="Portal dataset URL")
@click.option("--from-block", type=int, required=True, help="First block (inclusive)")
@click.option("--to-block", type=int, default=None, help="Last block (inclusive); follow the head if omitted")
@click.option("--contract", "contracts", multiple=True, help="Emitter contract address; repeat to OR")
@click.option("--tx-from", default=None, help="Transaction sender filter (forwarded to the portal)")
@click.option("--tx-to", default=None, help="Transaction recipient filter (forwarded to the portal)")
@_config_options
@click.option("--jsonl-out", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Append events as JSON lines")
@click.option("--parquet-out", type=click.Path(file_okay=False, path_type=Path), default=None, help="Directory for Parquet shards")
@click.option("--rows-per-shard", type=int, default=250_000, show_default=True)
@click.option("--timeout", "timeout_s", type=float, default=60.0, show_default=True, help="HTTP timeout (seconds)")
@click.option("--debug/--no-debug", default=False, show_default=True, help="Per-batch timing diagnostics")
def stream_cmd(
    portal: str,
    from_block: int,
    to_block: int | None,
    contracts: tuple[str, ...],
    tx_from: str | None,
    tx_to: str | None,
    erc20: bool,
    erc721: bool,
    abi_paths: tuple[Path, ...],
    jsonl_out: Path | None,
    parquet_out: Path | None,
    rows_per_shard: int,
    timeout_s: float,
    debug: bool,
) -> None:
    """Stream and decode events for a block range, printing one line per batch."""
    _setup_logging(debug)

    config = StreamConfig(
        portal=PortalConfig(url=portal, timeout_s=timeout_s),
        filters=Filters(
            start_block=from_block,
            end_block=to_block,
            contract_addresses=contracts or None,
            from_address=tx_from,
            to_address=tx_to,
        ),
        erc20=erc20,
        erc721=erc721,
        abi_paths=abi_paths,
        jsonl_out=jsonl_out,
        parquet_out=parquet_out,
        rows_per_shard=rows_per_shard,
        options=PipeOptions(debug=debug),
    )
    if not (erc20 or erc721 or abi_paths):
        raise click.UsageError("Nothing to decode: enable --erc20/--erc721 or pass at least one --abi")

    def on_batch(batch: Sequence[DecodedEvent]) -> None:
        counts: dict[str, int] = {}
        for ev in batch:
            counts[ev.type] = counts.get(ev.type, 0) + 1
        summary = "  ".join(f"[cyan]{name}[/]={n}" for name, n in counts.items())
        console.print(
            f"blocks {batch[0].block_number:,}–{batch[-1].block_number:,} • "
            f"[bold]{len(batch)}[/] events • {summary}"
        )

    try:
        stats = asyncio.run(run_stream(config, on_batch=on_batch))
    except (StreamSetupError, ValueError) as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        console.print("[yellow]interrupted[/]")
        return

    console.print(
        f"[bold]summary[/]: "
        f"[green]events[/]={stats.events}  "
        f"batches={stats.batches_out}/{stats.batches_in}  "
        f"blocks={stats.blocks}  logs={stats.logs}  "
        f"[yellow]unmatched[/]={stats.unmatched_logs}  "
        f"[red]faults[/]={stats.candidate_faults}  "
        f"[red]dropped_batches[/]={stats.batches_failed}"
    )


@cli.command("topics")
@_config_options
def topics_cmd(erc20: bool, erc721: bool, abi_paths: tuple[Path, ...]) -> None:
    """List the registered topics and their candidate handlers."""
    config = StreamConfig(
        portal=PortalConfig(url=DEFAULT_PORTAL_URL),
        filters=Filters(start_block=0),
        erc20=erc20,
        erc721=erc721,
        abi_paths=abi_paths,
    )
    try:
        registry = TopicRegistry(build_definition_sets(config))
    except (DecodePipeError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=f"{len(registry)} topics")
    table.add_column("topic0", style="cyan", no_wrap=True)
    table.add_column("name")
    table.add_column("signature")
    for topic in registry:
        for candidate in registry.lookup(topic):
            table.add_row(topic, candidate.name, candidate.handler.signature)
    console.print(table)
