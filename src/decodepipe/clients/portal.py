"""Async client for a block-data portal streaming NDJSON over HTTP.

This module provides:
- `PortalClient`: an `IBlockStreamProvider` with sane timeouts/connection limits
- `PortalBlockStream`: the block-batch iterator returned by `open_stream`
- `parse_block` / `parse_log`: normalization of portal JSON into core models

Protocol
--------
The query (see `build_portal_query`) is POSTed to `{url}/stream`. The body
is one JSON block per line. A response may stop before `toBlock`; the client
then re-issues the query from `last block + 1`. `204 No Content` means no
block is available yet at `fromBlock` (chain head), so the client polls.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from decodepipe.core.config import PortalConfig
from decodepipe.core.errors import PortalError
from decodepipe.core.models import Block, BlockHeader, RawLog, Transaction

logger = logging.getLogger(__name__)


def _lower(value: Any) -> str | None:
    return value.lower() if isinstance(value, str) else None


def _int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def parse_log(raw: Mapping[str, Any]) -> RawLog:
    """Normalize one portal log object."""
    return RawLog(
        address=(raw.get("address") or "").lower(),
        topics=tuple(t.lower() for t in raw.get("topics") or ()),
        data=str(raw.get("data") or "0x"),
        transaction_hash=(raw.get("transactionHash") or "").lower(),
        log_index=_int(raw.get("logIndex")) or 0,
        transaction_index=_int(raw.get("transactionIndex")),
    )


def parse_transaction(raw: Mapping[str, Any]) -> Transaction:
    return Transaction(
        hash=_lower(raw.get("hash")),
        from_address=_lower(raw.get("from")),
        to_address=_lower(raw.get("to")),
        transaction_index=_int(raw.get("transactionIndex")),
    )


def parse_block(raw: Mapping[str, Any]) -> Block:
    """Normalize one portal block object (`header`, `logs`, `transactions`)."""
    header = raw["header"]
    return Block(
        header=BlockHeader(
            number=_int(header["number"]) or 0,
            hash=_lower(header.get("hash")),
            timestamp=_int(header.get("timestamp")),
        ),
        logs=tuple(parse_log(rl) for rl in raw.get("logs") or ()),
        transactions=tuple(parse_transaction(rt) for rt in raw.get("transactions") or ()),
    )


class PortalClient:
    """Minimal async portal client.

    Parameters
    ----------
    config : PortalConfig
        Portal URL, timeouts, connection limits, head polling and batch size.
    client : httpx.AsyncClient | None
        Pre-built client (tests inject one with a `MockTransport`).
    """

    def __init__(self, config: PortalConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self.stream_url = config.url.rstrip("/") + "/stream"
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=config.timeout_s,
                read=config.timeout_s,
                write=config.timeout_s,
                pool=max(30, config.timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=max(1, config.max_connections // 2),
            ),
            http2=config.http2,
        )

    async def __aenter__(self) -> PortalClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    # ---------- requests ----------

    async def _send(self, query: Mapping[str, Any]) -> httpx.Response:
        """POST `query` and return the (still streaming) response; raise on error status."""
        request = self.client.build_request("POST", self.stream_url, json=query)
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise PortalError(f"Portal request failed: {e}") from e

        if response.status_code >= 400:
            body = (await response.aread()).decode(errors="replace")
            await response.aclose()
            raise PortalError(
                f"Portal error {response.status_code}: {body[:500]}",
                status_code=response.status_code,
            )
        return response

    async def open_stream(self, query: Mapping[str, Any]) -> PortalBlockStream:
        """Send the first request and return the block-batch iterator.

        Errors of the first request propagate from here; later requests
        raise from inside the iterator.
        """
        query = dict(query)
        response = await self._send(query)
        return PortalBlockStream(self, query, response)


class PortalBlockStream:
    """Block batches of one portal query, across resumed requests.

    Holds the in-flight HTTP response; `aclose()` releases it even when no
    batch was ever pulled. Lines that do not parse as a block are logged,
    counted in `skipped_blocks` and skipped.
    """

    def __init__(self, client: PortalClient, query: dict[str, Any], response: httpx.Response) -> None:
        self._client = client
        self._query = query
        self._response = response
        self._batches = self._iterate()
        self._closed = False
        self.skipped_blocks = 0

    def __aiter__(self) -> PortalBlockStream:
        return self

    async def __anext__(self) -> list[Block]:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._batches.__anext__()
        except BaseException:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        """Stop reading and close the current response; idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._batches.aclose()
        finally:
            await self._response.aclose()

    def _parse_line(self, line: str) -> Block | None:
        try:
            return parse_block(json.loads(line))
        except (ValueError, KeyError, TypeError, AttributeError):
            self.skipped_blocks += 1
            logger.error(
                "Skipping malformed block in portal stream (request from block %s): %.200s",
                self._query["fromBlock"],
                line,
                exc_info=True,
            )
            return None

    async def _iterate(self) -> AsyncIterator[list[Block]]:
        query = self._query
        to_block: int | None = query.get("toBlock")
        max_batch = self._client.config.max_blocks_per_batch
        while True:
            last_number: int | None = None
            skipped = 0
            if self._response.status_code != 204:
                batch: list[Block] = []
                async for line in self._response.aiter_lines():
                    if not line.strip():
                        continue
                    block = self._parse_line(line)
                    if block is None:
                        skipped += 1
                        continue
                    batch.append(block)
                    last_number = block.header.number
                    if max_batch and len(batch) >= max_batch:
                        yield batch
                        batch = []
                if batch:
                    yield batch
            await self._response.aclose()

            if last_number is None:
                if skipped:
                    # Resuming would request the same unreadable blocks again
                    raise PortalError(f"No readable block in portal response from block {query['fromBlock']}")
                # Nothing past fromBlock yet: wait for the head to move
                logger.debug("No blocks from %s yet, polling again", query["fromBlock"])
                await asyncio.sleep(self._client.config.head_poll_interval_s)
            else:
                query["fromBlock"] = last_number + 1

            if to_block is not None and query["fromBlock"] > to_block:
                return
            self._response = await self._client._send(query)
