import json

import httpx
import pytest

from decodepipe.clients.portal import PortalClient, parse_block
from decodepipe.core.config import PortalConfig
from decodepipe.core.errors import PortalError

URL = "https://portal.test/datasets/ethereum-mainnet"


def _block(number: int, *logs: dict) -> dict:
    return {"header": {"number": number, "hash": f"0xB{number}", "timestamp": 1_700_000_000}, "logs": list(logs)}


def _ndjson(*blocks: dict) -> bytes:
    return "".join(json.dumps(b) + "\n" for b in blocks).encode()


def _client(handler, **config) -> tuple[PortalClient, list[dict]]:
    """Portal client whose transport records every query it receives."""
    queries: list[dict] = []

    def record(request: httpx.Request) -> httpx.Response:
        assert request.url == URL + "/stream"
        queries.append(json.loads(request.content))
        return handler(queries[-1])

    cfg = PortalConfig(url=URL + "/", head_poll_interval_s=0, **config)
    return PortalClient(cfg, client=httpx.AsyncClient(transport=httpx.MockTransport(record))), queries


async def _numbers(stream) -> list[list[int]]:
    return [[b.header.number for b in batch] async for batch in stream]


@pytest.mark.asyncio
async def test_resumes_after_short_response():
    def handler(query):
        if query["fromBlock"] == 1:
            return httpx.Response(200, content=_ndjson(_block(1), _block(2)))
        return httpx.Response(200, content=_ndjson(_block(3)))

    client, queries = _client(handler)
    async with client:
        batches = await _numbers(await client.open_stream({"fromBlock": 1, "toBlock": 3}))

    assert batches == [[1, 2], [3]]
    assert [q["fromBlock"] for q in queries] == [1, 3]


@pytest.mark.asyncio
async def test_splits_large_responses():
    def handler(query):
        return httpx.Response(200, content=_ndjson(*(_block(n) for n in range(query["fromBlock"], 6))))

    client, queries = _client(handler, max_blocks_per_batch=2)
    async with client:
        batches = await _numbers(await client.open_stream({"fromBlock": 1, "toBlock": 5}))

    assert batches == [[1, 2], [3, 4], [5]]
    assert len(queries) == 1


@pytest.mark.asyncio
async def test_polls_while_head_not_reached():
    def handler(query):
        if len(queries) == 1:
            return httpx.Response(204)
        return httpx.Response(200, content=_ndjson(_block(10)))

    client, queries = _client(handler)
    async with client:
        batches = await _numbers(await client.open_stream({"fromBlock": 10, "toBlock": 10}))

    assert batches == [[10]]
    assert [q["fromBlock"] for q in queries] == [10, 10]


@pytest.mark.asyncio
async def test_error_status_raises_on_open():
    client, _ = _client(lambda query: httpx.Response(400, text="unknown field"))

    async with client:
        with pytest.raises(PortalError) as excinfo:
            await client.open_stream({"fromBlock": 1})

    assert excinfo.value.status_code == 400
    assert "unknown field" in str(excinfo.value)


class TrackedBody(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, body: bytes) -> None:
        self.body = body
        self.closed = False

    async def __aiter__(self):
        yield self.body

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_malformed_blocks_are_skipped():
    no_header = {"logs": []}
    bad_topic = _block(3, {"address": "0xa", "topics": [7], "data": "0x", "transactionHash": "0x1", "logIndex": 0})
    body = _ndjson(_block(1), no_header, bad_topic) + b"{not json}\n" + _ndjson(_block(4))
    client, _ = _client(lambda query: httpx.Response(200, content=body), max_blocks_per_batch=1)

    async with client:
        stream = await client.open_stream({"fromBlock": 1, "toBlock": 4})
        batches = await _numbers(stream)

    assert batches == [[1], [4]]
    assert stream.skipped_blocks == 3


@pytest.mark.asyncio
async def test_response_without_readable_blocks_raises():
    client, queries = _client(lambda query: httpx.Response(200, content=b"{not json}\n"))

    async with client:
        stream = await client.open_stream({"fromBlock": 1, "toBlock": 1})
        with pytest.raises(PortalError):
            await _numbers(stream)

    assert len(queries) == 1


@pytest.mark.asyncio
async def test_closing_unread_stream_closes_response():
    body = TrackedBody(_ndjson(_block(1)))
    client, _ = _client(lambda query: httpx.Response(200, stream=body))

    async with client:
        stream = await client.open_stream({"fromBlock": 1, "toBlock": 1})
        await stream.aclose()

        assert body.closed
        assert await _numbers(stream) == []


def test_parse_block_normalizes():
    raw = _block(
        0x10,
        {
            "address": "0xABCDEF",
            "topics": ["0x" + "AB" * 32],
            "data": "0x01",
            "transactionHash": "0xDEAD",
            "logIndex": "0x2",
            "transactionIndex": 4,
        },
    )
    raw["header"]["number"] = "0x10"
    raw["transactions"] = [{"hash": "0xDEAD", "from": "0xA1", "to": None, "transactionIndex": 4}]

    block = parse_block(raw)

    assert block.number == 16
    assert block.header.hash == "0xb16"
    (log,) = block.logs
    assert log.address == "0xabcdef"
    assert log.topics == ("0x" + "ab" * 32,)
    assert log.transaction_hash == "0xdead"
    assert log.log_index == 2
    assert log.transaction_index == 4
    assert block.transactions[0].from_address == "0xa1"
    assert block.transactions[0].to_address is None
