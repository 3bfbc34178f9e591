import json

import pytest
from click.testing import CliRunner
from rich.console import Console

import decodepipe.cli as cli_module
from decodepipe.cli import cli
from decodepipe.constants import APPROVAL_FOR_ALL_T0, TRANSFER_T0
from decodepipe.core.errors import PortalError
from decodepipe.core.models import DecodedEvent
from decodepipe.core.use_cases import PipeStats


@pytest.fixture
def wide_console(monkeypatch):
    monkeypatch.setattr(cli_module, "console", Console(width=200))


def _event(block: int) -> DecodedEvent:
    return DecodedEvent(
        address="0xtoken",
        block_number=block,
        tx_hash="0xtx",
        type="Transfer",
        signature="Transfer(address,address,uint256)",
        topic=TRANSFER_T0,
        log_index=0,
        params={"value": 1},
    )


@pytest.mark.usefixtures("wide_console")
def test_topics_lists_registry():
    result = CliRunner().invoke(cli, ["topics", "--no-erc20"])

    assert result.exit_code == 0, result.output
    assert "3 topics" in result.output
    assert APPROVAL_FOR_ALL_T0 in result.output


@pytest.mark.usefixtures("wide_console")
def test_topics_with_abi(tmp_path):
    abi = tmp_path / "abi.json"
    abi.write_text(json.dumps([{"type": "event", "name": "Ping", "inputs": []}]))

    result = CliRunner().invoke(cli, ["topics", "--no-erc20", "--no-erc721", "--abi", str(abi)])

    assert result.exit_code == 0, result.output
    assert "1 topics" in result.output
    assert "Ping()" in result.output


def test_stream_runs_and_prints_summary(monkeypatch):
    calls = []

    async def fake_run_stream(config, *, on_batch=None):
        calls.append(config)
        on_batch([_event(10), _event(12)])
        return PipeStats(batches_in=3, batches_out=1, blocks=3, logs=4, events=2)

    monkeypatch.setattr(cli_module, "run_stream", fake_run_stream)

    result = CliRunner().invoke(
        cli,
        ["stream", "--from-block", "10", "--to-block", "12", "--contract", "0xToken", "--no-erc721"],
        env={"PORTAL_URL": "https://portal.test/datasets/x"},
    )

    assert result.exit_code == 0, result.output
    (config,) = calls
    assert config.portal.url == "https://portal.test/datasets/x"
    assert config.filters.start_block == 10
    assert config.filters.end_block == 12
    assert config.filters.contract_addresses == ("0xToken",)
    assert config.erc721 is False
    assert "2 events" in result.output
    assert "summary" in result.output


def test_stream_requires_something_to_decode():
    result = CliRunner().invoke(cli, ["stream", "--from-block", "1", "--no-erc20", "--no-erc721"])

    assert result.exit_code == 2
    assert "Nothing to decode" in result.output


def test_stream_setup_failure_exits_with_error(monkeypatch):
    async def failing_run_stream(config, *, on_batch=None):
        raise PortalError("Portal error 503: unavailable", status_code=503)

    monkeypatch.setattr(cli_module, "run_stream", failing_run_stream)

    result = CliRunner().invoke(cli, ["stream", "--from-block", "1"])

    assert result.exit_code == 1
    assert "Portal error 503" in result.output
