"""Tests for the notify-relay command line."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from relay_core.primitives.exceptions import BrokerConnectionLostError
from relay_dispatch import cli
from relay_dispatch.app import NotificationRelay
from relay_messaging.memory import InMemoryBroker


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_parser_serve_options() -> None:
    args = cli.build_parser().parse_args(["serve", "--port", "8081", "--no-worker"])
    assert args.command == "serve"
    assert args.port == 8081
    assert args.no_worker is True


@pytest.mark.asyncio
async def test_worker_exits_1_when_broker_unreachable(settings, senders) -> None:
    broker = InMemoryBroker()
    broker.connect = AsyncMock(side_effect=BrokerConnectionLostError("refused"))
    relay = NotificationRelay(settings, broker=broker, senders=senders.values())
    assert await cli.run_worker(settings, relay=relay) == cli.EXIT_BROKER_UNAVAILABLE


@pytest.mark.asyncio
async def test_serve_exits_1_when_broker_unreachable(settings, senders) -> None:
    broker = InMemoryBroker()
    broker.connect = AsyncMock(side_effect=BrokerConnectionLostError("refused"))
    relay = NotificationRelay(settings, broker=broker, senders=senders.values())
    assert await cli.serve(settings, relay=relay) == cli.EXIT_BROKER_UNAVAILABLE


@pytest.mark.asyncio
async def test_worker_runs_until_stopped(relay, broker) -> None:
    stop = asyncio.Event()
    task = asyncio.create_task(cli.run_worker(relay.settings, relay=relay, stop_event=stop))
    for _ in range(100):
        if relay.is_started:
            break
        await asyncio.sleep(0.01)
    assert relay.worker.is_running

    stop.set()
    assert await task == cli.EXIT_OK
    assert not relay.is_started
    assert not broker.is_connected


def test_main_returns_worker_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_run_worker(settings):
        return cli.EXIT_BROKER_UNAVAILABLE

    monkeypatch.setattr(cli, "run_worker", fake_run_worker)
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)
    assert cli.main(["worker"]) == 1


def test_main_serve_honours_explicit_zero_port(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    async def fake_serve(settings, *, consume):
        seen["port"] = settings.http_port
        seen["consume"] = consume
        return cli.EXIT_OK

    monkeypatch.setattr(cli, "serve", fake_serve)
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)
    assert cli.main(["serve", "--port", "0", "--no-worker"]) == 0
    assert seen == {"port": 0, "consume": False}
