"""Tests for NotificationRelay assembly and lifecycle."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from relay_core.channel import Channel
from relay_core.primitives.exceptions import BrokerConnectionLostError
from relay_dispatch.app import NotificationRelay, build_broker
from relay_dispatch.schemas import MessageRequest
from relay_dispatch.settings import RelaySettings
from relay_messaging.memory import InMemoryBroker
from relay_messaging.rabbitmq import RabbitMQBrokerClient
from relay_notifications.delivery import DeliveryStatus
from relay_notifications.memory.fake import FakeChannelSender
from relay_notifications.senders import SimulatedChannelSender


def test_build_broker_follows_settings() -> None:
    assert isinstance(build_broker(RelaySettings(_env_file=None, broker="memory")), InMemoryBroker)
    assert isinstance(
        build_broker(RelaySettings(_env_file=None, broker="rabbitmq")), RabbitMQBrokerClient
    )


def test_defaults_to_simulated_senders(settings) -> None:
    relay = NotificationRelay(settings)
    assert all(
        isinstance(relay.dispatcher.sender_for(c), SimulatedChannelSender)
        for c in relay.dispatcher.channels
    )
    assert isinstance(relay.broker, InMemoryBroker)


@pytest.mark.asyncio
async def test_start_and_stop(relay, broker) -> None:
    await relay.start()
    assert relay.is_started
    assert broker.is_connected
    assert relay.worker.is_running

    report = await relay.health.status()
    assert report["status"] == "healthy"
    assert report["components"]["broker"] == "up"
    assert report["components"]["delivery_worker"] == "up"

    await relay.stop()
    assert not relay.is_started
    assert not broker.is_connected
    assert not relay.worker.is_running


@pytest.mark.asyncio
async def test_start_is_idempotent(relay) -> None:
    await relay.start()
    await relay.start()
    await relay.stop()
    await relay.stop()


@pytest.mark.asyncio
async def test_start_fails_when_broker_unreachable(settings, senders) -> None:
    broker = InMemoryBroker()
    broker.connect = AsyncMock(side_effect=BrokerConnectionLostError("refused"))
    relay = NotificationRelay(settings, broker=broker, senders=senders.values())
    with pytest.raises(BrokerConnectionLostError):
        await relay.start()
    assert not relay.is_started


@pytest.mark.asyncio
async def test_health_degrades_when_broker_drops(running_relay, broker) -> None:
    broker.simulate_connection_loss()
    report = await running_relay.health.status()
    assert report["status"] == "unhealthy"
    assert report["components"]["broker"] == "down"


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_delivery(settings, broker, ledger, dedup) -> None:
    slow = [FakeChannelSender(c, delay=0.05) for c in Channel]
    relay = NotificationRelay(settings, broker=broker, senders=slow, ledger=ledger, dedup=dedup)
    await relay.start()
    receipt = await relay.submit(MessageRequest.parse({"channel": "sms", "to": "+1", "body": "x"}))
    await relay.stop()
    assert (await ledger.get(receipt.message_id)).status is DeliveryStatus.DELIVERED


@pytest.mark.asyncio
async def test_stop_leaves_no_requeue_timer_behind(settings, broker, ledger, dedup) -> None:
    settings = settings.model_copy(update={"delivery_retry_delay": 30.0})
    slow = [FakeChannelSender(c, delay=0.05) for c in Channel]
    slow[[s.channel for s in slow].index(Channel.SMS)].script("down")
    relay = NotificationRelay(settings, broker=broker, senders=slow, ledger=ledger, dedup=dedup)
    await relay.start()
    receipt = await relay.submit(MessageRequest.parse({"channel": "sms", "to": "+1", "body": "x"}))
    await relay.stop()

    assert relay.worker.pending_requeues() == 0
    assert not relay.worker.is_running
    assert (await ledger.get(receipt.message_id)).status is DeliveryStatus.PENDING
