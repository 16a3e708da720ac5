"""Shared fixtures: in-memory broker, fake senders, zero-delay settings."""

from __future__ import annotations

import pytest
import pytest_asyncio

from relay_core.channel import Channel
from relay_core.correlation import set_trace_id
from relay_dispatch.app import NotificationRelay
from relay_dispatch.settings import RelaySettings
from relay_messaging.dedup import DeduplicationCache
from relay_messaging.memory import InMemoryBroker
from relay_notifications.ledger import InMemoryDeliveryLedger
from relay_notifications.memory.fake import FakeChannelSender, fake_senders


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def clear_trace_id():
    set_trace_id(None)
    yield
    set_trace_id(None)


@pytest.fixture
def settings() -> RelaySettings:
    return RelaySettings(
        _env_file=None,
        broker="memory",
        publish_retry_delay=0,
        delivery_retry_delay=0,
        shutdown_timeout=1,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dedup(clock: FakeClock) -> DeduplicationCache:
    return DeduplicationCache(window_seconds=3600, clock=clock)


@pytest.fixture
def ledger() -> InMemoryDeliveryLedger:
    return InMemoryDeliveryLedger()


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def senders() -> dict[Channel, FakeChannelSender]:
    return fake_senders()


@pytest.fixture
def relay(
    settings: RelaySettings,
    broker: InMemoryBroker,
    senders: dict[Channel, FakeChannelSender],
    ledger: InMemoryDeliveryLedger,
    dedup: DeduplicationCache,
) -> NotificationRelay:
    return NotificationRelay(
        settings, broker=broker, senders=senders.values(), ledger=ledger, dedup=dedup
    )


@pytest_asyncio.fixture
async def running_relay(relay: NotificationRelay):
    await relay.start()
    yield relay
    await relay.stop()
