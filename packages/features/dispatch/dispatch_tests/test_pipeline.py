"""End-to-end scenarios through NotificationRelay with the in-memory broker."""

from __future__ import annotations

import pytest

from relay_core.channel import Channel
from relay_core.primitives.exceptions import DuplicateRequestError, PublishExhaustedError
from relay_dispatch.app import NotificationRelay
from relay_dispatch.schemas import MessageRequest
from relay_notifications.delivery import DeliveryStatus


def _request(**overrides) -> MessageRequest:
    data = {"channel": "email", "to": "a@x.com", "body": "hi"}
    data.update(overrides)
    return MessageRequest.parse(data)


@pytest.mark.asyncio
async def test_submit_then_deliver(running_relay, broker, ledger) -> None:
    receipt = await running_relay.submit(_request())
    assert await ledger.get(receipt.message_id) is not None

    await broker.wait_idle()

    entry = await ledger.get(receipt.message_id)
    assert entry.status is DeliveryStatus.DELIVERED
    assert entry.delivered_at is not None
    assert entry.recipient == "a@x.com"


@pytest.mark.asyncio
async def test_pending_until_worker_consumes(settings, broker, senders, ledger, dedup) -> None:
    relay = NotificationRelay(
        settings,
        broker=broker,
        senders=senders.values(),
        ledger=ledger,
        dedup=dedup,
        consume=False,
    )
    async with relay:
        receipt = await relay.submit(_request())
        entry = await ledger.get(receipt.message_id)
        assert entry.status is DeliveryStatus.PENDING
        assert broker.depth("email_queue") == 1

        await relay.worker.start()
        await broker.wait_idle()
        entry = await ledger.get(receipt.message_id)
        assert entry.status is DeliveryStatus.DELIVERED
        await relay.worker.stop()


@pytest.mark.asyncio
async def test_same_request_twice_is_duplicate(running_relay) -> None:
    await running_relay.submit(_request())
    with pytest.raises(DuplicateRequestError):
        await running_relay.submit(_request())


@pytest.mark.asyncio
async def test_three_sender_failures_end_failed(running_relay, broker, senders, ledger) -> None:
    senders[Channel.EMAIL].script("SMTP server temporarily unavailable", "boom", "last reason")
    receipt = await running_relay.submit(_request())
    await broker.wait_idle()

    entry = await ledger.get(receipt.message_id)
    assert entry.status is DeliveryStatus.FAILED
    assert entry.last_error == "last reason"
    assert broker.depth("email_queue") == 0
    assert len(senders[Channel.EMAIL].sent) == 3


@pytest.mark.asyncio
async def test_connection_lost_exhausts_then_resubmission_succeeds(
    running_relay, broker, ledger
) -> None:
    broker.simulate_connection_loss()
    with pytest.raises(PublishExhaustedError):
        await running_relay.submit(_request())
    assert await ledger.list() == []

    broker.restore_connection()
    receipt = await running_relay.submit(_request())
    await broker.wait_idle()
    assert (await ledger.get(receipt.message_id)).status is DeliveryStatus.DELIVERED


@pytest.mark.asyncio
async def test_malformed_payload_never_reaches_ledger(running_relay, broker, ledger) -> None:
    broker.publish_raw("whatsapp_queue", b"\xff\xfe garbage")
    await broker.wait_idle()
    assert len(broker.dead_lettered) == 1
    assert await ledger.list() == []


@pytest.mark.asyncio
async def test_stats_reflect_outcomes(running_relay, broker, senders) -> None:
    senders[Channel.SMS].script("x", "x", "x")
    await running_relay.submit(_request())
    await running_relay.submit(_request(channel="sms", to="+1"))
    await broker.wait_idle()

    stats = await running_relay.stats()
    assert stats["total"] == 2
    assert stats["delivered"] == 1
    assert stats["failed"] == 1
    assert stats["by_channel"]["sms"]["failed"] == 1
