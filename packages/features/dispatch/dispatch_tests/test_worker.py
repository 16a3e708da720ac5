"""Tests for DeliveryWorker's per-message state machine."""

from __future__ import annotations

import asyncio
import logging

import pytest
import pytest_asyncio

from relay_core.channel import Channel
from relay_dispatch.worker import DeliveryWorker
from relay_messaging.dead_letter import DeadLetterHandler
from relay_messaging.envelope import MessageEnvelope
from relay_messaging.retry import RetryPolicy
from relay_notifications.delivery import DeliveryResult, DeliveryStatus
from relay_notifications.dispatcher import ChannelDispatcher
from relay_notifications.memory.fake import FakeChannelSender


async def _eventually(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.fixture
def dead_letters() -> list[tuple[MessageEnvelope, str]]:
    return []


@pytest.fixture
def make_worker(broker, senders, ledger, dead_letters):
    async def on_dead_letter(envelope: MessageEnvelope, reason: str) -> None:
        dead_letters.append((envelope, reason))

    def factory(*, delay: float = 0.0, max_retries: int = 3) -> DeliveryWorker:
        return DeliveryWorker(
            broker,
            ChannelDispatcher(senders.values()),
            ledger,
            retry_policy=RetryPolicy(max_attempts=max_retries, delay=delay),
            dead_letter=DeadLetterHandler(on_dead_letter),
        )

    return factory


@pytest_asyncio.fixture
async def worker(broker, make_worker):
    await broker.connect()
    w = make_worker()
    await w.start()
    yield w
    await w.stop()


def _email(body: str = "hi", **kwargs) -> MessageEnvelope:
    return MessageEnvelope.create(Channel.EMAIL, "a@x.com", body, trace_id="t-w", **kwargs)


@pytest.mark.asyncio
async def test_start_declares_and_consumes_every_channel(worker, broker) -> None:
    assert worker.is_running
    for channel in Channel:
        assert broker.depth(channel.default_queue) == 0


@pytest.mark.asyncio
async def test_success_acks_and_marks_delivered(worker, broker, senders, ledger) -> None:
    envelope = _email()
    await broker.publish("email_queue", envelope)
    await broker.wait_idle()

    senders[Channel.EMAIL].assert_sent("a@x.com")
    assert len(broker.acked) == 1
    entry = await ledger.get(envelope.id)
    assert entry.status is DeliveryStatus.DELIVERED
    assert entry.delivered_at is not None
    assert entry.trace_id == "t-w"


@pytest.mark.asyncio
async def test_failure_then_success_is_delivered(worker, broker, senders, ledger) -> None:
    senders[Channel.SMS].script("network error", "network error")
    envelope = MessageEnvelope.create(Channel.SMS, "+1", "code", trace_id="t")
    await broker.publish("sms_queue", envelope)
    await broker.wait_idle()

    assert len(senders[Channel.SMS].sent) == 3
    assert all(m.redelivered for m in broker.acked)
    entry = await ledger.get(envelope.id)
    assert entry.status is DeliveryStatus.DELIVERED
    assert entry.last_error is None


@pytest.mark.asyncio
async def test_three_failures_mark_failed_and_remove_message(
    worker, broker, senders, ledger, dead_letters
) -> None:
    senders[Channel.EMAIL].script("SMTP down", "SMTP down", "SMTP timeout")
    envelope = _email()
    await broker.publish("email_queue", envelope)
    await broker.wait_idle()

    assert len(senders[Channel.EMAIL].sent) == 3
    assert len(broker.acked) == 1
    assert broker.dead_lettered == []
    assert broker.depth("email_queue") == 0

    entry = await ledger.get(envelope.id)
    assert entry.status is DeliveryStatus.FAILED
    assert entry.last_error == "SMTP timeout"
    assert entry.delivered_at is None

    [(dead, reason)] = dead_letters
    assert dead.id == envelope.id
    assert dead.retry_count == 3
    assert reason == "SMTP timeout"


@pytest.mark.asyncio
async def test_retry_count_never_exceeds_bound(broker, senders, ledger, make_worker) -> None:
    await broker.connect()
    worker = make_worker(max_retries=2)
    await worker.start()
    senders[Channel.EMAIL].script(*["down"] * 10)

    await broker.publish("email_queue", _email())
    await broker.wait_idle()
    await worker.stop()

    assert len(senders[Channel.EMAIL].sent) == 2
    assert worker.max_retries == 2


@pytest.mark.asyncio
async def test_envelope_retry_count_from_wire_is_honoured(
    worker, broker, senders, ledger
) -> None:
    senders[Channel.EMAIL].script("down")
    envelope = _email().with_retry(2)
    await broker.publish("email_queue", envelope)
    await broker.wait_idle()

    assert len(senders[Channel.EMAIL].sent) == 1
    assert (await ledger.get(envelope.id)).status is DeliveryStatus.FAILED


@pytest.mark.asyncio
async def test_malformed_payload_rejected_without_requeue(
    worker, broker, ledger, caplog
) -> None:
    with caplog.at_level(logging.ERROR, logger="relay.worker"):
        broker.publish_raw("email_queue", b"{not json")
        await broker.wait_idle()

    [rejected] = broker.dead_lettered
    assert rejected.outcome == "reject"
    assert broker.depth("email_queue") == 0
    assert await ledger.list() == []
    record = next(r for r in caplog.records if r.getMessage() == "Dropping malformed message")
    assert record.queue == "email_queue"
    assert "{not json" in record.payload


@pytest.mark.asyncio
async def test_valid_json_with_wrong_shape_is_malformed(worker, broker, ledger) -> None:
    broker.publish_raw("sms_queue", b'{"channel": "sms"}')
    await broker.wait_idle()
    assert len(broker.dead_lettered) == 1
    assert await ledger.list() == []


@pytest.mark.asyncio
async def test_sender_exception_counts_as_failure(worker, broker, senders, ledger) -> None:
    senders[Channel.WHATSAPP].script(RuntimeError("misconfigured"))
    envelope = MessageEnvelope.create(Channel.WHATSAPP, "+1", "hi", trace_id="t")
    await broker.publish("whatsapp_queue", envelope)
    await broker.wait_idle()

    assert len(senders[Channel.WHATSAPP].sent) == 2
    assert (await ledger.get(envelope.id)).status is DeliveryStatus.DELIVERED


@pytest.mark.asyncio
async def test_repeated_sender_exceptions_record_reason(worker, broker, senders, ledger) -> None:
    senders[Channel.SMS].script(*[RuntimeError("misconfigured")] * 3)
    envelope = MessageEnvelope.create(Channel.SMS, "+1", "hi", trace_id="t")
    await broker.publish("sms_queue", envelope)
    await broker.wait_idle()

    entry = await ledger.get(envelope.id)
    assert entry.status is DeliveryStatus.FAILED
    assert entry.last_error == "misconfigured"


@pytest.mark.asyncio
async def test_duplicate_delivery_is_idempotent(worker, broker, senders, ledger) -> None:
    envelope = _email()
    await broker.publish("email_queue", envelope)
    await broker.publish("email_queue", envelope)
    await broker.wait_idle()

    assert len(senders[Channel.EMAIL].sent) == 2
    [entry] = await ledger.list()
    assert entry.status is DeliveryStatus.DELIVERED


@pytest.mark.asyncio
async def test_existing_ledger_entry_is_reused(worker, broker, ledger) -> None:
    envelope = _email()
    created = await ledger.record(
        envelope.id, envelope.channel, envelope.recipient, None, envelope.body, "t-w"
    )
    await broker.publish("email_queue", envelope)
    await broker.wait_idle()
    entry = await ledger.get(envelope.id)
    assert entry.created_at == created.created_at
    assert entry.status is DeliveryStatus.DELIVERED


@pytest.mark.asyncio
async def test_failed_message_stays_unacked_until_requeue(
    broker, senders, ledger, make_worker
) -> None:
    await broker.connect()
    worker = make_worker(delay=60.0)
    await worker.start()
    senders[Channel.EMAIL].script("down")

    await broker.publish("email_queue", _email())
    await _eventually(lambda: worker.pending_requeues() == 1)

    assert broker.unsettled("email_queue") == 1
    assert broker.acked == []
    assert broker.depth("email_queue") == 0

    await worker.stop()
    assert worker.pending_requeues() == 0
    assert broker.unsettled("email_queue") == 1
    assert (await ledger.list())[0].status is DeliveryStatus.PENDING


@pytest.mark.asyncio
async def test_prefetch_bounds_in_flight_work(broker, ledger, make_worker, senders) -> None:
    for sender in senders.values():
        sender._delay = 0.01
    await broker.connect()
    worker = make_worker()
    await worker.start()

    for i in range(3):
        await broker.publish("email_queue", _email(body=f"m{i}"))
    assert broker.unsettled("email_queue") <= 1
    await broker.wait_idle()
    await worker.stop()
    assert len(broker.acked) == 3


class HungChannelSender(FakeChannelSender):
    """Never returns until *gate* is set."""

    def __init__(self, channel: Channel, gate: asyncio.Event) -> None:
        super().__init__(channel)
        self._gate = gate

    async def send(self, envelope: MessageEnvelope) -> DeliveryResult:
        await self._gate.wait()
        return await super().send(envelope)


@pytest.mark.asyncio
async def test_hung_sender_holds_its_queue_credit_indefinitely(
    broker, senders, ledger, make_worker
) -> None:
    gate = asyncio.Event()
    senders[Channel.EMAIL] = HungChannelSender(Channel.EMAIL, gate)
    await broker.connect()
    worker = make_worker()
    await worker.start()

    await broker.publish("email_queue", _email(body="first"))
    await broker.publish("email_queue", _email(body="second"))
    sms = MessageEnvelope.create(Channel.SMS, "+15550001", "code", trace_id="t-w")
    await broker.publish("sms_queue", sms)

    await _eventually(lambda: len(broker.acked) == 1)
    await asyncio.sleep(0.05)

    assert broker.unsettled("email_queue") == 1
    assert broker.depth("email_queue") == 1
    assert broker.depth("sms_queue") == 0
    senders[Channel.SMS].assert_sent("+15550001")
    assert (await ledger.get(sms.id)).status is DeliveryStatus.DELIVERED

    gate.set()
    await broker.wait_idle()
    await worker.stop()
    assert len(broker.acked) == 3


@pytest.mark.asyncio
async def test_failure_after_stop_schedules_no_requeue(
    broker, senders, ledger, make_worker
) -> None:
    for sender in senders.values():
        sender._delay = 0.05
    senders[Channel.EMAIL].script("down")
    await broker.connect()
    worker = make_worker(delay=30.0)
    await worker.start()

    envelope = _email()
    await broker.publish("email_queue", envelope)
    await asyncio.sleep(0)
    await worker.stop()
    await _eventually(lambda: len(senders[Channel.EMAIL].sent) == 1)
    await asyncio.sleep(0.01)

    assert worker.pending_requeues() == 0
    assert broker.unsettled("email_queue") == 1
    assert broker.acked == []
    assert (await ledger.get(envelope.id)).status is DeliveryStatus.PENDING
