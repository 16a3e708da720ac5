"""DeliveryWorker — consumes channel queues and settles each delivery."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from relay_core.channel import Channel
from relay_core.correlation import set_trace_id
from relay_core.ports.background_worker import IBackgroundWorker
from relay_core.primitives.exceptions import DeliveryFailedError, MalformedMessageError
from relay_messaging.dead_letter import DeadLetterHandler
from relay_messaging.retry import RetryPolicy
from relay_messaging.serialization import EnvelopeSerializer
from relay_notifications.delivery import DeliveryStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Mapping

    from relay_core.ports.broker import IBrokerClient, IIncomingMessage
    from relay_messaging.envelope import MessageEnvelope
    from relay_notifications.dispatcher import ChannelDispatcher
    from relay_notifications.ports.ledger import IDeliveryLedger

logger = logging.getLogger("relay.worker")


class DeliveryWorker(IBackgroundWorker):
    """
    One consumer per channel queue, manual acknowledgement.

    Outcome of a delivery:

    - undecodable payload: rejected without requeue and logged, the ledger is
      not touched;
    - sender success: ack, ledger ``delivered``;
    - sender failure below the retry bound: the message stays unacknowledged
      and a delayed task requeues it;
    - sender failure at the bound: dead-letter hook, ack, ledger ``failed``.

    A requeue redelivers the original bytes, so failed attempts are counted
    per envelope id in this process. After a restart the count starts again
    from the envelope's own ``retry_count``.
    """

    def __init__(
        self,
        broker: IBrokerClient,
        dispatcher: ChannelDispatcher,
        ledger: IDeliveryLedger,
        *,
        queues: Mapping[Channel, str] | None = None,
        retry_policy: RetryPolicy | None = None,
        dead_letter: DeadLetterHandler | None = None,
        serializer: EnvelopeSerializer | None = None,
    ) -> None:
        self._broker = broker
        self._dispatcher = dispatcher
        self._ledger = ledger
        self._queues = dict(queues) if queues is not None else {c: c.default_queue for c in Channel}
        self._retry = retry_policy or RetryPolicy(max_attempts=3, delay=5.0)
        self._dead_letter = dead_letter or DeadLetterHandler()
        self._serializer = serializer or EnvelopeSerializer()

        self._attempts: dict[str, int] = {}
        self._requeue_tasks: set[asyncio.Task[None]] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def max_retries(self) -> int:
        return self._retry.max_attempts

    def pending_requeues(self) -> int:
        return sum(1 for t in self._requeue_tasks if not t.done())

    async def start(self) -> None:
        if self._running:
            return
        for channel, queue_name in self._queues.items():
            await self._broker.declare_queue(queue_name, durable=True)
            await self._broker.consume(queue_name, self._handler_for(queue_name))
            logger.info(
                "Consuming channel queue",
                extra={"channel": channel.value, "queue": queue_name},
            )
        self._running = True
        logger.info("DeliveryWorker started")

    async def stop(self) -> None:
        """Cancel pending requeue timers.

        Their messages are still unacknowledged and return to the queue when
        the broker connection closes.
        """
        self._running = False
        cancelled = await self.cancel_requeues()
        if cancelled:
            logger.info("Cancelled %d pending requeue(s)", cancelled)
        logger.info("DeliveryWorker stopped")

    async def cancel_requeues(self) -> int:
        """Cancel every pending requeue timer and return how many were cancelled."""
        tasks = [t for t in self._requeue_tasks if not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._requeue_tasks.clear()
        return len(tasks)

    def _handler_for(
        self, queue_name: str
    ) -> Callable[[IIncomingMessage], Coroutine[Any, Any, None]]:
        async def on_message(message: IIncomingMessage) -> None:
            await self.handle(queue_name, message)

        return on_message

    async def handle(self, queue_name: str, message: IIncomingMessage) -> None:
        """Run one delivery through the state machine and settle it."""
        try:
            envelope = self._serializer.deserialize(message.body)
        except MalformedMessageError as e:
            logger.error(
                "Dropping malformed message",
                extra={
                    "queue": queue_name,
                    "delivery_tag": message.delivery_tag,
                    "error": e.reason,
                    "payload": e.payload_preview,
                },
            )
            await message.reject(requeue=False)
            return

        set_trace_id(envelope.trace_id)
        logger.info(
            "Received message from queue",
            extra={
                "trace_id": envelope.trace_id,
                "message_id": envelope.id,
                "channel": envelope.channel.value,
                "queue": queue_name,
            },
        )
        await self._ledger.record(
            envelope.id,
            envelope.channel,
            envelope.recipient,
            envelope.subject,
            envelope.body,
            envelope.trace_id,
        )

        try:
            await self._attempt(envelope)
        except DeliveryFailedError as e:
            await self._on_failure(queue_name, message, envelope, e.reason)
            return

        await message.ack()
        self._attempts.pop(envelope.id, None)
        await self._ledger.update_status(envelope.id, DeliveryStatus.DELIVERED)
        logger.info(
            "Message acknowledged",
            extra={"trace_id": envelope.trace_id, "message_id": envelope.id},
        )

    async def _attempt(self, envelope: MessageEnvelope) -> None:
        try:
            result = await self._dispatcher.dispatch(envelope)
        except Exception as e:
            logger.exception(
                "Channel sender raised",
                extra={"trace_id": envelope.trace_id, "message_id": envelope.id},
            )
            raise DeliveryFailedError(
                envelope.id, envelope.channel.value, str(e) or type(e).__name__
            ) from e
        if not result.success:
            raise DeliveryFailedError(
                envelope.id, envelope.channel.value, result.error or "Delivery failed"
            )

    async def _on_failure(
        self,
        queue_name: str,
        message: IIncomingMessage,
        envelope: MessageEnvelope,
        reason: str,
    ) -> None:
        failures = max(envelope.retry_count, self._attempts.get(envelope.id, 0)) + 1

        if self._retry.should_retry(failures):
            self._attempts[envelope.id] = failures
            if not self._running:
                # Left unacknowledged; the broker returns it when the connection closes.
                logger.warning(
                    "Message delivery failed during shutdown, leaving it unacknowledged",
                    extra={
                        "trace_id": envelope.trace_id,
                        "message_id": envelope.id,
                        "queue": queue_name,
                        "retry_count": failures,
                        "error": reason,
                    },
                )
                return
            logger.warning(
                "Message delivery failed, requeueing",
                extra={
                    "trace_id": envelope.trace_id,
                    "message_id": envelope.id,
                    "queue": queue_name,
                    "retry_count": failures,
                    "error": reason,
                },
            )
            task = asyncio.create_task(self._requeue_later(message, envelope, failures))
            self._requeue_tasks.add(task)
            task.add_done_callback(self._requeue_tasks.discard)
            return

        self._attempts.pop(envelope.id, None)
        await self._dead_letter.route(envelope.with_retry(failures), reason)
        await message.ack()
        await self._ledger.update_status(envelope.id, DeliveryStatus.FAILED, error=reason)

    async def _requeue_later(
        self,
        message: IIncomingMessage,
        envelope: MessageEnvelope,
        failures: int,
    ) -> None:
        await self._retry.wait_before_retry(failures)
        try:
            await message.nack(requeue=True)
        except Exception:
            # The channel is gone; the broker redelivers the message anyway.
            logger.exception(
                "Failed to requeue message",
                extra={"trace_id": envelope.trace_id, "message_id": envelope.id},
            )
