"""MessageRouter — dedup, envelope creation and publish-with-retry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from relay_core.channel import Channel
from relay_core.correlation import ensure_trace_id
from relay_core.primitives.exceptions import (
    BrokerError,
    DuplicateRequestError,
    PublishExhaustedError,
    UnsupportedChannelError,
)
from relay_messaging.dedup import dedup_key
from relay_messaging.envelope import MessageEnvelope
from relay_messaging.retry import RetryPolicy

from .schemas import SubmitReceipt

if TYPE_CHECKING:
    from collections.abc import Mapping

    from relay_core.ports.broker import IBrokerClient
    from relay_core.ports.dedup import IDeduplicationStore
    from relay_notifications.ports.ledger import IDeliveryLedger

    from .schemas import MessageRequest

logger = logging.getLogger("relay.router")


class MessageRouter:
    """Accepts requests and puts them on their channel's queue.

    The dedup key is marked only after a successful publish, so a request
    whose publication was exhausted can be submitted again. Two identical
    requests racing between the duplicate check and the mark may both be
    accepted.
    """

    def __init__(
        self,
        broker: IBrokerClient,
        dedup: IDeduplicationStore,
        ledger: IDeliveryLedger,
        *,
        queues: Mapping[Channel, str] | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._broker = broker
        self._dedup = dedup
        self._ledger = ledger
        self._queues = dict(queues) if queues is not None else {c: c.default_queue for c in Channel}
        self._retry = retry_policy or RetryPolicy()

    def queue_for(self, channel: Channel) -> str:
        try:
            return self._queues[channel]
        except KeyError:
            raise UnsupportedChannelError(channel.value) from None

    async def prepare(self) -> None:
        """Declare every routed queue (durable)."""
        for name in self._queues.values():
            await self._broker.declare_queue(name, durable=True)

    async def submit(
        self,
        request: MessageRequest,
        trace_id: str | None = None,
    ) -> SubmitReceipt:
        """Queue *request* for delivery.

        Raises:
            DuplicateRequestError: an identical request was accepted in the window.
            PublishExhaustedError: every publish attempt failed.
        """
        trace_id = ensure_trace_id(trace_id)
        key = dedup_key(request.channel, request.to, request.body)
        if await self._dedup.is_duplicate(key):
            logger.warning(
                "Duplicate message detected",
                extra={
                    "trace_id": trace_id,
                    "channel": request.channel.value,
                    "recipient": request.to,
                },
            )
            raise DuplicateRequestError(key, request.channel.value, request.to)

        queue_name = self.queue_for(request.channel)
        envelope = MessageEnvelope.create(
            request.channel,
            request.to,
            request.body,
            subject=request.subject,
            metadata=request.metadata,
            trace_id=trace_id,
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
            await self._publish_with_retry(queue_name, envelope)
        except PublishExhaustedError:
            await self._ledger.discard(envelope.id)
            raise

        await self._dedup.mark_processed(key)
        logger.info(
            "Message queued successfully",
            extra={
                "trace_id": trace_id,
                "message_id": envelope.id,
                "channel": envelope.channel.value,
                "queue": queue_name,
            },
        )
        return SubmitReceipt(message_id=envelope.id, trace_id=trace_id)

    async def _publish_with_retry(self, queue_name: str, envelope: MessageEnvelope) -> None:
        attempt = 0
        last_error: str | None = None
        while True:
            attempt += 1
            try:
                if await self._broker.publish(queue_name, envelope):
                    return
                last_error = "Broker buffer full"
            except BrokerError as e:
                last_error = str(e)

            if not self._retry.should_retry(attempt):
                logger.error(
                    "Failed to publish message",
                    extra={
                        "trace_id": envelope.trace_id,
                        "message_id": envelope.id,
                        "queue": queue_name,
                        "attempts": attempt,
                        "error": last_error,
                    },
                )
                raise PublishExhaustedError(envelope.id, attempt, last_error)

            logger.warning(
                "Publish attempt %d failed, retrying",
                attempt,
                extra={
                    "trace_id": envelope.trace_id,
                    "message_id": envelope.id,
                    "queue": queue_name,
                    "error": last_error,
                },
            )
            await self._retry.wait_before_retry(attempt)
