"""DeadLetterHandler — the integration point for messages that exhaust retries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from .envelope import MessageEnvelope

logger = logging.getLogger("relay.dead_letter")


class DeadLetterHandler:
    """Receives envelopes the worker gives up on.

    No dead-letter storage is implemented: by default the envelope is logged
    with full context so it can be inspected by hand. Pass ``on_dead_letter``
    to forward it somewhere durable (a DLQ, a table, an alert).
    """

    def __init__(
        self,
        on_dead_letter: (
            Callable[[MessageEnvelope, str], Coroutine[Any, Any, None]] | None
        ) = None,
    ) -> None:
        """Configure dead-letter handling.

        Args:
            on_dead_letter: Async callable (envelope, reason) -> None.
        """
        self._on_dead_letter = on_dead_letter

    async def route(self, envelope: MessageEnvelope, reason: str) -> None:
        """Hand *envelope* to the dead-letter path.

        Failures of the callback are logged, never raised: the worker still has
        to settle the delivery.
        """
        logger.error(
            "Message delivery failed after max retries",
            extra={
                "trace_id": envelope.trace_id,
                "message_id": envelope.id,
                "channel": envelope.channel.value,
                "recipient": envelope.recipient,
                "retry_count": envelope.retry_count,
                "reason": reason,
            },
        )
        if self._on_dead_letter is None:
            return
        try:
            await self._on_dead_letter(envelope, reason)
        except Exception:
            logger.exception(
                "Dead-letter callback failed",
                extra={"trace_id": envelope.trace_id, "message_id": envelope.id},
            )
