"""Simulated channel senders.

Stand-ins for real SMTP/SMS/WhatsApp providers: each call sleeps a random
latency and fails with a channel-specific reason at a configured rate.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

from relay_core.channel import Channel

from ..delivery import DeliveryResult
from ..ports.sender import IChannelSender

if TYPE_CHECKING:
    from relay_messaging.envelope import MessageEnvelope

logger = logging.getLogger("relay.senders")

_sleep = asyncio.sleep

# channel -> (failure_rate, min_delay_ms, max_delay_ms, error_message)
SIMULATION_PROFILES: dict[Channel, tuple[float, int, int, str]] = {
    Channel.EMAIL: (0.05, 500, 1500, "SMTP server temporarily unavailable"),
    Channel.SMS: (0.02, 300, 1000, "Invalid phone number or network error"),
    Channel.WHATSAPP: (
        0.03,
        400,
        1200,
        "User not registered on WhatsApp or service unavailable",
    ),
}


class SimulatedChannelSender(IChannelSender):
    """
    Sender that fakes provider latency and intermittent failures.

    Pass a seeded ``random.Random`` as *rng* for reproducible runs.
    """

    def __init__(
        self,
        channel: Channel,
        *,
        failure_rate: float,
        min_delay_ms: int,
        max_delay_ms: int,
        error_message: str,
        rng: random.Random | None = None,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        if min_delay_ms < 0 or max_delay_ms < min_delay_ms:
            raise ValueError("delay bounds must satisfy 0 <= min_delay_ms <= max_delay_ms")
        self.channel = channel
        self.failure_rate = failure_rate
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max_delay_ms
        self.error_message = error_message
        self._rng = rng or random.Random()

    @classmethod
    def for_channel(
        cls, channel: Channel, *, rng: random.Random | None = None
    ) -> SimulatedChannelSender:
        """Build a sender with the default profile for *channel*."""
        failure_rate, min_delay, max_delay, error = SIMULATION_PROFILES[channel]
        return cls(
            channel,
            failure_rate=failure_rate,
            min_delay_ms=min_delay,
            max_delay_ms=max_delay,
            error_message=error,
            rng=rng,
        )

    async def send(self, envelope: MessageEnvelope) -> DeliveryResult:
        delay_ms = self._rng.uniform(self.min_delay_ms, self.max_delay_ms)
        await _sleep(delay_ms / 1000.0)

        if self._rng.random() < self.failure_rate:
            logger.warning(
                "Simulated %s delivery failed",
                self.channel.value,
                extra={
                    "trace_id": envelope.trace_id,
                    "message_id": envelope.id,
                    "recipient": envelope.recipient,
                    "error": self.error_message,
                },
            )
            return DeliveryResult.failed(self.channel, envelope.id, self.error_message)

        logger.info(
            "Simulated %s delivered",
            self.channel.value,
            extra={
                "trace_id": envelope.trace_id,
                "message_id": envelope.id,
                "recipient": envelope.recipient,
                "delay_ms": round(delay_ms),
            },
        )
        return DeliveryResult.ok(self.channel, envelope.id)


def default_simulated_senders(
    rng: random.Random | None = None,
) -> list[SimulatedChannelSender]:
    """One simulated sender per channel, using the default profiles."""
    return [SimulatedChannelSender.for_channel(channel, rng=rng) for channel in Channel]
