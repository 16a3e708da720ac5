"""In-memory channel sender for test assertions."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING

from relay_core.channel import Channel

from ..delivery import DeliveryResult
from ..ports.sender import IChannelSender

if TYPE_CHECKING:
    from collections.abc import Iterable

    from relay_messaging.envelope import MessageEnvelope


class FakeChannelSender(IChannelSender):
    """
    Test double (Fake) that records envelopes and replays scripted outcomes.

    Each entry of *outcomes* is consumed by one ``send``: ``None`` means
    success, a string is a failure reason, an exception instance is raised.
    Once the script runs out every send succeeds.
    """

    def __init__(
        self,
        channel: Channel,
        outcomes: Iterable[str | BaseException | None] = (),
        *,
        delay: float = 0.0,
    ) -> None:
        self.channel = channel
        self._outcomes: deque[str | BaseException | None] = deque(outcomes)
        self._delay = delay
        self.sent: list[MessageEnvelope] = []

    def script(self, *outcomes: str | BaseException | None) -> None:
        """Append outcomes for upcoming sends."""
        self._outcomes.extend(outcomes)

    async def send(self, envelope: MessageEnvelope) -> DeliveryResult:
        if self._delay:
            await asyncio.sleep(self._delay)
        self.sent.append(envelope)
        outcome = self._outcomes.popleft() if self._outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return DeliveryResult.ok(self.channel, envelope.id)
        return DeliveryResult.failed(self.channel, envelope.id, outcome)

    def assert_sent(self, recipient: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [e for e in self.sent if e.recipient == recipient]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {recipient} via {self.channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear all sent messages."""
        self.sent.clear()


def fake_senders(**outcomes: Iterable[str | BaseException | None]) -> dict[Channel, FakeChannelSender]:
    """One :class:`FakeChannelSender` per channel; keyword names are channel values."""
    return {c: FakeChannelSender(c, outcomes.get(c.value, ())) for c in Channel}
