"""Channel sender port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from relay_core.channel import Channel
    from relay_messaging.envelope import MessageEnvelope

    from ..delivery import DeliveryResult


@runtime_checkable
class IChannelSender(Protocol):
    """
    Pluggable delivery strategy for one channel.

    Expected delivery failures come back as ``DeliveryResult(success=False)``;
    only programmer/configuration errors may raise.
    """

    channel: Channel

    async def send(self, envelope: MessageEnvelope) -> DeliveryResult:
        """Deliver *envelope* and report the outcome."""
        ...
