"""ChannelDispatcher — routes an envelope to the sender for its channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from relay_core.channel import Channel
from relay_core.primitives.exceptions import UnsupportedChannelError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from relay_messaging.envelope import MessageEnvelope

    from .delivery import DeliveryResult
    from .ports.sender import IChannelSender

logger = logging.getLogger("relay.dispatcher")


class ChannelDispatcher:
    """
    Holds exactly one :class:`IChannelSender` per channel.

    With ``require_all=True`` (the default) construction fails unless every
    ``Channel`` member has a sender, so a new channel cannot be added without
    wiring its delivery.
    """

    def __init__(
        self,
        senders: Iterable[IChannelSender],
        *,
        require_all: bool = True,
    ) -> None:
        self._senders: dict[Channel, IChannelSender] = {}
        for sender in senders:
            if sender.channel in self._senders:
                raise ValueError(f"Duplicate sender for channel {sender.channel.value!r}")
            self._senders[sender.channel] = sender

        if require_all:
            missing = [c for c in Channel if c not in self._senders]
            if missing:
                raise UnsupportedChannelError(", ".join(c.value for c in missing))

    @property
    def channels(self) -> list[Channel]:
        return list(self._senders)

    def sender_for(self, channel: Channel) -> IChannelSender:
        try:
            return self._senders[channel]
        except KeyError:
            raise UnsupportedChannelError(getattr(channel, "value", str(channel))) from None

    async def dispatch(self, envelope: MessageEnvelope) -> DeliveryResult:
        """Deliver *envelope* through its channel's sender."""
        sender = self.sender_for(envelope.channel)
        logger.debug(
            "Dispatching message",
            extra={
                "trace_id": envelope.trace_id,
                "message_id": envelope.id,
                "channel": envelope.channel.value,
            },
        )
        return await sender.send(envelope)
