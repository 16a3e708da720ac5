"""Delivery channels understood by the relay."""

from __future__ import annotations

from enum import Enum

from .primitives.exceptions import ValidationError


class Channel(str, Enum):
    """Closed set of delivery mediums.

    Every component that branches on the channel must handle all members;
    ``ChannelDispatcher`` checks this at construction time.
    """

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"

    @property
    def default_queue(self) -> str:
        """Queue name used when no override is configured."""
        return f"{self.value}_queue"

    @classmethod
    def parse(cls, value: str | Channel) -> Channel:
        """Return the member for *value* or raise ``ValidationError``."""
        if isinstance(value, Channel):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            allowed = ", ".join(c.value for c in cls)
            raise ValidationError(
                {"channel": [f"Unsupported channel {value!r}; expected one of {allowed}"]}
            ) from e
