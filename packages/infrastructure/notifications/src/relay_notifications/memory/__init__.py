from __future__ import annotations

from .fake import FakeChannelSender, fake_senders

__all__ = ["FakeChannelSender", "fake_senders"]
