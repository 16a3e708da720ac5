"""Test configuration for relay-notifications."""

import pytest

from relay_core.channel import Channel
from relay_messaging.envelope import MessageEnvelope

@pytest.fixture
def envelope():
    """Sample SMS envelope."""
    return MessageEnvelope.create(
        Channel.SMS, "+15550001111", "Your code is 1234", trace_id="trace-n"
    )
