"""Tests for the Channel enum."""

from __future__ import annotations

import pytest

from relay_core.channel import Channel
from relay_core.primitives.exceptions import ValidationError


def test_default_queue_names() -> None:
    assert Channel.EMAIL.default_queue == "email_queue"
    assert Channel.SMS.default_queue == "sms_queue"
    assert Channel.WHATSAPP.default_queue == "whatsapp_queue"


def test_parse_accepts_member_and_string() -> None:
    assert Channel.parse(Channel.SMS) is Channel.SMS
    assert Channel.parse("whatsapp") is Channel.WHATSAPP
    assert Channel.parse(" EMAIL ") is Channel.EMAIL


def test_parse_unknown_raises_validation_error() -> None:
    with pytest.raises(ValidationError) as exc_info:
        Channel.parse("pigeon")
    assert "channel" in exc_info.value.errors
    assert "pigeon" in exc_info.value.errors["channel"][0]


def test_channel_compares_equal_to_its_value() -> None:
    assert Channel.EMAIL == "email"
