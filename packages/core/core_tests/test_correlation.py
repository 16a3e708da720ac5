"""Tests for trace ID context helpers."""

from __future__ import annotations

import asyncio

import pytest

from relay_core.correlation import (
    ensure_trace_id,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
)


def test_set_and_get() -> None:
    set_trace_id("t-1")
    assert get_trace_id() == "t-1"
    set_trace_id(None)
    assert get_trace_id() is None


def test_generate_is_unique() -> None:
    assert generate_trace_id() != generate_trace_id()


def test_ensure_prefers_explicit_value() -> None:
    set_trace_id("ctx")
    assert ensure_trace_id("explicit") == "explicit"
    assert get_trace_id() == "explicit"
    set_trace_id(None)


def test_ensure_falls_back_to_context_then_new() -> None:
    set_trace_id("ctx")
    assert ensure_trace_id() == "ctx"
    set_trace_id(None)
    fresh = ensure_trace_id()
    assert fresh
    assert get_trace_id() == fresh
    set_trace_id(None)


@pytest.mark.asyncio
async def test_tasks_do_not_leak_trace_id() -> None:
    set_trace_id(None)

    async def inner() -> str | None:
        set_trace_id("inside-task")
        return get_trace_id()

    assert await asyncio.create_task(inner()) == "inside-task"
    assert get_trace_id() is None
