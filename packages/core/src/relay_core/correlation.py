"""Trace ID management — one correlation identifier per notification."""

from __future__ import annotations

import uuid
from contextvars import ContextVar

TRACE_ID_HEADER = "x-trace-id"

# ContextVar for trace tracking across async boundaries.
_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)


def get_trace_id() -> str | None:
    """Get current trace ID from context."""
    return _trace_id.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set trace ID in context."""
    _trace_id.set(trace_id)


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return str(uuid.uuid4())


def ensure_trace_id(trace_id: str | None = None) -> str:
    """Return *trace_id*, the context's trace ID, or a new one (in that order).

    The resolved value is bound to the current context.
    """
    resolved = trace_id or get_trace_id() or generate_trace_id()
    set_trace_id(resolved)
    return resolved
