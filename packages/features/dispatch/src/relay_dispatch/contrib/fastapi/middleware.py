"""Trace ID middleware.

Every request gets a trace ID: the caller's ``x-trace-id`` header, or a new
one. It is bound to the context for the handler and echoed in the response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from starlette.middleware.base import BaseHTTPMiddleware

from relay_core.correlation import TRACE_ID_HEADER, generate_trace_id, set_trace_id

if TYPE_CHECKING:
    from fastapi import Request
    from starlette.responses import Response


class TraceIdMiddleware(BaseHTTPMiddleware):
    """Binds a trace ID to the request context and the response header."""

    def __init__(self, app: Any, *, header_name: str = TRACE_ID_HEADER) -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        trace_id = request.headers.get(self.header_name) or generate_trace_id()
        request.state.trace_id = trace_id
        set_trace_id(trace_id)
        try:
            response: Response = await call_next(request)
        finally:
            set_trace_id(None)
        response.headers[self.header_name] = trace_id
        return response


def request_trace_id(request: Request) -> str:
    """The trace ID bound by :class:`TraceIdMiddleware` (or a fresh one)."""
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id is None:
        trace_id = generate_trace_id()
        request.state.trace_id = trace_id
    return trace_id
