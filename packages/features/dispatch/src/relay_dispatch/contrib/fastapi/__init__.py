"""FastAPI integration for the notification relay."""

from .app import create_app
from .handlers import register_exception_handlers
from .middleware import TraceIdMiddleware, request_trace_id
from .routes import get_relay, router

__all__: list[str] = [
    "TraceIdMiddleware",
    "create_app",
    "get_relay",
    "register_exception_handlers",
    "request_trace_id",
    "router",
]
