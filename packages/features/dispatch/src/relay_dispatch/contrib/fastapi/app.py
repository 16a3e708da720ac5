"""FastAPI application factory."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from fastapi import FastAPI

from .handlers import register_exception_handlers
from .middleware import TraceIdMiddleware
from .routes import router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ...app import NotificationRelay


def create_app(relay: NotificationRelay, *, manage_lifecycle: bool = True) -> FastAPI:
    """Build the HTTP API around *relay*.

    With ``manage_lifecycle`` the relay is started and stopped with the app.
    """

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await relay.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await relay.stop()

    app = FastAPI(title=relay.settings.service_name, lifespan=lifespan)
    app.state.relay = relay
    app.add_middleware(TraceIdMiddleware)
    register_exception_handlers(app)
    app.include_router(router)
    return app
