"""notify-relay command line.

Usage:
    notify-relay serve [--host HOST] [--port PORT] [--no-worker]
    notify-relay worker

Configuration comes from ``RELAY_*`` environment variables (see
``RelaySettings``). The process exits with status 1 only when the broker is
unreachable at startup.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from typing import TYPE_CHECKING

from relay_core.primitives.exceptions import BrokerConnectionLostError
from relay_observability import configure_logging

from .app import NotificationRelay
from .settings import RelaySettings

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("relay.cli")

EXIT_OK = 0
EXIT_BROKER_UNAVAILABLE = 1


async def _start(relay: NotificationRelay) -> bool:
    try:
        await relay.start()
    except BrokerConnectionLostError as e:
        logger.critical("Failed to connect to the broker at startup", extra={"error": str(e)})
        return False
    return True


async def run_worker(
    settings: RelaySettings,
    *,
    relay: NotificationRelay | None = None,
    stop_event: asyncio.Event | None = None,
) -> int:
    """Consume until SIGINT/SIGTERM (or *stop_event*), then shut down cleanly."""
    relay = relay or NotificationRelay(settings)
    if not await _start(relay):
        return EXIT_BROKER_UNAVAILABLE

    stop = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)

    logger.info("Worker running; waiting for shutdown signal")
    try:
        await stop.wait()
    finally:
        logger.info("Shutdown signal received")
        for sig in installed:
            loop.remove_signal_handler(sig)
        await relay.stop()
    return EXIT_OK


async def serve(
    settings: RelaySettings,
    *,
    consume: bool = True,
    relay: NotificationRelay | None = None,
) -> int:
    """Run the HTTP API (and, unless disabled, the delivery worker) under uvicorn."""
    import uvicorn

    from .contrib.fastapi import create_app

    relay = relay or NotificationRelay(settings, consume=consume)
    if not await _start(relay):
        return EXIT_BROKER_UNAVAILABLE

    app = create_app(relay, manage_lifecycle=False)
    config = uvicorn.Config(
        app,
        host=settings.http_host,
        port=settings.http_port,
        log_level=settings.log_level.lower(),
        access_log=True,
        loop="asyncio",
        log_config=None,
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    finally:
        await relay.stop()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notify-relay",
        description="Reliable notification relay (email, SMS, WhatsApp)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve_cmd = sub.add_parser("serve", help="Run the HTTP API and the delivery worker")
    serve_cmd.add_argument("--host", help="Bind address (default: RELAY_HTTP_HOST)")
    serve_cmd.add_argument("--port", type=int, help="Bind port (default: RELAY_HTTP_PORT)")
    serve_cmd.add_argument(
        "--no-worker", action="store_true", help="Accept requests without consuming queues"
    )

    sub.add_parser("worker", help="Run the delivery worker only")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = RelaySettings()
    if args.command == "serve":
        overrides = (("http_host", args.host), ("http_port", args.port))
        updates = {k: v for k, v in overrides if v is not None}
        if updates:
            settings = settings.model_copy(update=updates)

    sink = configure_logging(
        settings.log_level,
        service_name=settings.service_name,
        json_output=settings.json_logs,
        log_sink_url=settings.log_sink_url,
        log_sink_timeout=settings.log_sink_timeout,
    )
    try:
        if args.command == "serve":
            return asyncio.run(serve(settings, consume=not args.no_worker))
        return asyncio.run(run_worker(settings))
    finally:
        if sink is not None:
            sink.stop()


if __name__ == "__main__":
    sys.exit(main())
