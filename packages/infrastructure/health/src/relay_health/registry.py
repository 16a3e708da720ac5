"""Health registry — aggregates component checks and worker heartbeats."""

from __future__ import annotations

import asyncio
import datetime
import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("relay.health")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class HealthRegistry:
    """Named health checks plus heartbeats from background workers.

    A check is any callable returning a bool (or an awaitable of one). A check
    that raises or exceeds ``check_timeout`` counts as down. A worker counts as
    down once its last heartbeat is older than ``heartbeat_timeout_seconds``.
    """

    def __init__(
        self,
        *,
        service_name: str = "notify-relay",
        heartbeat_timeout_seconds: float = 60.0,
        check_timeout: float = 2.0,
    ) -> None:
        self._service_name = service_name
        self._checks: dict[str, Callable[[], Any]] = {}
        self._heartbeats: dict[str, datetime.datetime] = {}
        self._heartbeat_timeout = heartbeat_timeout_seconds
        self._check_timeout = check_timeout

    def register(self, name: str, check: Callable[[], Any]) -> None:
        """Register a health check."""
        self._checks[name] = check

    def heartbeat(self, worker_name: str) -> None:
        """Record worker heartbeat time."""
        self._heartbeats[worker_name] = _utcnow()

    def forget(self, worker_name: str) -> None:
        """Stop tracking a worker (after a clean stop)."""
        self._heartbeats.pop(worker_name, None)

    def _check_heartbeats(self) -> dict[str, str]:
        now = _utcnow()
        return {
            name: "up" if (now - ts).total_seconds() < self._heartbeat_timeout else "down"
            for name, ts in self._heartbeats.items()
        }

    async def _run(self, name: str, check: Callable[[], Any]) -> bool:
        try:
            value = check()
            if inspect.isawaitable(value):
                value = await asyncio.wait_for(value, timeout=self._check_timeout)
            return bool(value)
        except asyncio.TimeoutError:
            logger.warning("Health check timed out", extra={"check": name})
            return False
        except Exception as e:  # noqa: BLE001
            logger.warning("Health check raised", extra={"check": name, "error": str(e)})
            return False

    async def check_all(self) -> dict[str, str]:
        """Run all checks and return status map."""
        names = list(self._checks)
        outcomes = await asyncio.gather(*(self._run(n, self._checks[n]) for n in names))
        result = {n: "up" if ok else "down" for n, ok in zip(names, outcomes)}
        result.update(self._check_heartbeats())
        return result

    async def status(self) -> dict[str, Any]:
        """Return full health status report."""
        components = await self.check_all()
        healthy = all(v == "up" for v in components.values())
        return {
            "status": "healthy" if healthy else "unhealthy",
            "service": self._service_name,
            "components": components,
            "timestamp": _utcnow().isoformat(),
            "heartbeats": {name: ts.isoformat() for name, ts in self._heartbeats.items()},
        }
