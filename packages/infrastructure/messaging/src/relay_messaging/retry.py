"""RetryPolicy — bounded attempts separated by a fixed delay."""

from __future__ import annotations

import asyncio


class RetryPolicy:
    """Fixed-delay retry: no exponential growth, no jitter.

    Shared by the router (publish attempts) and the delivery worker
    (redelivery spacing).
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        delay: float = 5.0,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of attempts (including the first).
            delay: Seconds to wait between two attempts.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.max_attempts = max_attempts
        self.delay = delay

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed (attempt is 1-based)."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        """Return delay in seconds after the given 1-based attempt."""
        if attempt < 1:
            return 0.0
        return float(self.delay)

    async def wait_before_retry(self, attempt: int) -> None:
        """Async sleep for the delay of the given attempt."""
        d = self.delay_for_attempt(attempt)
        if d > 0:
            await _sleep(d)


async def _sleep(seconds: float) -> None:
    """Async sleep (overridable for tests)."""
    await asyncio.sleep(seconds)
