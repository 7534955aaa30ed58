"""
QuotaGate - process-wide throttle for embedding calls.

The embedding API allows roughly five calls a minute. Every embedding call
in the process goes through one QuotaGate, which grants at most one call per
``interval`` seconds.

Fairness comes from ``asyncio.Lock``: waiters acquire it in arrival order,
and the lock is held while the holder sleeps off the remaining interval, so
a later arrival can never slip in ahead of an earlier one.

Cancellation of a waiting ``acquire()`` propagates as
``asyncio.CancelledError``; the caller never proceeds without a grant.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15.0


class QuotaGate:
    """
    Serializes and spaces out rate-limited calls.

    Args:
        interval: Minimum seconds between two grants
        clock: Monotonic clock in seconds (injectable for tests)
        sleep: Coroutine used to wait (injectable for tests)
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self._interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        # No grant yet: the first caller passes immediately.
        self._last_grant = float("-inf")
        self._grants = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def grants(self) -> int:
        """Number of grants issued so far."""
        return self._grants

    @property
    def last_grant(self) -> float:
        return self._last_grant

    async def acquire(self) -> None:
        """Wait until a call is allowed, then record the grant."""
        async with self._lock:
            wait = self._last_grant + self._interval - self._clock()
            if wait > 0:
                logger.debug(f"Quota gate: waiting {wait:.2f}s for next grant")
                try:
                    await self._sleep(wait)
                except asyncio.CancelledError:
                    logger.warning("Quota gate wait cancelled; aborting the pending call")
                    raise
            self._last_grant = self._clock()
            self._grants += 1

    async def __aenter__(self) -> "QuotaGate":
        await self.acquire()
        return self

    async def __aexit__(self, *args: object) -> None:
        return None
