"""
Retry policy - bounded attempts with a fixed delay between them.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from guestboard.logging import get_logger
from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.upstream import Counters

logger = get_logger(__name__)


class RetryPolicy:
    """
    Runs an upstream attempt up to `max_attempts` times.

    Only UpstreamError is retried; anything else propagates from the first
    attempt that raises it. `attempt_timeout` bounds each individual attempt,
    and an attempt that runs out of time counts as an UNREACHABLE failure.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay_seconds: float = 2.0,
        attempt_timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be non-negative, got {delay_seconds}")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep

    async def _attempt(self, attempt_fn: Callable[[], Awaitable[Counters]]) -> Counters:
        if self.attempt_timeout is None:
            return await attempt_fn()
        try:
            return await asyncio.wait_for(attempt_fn(), timeout=self.attempt_timeout)
        except asyncio.TimeoutError:
            raise UpstreamError(
                ErrorKind.UNREACHABLE,
                f"Attempt timed out after {self.attempt_timeout}s",
            )

    async def run(self, attempt_fn: Callable[[], Awaitable[Counters]]) -> Counters:
        """
        Call `attempt_fn` until it succeeds or the attempt budget is spent.

        Raises:
            UpstreamError: the last failure, with its kind preserved
        """
        last_error: Optional[UpstreamError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._attempt(attempt_fn)
            except UpstreamError as e:
                last_error = e
                if attempt < self.max_attempts:
                    logger.warning(
                        f"Attempt {attempt}/{self.max_attempts} failed ({e}), "
                        f"retrying in {self.delay_seconds}s"
                    )
                    await self._sleep(self.delay_seconds)

        logger.error(f"All {self.max_attempts} attempts failed, last error: {last_error}")
        raise last_error
