"""Per-agent retry policy: attempt budget and backoff between failures."""

import asyncio
from typing import Awaitable, Callable

from ..core.config import RetryPolicy

SleepFn = Callable[[float], Awaitable[None]]


class RetryHandler:
    """
    Decides whether another attempt is allowed and sleeps between attempts.

    Logic:
    - At least one attempt is always made
    - Backoff is a fixed ``backoff_ms`` after each failed attempt that will be retried
    - No sleep after the final attempt
    """

    def __init__(self, max_attempts: int = 1, backoff_ms: int = 0, sleep: SleepFn = asyncio.sleep):
        self.max_attempts = max(1, max_attempts)
        self.backoff_ms = max(0, backoff_ms)
        self._sleep = sleep

    @classmethod
    def from_policy(cls, policy: RetryPolicy, sleep: SleepFn = asyncio.sleep) -> "RetryHandler":
        return cls(max_attempts=policy.count, backoff_ms=policy.backoff_ms, sleep=sleep)

    def calculate_backoff(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""
        if attempt >= self.max_attempts:
            return 0.0
        return self.backoff_ms / 1000.0

    def should_retry(self, attempt: int) -> bool:
        """True if a failed ``attempt`` (1-based) may be followed by another."""
        return attempt < self.max_attempts

    async def wait_before_retry(self, attempt: int) -> None:
        delay = self.calculate_backoff(attempt)
        if delay > 0:
            await self._sleep(delay)
