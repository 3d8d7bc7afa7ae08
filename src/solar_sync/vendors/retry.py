"""
Retry Policy

Retries are described by an immutable RetryPolicy value and executed by the
stateless ``with_retry`` wrapper, so concurrent calls on one adapter never
share retry counters.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry schedule with linearly increasing backoff.

    Attempt ``n`` (1-based) that fails is followed by a sleep of
    ``backoff_seconds * n`` before the next attempt.
    """

    max_attempts: int = 3
    backoff_seconds: float = 1.0

    def delay_after(self, attempt: int) -> float:
        return self.backoff_seconds * attempt

    @classmethod
    def no_retry(cls) -> 'RetryPolicy':
        return cls(max_attempts=1, backoff_seconds=0.0)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...],
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> T:
    """
    Run ``operation`` under ``policy``.

    Only exceptions in ``retry_on`` are retried; anything else propagates
    immediately. When attempts run out the last error propagates.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= attempts:
                raise
            delay = policy.delay_after(attempt)
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}), retrying in {delay:.1f}s: {e}")
            await sleep(delay)
    raise RuntimeError("unreachable")
