"""Bounded retry with exponential backoff for async operations.

The wait before attempt k+1 is ``base_delay * 2 ** (k - 1)``, so three
attempts with a 1s base wait 1s then 2s. Waits are ``asyncio.sleep``
suspensions, never thread sleeps.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_MULTIPLIER = 2


@dataclass(frozen=True)
class RetryPolicy:
    """Per-call retry configuration.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1).
        base_delay: Seconds to wait before the first retry (> 0).
        on_retry: Observer called with (attempt, error) before each wait.
        retry_if: Predicate deciding whether an error may be retried. When it
            returns False the error is raised at once without waiting out
            the remaining attempts.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    on_retry: Callable[[int, Exception], None] | None = None
    retry_if: Callable[[Exception], bool] | None = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * BACKOFF_MULTIPLIER ** (attempt - 1)


async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Raises the last observed error when every attempt fails.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if policy.retry_if is not None and not policy.retry_if(e):
                logger.info("Attempt %d failed with non-retryable error: %s", attempt, e)
                raise
            if attempt == policy.max_attempts:
                logger.error("All %d attempts failed: %s", policy.max_attempts, e)
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed: %s; retrying in %.1fs",
                attempt, policy.max_attempts, e, delay,
            )
            if policy.on_retry is not None:
                policy.on_retry(attempt, e)
            await sleep(delay)

    # max_attempts >= 1 guarantees the loop returned or raised
    raise RuntimeError("unreachable")
