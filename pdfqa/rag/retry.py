"""Retry utilities with exponential backoff.

Bounded attempts; only errors the caller classifies as retryable are
retried. Waiting uses an awaitable sleep, so cancelling the calling task
interrupts a pending backoff immediately.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from pdfqa import config

logger = structlog.get_logger()

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised when all attempts have been used up."""

    def __init__(self, message: str, attempts: int, last_exception: Exception):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and backoff parameters."""

    max_attempts: int = 3
    base_delay: float = 1.0   # seconds
    multiplier: float = 2.0

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        return cls(
            max_attempts=config.EMBEDDING_MAX_ATTEMPTS,
            base_delay=config.EMBEDDING_BACKOFF_BASE,
        )

    def backoff(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (0-indexed)."""
        return self.base_delay * (self.multiplier ** attempt)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    is_retryable: Callable[[Exception], bool],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> T:
    """Await ``func()`` with retry and exponential backoff.

    Args:
        func: Zero-argument coroutine factory to execute
        policy: Attempt ceiling and delay parameters
        is_retryable: Classifier deciding whether an error is worth retrying
        sleep: Awaitable sleep primitive (injectable for tests)
        on_retry: Optional callback(attempt, exception, delay) before each wait

    Returns:
        Result of func() if successful

    Raises:
        RetryExhausted: If every attempt failed with a retryable error
        Exception: The original error when it is not retryable
    """
    last_exception: Optional[Exception] = None

    for attempt in range(policy.max_attempts):
        try:
            return await func()
        except Exception as e:
            last_exception = e

            if not is_retryable(e):
                logger.warning(
                    "non_retryable_error",
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            if attempt >= policy.max_attempts - 1:
                break

            delay = policy.backoff(attempt)
            logger.warning(
                "retrying_after_backoff",
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
                delay_seconds=delay,
                error=str(e),
            )

            if on_retry:
                on_retry(attempt, e, delay)

            await sleep(delay)

    raise RetryExhausted(
        f"All {policy.max_attempts} attempts failed. Last error: {last_exception}",
        attempts=policy.max_attempts,
        last_exception=last_exception,
    )
