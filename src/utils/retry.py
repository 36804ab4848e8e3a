"""Bounded retries with backoff for async operations.

Usage:
    image = await with_retry(
        lambda: client.render_image(prompt),
        max_attempts=3,
        backoff=ExponentialBackoff(base=1.0, cap=5.0),
    )

    @retry_async(max_attempts=3)
    async def call_api():
        ...
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from utils.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ExponentialBackoff:
    """Delay ``min(base * 2^(attempt-1), cap)`` seconds after failed attempt N."""

    base: float = 1.0
    cap: float = 5.0

    def __call__(self, attempt: int) -> float:
        return min(self.base * (2 ** (attempt - 1)), self.cap)


@dataclass(frozen=True)
class LinearBackoff:
    """Delay ``step * attempt`` seconds after failed attempt N."""

    step: float = 1.0

    def __call__(self, attempt: int) -> float:
        return self.step * attempt


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Optional[Callable[[int], float]] = None,
    retry_on: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` up to ``max_attempts`` times.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Total attempts, including the first
        backoff: Maps the failed attempt number (1-based) to a delay in seconds
        retry_on: Errors for which this returns False are raised immediately
        sleep: Awaitable sleep, injectable for tests
        label: Name used in log messages

    Returns:
        The first successful result

    Raises:
        The last error raised by ``operation`` once attempts are exhausted,
        or the first non-retryable error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    backoff = backoff or ExponentialBackoff()

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not retry_on(e):
                logger.warning(f"{label} failed with non-retryable error: {e}")
                raise
            if attempt == max_attempts:
                logger.error(f"{label}: all {max_attempts} attempts failed. Last error: {e}")
                raise
            delay = backoff(attempt)
            logger.warning(
                f"{label}: attempt {attempt}/{max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await sleep(delay)

    raise RuntimeError("unreachable")


def retry_async(
    max_attempts: int = 3,
    backoff: Optional[Callable[[int], float]] = None,
    retry_on: Callable[[BaseException], bool] = is_retryable,
) -> Callable:
    """Decorator form of :func:`with_retry` for async functions."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                backoff=backoff,
                retry_on=retry_on,
                label=func.__qualname__,
            )

        return wrapper

    return decorator
