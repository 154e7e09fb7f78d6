"""Retry decorator with configurable backoff.

Used by the registry client to ride out transient network failures when
talking to the rendezvous service.
"""

import asyncio
import functools
import random
import time
from enum import Enum
from typing import Callable, Optional, Tuple, Type, Union

from src.infrastructure.logging.logging_config import get_logger
from src.shared.resilience.exceptions import MaxRetriesExceededError

logger = get_logger("retry")


class BackoffStrategy(str, Enum):
    """Backoff strategy for retries."""

    CONSTANT = "constant"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_JITTER = "exponential_jitter"


def constant_backoff(
    _attempt: int, base_delay: float = 1.0, _max_delay: float = 60.0
) -> float:
    """Always wait ``base_delay`` seconds."""
    return base_delay


def exponential_backoff(
    attempt: int, base_delay: float = 1.0, max_delay: float = 60.0
) -> float:
    """Double the delay on each attempt (0-indexed), capped at ``max_delay``."""
    return min(base_delay * (2**attempt), max_delay)


def exponential_backoff_with_jitter(
    attempt: int, base_delay: float = 1.0, max_delay: float = 60.0
) -> float:
    """Exponential backoff plus up to 10% random jitter."""
    delay = exponential_backoff(attempt, base_delay, max_delay)
    return delay + random.uniform(0, delay * 0.1)


_BACKOFF_FUNCTIONS = {
    BackoffStrategy.CONSTANT: constant_backoff,
    BackoffStrategy.EXPONENTIAL: exponential_backoff,
    BackoffStrategy.EXPONENTIAL_JITTER: exponential_backoff_with_jitter,
}


def get_backoff_function(
    strategy: BackoffStrategy,
) -> Callable[[int, float, float], float]:
    """Get backoff function for strategy."""
    return _BACKOFF_FUNCTIONS[strategy]


def _give_up(func: Callable, attempts: int, error: Exception) -> MaxRetriesExceededError:
    logger.error(f"{func.__name__} failed after {attempts} attempts: {error}")
    return MaxRetriesExceededError(
        message=f"Max retries ({attempts}) exceeded for {func.__name__}",
        attempts=attempts,
        last_error=error,
        context={"function": func.__name__},
    )


def with_retry(
    max_attempts: int = 3,
    backoff: Union[BackoffStrategy, str] = BackoffStrategy.EXPONENTIAL_JITTER,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
):
    """Decorator to retry a sync or async function with backoff.

    Args:
        max_attempts: Maximum number of attempts (including the first)
        backoff: Backoff strategy to use between attempts
        base_delay: Base delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        retryable_exceptions: Exception types that trigger a retry. Anything
            else propagates immediately. Defaults to common transient errors.

    Raises:
        MaxRetriesExceededError: When every attempt failed with a retryable
            exception. The last failure is chained as ``__cause__``.

    Example:
        @with_retry(max_attempts=3, backoff=BackoffStrategy.EXPONENTIAL)
        async def fetch_peers(client):
            return (await client.get("/")).json()
    """
    if isinstance(backoff, str):
        backoff = BackoffStrategy(backoff)
    backoff_fn = get_backoff_function(backoff)

    if retryable_exceptions is None:
        retryable_exceptions = (
            TimeoutError,
            ConnectionError,
            asyncio.TimeoutError,
        )

    def decorator(func: Callable):
        def _log_retry(attempt: int, delay: float, error: Exception) -> None:
            logger.warning(
                f"{func.__name__} failed on attempt "
                f"{attempt + 1}/{max_attempts}, "
                f"retrying in {delay:.2f}s: {error}"
            )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    result = await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == max_attempts - 1:
                        raise _give_up(func, max_attempts, e) from e
                    delay = backoff_fn(attempt, base_delay, max_delay)
                    _log_retry(attempt, delay, e)
                    await asyncio.sleep(delay)
                else:
                    if attempt > 0:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt + 1}"
                        )
                    return result
            raise MaxRetriesExceededError(
                message=f"Max retries ({max_attempts}) exceeded for {func.__name__}",
                attempts=max_attempts,
            )

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    result = func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == max_attempts - 1:
                        raise _give_up(func, max_attempts, e) from e
                    delay = backoff_fn(attempt, base_delay, max_delay)
                    _log_retry(attempt, delay, e)
                    time.sleep(delay)
                else:
                    if attempt > 0:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt + 1}"
                        )
                    return result
            raise MaxRetriesExceededError(
                message=f"Max retries ({max_attempts}) exceeded for {func.__name__}",
                attempts=max_attempts,
            )

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
