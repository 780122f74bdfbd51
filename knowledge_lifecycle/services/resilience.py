"""
Resilience patterns for object store calls.

Provides retry with exponential backoff and timeouts for the blocking
storage provider calls the lifecycle engine makes. Store calls can hang, so
every call goes through a timeout; a timeout surfaces as StoreTimeoutError
and is handled like any other storage failure.
"""

import asyncio
import logging
from collections.abc import Callable
from functools import partial, wraps
from typing import Any, TypeVar

from knowledge_lifecycle.exceptions import StorageError, StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# -----------------------------------------------------------------------------
# Retry Decorator
# -----------------------------------------------------------------------------


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_exceptions: tuple[type[Exception], ...] = (StorageError,),
) -> Callable:
    """
    Decorator for async functions with exponential backoff retry.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        retry_exceptions: Tuple of exception types to retry on

    Usage:
        @with_retry(max_attempts=3)
        async def upload_bundle(key: str, content: bytes) -> StorageMetadata:
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_exceptions as e:
                    if attempt >= max_attempts:
                        logger.error(f"{func.__name__} failed after {max_attempts} attempts: {e}")
                        raise

                    wait_time = min(min_wait * (2 ** (attempt - 1)), max_wait)
                    logger.warning(f"{func.__name__} attempt {attempt} failed: {e}. Retrying in {wait_time:.1f}s...")
                    await asyncio.sleep(wait_time)

            raise RuntimeError(f"{func.__name__} called with max_attempts={max_attempts}")

        return wrapper

    return decorator


# -----------------------------------------------------------------------------
# Timeout Helpers
# -----------------------------------------------------------------------------


async def with_timeout(coro, timeout_seconds: float, error_message: str = "Operation timed out"):
    """
    Execute a coroutine with a timeout.

    Args:
        coro: The coroutine to execute
        timeout_seconds: Maximum time to wait
        error_message: Error message if timeout occurs

    Raises:
        StoreTimeoutError: If the operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise StoreTimeoutError(f"{error_message} (timeout: {timeout_seconds}s)")


async def run_store_call(
    func: Callable[..., T],
    *args: Any,
    timeout_seconds: float,
    description: str | None = None,
    **kwargs: Any,
) -> T:
    """
    Run a blocking storage provider call in the default executor with a timeout.

    The worker thread cannot be interrupted; on timeout its result is dropped
    and the caller moves on.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, partial(func, *args, **kwargs))
    return await with_timeout(
        future,
        timeout_seconds,
        error_message=f"Store call timed out: {description or getattr(func, '__name__', 'call')}",
    )
