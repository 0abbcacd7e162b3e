"""DAO Notifier — Resilience Utilities.

Retry decorator for outbound calls that may fail transiently.

With ``base_delay=0`` retries are immediate, which is what the
notification fan-out uses: a fixed attempt budget and no backoff.

Usage:
    @retry_async(max_attempts=3, base_delay=0)
    async def flaky_function():
        ...

    send = retry_async(max_attempts=3)(client.send)
    await send(chat_id, thread_id, text)
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, Optional, Sequence, Type

from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 0.0,
    max_delay: float = 60.0,
    exceptions: Sequence[Type[BaseException]] = (Exception,),
) -> Callable:
    """Decorator for async functions that should be retried on failure.

    Delay between attempts is ``base_delay * 2^(attempt-1)`` capped at
    ``max_delay``. A ``base_delay`` of zero retries immediately without
    yielding to the event loop.

    Args:
        max_attempts: Maximum number of attempts (including first).
        base_delay: Base delay in seconds (doubles each retry).
        max_delay: Maximum delay between retries.
        exceptions: Exception types to retry on. Anything else
            propagates on the first occurrence.

    Returns:
        Decorator function.

    Raises:
        ValueError: If max_attempts is less than 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    def decorator(func: Callable) -> Callable:
        name = getattr(func, "__qualname__", repr(func))

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_error: Optional[BaseException] = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except tuple(exceptions) as e:
                    last_error = e
                    if attempt == max_attempts:
                        logger.warning(
                            "Retry exhausted for %s after %d attempts: %s",
                            name, max_attempts, e,
                        )
                        raise
                    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                    logger.debug(
                        "Retry %d/%d for %s in %.1fs: %s",
                        attempt, max_attempts, name, delay, e,
                    )
                    if delay > 0:
                        await asyncio.sleep(delay)
            raise last_error  # type: ignore[misc]
        return wrapper
    return decorator
