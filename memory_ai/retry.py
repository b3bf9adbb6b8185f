"""
Retry with exponential backoff.

Whether a failure is retried is decided by ``should_retry`` (default: the
error's ``recoverable`` flag, see ``memory_ai.errors``). Backoff waits use
``asyncio.sleep`` so other tasks keep running while a caller waits.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from memory_ai.errors import error_handler

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_delay: float = 10.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException], object]] = None,
) -> T:
    """
    Await ``fn()`` until it succeeds or the attempt budget is spent.

    - Non-retryable errors propagate immediately (one call).
    - Retryable errors wait ``delay`` seconds, call ``on_retry(attempt, error)``
      and try again; the delay grows by ``backoff_multiplier`` up to ``max_delay``.
    - After ``max_attempts`` failures the last error propagates.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    retryable = should_retry or error_handler.is_recoverable
    current_delay = delay

    for attempt in range(1, max_attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if attempt == max_attempts or not retryable(e):
                raise

            logger.warning(
                "Attempt %d/%d failed, retrying in %.3fs: %s",
                attempt,
                max_attempts,
                current_delay,
                e,
                extra={"attempt": attempt},
            )
            await asyncio.sleep(current_delay)
            if on_retry is not None:
                result = on_retry(attempt, e)
                if inspect.isawaitable(result):
                    await result
            current_delay = min(current_delay * backoff_multiplier, max_delay)

    raise AssertionError("unreachable")
