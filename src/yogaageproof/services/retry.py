"""Retry with exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from yogaageproof.domain.errors import AppError, normalize_error

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

_logger = logging.getLogger(__name__)


def is_retryable(exc: BaseException) -> bool:
    """Retry rate limits, 5xx responses and network failures only."""
    return isinstance(exc, AppError) and exc.retryable


def backoff_delay(attempt: int, initial_delay: float, max_delay: float) -> float:
    """Return the delay before retry number ``attempt`` (zero-based)."""
    return min(initial_delay * 2**attempt, max_delay)


async def call_with_retry(  # noqa: PLR0913
    func: Callable[[], Awaitable[T]],
    *,
    action: str,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 4.0,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Call an async function, retrying transient failures with backoff."""
    attempt = 0
    while True:
        try:
            return await func()
        except Exception as exc:
            error = normalize_error(exc)
            if attempt >= max_retries or not should_retry(error):
                if error is exc:
                    raise
                raise error from exc
            delay = backoff_delay(attempt, initial_delay, max_delay)
            attempt += 1
            _logger.warning(
                "%s failed (attempt %s/%s, code=%s): %s; retrying in %.1fs",
                action,
                attempt,
                max_retries + 1,
                error.code,
                error,
                delay,
            )
            await sleep(delay)
