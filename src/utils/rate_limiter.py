import asyncio
import functools
import random
from collections.abc import Awaitable, Callable
from typing import Any

from src.utils.logging import get_logger

logger = get_logger(__name__)


class RateLimitedError(Exception):
    """Exception to indicate a call hit a transient upstream failure (429, 5xx, timeout)."""

    def __init__(self, retry_after: float | None = None, message: str = "Rate limited"):
        self.retry_after = retry_after
        super().__init__(message)


def _compute_delay(
    e: RateLimitedError, attempt: int, base_delay: float, max_jitter: float
) -> tuple[float, str]:
    # Server-provided Retry-After wins over exponential backoff
    if e.retry_after:
        return float(e.retry_after), "server says"
    jitter = random.uniform(0, max_jitter) if max_jitter > 0 else 0.0
    return base_delay * (2**attempt) + jitter, "calculated delay"


async def _async_retry_with_rate_limiting(
    func: Callable[..., Awaitable[Any]],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    max_retries: int,
    base_delay: float,
    max_jitter: float,
) -> Any:
    for attempt in range(max_retries):
        try:
            return await func(*args, **kwargs)
        except RateLimitedError as e:
            if attempt >= max_retries - 1:
                logger.error(
                    f"Max retries reached for {func.__name__}",
                    attempts=max_retries,
                    error=str(e),
                )
                raise

            delay, delay_source = _compute_delay(e, attempt, base_delay, max_jitter)
            logger.warning(
                f"Rate limited, {delay_source} wait {delay:.1f} seconds before retry "
                f"{attempt + 1}/{max_retries}",
                function=func.__name__,
                error=str(e),
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"Unexpected exit from retry loop for {func.__name__}")


def rate_limited(max_retries: int = 5, base_delay: float = 2, max_jitter: float = 1.0):
    """
    Decorator adding exponential backoff with jitter to a coroutine.
    The decorated coroutine should raise RateLimitedError for transient failures.

    Args:
        max_retries: Maximum number of attempts, including the first one
        base_delay: Base delay in seconds, doubled on every attempt
        max_jitter: Upper bound in seconds of the random delay added to the backoff

    Usage:
        @rate_limited()
        async def api_call():
            response = await client.get(...)
            if response.status_code == 429:
                raise RateLimitedError(retry_after=response.headers.get("Retry-After"))
            return response
    """

    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            return await _async_retry_with_rate_limiting(
                func, args, kwargs, max_retries, base_delay, max_jitter
            )

        return async_wrapper

    return decorator


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None
