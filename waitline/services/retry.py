import asyncio
from typing import Awaitable, Callable, TypeVar

from waitline.services.errors import APIError, NetworkError

T = TypeVar("T")


def is_transient(exc: Exception) -> bool:
    """Network failures and 429/5xx responses are worth another try."""
    if isinstance(exc, NetworkError):
        return True
    if isinstance(exc, APIError):
        return exc.is_transient
    return False


async def with_exponential_backoff(
    operation: Callable[[], Awaitable[T]],
    retries: int = 2,
    base_delay_seconds: float = 0.5,
    on_retry: Callable[[int, float, Exception], None] | None = None,
    should_retry: Callable[[Exception], bool] = is_transient,
) -> T:
    """
    Run ``operation`` once plus up to ``retries`` more times.

    Non-retryable errors and the final failure propagate unchanged.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not should_retry(exc) or attempt >= retries:
                raise
            attempt += 1
            delay = base_delay_seconds * (2 ** (attempt - 1))
            if on_retry:
                on_retry(attempt, delay, exc)
            await asyncio.sleep(delay)
