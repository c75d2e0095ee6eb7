import functools
import time

from loguru import logger


def logged_job(func):
    """
    Decorator for scheduled coroutines.

    Logs entry, duration and any exception, then re-raises so the scheduler
    records the failure too.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        name = func.__name__
        logger.info(f"Entering {name}")
        started = time.monotonic()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"{name} failed: {type(e).__name__}: {e}")
            raise
        logger.info(f"{name} finished in {time.monotonic() - started:.1f}s")
        return result

    return wrapper
