"""
Retry utilities.

Used for per-item binary transfers that may fail transiently.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    give_up_on: tuple[type[Exception], ...] = (),
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Retry with exponential backoff.

    Args:
        func: async function to retry
        max_retries: retries after the first attempt
        initial_delay: first wait (seconds)
        max_delay: wait cap (seconds)
        exponential_base: backoff base
        exceptions: exception types worth retrying
        on_retry: called with (attempt number, error) before each wait
        give_up_on: subclasses of `exceptions` that are permanent (raised at once)
        *args: positional arguments for func
        **kwargs: keyword arguments for func

    Returns:
        func's return value

    Raises:
        the exception from the last attempt
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            result = await func(*args, **kwargs)
            if attempt > 0:
                logger.info(
                    f"Retry succeeded on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        except exceptions as e:
            if isinstance(e, give_up_on):
                logger.error(f"Attempt {attempt + 1} failed permanently: {e}")
                raise

            if attempt == max_retries:
                logger.error(
                    f"All {max_retries + 1} attempts failed. Last error: {e}"
                )
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            if on_retry is not None:
                on_retry(attempt + 1, e)

            await asyncio.sleep(delay)

            delay = min(delay * exponential_base, max_delay)

    # Should never reach here
    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)
