"""Bounded exponential backoff for rate-limited calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
) -> T:
    """Run ``operation``, retrying only when it is rate limited.

    Each retry waits ``initial_delay`` seconds, doubling after every
    attempt. There is no jitter and no cap on the total wait. With
    ``max_retries=0`` the operation runs exactly once.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_retries: Retries allowed after the first attempt
        initial_delay: Wait before the first retry (seconds)

    Returns:
        The operation's result

    Raises:
        RateLimitError: When still rate limited after all retries
        Exception: Any other error from the operation, unchanged
    """
    retries_left = max_retries
    delay = initial_delay

    while True:
        try:
            return await operation()
        except RateLimitError:
            if retries_left <= 0:
                raise
            logger.warning(
                f"Rate limit hit, retrying in {delay:.2f}s "
                f"({retries_left} retries left)"
            )
            await asyncio.sleep(delay)
            retries_left -= 1
            delay *= 2
