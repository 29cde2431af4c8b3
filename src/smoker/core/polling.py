"""Timeout-bounded polling shared by every "wait for" operation.

A wait is a cooperative loop: poll, evaluate the match, sleep, repeat until
something matches or the deadline passes. Timing out is a normal outcome and
yields None; errors raised while polling abort the loop immediately.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default pause between two polls, in seconds
DEFAULT_POLL_INTERVAL_SECONDS = 2.0


async def wait_for(
    poll: Callable[[], Union[T, Awaitable[T]]],
    is_match: Callable[[T], Any],
    timeout_seconds: float,
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Optional[Any]:
    """Poll until a result matches or the timeout expires.

    Args:
        poll: Callable producing one batch/result per call; may be a coroutine
            function
        is_match: Evaluates a poll result. ``True`` selects the whole result,
            any other truthy value (e.g. a filtered subset) is returned as the
            match, falsy means no match yet
        timeout_seconds: Maximum time to keep polling
        interval_seconds: Pause between two polls
        clock: Monotonic time source
        sleep: Coroutine used for the pause between polls

    Returns:
        The match, or None when the deadline passes without one

    Raises:
        Exception: Whatever ``poll`` or ``is_match`` raises, unchanged
    """
    deadline = clock() + timeout_seconds
    attempts = 0

    while clock() < deadline:
        result = poll()
        if inspect.isawaitable(result):
            result = await result
        attempts += 1

        match = is_match(result)
        if match is True:
            return result
        if match:
            return match

        await sleep(interval_seconds)

    logger.debug(f"No match after {attempts} polls within {timeout_seconds}s")
    return None
