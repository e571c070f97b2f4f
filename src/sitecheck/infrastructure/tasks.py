"""Timeout-bounded task helpers.

Every external operation in the pipeline races against its own deadline. The
loser is cancelled, not ignored, so cleanup in the operation's finally blocks
runs before the timeout surfaces.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    on_timeout: Callable[[], Exception],
) -> T:
    """Await an operation, cancelling it if it outlives its deadline.

    Args:
        awaitable: Operation to run
        timeout: Deadline in seconds, None for no deadline
        on_timeout: Builds the typed error raised when the deadline passes

    Returns:
        The operation's result

    Raises:
        The exception produced by on_timeout, chained to the TimeoutError
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise on_timeout() from e


async def cancel_and_wait(tasks: Iterable[asyncio.Task]) -> None:
    """Cancel pending tasks and wait until their cleanup has finished."""
    pending = [task for task in tasks if task is not None and not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.debug(f"Cancelled task finished with error: {result}")
