"""
Async helpers for racing concurrent attempts.

Losing tasks are never cancelled: they keep running after the race is
decided and their results are dropped. `keep_alive` holds a strong reference
to each one until it finishes so the event loop cannot garbage-collect it
mid-flight.
"""

import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional, Set, TypeVar

from shqip_guessr.errors import TimeoutExhaustion

logger = logging.getLogger(__name__)

T = TypeVar('T')

_BACKGROUND_TASKS: Set[asyncio.Task] = set()


def keep_alive(task: asyncio.Task) -> asyncio.Task:
    """Hold a reference to `task` until it completes."""
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(_BACKGROUND_TASKS.discard)
    return task


def spawn(coro: Awaitable[T]) -> asyncio.Task:
    """Create a task for `coro` and keep it alive until done."""
    return keep_alive(asyncio.ensure_future(coro))


def pending_background_tasks() -> int:
    return len(_BACKGROUND_TASKS)


async def first_success(
    tasks: Iterable[asyncio.Task],
    timeout: Optional[float] = None,
) -> Optional[Any]:
    """Return the first non-None result among `tasks`, in completion order.

    Tasks that raise or return None are skipped. Remaining tasks are left
    running when a winner is found or the deadline passes.

    Args:
        tasks: Tasks to race
        timeout: Overall deadline in seconds (None waits indefinitely)

    Returns:
        The winning result, or None if every task finished without one

    Raises:
        TimeoutExhaustion: If the deadline elapsed before any task succeeded
    """
    pending = {keep_alive(t) for t in tasks}
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout

    while pending:
        remaining = None
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise TimeoutExhaustion(timeout)

        done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
        if not done:
            raise TimeoutExhaustion(timeout)

        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                logger.debug("Attempt failed: %r", exc)
                continue
            result = task.result()
            if result is not None:
                return result

    return None
