"""Asyncio helpers for fire-and-forget pipeline work.

Analysis runs, cue producers and speech workers are started without anyone
awaiting them directly, so their failures are reported through the log as
soon as the task finishes.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Coroutine, MutableSet, Optional

from .logging_utils import LoggerLike, ensure_structured_logger


def add_task_exception_logger(
    task: asyncio.Task[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """Log ``task``'s exception (if any) once it completes."""
    task_logger = ensure_structured_logger(logger, fallback_name="tasks")
    label = context or task.get_name()

    def _report(finished: asyncio.Task[Any]) -> None:
        if finished.cancelled() or finished.exception() is None:
            return
        error = finished.exception()
        task_logger.error("Task %s failed: %s", label, error, exc_info=error)

    task.add_done_callback(_report)
    return task


def create_logged_task(
    coro: Coroutine[Any, Any, Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    pending: Optional[MutableSet[asyncio.Task[Any]]] = None,
) -> asyncio.Task[Any]:
    """Start ``coro`` on the running loop with failure logging.

    ``context`` names the task; ``pending`` keeps a strong reference until
    the task is done.
    """
    task = asyncio.get_running_loop().create_task(coro, name=context)
    add_task_exception_logger(task, logger=logger, context=context)
    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)
    return task


async def cancel_and_wait(task: Optional[asyncio.Task[Any]]) -> None:
    """Cancel ``task`` and wait for it to unwind."""
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


__all__ = ["add_task_exception_logger", "cancel_and_wait", "create_logged_task"]
