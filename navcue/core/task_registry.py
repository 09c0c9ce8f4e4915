"""Lifecycle tracking for the per-frame tasks of a navigation session."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
from typing import Dict, Iterable


async def _cancel_and_await(tasks: Iterable[asyncio.Task]) -> None:
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    for task in pending:
        with contextlib.suppress(asyncio.CancelledError):
            await task


class TaskRegistry:
    """
    Groups of short-lived tasks keyed by purpose (e.g. ``"analysis"``).

    Tasks leave their group on their own once finished, so the registry only
    ever holds work that is still running. Cancelling a group (or everything)
    waits for each task to unwind, which lets ``finally`` blocks such as an
    admission release complete before the caller moves on.
    """

    def __init__(self) -> None:
        self._groups: Dict[str, Dict[str, asyncio.Task]] = {}
        self._keys = itertools.count(1)

    def track(self, group: str, task: asyncio.Task) -> str:
        """Add ``task`` to ``group`` under a generated key; it drops out when done."""
        key = f"{group}-{next(self._keys)}"
        self._groups.setdefault(group, {})[key] = task

        def _forget(done: asyncio.Task) -> None:
            members = self._groups.get(group)
            if members is not None and members.get(key) is done:
                del members[key]

        task.add_done_callback(_forget)
        return key

    async def cancel_group(self, group: str) -> None:
        """Cancel and await all tasks in a group."""
        members = self._groups.pop(group, None)
        if members:
            await _cancel_and_await(members.values())

    async def cancel_all(self) -> None:
        """Cancel and await every tracked task."""
        for group in list(self._groups):
            await self.cancel_group(group)

    def task_count(self) -> int:
        """Number of tracked tasks that have not finished yet."""
        return sum(
            1 for members in self._groups.values() for task in members.values() if not task.done()
        )

    def group_size(self, group: str) -> int:
        return len(self._groups.get(group, {}))


__all__ = ["TaskRegistry"]
