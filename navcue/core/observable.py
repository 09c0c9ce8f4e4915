"""Continuously observable state with a version counter.

``ObservableValue`` holds the latest value of some piece of pipeline state
(camera mode, speech toggle). Readers either poll ``value``/``version``, register
a synchronous listener, or ``await`` the next change. Updates that do not
change the value are ignored, so observers only see real transitions.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Generic, List, Optional, Set, Tuple, TypeVar

from .logging_utils import get_module_logger

T = TypeVar("T")

Listener = Callable[[T], None]

logger = get_module_logger("ObservableValue")


class ObservableValue(Generic[T]):
    """Single-writer shared value that publishes every change."""

    def __init__(self, initial: T, *, name: Optional[str] = None) -> None:
        self._value: T = initial
        self._version = 0
        self._name = name or "value"
        self._listeners: List[Listener] = []
        self._waiters: Set[asyncio.Future] = set()

    def __repr__(self) -> str:
        return f"ObservableValue({self._name}={self._value!r}, version={self._version})"

    @property
    def value(self) -> T:
        return self._value

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> Tuple[T, int]:
        """Return ``(value, version)`` read together."""
        return self._value, self._version

    def set(self, value: T) -> bool:
        """Publish ``value``; returns False when it equals the current value."""
        if value == self._value:
            return False
        self._value = value
        self._version += 1

        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Listener for %s failed", self._name)

        waiters, self._waiters = self._waiters, set()
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(value)
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` on every change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def wait_for_change(self, since_version: Optional[int] = None) -> T:
        """Wait until ``version`` moves past ``since_version`` (default: now)."""
        if since_version is None:
            since_version = self._version
        if self._version > since_version:
            return self._value
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.add(waiter)
        try:
            await waiter
        finally:
            self._waiters.discard(waiter)
        return self._value

    async def changes(self, *, include_current: bool = True) -> AsyncIterator[T]:
        """Yield the latest value on every change; intermediate values may be skipped."""
        value, version = self.snapshot()
        if include_current:
            yield value
        while True:
            value = await self.wait_for_change(version)
            version = self._version
            yield value


__all__ = ["ObservableValue"]
