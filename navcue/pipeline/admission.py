"""Cooperative rate limiter for the frame analysis path.

The controller only advises: callers check ``should_process()``, mark the start
with ``begin_processing()`` before their next ``await``, and must call
``end_processing()`` on every exit path. ``try_admit()`` and ``admit()`` wrap
that protocol in a guard so the release cannot be forgotten.
"""

from __future__ import annotations

import contextlib
from typing import AsyncIterator, Callable, Optional

from ..core.config import AdmissionSettings
from ..core.logging_utils import LoggerLike, ensure_structured_logger
from .frames import monotonic_ms

Clock = Callable[[], int]


class AdmissionGuard:
    """Holds an admission slot until released; release is idempotent."""

    __slots__ = ("_controller", "_released")

    def __init__(self, controller: "AdmissionController") -> None:
        self._controller = controller
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._controller.end_processing()

    def __enter__(self) -> "AdmissionGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def __aenter__(self) -> "AdmissionGuard":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()


class AdmissionController:
    """Single-flight, minimum-interval gate in front of frame analysis."""

    def __init__(
        self,
        settings: Optional[AdmissionSettings] = None,
        *,
        clock: Clock = monotonic_ms,
        logger: LoggerLike = None,
    ) -> None:
        self.settings = settings or AdmissionSettings()
        if self.settings.interval_ms < 0:
            raise ValueError("admission interval must not be negative")
        self._clock = clock
        self._last_admitted_ms: Optional[int] = None
        self._in_flight = False
        self.logger = ensure_structured_logger(
            logger, component="AdmissionController", fallback_name=f"{__name__}.AdmissionController"
        )

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_admitted_ms(self) -> Optional[int]:
        return self._last_admitted_ms

    def should_process(self) -> bool:
        """True when nothing is in flight and the minimum interval has passed."""
        if self._in_flight:
            return False
        if self._last_admitted_ms is None:
            return True
        return (self._clock() - self._last_admitted_ms) >= self.settings.interval_ms

    def begin_processing(self) -> None:
        self._in_flight = True
        self._last_admitted_ms = self._clock()

    def end_processing(self) -> None:
        self._in_flight = False

    def reset(self) -> None:
        """Forget throttling state, e.g. after a camera mode switch."""
        self._in_flight = False
        self._last_admitted_ms = None

    def try_admit(self) -> Optional[AdmissionGuard]:
        """Check and claim a slot in one step; None when the frame should be skipped."""
        if not self.should_process():
            return None
        self.begin_processing()
        return AdmissionGuard(self)

    @contextlib.asynccontextmanager
    async def admit(self) -> AsyncIterator[bool]:
        """Async scope yielding whether this caller was admitted."""
        guard = self.try_admit()
        try:
            yield guard is not None
        finally:
            if guard is not None:
                guard.release()


__all__ = ["AdmissionController", "AdmissionGuard"]
