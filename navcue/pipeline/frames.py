"""Timestamped frames and the bounded retention window they live in."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional

import cv2
import numpy as np

from ..core.config import BufferSettings, SelectorSettings
from ..core.logging_utils import LoggerLike, ensure_structured_logger
from .selector import select_best_quality_frame, select_motion_frames

Clock = Callable[[], int]
FrameProvider = Callable[[], Optional["Frame"]]


def monotonic_ms() -> int:
    """Monotonic clock in integer milliseconds."""
    return time.monotonic_ns() // 1_000_000


@dataclass(frozen=True, eq=False)
class Frame:
    """An RGB image (``H x W x 3`` uint8) plus its capture time in monotonic ms.

    Frames compare by identity; the pixel array is marked read-only on creation.
    """

    image: np.ndarray
    timestamp_ms: int
    metadata: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.image.flags.writeable:
            self.image.setflags(write=False)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    def age_ms(self, now_ms: Optional[int] = None) -> int:
        now = monotonic_ms() if now_ms is None else now_ms
        return now - self.timestamp_ms

    @classmethod
    def from_encoded(cls, data: bytes, timestamp_ms: Optional[int] = None) -> "Frame":
        """Decode JPEG/PNG bytes from the camera into an RGB frame."""
        buffer = np.frombuffer(data, dtype=np.uint8)
        bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if bgr is None:
            raise ValueError("Could not decode frame bytes")
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        return cls(rgb, monotonic_ms() if timestamp_ms is None else timestamp_ms)

    def to_jpeg(self, quality: int = 75) -> bytes:
        """Encode for the analyzer; reading tasks use a higher ``quality``."""
        bgr = cv2.cvtColor(np.ascontiguousarray(self.image), cv2.COLOR_RGB2BGR)
        ok, encoded = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
        if not ok:
            raise ValueError("JPEG encoding failed")
        return encoded.tobytes()


class FrameBuffer:
    """Rolling window of the most recent frames, oldest first.

    Owned by the capture/selection pipeline of one session; it is not shared
    across sessions and needs no locking on a single event loop.
    """

    def __init__(
        self,
        settings: Optional[BufferSettings] = None,
        *,
        selector_settings: Optional[SelectorSettings] = None,
        clock: Clock = monotonic_ms,
        logger: LoggerLike = None,
    ) -> None:
        self.settings = settings or BufferSettings()
        if self.settings.capacity < 1:
            raise ValueError("buffer capacity must be at least 1")
        self.selector_settings = selector_settings or SelectorSettings()
        self._clock = clock
        self._frames: Deque[Frame] = deque(maxlen=self.settings.capacity)
        self.logger = ensure_structured_logger(
            logger, component="FrameBuffer", fallback_name=f"{__name__}.FrameBuffer"
        )

    def __len__(self) -> int:
        return len(self._frames)

    def add(self, frame: Frame) -> None:
        self._frames.append(frame)

    def frames(self) -> List[Frame]:
        """Snapshot of the retained frames, oldest first."""
        return list(self._frames)

    def latest(self) -> Optional[Frame]:
        if not self._frames:
            return None
        frame = self._frames[-1]
        self._warn_if_stale(frame, "Latest frame")
        return frame

    def motion_frames(self) -> List[Frame]:
        """Up to two frames giving motion context, each nudged toward a sharp neighbour."""
        selected = select_motion_frames(self.frames(), self.selector_settings)
        for index, frame in enumerate(selected):
            self._warn_if_stale(frame, f"Motion frame {index}")
        return selected

    def best_quality_frame(self) -> Optional[Frame]:
        """The sharp frame closest to the newest one, for single-frame analysis."""
        frame = select_best_quality_frame(self.frames(), self.selector_settings)
        if frame is None:
            return None
        self._warn_if_stale(frame, "Best quality frame")
        return frame

    def fresh_frame_provider(self) -> FrameProvider:
        """Provider that yields the newest frame only once per new capture."""
        last_served: Optional[Frame] = None

        def _provider() -> Optional[Frame]:
            nonlocal last_served
            if not self._frames:
                return None
            newest = self._frames[-1]
            if last_served is not None and newest.timestamp_ms <= last_served.timestamp_ms:
                return None
            last_served = newest
            return newest

        return _provider

    def status(self) -> str:
        if not self._frames:
            return "Buffer: EMPTY"
        now = self._clock()
        oldest = self._frames[0]
        newest = self._frames[-1]
        return (
            f"Buffer: {len(self._frames)} frames, "
            f"span: {newest.timestamp_ms - oldest.timestamp_ms}ms, "
            f"latest: {now - newest.timestamp_ms}ms old, "
            f"oldest: {now - oldest.timestamp_ms}ms old"
        )

    def clear(self) -> None:
        self._frames.clear()

    def _warn_if_stale(self, frame: Frame, label: str) -> None:
        age = frame.age_ms(self._clock())
        if age > self.settings.stale_frame_ms:
            self.logger.warning("%s is %dms old - buffer may be stale", label, age)
        else:
            self.logger.debug("%s age: %dms", label, age)


__all__ = ["Frame", "FrameBuffer", "FrameProvider", "monotonic_ms"]
