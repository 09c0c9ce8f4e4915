"""Polling helpers for grabbing frames right after the camera is switched on."""

from __future__ import annotations

import asyncio
import time
from typing import List, Optional

from ..core.logging_utils import get_module_logger
from .frames import Frame, FrameProvider

logger = get_module_logger(__name__)

DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_WAIT_TIMEOUT_MS = 2000
DEFAULT_BURST_FRAME_TIMEOUT_MS = 1000


async def wait_for_frame(
    timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS,
    frame_provider: Optional[FrameProvider] = None,
    *,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> Optional[Frame]:
    """Probe ``frame_provider`` every ``poll_interval_ms`` until it returns a frame.

    Returns None once ``timeout_ms`` has elapsed without a frame. The provider
    must not block; the wait yields to the event loop between probes.
    """
    if frame_provider is None:
        raise ValueError("frame_provider is required")
    if poll_interval_ms <= 0:
        raise ValueError("poll_interval_ms must be positive")

    start = time.monotonic()
    deadline = start + max(0, timeout_ms) / 1000.0
    while time.monotonic() < deadline:
        frame = frame_provider()
        if frame is not None:
            return frame
        await asyncio.sleep(poll_interval_ms / 1000.0)

    logger.debug("No frame after %dms", int((time.monotonic() - start) * 1000))
    return None


async def capture_multiple_frames(
    count: int = 5,
    interval_ms: int = 100,
    frame_provider: Optional[FrameProvider] = None,
    *,
    per_frame_timeout_ms: int = DEFAULT_BURST_FRAME_TIMEOUT_MS,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> List[Frame]:
    """Capture up to ``count`` frames spaced ``interval_ms`` apart.

    Attempts that time out are skipped rather than retried, so the result may
    hold fewer frames than requested (possibly none).
    """
    if count < 0:
        raise ValueError("count must not be negative")
    if interval_ms < 0:
        raise ValueError("interval_ms must not be negative")

    frames: List[Frame] = []
    for attempt in range(count):
        frame = await wait_for_frame(
            per_frame_timeout_ms,
            frame_provider,
            poll_interval_ms=poll_interval_ms,
        )
        if frame is None:
            logger.debug("Burst attempt %d/%d timed out", attempt + 1, count)
            continue
        frames.append(frame)
        if attempt < count - 1:
            await asyncio.sleep(interval_ms / 1000.0)

    if len(frames) < count:
        logger.info("Captured %d of %d requested frames", len(frames), count)
    return frames


__all__ = ["capture_multiple_frames", "wait_for_frame"]
