"""Unit test fixtures for isolated, fast test execution.

Everything here is in-memory. Timing-sensitive components take a ``clock``
callable, so tests drive time with ``FakeClock`` instead of sleeping.
"""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from navcue.core.config import CaptureSettings, NavcueConfig
from navcue.cues.speech import LoggingSpeechService
from navcue.pipeline.frames import Frame
from tests.infrastructure.helpers import FakeClock, stripes, uniform


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_frame() -> Callable[..., Frame]:
    """Factory for frames; sharp stripes by default, flat grey with ``sharp=False``."""

    def _make(timestamp_ms: int, *, sharp: bool = True, tag: Optional[str] = None) -> Frame:
        image = stripes() if sharp else uniform()
        metadata = {"tag": tag} if tag is not None else {}
        return Frame(image, timestamp_ms, metadata)

    return _make


@pytest.fixture
def speech() -> LoggingSpeechService:
    return LoggingSpeechService()


@pytest.fixture
def fast_config() -> NavcueConfig:
    """Defaults with capture timings shrunk so burst tests finish quickly."""
    config = NavcueConfig.defaults()
    config.capture = CaptureSettings(
        poll_interval_ms=5,
        wait_timeout_ms=100,
        burst_frame_timeout_ms=50,
        burst_count=3,
        burst_interval_ms=5,
    )
    return config
