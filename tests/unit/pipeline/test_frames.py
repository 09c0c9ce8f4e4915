"""Unit tests for Frame and FrameBuffer."""

import logging

import numpy as np
import pytest

from navcue.core.config import BufferSettings
from navcue.pipeline.frames import Frame, FrameBuffer
from tests.infrastructure.helpers import stripes


@pytest.fixture
def buffer(fake_clock):
    return FrameBuffer(BufferSettings(capacity=3, stale_frame_ms=1000), clock=fake_clock)


class TestFrame:
    """Test frame construction and encoding."""

    def test_pixels_are_read_only(self):
        frame = Frame(stripes(), 0)

        assert frame.image.flags.writeable is False
        with pytest.raises(ValueError):
            frame.image[0, 0, 0] = 1

    def test_dimensions_and_age(self):
        frame = Frame(np.zeros((48, 64, 3), dtype=np.uint8), 100)

        assert (frame.width, frame.height) == (64, 48)
        assert frame.age_ms(350) == 250

    def test_frames_compare_by_identity(self):
        image = stripes()

        assert Frame(image, 0) != Frame(image, 0)

    def test_jpeg_round_trip_keeps_shape(self):
        frame = Frame(stripes(), 0)

        decoded = Frame.from_encoded(frame.to_jpeg(quality=90), timestamp_ms=42)

        assert decoded.image.shape == frame.image.shape
        assert decoded.timestamp_ms == 42
        # stripes survive lossy encoding
        assert abs(int(decoded.image[0, 0, 0]) - 0) < 40
        assert abs(int(decoded.image[0, 20, 0]) - 255) < 40

    def test_undecodable_bytes(self):
        with pytest.raises(ValueError):
            Frame.from_encoded(b"definitely not a jpeg")


class TestFrameBuffer:
    """Test bounded retention and frame lookup."""

    def test_capacity_evicts_oldest(self, buffer, make_frame):
        for ts in range(0, 500, 100):
            buffer.add(make_frame(ts))

        assert len(buffer) == 3
        assert [frame.timestamp_ms for frame in buffer.frames()] == [200, 300, 400]
        assert buffer.latest().timestamp_ms == 400

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            FrameBuffer(BufferSettings(capacity=0))

    def test_empty_buffer(self, buffer):
        assert buffer.latest() is None
        assert buffer.best_quality_frame() is None
        assert buffer.motion_frames() == []
        assert buffer.status() == "Buffer: EMPTY"

    def test_best_quality_frame_prefers_sharp_neighbour(self, buffer, make_frame):
        buffer.add(make_frame(0, tag="sharp"))
        buffer.add(make_frame(100, sharp=False))

        assert buffer.best_quality_frame().metadata["tag"] == "sharp"

    def test_motion_frames(self, fake_clock, make_frame):
        buffer = FrameBuffer(clock=fake_clock)
        for ts in range(0, 1000, 100):
            buffer.add(make_frame(ts))

        assert [frame.timestamp_ms for frame in buffer.motion_frames()] == [100, 900]

    def test_status(self, buffer, fake_clock, make_frame):
        buffer.add(make_frame(fake_clock.now - 300))
        buffer.add(make_frame(fake_clock.now - 100))

        assert buffer.status() == "Buffer: 2 frames, span: 200ms, latest: 100ms old, oldest: 300ms old"

    def test_stale_frame_warning(self, buffer, fake_clock, make_frame, caplog):
        buffer.add(make_frame(fake_clock.now))
        fake_clock.advance(1500)

        with caplog.at_level(logging.WARNING):
            buffer.latest()

        assert any("1500ms old" in record.getMessage() for record in caplog.records)

    def test_clear(self, buffer, make_frame):
        buffer.add(make_frame(0))

        buffer.clear()

        assert len(buffer) == 0


class TestFreshFrameProvider:
    """Test the once-per-capture provider."""

    def test_serves_each_frame_once(self, buffer, make_frame):
        provider = buffer.fresh_frame_provider()
        assert provider() is None

        first = make_frame(0)
        buffer.add(first)
        assert provider() is first
        assert provider() is None

        second = make_frame(100)
        buffer.add(second)
        assert provider() is second

    def test_providers_are_independent(self, buffer, make_frame):
        frame = make_frame(0)
        buffer.add(frame)

        assert buffer.fresh_frame_provider()() is frame
        assert buffer.fresh_frame_provider()() is frame
