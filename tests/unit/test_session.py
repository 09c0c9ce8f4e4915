"""Unit tests for NavigationSession."""

import asyncio
import contextlib
import itertools
import logging

import pytest

from navcue.core.asyncio_utils import cancel_and_wait
from navcue.core.camera_state import CaptureMode
from navcue.cues.model import CueCategory, InformationalAlert
from navcue.cues.orchestrator import FoldPolicy, NavigationOrchestrator
from navcue.pipeline.frames import Frame
from navcue.session import (
    ANALYSIS_FAILED_MESSAGE,
    ANSWER_FAILED_MESSAGE,
    NO_FRAMES_MESSAGE,
    NavigationSession,
)
from tests.infrastructure.helpers import (
    BlockingAnalyzer,
    FailingAnalyzer,
    ScriptedCues,
    next_item,
    stripes,
    wait_until,
)

INFO = CueCategory.INFORMATIONAL

DOOR_CUES = [InformationalAlert("Door "), InformationalAlert("ahead.", is_done=True)]


@pytest.fixture
def orchestrator(speech):
    return NavigationOrchestrator(speech)


@pytest.fixture
def make_session(orchestrator, fake_clock, fast_config):
    def _make(analyzer):
        return NavigationSession(analyzer, orchestrator, config=fast_config, clock=fake_clock)

    return _make


async def start(session):
    """Start ``session.run`` and wait until its flow is live."""
    stream = session.run(False)
    pending = next_item(stream)
    await wait_until(lambda: session.orchestrator.live_flows == 1)
    return stream, pending


async def finish(stream, pending):
    """Close a stream whose next item may still be pending."""
    if not pending.done():
        pending.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pending
    await stream.aclose()


async def feed(session, period_s=0.005):
    for index in itertools.count():
        session.submit_frame(Frame(stripes(), index * 10, {"index": index}))
        await asyncio.sleep(period_s)


class TestFrameIntake:
    """Test frame admission into analysis."""

    def test_inactive_camera_drops_frames(self, make_session, make_frame):
        session = make_session(ScriptedCues(DOOR_CUES))

        assert session.submit_frame(make_frame(0)) is False
        assert len(session.buffer) == 0

    @pytest.mark.asyncio
    async def test_admitted_frame_streams_cues(self, make_session, make_frame, fake_clock):
        analyzer = ScriptedCues(DOOR_CUES)
        session = make_session(analyzer)
        stream, pending = await start(session)

        assert session.camera.current_mode() is CaptureMode.NAVIGATION
        assert session.submit_frame(make_frame(fake_clock.now)) is True
        assert session.submit_frame(make_frame(fake_clock.now)) is False

        first = await asyncio.wait_for(pending, timeout=1.0)
        second = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
        await stream.aclose()

        assert first == ("Door ", INFO)
        assert second == ("Door ahead.", INFO)
        assert analyzer.calls == [(1, None)]
        assert len(session.buffer) == 0

    @pytest.mark.asyncio
    async def test_interval_between_analysis_runs(self, make_session, make_frame, fake_clock):
        analyzer = ScriptedCues([])
        session = make_session(analyzer)
        stream, pending = await start(session)

        assert session.submit_frame(make_frame(fake_clock.now)) is True
        await wait_until(lambda: not session.admission.in_flight)

        fake_clock.advance(50)
        assert session.submit_frame(make_frame(fake_clock.now)) is False
        fake_clock.advance(50)
        assert session.submit_frame(make_frame(fake_clock.now)) is True

        await wait_until(lambda: len(analyzer.calls) == 2)
        await finish(stream, pending)

    @pytest.mark.asyncio
    async def test_other_modes_buffer_without_analysis(self, make_session, make_frame, fake_clock):
        analyzer = ScriptedCues(DOOR_CUES)
        session = make_session(analyzer)
        stream, pending = await start(session)

        session.camera.switch_to_text_reading()

        assert session.submit_frame(make_frame(fake_clock.now)) is False
        assert len(session.buffer) == 1
        assert session.admission.in_flight is False
        await finish(stream, pending)

    @pytest.mark.asyncio
    async def test_analyzer_failure_is_contained(self, make_session, make_frame, fake_clock, caplog):
        analyzer = FailingAnalyzer()
        session = make_session(analyzer)
        stream, pending = await start(session)

        with caplog.at_level(logging.ERROR):
            assert session.submit_frame(make_frame(fake_clock.now)) is True
            await wait_until(lambda: analyzer.calls == 1 and not session.admission.in_flight)

        assert session.running is True
        assert any("Frame analysis failed" in record.getMessage() for record in caplog.records)

        fake_clock.advance(100)
        assert session.submit_frame(make_frame(fake_clock.now)) is True
        await wait_until(lambda: analyzer.calls == 2)
        await finish(stream, pending)

    @pytest.mark.asyncio
    async def test_analyzer_failure_sends_fallback_cue(self, make_session, make_frame, fake_clock):
        session = make_session(FailingAnalyzer())
        stream, pending = await start(session)

        assert session.submit_frame(make_frame(fake_clock.now)) is True
        state = await asyncio.wait_for(pending, timeout=1.0)

        assert state == (ANALYSIS_FAILED_MESSAGE, INFO)
        await stream.aclose()
        assert session.admission.in_flight is False


class TestLifecycle:
    """Test starting and stopping the session."""

    @pytest.mark.asyncio
    async def test_cancel_mid_emission_releases_everything(self, make_session, make_frame, fake_clock):
        analyzer = BlockingAnalyzer(InformationalAlert("Person "))
        session = make_session(analyzer)
        stream, pending = await start(session)

        session.submit_frame(make_frame(fake_clock.now))
        assert await asyncio.wait_for(pending, timeout=1.0) == ("Person ", INFO)
        assert session.admission.in_flight is True

        await stream.aclose()

        assert session.admission.in_flight is False
        assert session.camera.current_mode() is CaptureMode.OFF
        assert session.camera.is_active() is False
        assert session.analysis_runs == 0
        assert analyzer.cancelled is True
        assert session.orchestrator.live_flows == 0
        assert session.running is False

    @pytest.mark.asyncio
    async def test_stop_ends_consumer(self, make_session, make_frame, fake_clock):
        session = make_session(BlockingAnalyzer(InformationalAlert("Car ")))
        states = []

        async def consume():
            async for state in session.run(False):
                states.append(state)

        consumer = asyncio.create_task(consume())
        await wait_until(lambda: session.orchestrator.live_flows == 1)
        session.submit_frame(make_frame(fake_clock.now))
        await wait_until(lambda: states)

        await session.stop()
        await asyncio.wait_for(consumer, timeout=1.0)

        assert states == [("Car ", INFO)]
        assert session.admission.in_flight is False
        assert session.camera.current_mode() is CaptureMode.OFF

    @pytest.mark.asyncio
    async def test_second_run_rejected(self, make_session):
        session = make_session(ScriptedCues())
        stream, pending = await start(session)

        with pytest.raises(RuntimeError):
            await session.run(False).__anext__()

        await finish(stream, pending)

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, make_session):
        session = make_session(ScriptedCues())

        await session.stop()
        await session.stop()

        assert session.camera.current_mode() is CaptureMode.OFF


class TestCaptureOnce:
    """Test one-shot bursts that borrow the camera."""

    @pytest.mark.asyncio
    async def test_burst_is_analyzed_and_mode_restored(self, make_session):
        analyzer = ScriptedCues([InformationalAlert("Exit "), InformationalAlert("sign.", is_done=True)])
        session = make_session(analyzer)
        session.camera.switch_to_navigation()
        feeder = asyncio.create_task(feed(session))

        try:
            cues = await session.capture_once("Read the sign")
        finally:
            await cancel_and_wait(feeder)

        assert [cue.message for cue in cues] == ["Exit ", "sign."]
        assert analyzer.calls == [(3, "Read the sign")]
        assert session.camera.current_mode() is CaptureMode.NAVIGATION

    @pytest.mark.asyncio
    async def test_answer_display_resets_when_done(self, make_session):
        session = make_session(ScriptedCues([InformationalAlert("Exit "), InformationalAlert("sign.", is_done=True)]))
        session.camera.switch_to_navigation()
        shown = []
        session.answer.subscribe(shown.append)
        feeder = asyncio.create_task(feed(session))

        try:
            await session.capture_once("Read the sign")
        finally:
            await cancel_and_wait(feeder)

        assert shown == [("Exit ", INFO), ("", INFO)]

    @pytest.mark.asyncio
    async def test_answer_display_with_hold_final(self, make_session):
        session = make_session(ScriptedCues([InformationalAlert("Exit "), InformationalAlert("sign.", is_done=True)]))
        session.camera.switch_to_navigation()
        shown = []
        session.answer.subscribe(shown.append)
        feeder = asyncio.create_task(feed(session))

        try:
            await session.capture_once("Read the sign", policy=FoldPolicy.HOLD_FINAL)
        finally:
            await cancel_and_wait(feeder)

        assert shown == [("Exit ", INFO), ("Exit sign.", INFO)]
        assert session.answer.value == ("Exit sign.", INFO)

    @pytest.mark.asyncio
    async def test_analyzer_failure_answer(self, make_session):
        session = make_session(FailingAnalyzer())
        session.camera.switch_to_navigation()
        feeder = asyncio.create_task(feed(session))

        try:
            cues = await session.capture_once("Read the sign")
        finally:
            await cancel_and_wait(feeder)

        assert cues == [InformationalAlert(ANSWER_FAILED_MESSAGE, is_done=True)]
        assert session.camera.current_mode() is CaptureMode.NAVIGATION

    @pytest.mark.asyncio
    async def test_no_frames_answer(self, make_session):
        analyzer = ScriptedCues(DOOR_CUES)
        session = make_session(analyzer)

        cues = await session.capture_once("Read the sign", mode=CaptureMode.PHOTO_CAPTURE)

        assert cues == [InformationalAlert(NO_FRAMES_MESSAGE, is_done=True)]
        assert analyzer.calls == []
        assert session.camera.current_mode() is CaptureMode.OFF

    @pytest.mark.asyncio
    async def test_answer_reaches_live_flow(self, make_session):
        session = make_session(ScriptedCues(DOOR_CUES))
        stream, pending = await start(session)

        await session.capture_once("What is this?")

        state = await asyncio.wait_for(pending, timeout=1.0)
        assert state == (NO_FRAMES_MESSAGE, INFO)
        assert session.camera.current_mode() is CaptureMode.NAVIGATION
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_mode_changed_elsewhere_is_kept(self, make_session):
        session = make_session(ScriptedCues())
        session.camera.switch_to_navigation()

        class SwitchingAnalyzer:
            async def analyze(self, frames, prompt=None):
                session.camera.activate(CaptureMode.PHOTO_CAPTURE)
                yield InformationalAlert("Photo taken.", is_done=True)

        session.analyzer = SwitchingAnalyzer()
        feeder = asyncio.create_task(feed(session))
        try:
            await session.capture_once("Describe")
        finally:
            await cancel_and_wait(feeder)

        assert session.camera.current_mode() is CaptureMode.PHOTO_CAPTURE

    @pytest.mark.asyncio
    async def test_off_mode_rejected(self, make_session):
        session = make_session(ScriptedCues())

        with pytest.raises(ValueError):
            await session.capture_once(mode=CaptureMode.OFF)
