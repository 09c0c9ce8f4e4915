"""
Navigation Session - Runs the frame-to-cue pipeline for one active session.

The session owns the frame buffer and admission state, follows the camera
mode, and hands selected frames to the analyzer. Its cue output feeds the
orchestrator flow returned by ``run()``. Stopping the session, whether by
``stop()`` or by closing that flow, always:

- cancels every analysis task and the merged cue stream
- clears the admission in-flight flag
- switches the camera off
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Protocol, Sequence

from navcue.core.asyncio_utils import create_logged_task
from navcue.core.camera_state import CameraStateMachine, CaptureMode
from navcue.core.config import NavcueConfig
from navcue.core.logging_utils import LoggerLike, ensure_structured_logger
from navcue.core.observable import ObservableValue
from navcue.core.task_registry import TaskRegistry
from navcue.cues.model import InformationalAlert, NavigationCue
from navcue.cues.orchestrator import (
    INITIAL_STATE,
    CueState,
    FoldPolicy,
    NavigationOrchestrator,
    SpeechToggle,
    fold_cue,
)
from navcue.pipeline.admission import AdmissionController, AdmissionGuard
from navcue.pipeline.capture import capture_multiple_frames
from navcue.pipeline.frames import Clock, Frame, FrameBuffer, monotonic_ms

ANALYSIS_GROUP = "analysis"
NO_FRAMES_MESSAGE = "No camera frames available. Please try again."
ANALYSIS_FAILED_MESSAGE = "Navigation guidance temporarily unavailable"
ANSWER_FAILED_MESSAGE = "Unable to process request"


class FrameAnalyzer(Protocol):
    """Vision/language model that turns frames into streamed cue chunks."""

    def analyze(self, frames: Sequence[Frame], prompt: Optional[str] = None) -> AsyncIterator[NavigationCue]:
        ...


class NavigationSession:
    """
    Couples camera state, admission, frame selection and the orchestrator.

    Frames arrive through ``submit_frame`` from the camera driver. While the
    camera is in NAVIGATION mode and the session is running, an admitted frame
    starts one analysis run over the motion-selected frames; its cues go into
    the automatic stream. ``capture_once`` borrows the camera for a one-shot
    burst (text reading, photo) and puts it back afterwards.
    """

    def __init__(
        self,
        analyzer: FrameAnalyzer,
        orchestrator: NavigationOrchestrator,
        *,
        camera: Optional[CameraStateMachine] = None,
        config: Optional[NavcueConfig] = None,
        clock: Clock = monotonic_ms,
        logger: LoggerLike = None,
    ) -> None:
        self.config = config or NavcueConfig.defaults()
        self.logger = ensure_structured_logger(
            logger, component="NavigationSession", fallback_name=f"{__name__}.NavigationSession"
        )
        self.analyzer = analyzer
        self.orchestrator = orchestrator
        self.camera = camera or CameraStateMachine()
        self.admission = AdmissionController(self.config.admission, clock=clock, logger=self.logger)
        self.buffer = FrameBuffer(
            self.config.buffer,
            selector_settings=self.config.selector,
            clock=clock,
            logger=self.logger,
        )
        self.prompt: Optional[str] = None
        # display state of the latest one-shot answer
        self.answer: ObservableValue[CueState] = ObservableValue(INITIAL_STATE, name="one_shot_answer")

        self._tasks = TaskRegistry()
        self._cues: asyncio.Queue = asyncio.Queue()
        self._stop_event: Optional[asyncio.Event] = None
        self._one_shot_lock = asyncio.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def analysis_runs(self) -> int:
        return self._tasks.group_size(ANALYSIS_GROUP)

    # =========================================================================
    # Frame intake
    # =========================================================================

    def submit_frame(self, frame: Frame) -> bool:
        """Retain ``frame`` and start an analysis run if admission allows.

        Must be called from the event loop thread. Returns True when an
        analysis run was started.
        """
        if not self.camera.is_active():
            return False
        self.buffer.add(frame)

        if not self._running or self.camera.current_mode() is not CaptureMode.NAVIGATION:
            return False

        guard = self.admission.try_admit()
        if guard is None:
            return False

        task = create_logged_task(
            self._analyze(guard),
            logger=self.logger,
            context="frame-analysis",
        )
        # a task cancelled before its first step never runs its finally block
        task.add_done_callback(lambda _task: guard.release())
        self._tasks.track(ANALYSIS_GROUP, task)
        return True

    async def _analyze(self, guard: AdmissionGuard) -> None:
        try:
            frames = self.buffer.motion_frames()
            if not frames:
                return
            self.logger.debug("Analyzing %d frame(s) | %s", len(frames), self.buffer.status())
            async for cue in self.analyzer.analyze(frames, self.prompt):
                await self._cues.put(cue)
        except Exception:
            self.logger.exception("Frame analysis failed")
            await self._cues.put(InformationalAlert(ANALYSIS_FAILED_MESSAGE, is_done=True))
        finally:
            guard.release()

    async def automatic_cues(self) -> AsyncIterator[NavigationCue]:
        """Cues produced by analysis runs, in the order they were streamed."""
        while True:
            yield await self._cues.get()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(
        self,
        speech_enabled: SpeechToggle,
        *,
        policy: FoldPolicy = FoldPolicy.APPEND_ALWAYS,
    ) -> AsyncIterator[CueState]:
        """Start navigation and yield the folded cue transcript until stopped."""
        if self._running:
            raise RuntimeError("navigation session already running")

        self._running = True
        self._stop_event = asyncio.Event()
        self._cues = asyncio.Queue()
        self.admission.reset()
        self.camera.switch_to_navigation()
        self.logger.info("Navigation session started (policy=%s)", policy.value)

        flow = self.orchestrator.create_flow(
            self.automatic_cues(),
            speech_enabled,
            policy=policy,
            until=self._stop_event,
        )
        try:
            async for state in flow:
                yield state
        finally:
            await flow.aclose()
            await self.stop()

    async def stop(self) -> None:
        """Tear the session down; safe to call repeatedly."""
        was_running = self._running
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

        self.admission.reset()
        self.camera.deactivate()
        self.buffer.clear()

        await self._tasks.cancel_all()
        self._cues = asyncio.Queue()
        if was_running:
            self.logger.info("Navigation session stopped")

    # =========================================================================
    # One-shot capture
    # =========================================================================

    async def capture_once(
        self,
        prompt: Optional[str] = None,
        *,
        mode: CaptureMode = CaptureMode.TEXT_READING,
        count: Optional[int] = None,
        interval_ms: Optional[int] = None,
        policy: FoldPolicy = FoldPolicy.RESET_ON_DONE,
    ) -> List[NavigationCue]:
        """Capture a short burst in ``mode``, analyze it, and emit the answer.

        The answer is also forwarded to any live flow through
        ``orchestrator.emit``, and folded under ``policy`` into ``self.answer``
        for display. An analyzer failure becomes a final "Unable to process
        request" cue. The previous camera mode is restored afterwards unless
        someone else changed the mode in the meantime.
        """
        if mode is CaptureMode.OFF:
            raise ValueError("one-shot capture needs an active camera mode")

        capture = self.config.capture
        count = capture.burst_count if count is None else count
        interval_ms = capture.burst_interval_ms if interval_ms is None else interval_ms

        async with self._one_shot_lock:
            token = self.camera.snapshot()
            self.camera.activate(mode)
            self.answer.set(INITIAL_STATE)
            cues: List[NavigationCue] = []

            async def _deliver(cue: NavigationCue) -> None:
                cues.append(cue)
                self.answer.set(fold_cue(self.answer.value, cue, policy))
                await self.orchestrator.emit(cue)

            try:
                frames = await capture_multiple_frames(
                    count,
                    interval_ms,
                    self.buffer.fresh_frame_provider(),
                    per_frame_timeout_ms=capture.burst_frame_timeout_ms,
                    poll_interval_ms=capture.poll_interval_ms,
                )
                if not frames:
                    self.logger.warning("One-shot capture got no frames")
                    await _deliver(InformationalAlert(NO_FRAMES_MESSAGE, is_done=True))
                    return cues

                try:
                    async for cue in self.analyzer.analyze(frames, prompt):
                        await _deliver(cue)
                except Exception:
                    self.logger.exception("One-shot analysis failed")
                    await _deliver(InformationalAlert(ANSWER_FAILED_MESSAGE, is_done=True))
                return cues
            finally:
                if self.camera.current_mode() is mode:
                    self.camera.restore(token)


__all__ = ["FrameAnalyzer", "NavigationSession"]
