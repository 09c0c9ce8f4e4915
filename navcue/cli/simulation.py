"""Synthetic camera and analyzer used to exercise the pipeline end to end.

The frames are generated stripe patterns that drift sideways every frame, with
an occasional flat (blurred) frame so the sharpness search has work to do.
The analyzer replays a fixed script of streamed cues.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import AsyncIterator, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..core.asyncio_utils import cancel_and_wait, create_logged_task
from ..core.config import NavcueConfig
from ..core.logging_utils import get_module_logger
from ..cues.model import AmbientUpdate, CriticalAlert, InformationalAlert, NavigationCue
from ..cues.orchestrator import CueState, FoldPolicy, NavigationOrchestrator
from ..cues.speech import LoggingSpeechService
from ..pipeline.frames import Frame, monotonic_ms
from ..session import NavigationSession

logger = get_module_logger("Simulation")

BLUR_EVERY = 7
CHUNK_DELAY_S = 0.02

DEFAULT_SCRIPT: Tuple[Tuple[NavigationCue, ...], ...] = (
    (
        AmbientUpdate("Open corridor ahead. "),
        AmbientUpdate("Doors on the left.", is_done=True),
    ),
    (
        InformationalAlert("Person approaching "),
        InformationalAlert("from the right.", is_done=True),
    ),
    (CriticalAlert("Stop! Step down ahead.", is_done=True),),
)

READING_SCRIPT: Tuple[NavigationCue, ...] = (
    InformationalAlert("The sign reads: "),
    InformationalAlert("Platform 2, trains to the city.", is_done=True),
)


def synthetic_frame(
    index: int,
    *,
    width: int = 160,
    height: int = 120,
    stripe: int = 16,
    blurred: bool = False,
    timestamp_ms: Optional[int] = None,
) -> Frame:
    """Vertical black/white stripes shifted by ``index`` pixels, or a flat grey frame."""
    if blurred:
        image = np.full((height, width, 3), 128, dtype=np.uint8)
    else:
        columns = ((np.arange(width) + index) // stripe) % 2
        row = (columns * 255).astype(np.uint8)
        image = np.repeat(np.tile(row, (height, 1))[..., None], 3, axis=2)
    ts = monotonic_ms() if timestamp_ms is None else timestamp_ms
    return Frame(image, ts, {"index": index})


class ScriptedAnalyzer:
    """Streams the next scripted response for every analysis request."""

    def __init__(
        self,
        script: Sequence[Sequence[NavigationCue]] = DEFAULT_SCRIPT,
        *,
        one_shot: Sequence[NavigationCue] = READING_SCRIPT,
        chunk_delay_s: float = CHUNK_DELAY_S,
    ) -> None:
        self._responses: Iterator[Sequence[NavigationCue]] = itertools.cycle(script)
        self._one_shot = tuple(one_shot)
        self._chunk_delay_s = chunk_delay_s
        self.requests: List[Tuple[int, Optional[str]]] = []

    async def analyze(self, frames: Sequence[Frame], prompt: Optional[str] = None) -> AsyncIterator[NavigationCue]:
        self.requests.append((len(frames), prompt))
        response = self._one_shot if prompt else next(self._responses)
        for cue in response:
            await asyncio.sleep(self._chunk_delay_s)
            yield cue


async def feed_frames(session: NavigationSession, fps: float) -> None:
    """Push synthetic frames into ``session`` at ``fps`` until cancelled."""
    period = 1.0 / fps
    for index in itertools.count():
        session.submit_frame(synthetic_frame(index, blurred=index % BLUR_EVERY == BLUR_EVERY - 1))
        await asyncio.sleep(period)


async def run_simulation(
    config: Optional[NavcueConfig] = None,
    *,
    duration_s: float = 3.0,
    fps: float = 15.0,
    policy: FoldPolicy = FoldPolicy.APPEND_ALWAYS,
    read_prompt: Optional[str] = "Read the sign",
) -> List[CueState]:
    """Run one navigation session for ``duration_s`` and return every folded state.

    Halfway through, a one-shot text reading borrows the camera when
    ``read_prompt`` is set.
    """
    if duration_s <= 0:
        raise ValueError("duration_s must be positive")
    if fps <= 0:
        raise ValueError("fps must be positive")

    speech = LoggingSpeechService()
    orchestrator = NavigationOrchestrator(speech)
    session = NavigationSession(ScriptedAnalyzer(), orchestrator, config=config)
    states: List[CueState] = []

    async def _script() -> None:
        await asyncio.sleep(duration_s / 2)
        if read_prompt:
            answer = await session.capture_once(read_prompt)
            logger.info("One-shot answer: %s", "".join(cue.message for cue in answer))
        await asyncio.sleep(duration_s / 2)
        await session.stop()

    feeder = create_logged_task(feed_frames(session, fps), logger=logger, context="frame-feeder")
    director = create_logged_task(_script(), logger=logger, context="session-script")
    try:
        async for state in session.run(True, policy=policy):
            states.append(state)
            logger.debug("Cue state: %r", state)
    finally:
        await cancel_and_wait(director)
        await cancel_and_wait(feeder)
        orchestrator.shutdown()

    logger.info("Simulation finished: %d cue states, %d utterances", len(states), len(speech.utterances))
    return states


__all__ = ["ScriptedAnalyzer", "feed_frames", "run_simulation", "synthetic_frame"]
