"""Merges cue streams, drives speech, and folds cues into display text.

Each ``create_flow`` call owns one channel. A producer task copies the
automatic (analyzer) stream into it, ``emit`` copies manual cues into every
live channel, and the consuming loop folds whatever arrives first into a
running ``(text, category)`` pair. A cue is queued for speech before its
state is yielded. Speech runs on its own worker task so a slow engine never
holds back the display, and the worker still speaks every cue queued before
the flow closed.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Callable, Iterable, List, Optional, Set, Tuple, Union

from ..core.asyncio_utils import create_logged_task
from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..core.observable import ObservableValue
from .model import CueCategory, NavigationCue, cue_category
from .speech import SpeechService

CueState = Tuple[str, CueCategory]
SpeechToggle = Union[ObservableValue, Callable[[], bool], bool]

INITIAL_STATE: CueState = ("", CueCategory.NONE)

_CLOSE = object()


class FoldPolicy(Enum):
    """How a finished (``is_done``) cue affects the accumulated text."""

    # Keep growing the transcript; ``is_done`` is ignored.
    APPEND_ALWAYS = "append_always"
    # Clear the text when a response finishes, ready for the next one.
    RESET_ON_DONE = "reset_on_done"
    # Keep the finished text on screen; an empty final chunk clears it.
    HOLD_FINAL = "hold_final"


def fold_cue(state: CueState, cue: NavigationCue, policy: FoldPolicy = FoldPolicy.APPEND_ALWAYS) -> CueState:
    """Apply one cue to ``state`` under ``policy``."""
    text, _ = state
    category = cue_category(cue)

    if policy is FoldPolicy.RESET_ON_DONE:
        return ("" if cue.is_done else text + cue.message), category
    if policy is FoldPolicy.HOLD_FINAL and cue.is_done and not cue.message.strip():
        return INITIAL_STATE
    return text + cue.message, category


def fold_cues(cues: Iterable[NavigationCue], policy: FoldPolicy = FoldPolicy.APPEND_ALWAYS) -> List[CueState]:
    """Fold a finite cue sequence, returning every intermediate state."""
    states: List[CueState] = []
    state = INITIAL_STATE
    for cue in cues:
        state = fold_cue(state, cue, policy)
        states.append(state)
    return states


def _speech_on(toggle: SpeechToggle) -> bool:
    if isinstance(toggle, ObservableValue):
        return bool(toggle.value)
    if callable(toggle):
        return bool(toggle())
    return bool(toggle)


class NavigationOrchestrator:
    """Combines manual and automatic cues, speaks them, and tracks display state."""

    def __init__(self, speech: SpeechService, *, logger: LoggerLike = None) -> None:
        self.logger = ensure_structured_logger(
            logger, component="NavigationOrchestrator", fallback_name=f"{__name__}.NavigationOrchestrator"
        )
        self.speech = speech
        self.speech_ready = False
        self._channels: Set[asyncio.Queue] = set()
        self._pending: Set[asyncio.Task] = set()
        speech.initialize(self._on_speech_ready, self._on_speech_error)

    def _on_speech_ready(self) -> None:
        self.speech_ready = True
        self.logger.info("Speech engine ready")

    def _on_speech_error(self, error: str) -> None:
        self.speech_ready = False
        self.logger.warning("Speech engine unavailable, continuing without it: %s", error)

    @property
    def live_flows(self) -> int:
        return len(self._channels)

    async def emit(self, cue: NavigationCue) -> None:
        """Inject a manual cue into every live flow; dropped when none is running."""
        if not self._channels:
            self.logger.debug("No live flow, dropping manual cue %r", cue)
            return
        for channel in list(self._channels):
            await channel.put(cue)

    async def create_flow(
        self,
        automatic_cues: AsyncIterable[NavigationCue],
        speech_enabled: SpeechToggle,
        *,
        policy: FoldPolicy = FoldPolicy.APPEND_ALWAYS,
        include_initial: bool = False,
        until: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[CueState]:
        """Yield ``(text, category)`` after each cue from either source.

        The flow runs until the consumer closes it or ``until`` is set; either
        way the producer is cancelled and the speech worker exits once the
        cues already handed to it have been spoken.
        """
        channel: asyncio.Queue = asyncio.Queue()
        speech_queue: asyncio.Queue = asyncio.Queue()
        self._channels.add(channel)

        producer = create_logged_task(
            self._pump(automatic_cues, channel),
            logger=self.logger,
            context="cue-producer",
            pending=self._pending,
        )
        speaker = create_logged_task(
            self._speak_worker(speech_queue),
            logger=self.logger,
            context="speech-worker",
            pending=self._pending,
        )
        watcher = None
        if until is not None:
            watcher = create_logged_task(
                self._close_when(until, channel),
                logger=self.logger,
                context="cue-flow-watcher",
                pending=self._pending,
            )
        self.logger.debug("Cue flow started (policy=%s)", policy.value)

        state = INITIAL_STATE
        try:
            if include_initial:
                yield state
            while True:
                cue = await channel.get()
                if cue is _CLOSE:
                    break
                if _speech_on(speech_enabled):
                    speech_queue.put_nowait(cue)
                state = fold_cue(state, cue, policy)
                yield state
        finally:
            self._channels.discard(channel)
            producer.cancel()
            speech_queue.put_nowait(_CLOSE)
            if watcher is not None:
                watcher.cancel()
            self.logger.debug("Cue flow closed")

    async def _close_when(self, event: asyncio.Event, channel: asyncio.Queue) -> None:
        await event.wait()
        channel.put_nowait(_CLOSE)

    async def _pump(self, source: AsyncIterable[NavigationCue], channel: asyncio.Queue) -> None:
        iterator = source.__aiter__()
        try:
            async for cue in iterator:
                await channel.put(cue)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
        self.logger.debug("Automatic cue stream finished")

    async def _speak_worker(self, queue: asyncio.Queue) -> None:
        while True:
            cue = await queue.get()
            if cue is _CLOSE:
                return
            try:
                await asyncio.to_thread(self.speech.speak_cue, cue)
            except Exception:
                self.logger.exception("Speech failed for %r", cue)

    def stop_speech(self) -> None:
        self.speech.stop()

    def shutdown(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self.speech.shutdown()


__all__ = [
    "CueState",
    "FoldPolicy",
    "INITIAL_STATE",
    "NavigationOrchestrator",
    "fold_cue",
    "fold_cues",
]
