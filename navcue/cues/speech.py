"""Speech collaborator contract and a sentence-buffering base implementation.

The orchestrator only needs ``SpeechService``. ``BufferedSpeechService`` turns
streamed cue chunks into whole sentences before they reach the engine:
chunks are buffered until a sentence break, the final chunk, or a length cap,
and critical cues interrupt whatever is queued. Engine bindings subclass it
and implement ``_utter``, plus ``_engine_busy`` when the engine queues text
and voices it later.
"""

from __future__ import annotations

import abc
import threading
from typing import Callable, List, Optional

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from .model import CriticalAlert, NavigationCue

ReadyCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]

MIN_SPEECH_RATE = 0.1
MAX_SPEECH_RATE = 3.0
CRITICAL_BUFFER_LIMIT = 80
DEFAULT_BUFFER_LIMIT = 300

# ". " rather than "." so "example.com" does not split
BREAK_MARKERS = (". ", "?", "!", ".\n", "?\n", "!\n", "\n", "|", "...", "? ", "!  ")
NATURAL_BREAKS = (". ", ".\n", "?", "!", "\n", "...", "  ", "|")


class SpeechService(abc.ABC):
    """Text-to-speech collaborator used by the cue orchestrator."""

    @abc.abstractmethod
    def initialize(self, on_ready: ReadyCallback, on_error: ErrorCallback) -> None:
        """Start the engine, reporting the outcome through the callbacks."""

    @abc.abstractmethod
    def speak_cue(self, cue: NavigationCue) -> None:
        """Speak a cue chunk; urgency decides whether queued speech is interrupted."""

    @abc.abstractmethod
    def speak(self, text: str) -> None:
        """Speak plain text at normal priority."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Drop pending and current speech."""

    @abc.abstractmethod
    def is_speaking(self) -> bool:
        ...

    @abc.abstractmethod
    def set_rate(self, rate: float) -> None:
        ...

    @abc.abstractmethod
    def shutdown(self) -> None:
        """Release engine resources."""


def split_at_last_break(text: str) -> tuple[str, str]:
    """Split ``text`` after the last sentence break; ``("", text)`` if there is none."""
    last_index = -1
    marker_length = 0
    for marker in BREAK_MARKERS:
        index = text.rfind(marker)
        if index > last_index:
            last_index = index
            marker_length = len(marker)
    if last_index == -1:
        return "", text
    end = last_index + marker_length
    return text[:end], text[end:]


class BufferedSpeechService(SpeechService):
    """Sentence-buffering speech service; subclasses provide the engine calls."""

    def __init__(self, *, logger: LoggerLike = None) -> None:
        self.logger = ensure_structured_logger(
            logger, component=type(self).__name__, fallback_name=f"{__name__}.{type(self).__name__}"
        )
        self.rate = 1.0
        self._initialized = False
        self._buffer = ""
        self._lock = threading.Lock()
        self._in_progress = 0

    # ------------------------------------------------------------------
    # Engine hooks

    @abc.abstractmethod
    def _utter(self, text: str, interrupt: bool) -> None:
        """Hand ``text`` to the engine, flushing its queue first if ``interrupt``."""

    def _start(self) -> None:
        """Bring the engine up; raise to report a failure."""

    def _halt(self) -> None:
        """Silence the engine."""

    def _close(self) -> None:
        """Free engine resources."""

    def _engine_busy(self) -> bool:
        """True while the engine is still voicing text it accepted earlier."""
        return False

    def _say(self, text: str, interrupt: bool) -> None:
        with self._lock:
            self._in_progress += 1
        try:
            self._utter(text, interrupt)
        finally:
            with self._lock:
                self._in_progress -= 1

    # ------------------------------------------------------------------
    # SpeechService

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, on_ready: ReadyCallback, on_error: ErrorCallback) -> None:
        try:
            self._start()
        except Exception as exc:
            self.logger.error("Speech engine failed to start: %s", exc)
            on_error(str(exc))
            return
        self._initialized = True
        on_ready()

    def speak_cue(self, cue: NavigationCue) -> None:
        if not self._initialized:
            self.logger.warning("Speech not initialized, dropping cue")
            return

        critical = isinstance(cue, CriticalAlert)
        with self._lock:
            self._buffer += cue.message
            pending = self._buffer
            limit = CRITICAL_BUFFER_LIMIT if critical else DEFAULT_BUFFER_LIMIT
            has_break = any(marker in pending for marker in NATURAL_BREAKS)
            if not (has_break or cue.is_done or len(pending) > limit):
                return

            if cue.is_done:
                text, self._buffer = pending, ""
            else:
                text, self._buffer = split_at_last_break(pending)

        if text:
            self.logger.debug("Speaking buffered text: %r", text)
            self._say(text, critical)

    def speak(self, text: str) -> None:
        if not self._initialized:
            self.logger.warning("Speech not initialized, cannot speak text")
            return
        self._say(text, False)

    def stop(self) -> None:
        with self._lock:
            self._buffer = ""
        self._halt()

    def is_speaking(self) -> bool:
        with self._lock:
            if self._in_progress:
                return True
        return self._engine_busy()

    def set_rate(self, rate: float) -> None:
        self.rate = min(MAX_SPEECH_RATE, max(MIN_SPEECH_RATE, float(rate)))

    def shutdown(self) -> None:
        with self._lock:
            self._buffer = ""
        self._halt()
        self._close()
        self._initialized = False


class LoggingSpeechService(BufferedSpeechService):
    """Speech stand-in that logs and records utterances instead of voicing them."""

    def __init__(self, *, logger: LoggerLike = None, fail_with: Optional[str] = None) -> None:
        super().__init__(logger=logger)
        self.utterances: List[str] = []
        self.interruptions = 0
        self._fail_with = fail_with

    def _start(self) -> None:
        if self._fail_with:
            raise RuntimeError(self._fail_with)

    def _utter(self, text: str, interrupt: bool) -> None:
        if interrupt:
            self.interruptions += 1
        self.utterances.append(text)
        self.logger.info("Speaking%s: %s", " (interrupt)" if interrupt else "", text.strip())


__all__ = [
    "BufferedSpeechService",
    "LoggingSpeechService",
    "SpeechService",
    "split_at_last_break",
]
