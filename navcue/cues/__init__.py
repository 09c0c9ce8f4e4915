"""Navigation cue types, speech contract and stream orchestration."""

from .model import (
    AmbientUpdate,
    CriticalAlert,
    CueCategory,
    InformationalAlert,
    NavigationCue,
    cue_category,
)
from .orchestrator import FoldPolicy, NavigationOrchestrator, fold_cue, fold_cues
from .speech import BufferedSpeechService, LoggingSpeechService, SpeechService

__all__ = [
    "AmbientUpdate",
    "BufferedSpeechService",
    "CriticalAlert",
    "CueCategory",
    "FoldPolicy",
    "InformationalAlert",
    "LoggingSpeechService",
    "NavigationCue",
    "NavigationOrchestrator",
    "SpeechService",
    "cue_category",
    "fold_cue",
    "fold_cues",
]
