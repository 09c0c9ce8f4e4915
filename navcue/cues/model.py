"""Navigation cue types produced by the analyzer and by direct user commands."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class CueCategory(Enum):
    """Urgency category used for speech priority and display styling."""
    NONE = "none"
    CRITICAL = "critical"
    INFORMATIONAL = "informational"
    AMBIENT = "ambient"


@dataclass(frozen=True)
class CriticalAlert:
    """Immediate threat; short message, interrupts queued speech."""
    message: str
    is_done: bool = False

    category = CueCategory.CRITICAL


@dataclass(frozen=True)
class InformationalAlert:
    """Something new and significant appeared in the scene."""
    message: str
    is_done: bool = False

    category = CueCategory.INFORMATIONAL


@dataclass(frozen=True)
class AmbientUpdate:
    """Periodic description of the general surroundings."""
    message: str
    is_done: bool = False

    category = CueCategory.AMBIENT


NavigationCue = Union[CriticalAlert, InformationalAlert, AmbientUpdate]

CUE_TYPES = (CriticalAlert, InformationalAlert, AmbientUpdate)


def cue_category(cue: NavigationCue) -> CueCategory:
    if isinstance(cue, CUE_TYPES):
        return cue.category
    raise TypeError(f"Not a navigation cue: {cue!r}")


__all__ = [
    "AmbientUpdate",
    "CUE_TYPES",
    "CriticalAlert",
    "CueCategory",
    "InformationalAlert",
    "NavigationCue",
    "cue_category",
]
