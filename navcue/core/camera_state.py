"""
Camera State Machine - Tracks which capture mode the camera is in.

The camera has exactly one active mode at a time:
- OFF: camera released, no frames captured
- NAVIGATION: continuous capture feeding the navigation pipeline
- TEXT_READING: high-resolution capture for reading text
- PHOTO_CAPTURE: single still capture for detailed analysis

Activation (camera physically engaged) is derived: it is true for every mode
except OFF. Both values are published as ObservableValue instances so the
camera driver can follow them without polling.
"""

from dataclasses import dataclass
from enum import Enum

from navcue.core.logging_utils import get_module_logger
from navcue.core.observable import ObservableValue


class CaptureMode(Enum):
    """Capture modes the camera can be switched into."""
    OFF = "off"
    NAVIGATION = "navigation"
    TEXT_READING = "text_reading"
    PHOTO_CAPTURE = "photo_capture"


@dataclass(frozen=True)
class ModeToken:
    """Saved mode handed back to ``CameraStateMachine.restore``."""
    mode: CaptureMode


class CameraStateMachine:
    """
    Single source of truth for camera mode and activation.

    Transitions are synchronous and total over ``CaptureMode``; callers on one
    event loop are therefore serialised. The machine keeps no history: a caller
    that wants to return to an earlier mode takes a ``snapshot()`` first and
    passes the token to ``restore()``.
    """

    def __init__(self):
        self.logger = get_module_logger("CameraStateMachine")
        self.mode: ObservableValue[CaptureMode] = ObservableValue(CaptureMode.OFF, name="mode")
        self.active: ObservableValue[bool] = ObservableValue(False, name="active")

    # =========================================================================
    # Transitions
    # =========================================================================

    def activate(self, mode: CaptureMode) -> None:
        """Switch the camera into ``mode``; OFF is the same as ``deactivate()``."""
        if mode == CaptureMode.OFF:
            self.deactivate()
            return

        previous = self.mode.value
        self.mode.set(mode)
        self.active.set(True)
        if previous != mode:
            self.logger.info("Camera mode %s -> %s", previous.value, mode.value)

    def deactivate(self) -> None:
        """Release the camera."""
        previous = self.mode.value
        self.mode.set(CaptureMode.OFF)
        self.active.set(False)
        if previous != CaptureMode.OFF:
            self.logger.info("Camera mode %s -> off", previous.value)

    def switch_to_text_reading(self) -> None:
        """Enter TEXT_READING; returning to the prior mode is up to the caller."""
        self.activate(CaptureMode.TEXT_READING)

    def switch_to_navigation(self) -> None:
        self.activate(CaptureMode.NAVIGATION)

    # =========================================================================
    # Queries
    # =========================================================================

    def is_active(self) -> bool:
        return self.active.value

    def current_mode(self) -> CaptureMode:
        return self.mode.value

    def snapshot(self) -> ModeToken:
        return ModeToken(self.mode.value)

    def restore(self, token: ModeToken) -> None:
        self.logger.debug("Restoring camera mode %s", token.mode.value)
        self.activate(token.mode)


__all__ = ["CameraStateMachine", "CaptureMode", "ModeToken"]
