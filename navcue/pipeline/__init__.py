"""Frame admission, retention, selection and capture for the navigation pipeline."""

from .admission import AdmissionController, AdmissionGuard
from .capture import capture_multiple_frames, wait_for_frame
from .frames import Frame, FrameBuffer, FrameProvider, monotonic_ms
from .selector import (
    find_sharp_near,
    is_sharp,
    motion_candidate_index,
    select_best_quality_frame,
    select_motion_frames,
    sharpness_score,
)

__all__ = [
    "AdmissionController",
    "AdmissionGuard",
    "Frame",
    "FrameBuffer",
    "FrameProvider",
    "capture_multiple_frames",
    "find_sharp_near",
    "is_sharp",
    "monotonic_ms",
    "motion_candidate_index",
    "select_best_quality_frame",
    "select_motion_frames",
    "sharpness_score",
    "wait_for_frame",
]
