"""Frame selection for the analyzer: motion context plus sharpness.

Two frames are chosen from the retained window: the newest one and one at
least ``motion_window_ms`` older, so the analyzer can see what moved. Each
choice is swapped for the nearest sharp neighbour within ``search_radius``
when the frame itself looks blurred. Sharpness is a cheap average-gradient
estimate over a sparse pixel grid, not real edge detection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

import numpy as np

from ..core.config import SelectorSettings

if TYPE_CHECKING:  # pragma: no cover
    from .frames import Frame

SharpnessCheck = Callable[[np.ndarray], bool]

_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def _luminance(pixels: np.ndarray) -> np.ndarray:
    if pixels.ndim == 2:
        return pixels.astype(np.int32)
    weighted = pixels[..., :3].astype(np.float64) @ _LUMA_WEIGHTS
    return weighted.astype(np.int32)


def sharpness_score(image: np.ndarray, stride: int = 8) -> Optional[float]:
    """Mean absolute luminance step to the right and lower grid neighbours.

    Returns None when the image is too small to sample (under ``2 * stride``
    in either dimension).
    """
    if stride < 1:
        raise ValueError("stride must be positive")
    height, width = image.shape[:2]
    if width < stride * 2 or height < stride * 2:
        return None

    ys = np.arange(stride, height - stride, stride)
    xs = np.arange(stride, width - stride, stride)
    if ys.size == 0 or xs.size == 0:
        return 0.0

    centre = _luminance(image[np.ix_(ys, xs)])
    right = _luminance(image[np.ix_(ys, xs + stride)])
    below = _luminance(image[np.ix_(ys + stride, xs)])
    diff = np.abs(centre - right) + np.abs(centre - below)
    return float(diff.mean())


def is_sharp(image: np.ndarray, stride: int = 8, threshold: float = 12.0) -> bool:
    score = sharpness_score(image, stride)
    if score is None:
        # tiny image, assume sharp
        return True
    return score >= threshold


def _checker(settings: SelectorSettings, predicate: Optional[SharpnessCheck]) -> SharpnessCheck:
    if predicate is not None:
        return predicate
    return lambda image: is_sharp(image, settings.stride, settings.threshold)


def motion_candidate_index(frames: Sequence["Frame"], motion_window_ms: int) -> int:
    """Index of the newest frame at least ``motion_window_ms`` older than the last.

    Falls back to the last index when the window does not span that long.
    """
    if not frames:
        raise ValueError("no frames to choose from")
    latest_idx = len(frames) - 1
    latest_ts = frames[latest_idx].timestamp_ms
    for index in range(latest_idx, -1, -1):
        if latest_ts - frames[index].timestamp_ms >= motion_window_ms:
            return index
    return latest_idx


def find_sharp_near(
    frames: Sequence["Frame"],
    index: int,
    settings: Optional[SelectorSettings] = None,
    *,
    predicate: Optional[SharpnessCheck] = None,
) -> "Frame":
    """Sharp frame at ``index`` or the closest one within the search radius.

    Probes ``index``, then ``index - 1``, ``index + 1``, ``index - 2`` and so on.
    Returns ``frames[index]`` when nothing within reach is sharp.
    """
    settings = settings or SelectorSettings()
    sharp = _checker(settings, predicate)

    if sharp(frames[index].image):
        return frames[index]

    last = len(frames) - 1
    for offset in range(1, settings.search_radius + 1):
        left = index - offset
        right = index + offset
        if left >= 0 and sharp(frames[left].image):
            return frames[left]
        if right <= last and sharp(frames[right].image):
            return frames[right]
    return frames[index]


def select_best_quality_frame(
    frames: Sequence["Frame"],
    settings: Optional[SelectorSettings] = None,
    *,
    predicate: Optional[SharpnessCheck] = None,
) -> Optional["Frame"]:
    """Sharp frame nearest the newest one; None for an empty window."""
    if not frames:
        return None
    return find_sharp_near(frames, len(frames) - 1, settings, predicate=predicate)


def select_motion_frames(
    frames: Sequence["Frame"],
    settings: Optional[SelectorSettings] = None,
    *,
    predicate: Optional[SharpnessCheck] = None,
) -> List["Frame"]:
    """Pick up to two frames (older first) for motion-aware analysis."""
    if not frames:
        return []
    if len(frames) == 1:
        return [frames[-1]]

    settings = settings or SelectorSettings()
    latest_idx = len(frames) - 1
    candidate_idx = motion_candidate_index(frames, settings.motion_window_ms)

    sharp_latest = find_sharp_near(frames, latest_idx, settings, predicate=predicate)
    if candidate_idx == latest_idx:
        return [sharp_latest]

    sharp_older = find_sharp_near(frames, candidate_idx, settings, predicate=predicate)
    if sharp_older is sharp_latest:
        return [sharp_latest]
    return sorted([sharp_older, sharp_latest], key=lambda frame: frame.timestamp_ms)


__all__ = [
    "find_sharp_near",
    "is_sharp",
    "motion_candidate_index",
    "select_best_quality_frame",
    "select_motion_frames",
    "sharpness_score",
]
