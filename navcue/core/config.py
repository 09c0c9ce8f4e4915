"""Typed configuration for the navcue pipeline.

Settings are read from a plain ``key = value`` text file (``#`` starts a
comment) using dotted keys such as ``admission.interval_ms``. Missing files and
unparsable values fall back to the defaults below.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import aiofiles

from .logging_utils import LoggerLike, ensure_structured_logger

DEFAULT_ADMISSION_INTERVAL_MS = 100
DEFAULT_MOTION_WINDOW_MS = 800
DEFAULT_SEARCH_RADIUS = 3
DEFAULT_SHARPNESS_STRIDE = 8
DEFAULT_SHARPNESS_THRESHOLD = 12.0
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_WAIT_TIMEOUT_MS = 2000
DEFAULT_BURST_FRAME_TIMEOUT_MS = 1000
DEFAULT_BURST_COUNT = 5
DEFAULT_BURST_INTERVAL_MS = 100
DEFAULT_BUFFER_CAPACITY = 35
DEFAULT_STALE_FRAME_MS = 1000
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE: Optional[Path] = None

PathLike = Union[str, Path]


@dataclass(slots=True)
class AdmissionSettings:
    interval_ms: int = DEFAULT_ADMISSION_INTERVAL_MS


@dataclass(slots=True)
class SelectorSettings:
    motion_window_ms: int = DEFAULT_MOTION_WINDOW_MS
    search_radius: int = DEFAULT_SEARCH_RADIUS
    stride: int = DEFAULT_SHARPNESS_STRIDE
    threshold: float = DEFAULT_SHARPNESS_THRESHOLD


@dataclass(slots=True)
class CaptureSettings:
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    wait_timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS
    burst_frame_timeout_ms: int = DEFAULT_BURST_FRAME_TIMEOUT_MS
    burst_count: int = DEFAULT_BURST_COUNT
    burst_interval_ms: int = DEFAULT_BURST_INTERVAL_MS


@dataclass(slots=True)
class BufferSettings:
    capacity: int = DEFAULT_BUFFER_CAPACITY
    stale_frame_ms: int = DEFAULT_STALE_FRAME_MS


@dataclass(slots=True)
class LoggingSettings:
    level: str = DEFAULT_LOG_LEVEL
    file: Optional[Path] = DEFAULT_LOG_FILE


@dataclass(slots=True)
class NavcueConfig:
    admission: AdmissionSettings
    selector: SelectorSettings
    capture: CaptureSettings
    buffer: BufferSettings
    logging: LoggingSettings

    @classmethod
    def defaults(cls) -> "NavcueConfig":
        return cls(
            admission=AdmissionSettings(),
            selector=SelectorSettings(),
            capture=CaptureSettings(),
            buffer=BufferSettings(),
            logging=LoggingSettings(),
        )


# ---------------------------------------------------------------------------
# Public API


def parse_config_lines(lines: Iterable[str], *, logger: LoggerLike = None) -> Dict[str, str]:
    """Parse ``key = value`` lines into a raw string mapping."""
    log = ensure_structured_logger(logger, fallback_name=__name__)
    config: Dict[str, str] = {}

    for line_num, raw_line in enumerate(lines, 1):
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue
        if '=' not in line:
            log.warning("Invalid config line %d (missing '='): %s", line_num, line)
            continue

        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()

        if '#' in value:
            value = value.split('#', 1)[0].strip()

        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]

        config[key] = value

    return config


def build_config(
    raw: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    *,
    logger: LoggerLike = None,
) -> NavcueConfig:
    """Build a typed config from a raw mapping plus optional overrides."""

    log = ensure_structured_logger(logger, fallback_name=__name__)
    merged: Dict[str, Any] = dict(raw or {})
    if overrides:
        for key, value in overrides.items():
            if value is not None:
                merged[key] = value

    unknown = sorted(key for key in merged if key not in _KNOWN_KEYS)
    for key in unknown:
        log.warning("Unknown config key '%s' ignored", key)

    admission = AdmissionSettings(
        interval_ms=_coerce_int(merged, ("admission.interval_ms",), DEFAULT_ADMISSION_INTERVAL_MS, log),
    )

    selector = SelectorSettings(
        motion_window_ms=_coerce_int(merged, ("selector.motion_window_ms",), DEFAULT_MOTION_WINDOW_MS, log),
        search_radius=_coerce_int(merged, ("selector.search_radius",), DEFAULT_SEARCH_RADIUS, log),
        stride=_coerce_int(merged, ("selector.stride",), DEFAULT_SHARPNESS_STRIDE, log),
        threshold=_coerce_float(merged, ("selector.threshold",), DEFAULT_SHARPNESS_THRESHOLD, log),
    )

    capture = CaptureSettings(
        poll_interval_ms=_coerce_int(merged, ("capture.poll_interval_ms",), DEFAULT_POLL_INTERVAL_MS, log),
        wait_timeout_ms=_coerce_int(merged, ("capture.wait_timeout_ms",), DEFAULT_WAIT_TIMEOUT_MS, log),
        burst_frame_timeout_ms=_coerce_int(
            merged, ("capture.burst_frame_timeout_ms",), DEFAULT_BURST_FRAME_TIMEOUT_MS, log
        ),
        burst_count=_coerce_int(merged, ("capture.burst_count",), DEFAULT_BURST_COUNT, log),
        burst_interval_ms=_coerce_int(merged, ("capture.burst_interval_ms",), DEFAULT_BURST_INTERVAL_MS, log),
    )

    buffer = BufferSettings(
        capacity=_coerce_int(merged, ("buffer.capacity",), DEFAULT_BUFFER_CAPACITY, log),
        stale_frame_ms=_coerce_int(merged, ("buffer.stale_frame_ms",), DEFAULT_STALE_FRAME_MS, log),
    )

    logging_settings = LoggingSettings(
        level=_coerce_str(merged, ("logging.level", "log_level"), DEFAULT_LOG_LEVEL),
        file=_coerce_optional_path(merged, ("logging.file", "log_file"), DEFAULT_LOG_FILE),
    )

    return NavcueConfig(
        admission=admission,
        selector=selector,
        capture=capture,
        buffer=buffer,
        logging=logging_settings,
    )


def load_config(
    config_path: Optional[PathLike] = None,
    overrides: Optional[Dict[str, Any]] = None,
    *,
    logger: LoggerLike = None,
) -> NavcueConfig:
    """Read ``config_path`` (if given and present) and build a typed config."""
    log = ensure_structured_logger(logger, fallback_name=__name__)
    raw: Dict[str, str] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            log.debug("Config file not found at %s, using defaults", path)
        else:
            try:
                with open(path, 'r', encoding='utf-8') as fh:
                    raw = parse_config_lines(fh, logger=log)
                log.info("Loaded config from %s (%d values)", path, len(raw))
            except OSError as exc:
                log.error("Failed to read config file %s: %s", path, exc)
    return build_config(raw, overrides, logger=log)


async def load_config_async(
    config_path: Optional[PathLike] = None,
    overrides: Optional[Dict[str, Any]] = None,
    *,
    logger: LoggerLike = None,
) -> NavcueConfig:
    """Async version of :func:`load_config` using aiofiles for the file read."""
    log = ensure_structured_logger(logger, fallback_name=__name__)
    raw: Dict[str, str] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            log.debug("Config file not found at %s, using defaults", path)
        else:
            try:
                async with aiofiles.open(path, 'r', encoding='utf-8') as fh:
                    content = await fh.read()
                raw = parse_config_lines(content.splitlines(), logger=log)
                log.info("Loaded config from %s (%d values)", path, len(raw))
            except OSError as exc:
                log.error("Failed to read config file %s: %s", path, exc)
    return build_config(raw, overrides, logger=log)


# ---------------------------------------------------------------------------
# Internal helpers

_KNOWN_KEYS = frozenset({
    "admission.interval_ms",
    "selector.motion_window_ms",
    "selector.search_radius",
    "selector.stride",
    "selector.threshold",
    "capture.poll_interval_ms",
    "capture.wait_timeout_ms",
    "capture.burst_frame_timeout_ms",
    "capture.burst_count",
    "capture.burst_interval_ms",
    "buffer.capacity",
    "buffer.stale_frame_ms",
    "logging.level",
    "log_level",
    "logging.file",
    "log_file",
})


def _first_present(data: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None


def _coerce_str(data: Dict[str, Any], keys: Tuple[str, ...], default: str) -> str:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    return str(raw).strip()


def _coerce_optional_path(data: Dict[str, Any], keys: Tuple[str, ...], default: Optional[Path]) -> Optional[Path]:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    return Path(str(raw).strip())


def _coerce_int(data: Dict[str, Any], keys: Tuple[str, ...], default: int, log) -> int:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    try:
        return int(str(raw).strip(), 0)
    except ValueError:
        log.warning("Failed to parse %s=%r as int, using default %s", keys[0], raw, default)
        return default


def _coerce_float(data: Dict[str, Any], keys: Tuple[str, ...], default: float, log) -> float:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        log.warning("Failed to parse %s=%r as float, using default %s", keys[0], raw, default)
        return default


__all__ = [
    "AdmissionSettings",
    "BufferSettings",
    "CaptureSettings",
    "LoggingSettings",
    "NavcueConfig",
    "SelectorSettings",
    "build_config",
    "load_config",
    "load_config_async",
    "parse_config_lines",
]
