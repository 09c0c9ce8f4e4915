"""Root logging setup for navcue entry points (CLI, simulations, host apps).

Console output goes to stdout; an optional rotating file keeps the last few
sessions. Pipeline loggers all live under the ``navcue`` namespace, so a host
application can also attach its own handlers there and skip this module.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

if TYPE_CHECKING:  # pragma: no cover
    from .config import LoggingSettings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
SESSION_LOG_MAX_BYTES = 512 * 1024
SESSION_LOG_BACKUPS = 3

# asyncio debug mode reports every slow callback at WARNING
QUIET_LOGGERS = ("asyncio",)

LevelLike = Union[int, str]

_configured = False


def coerce_level(level: LevelLike) -> int:
    """Turn ``"debug"``/``"INFO"``/``10`` into a logging level number."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level '{level}'")
    return resolved


def _console_handler(formatter: logging.Formatter, level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _session_file_handler(
    path: Path,
    formatter: logging.Formatter,
    level: int,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _drop_root_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()


def configure_logging(
    level: LevelLike = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = SESSION_LOG_MAX_BYTES,
    backup_count: int = SESSION_LOG_BACKUPS,
    suppressed_loggers: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """Install navcue's formatter and handlers on the root logger.

    Args:
        level: Level number or name such as "info".
        force: Rebuild handlers even when logging was already configured.
        console: Log to stdout.
        log_file: Optional path for a rotating session log.
        max_bytes: Size at which the session log rotates.
        backup_count: Rotated session logs to keep.
        suppressed_loggers: Logger names raised to ERROR.
    """
    global _configured
    numeric_level = coerce_level(level)
    root = logging.getLogger()

    if not _configured or force:
        _drop_root_handlers(root)
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        handlers: List[logging.Handler] = []
        if console:
            handlers.append(_console_handler(formatter, numeric_level))
        if log_file:
            handlers.append(
                _session_file_handler(Path(log_file), formatter, numeric_level, max_bytes, backup_count)
            )
        if not handlers:
            handlers.append(logging.NullHandler())
        for handler in handlers:
            root.addHandler(handler)
        _configured = True

    root.setLevel(numeric_level)
    for name in suppressed_loggers:
        logging.getLogger(name).setLevel(logging.ERROR)


def configure_from_settings(settings: "LoggingSettings", *, force: bool = False, console: bool = True) -> None:
    """``configure_logging`` driven by the ``logging.*`` config keys."""
    configure_logging(settings.level, force=force, console=console, log_file=settings.file)


__all__ = [
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "coerce_level",
    "configure_from_settings",
    "configure_logging",
]
