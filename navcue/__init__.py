"""Frame admission, selection and navigation cue orchestration."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

from .session import FrameAnalyzer, NavigationSession

try:
    __version__ = metadata.version("navcue")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Convenience wrapper that runs the simulated session CLI."""
    from .cli.main import main

    return main(list(argv) if argv is not None else None)


__all__ = ["FrameAnalyzer", "NavigationSession", "__version__", "run"]
