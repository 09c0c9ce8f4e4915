from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from ..core.config import load_config
from ..core.logging_config import configure_from_settings, configure_logging
from ..core.logging_utils import get_module_logger
from ..cues.model import CueCategory
from ..cues.orchestrator import FoldPolicy
from .simulation import run_simulation


logger = get_module_logger(__name__)

LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def _positive_number(value: str, typ: type, name: str):
    try:
        parsed = typ(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Value must be a {name}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be positive")
    return parsed


def positive_float(value: str) -> float:
    return _positive_number(value, float, "number")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="navcue",
        description="Run a simulated navigation session with synthetic frames and a scripted analyzer",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional key = value configuration file",
    )
    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=None,
        help="Logging verbosity (default: from config, else info)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional path for a rotating log file",
    )
    parser.add_argument(
        "--duration",
        type=positive_float,
        default=3.0,
        help="Session length in seconds (default: 3)",
    )
    parser.add_argument(
        "--fps",
        type=positive_float,
        default=15.0,
        help="Synthetic camera frame rate (default: 15)",
    )
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in FoldPolicy],
        default=FoldPolicy.APPEND_ALWAYS.value,
        help="How finished cues fold into the transcript (default: append_always)",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(list(argv) if argv is not None else None)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config(
        args.config,
        overrides={"logging.level": args.log_level, "logging.file": args.log_file},
    )
    try:
        configure_from_settings(config.logging)
    except ValueError as exc:
        configure_logging(logging.INFO, log_file=config.logging.file)
        logger.warning("%s, falling back to info", exc)

    policy = FoldPolicy(args.policy)
    logger.info("Starting simulated session (duration=%.1fs, fps=%.1f, policy=%s)", args.duration, args.fps, policy.value)

    states = asyncio.run(
        run_simulation(config, duration_s=args.duration, fps=args.fps, policy=policy)
    )

    if not states:
        print("No cues produced.")
        return 0

    text, category = states[-1]
    print(f"Cues received: {len(states)}")
    if category is not CueCategory.NONE:
        print(f"Last category: {category.value}")
    print(text)
    return 0


__all__ = ["build_parser", "main", "parse_args"]
