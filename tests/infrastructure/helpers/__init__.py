"""Test helpers: controllable clock, synthetic images and scripted analyzers.

Usage:
    from tests.infrastructure.helpers import FakeClock, stripes, ScriptedCues
"""

from tests.infrastructure.helpers.fakes import BlockingAnalyzer, FakeClock, FailingAnalyzer, ScriptedCues
from tests.infrastructure.helpers.images import stripes, uniform
from tests.infrastructure.helpers.waiting import next_item, wait_until

__all__ = [
    "BlockingAnalyzer",
    "FailingAnalyzer",
    "FakeClock",
    "ScriptedCues",
    "next_item",
    "stripes",
    "uniform",
    "wait_until",
]
