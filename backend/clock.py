"""
clock.py — the service's notion of "today".
Everything that compares against the current date takes a ``Clock`` so tests
can pin the date instead of reading the wall clock.
"""

from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from config import BUDGET_TIMEZONE

Clock = Callable[[], date]


def today() -> date:
    """Current calendar date in the configured budget timezone."""
    return datetime.now(ZoneInfo(BUDGET_TIMEZONE)).date()


def get_clock() -> Clock:
    """FastAPI dependency — the clock route handlers hand to services."""
    return today
