"""
period_calculator.py — Budget period arithmetic
Maps a period anchor and type to the first date on which the period is over.
"""

import calendar
from datetime import date, timedelta

from models.budget import PeriodType


def add_months(day: date, months: int) -> date:
    """Shift by whole calendar months, clamping to the target month's last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def next_reset(period_start: date, period_type) -> date:
    """First date on/after which the period starting at ``period_start`` has elapsed.

    CUSTOM has no interval of its own yet and falls back to monthly, as does
    any unrecognized value.
    """
    period_type = PeriodType.coerce(period_type)
    if period_type is PeriodType.WEEKLY:
        return period_start + timedelta(weeks=1)
    if period_type is PeriodType.YEARLY:
        return add_months(period_start, 12)
    return add_months(period_start, 1)


def period_end(next_reset_date: date) -> date:
    """Last day inside the period (the period is closed on this date)."""
    return next_reset_date - timedelta(days=1)
