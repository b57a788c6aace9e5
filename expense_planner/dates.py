"""Calendar helpers shared by the scheduling and forecasting modules.

Month arithmetic is delegated to :mod:`dateutil.relativedelta` so that
adding months clamps to the last day of shorter months instead of
overflowing into the following month.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Iterator, Tuple

from dateutil.relativedelta import relativedelta

# Divisor used for the day-of-month fraction in fractional month counts.
DAYS_PER_MONTH_APPROX = 30


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def safe_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` to the length of the month."""
    return date(year, month, min(max(1, day), last_day_of_month(year, month)))


def add_months(value: date, months: int) -> date:
    return value + relativedelta(months=months)


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=last_day_of_month(value.year, value.month))


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_index(year: int, month: int) -> int:
    """Absolute month number, convenient for month offsets."""
    return year * 12 + (month - 1)


def iter_months(start: date, end: date) -> Iterator[Tuple[int, int]]:
    """Yield every (year, month) touched by the inclusive range."""
    if end < start:
        return
    current = month_index(start.year, start.month)
    last = month_index(end.year, end.month)
    while current <= last:
        yield current // 12, current % 12 + 1
        current += 1


def months_touched(start: date, end: date) -> int:
    if end < start:
        return 0
    return month_index(end.year, end.month) - month_index(start.year, start.month) + 1


def whole_months_between(start: date, end: date) -> int:
    """Calendar month difference ignoring days, floored at 1.

    Used for "months remaining" figures where a zero or negative count would
    otherwise produce a division by zero.
    """
    months = (end.year - start.year) * 12 + (end.month - start.month)
    return max(1, months)


def fractional_months_between(
    start: date, end: date, days_per_month: float = DAYS_PER_MONTH_APPROX
) -> float:
    """Whole months plus a day fraction over a fixed 30-day month.

    This is an approximation: the day delta is always divided by
    ``days_per_month`` (30 by default) regardless of the real month length.
    Negative spans return 0.
    """
    months = (end.year - start.year) * 12 + (end.month - start.month)
    fraction = (end.day - start.day) / days_per_month
    return max(0.0, months + fraction)


def in_window(value: date | None, start: date, end: date) -> bool:
    return value is not None and start <= value <= end
