"""Due-date resolution for expense plans.

Each recurrence kind has one resolver registered in ``_RESOLVERS``.  A due
date that falls on ``today`` counts as already passed, so monthly and yearly
schedules roll over to the next cycle on the due day itself.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Dict, Optional

from .dates import add_months, iter_months, safe_date, whole_months_between
from .models import (
    ExpensePlan,
    MonthlyRecurrence,
    MultiYearRecurrence,
    OneTimeRecurrence,
    QuarterlyRecurrence,
    Recurrence,
    SeasonalRecurrence,
    YearlyRecurrence,
)


def _next_one_time(rec: OneTimeRecurrence, today: date) -> Optional[date]:
    return rec.target_date


def _next_monthly(rec: MonthlyRecurrence, today: date) -> Optional[date]:
    if rec.due_day is None:
        return None
    candidate = safe_date(today.year, today.month, rec.due_day)
    if candidate <= today:
        following = add_months(today.replace(day=1), 1)
        candidate = safe_date(following.year, following.month, rec.due_day)
    return candidate


def _next_quarterly(rec: QuarterlyRecurrence, today: date) -> Optional[date]:
    if rec.due_day is None:
        return None
    current_quarter = (today.month - 1) // 3
    next_quarter_month = (current_quarter + 1) * 3 + 1
    year = today.year
    if next_quarter_month > 12:
        next_quarter_month = 1
        year += 1
    return safe_date(year, next_quarter_month, rec.due_day)


def _next_yearly(rec: YearlyRecurrence, today: date) -> Optional[date]:
    if rec.due_month is None or rec.due_day is None:
        return None
    candidate = safe_date(today.year, rec.due_month, rec.due_day)
    if candidate <= today:
        candidate = safe_date(today.year + 1, rec.due_month, rec.due_day)
    return candidate


def _next_multi_year(rec: MultiYearRecurrence, today: date) -> Optional[date]:
    # No cycling without an anchor date.
    return rec.anchor


def _next_seasonal(rec: SeasonalRecurrence, today: date) -> Optional[date]:
    if not rec.months:
        return None
    for month in rec.months:
        if month < today.month:
            continue
        candidate = safe_date(today.year, month, rec.due_day)
        if candidate > today:
            return candidate
    return safe_date(today.year + 1, rec.months[0], rec.due_day)


_RESOLVERS: Dict[type, Callable[..., Optional[date]]] = {
    OneTimeRecurrence: _next_one_time,
    MonthlyRecurrence: _next_monthly,
    QuarterlyRecurrence: _next_quarterly,
    YearlyRecurrence: _next_yearly,
    MultiYearRecurrence: _next_multi_year,
    SeasonalRecurrence: _next_seasonal,
}


def next_due_date_for(recurrence: Recurrence, today: date) -> Optional[date]:
    resolver = _RESOLVERS.get(type(recurrence))
    if resolver is None:
        raise TypeError(f"No due-date resolver for {type(recurrence).__name__}")
    return resolver(recurrence, today)


def next_due_date(plan: ExpensePlan, today: Optional[date] = None) -> Optional[date]:
    """Compute the next due date of ``plan`` from its recurrence.

    Returns ``None`` when the fields the frequency needs are missing.

    Example:
        >>> plan = ExpensePlan(1, 'Rent', 'spending_budget', 'fixed_monthly', 'monthly', due_day=5)
        >>> next_due_date(plan, date(2024, 3, 5))
        datetime.date(2024, 4, 5)
    """
    return next_due_date_for(plan.recurrence, today or date.today())


def resolve_due_date(plan: ExpensePlan, today: Optional[date] = None) -> Optional[date]:
    """Cached ``next_due_date`` first, then ``target_date``, then computed."""
    if plan.next_due_date is not None:
        return plan.next_due_date
    if plan.target_date is not None:
        return plan.target_date
    return next_due_date(plan, today)


def months_until_due(plan: ExpensePlan, today: Optional[date] = None) -> Optional[int]:
    """Whole calendar months until the resolved due date, floored at 1."""
    today = today or date.today()
    due = resolve_due_date(plan, today)
    if due is None:
        return None
    return whole_months_between(today, due)


def seasonal_months_in_period(plan: ExpensePlan, start: date, end: date) -> int:
    """Count calendar months touched by the window that are seasonal months."""
    if not plan.seasonal_months:
        return 0
    return sum(1 for _, month in iter_months(start, end) if month in plan.seasonal_months)


def due_day_occurrences(due_day: int, start: date, end: date) -> int:
    """Count monthly due-day dates falling inside the inclusive window."""
    count = 0
    for year, month in iter_months(start, end):
        if start <= safe_date(year, month, due_day) <= end:
            count += 1
    return count


def yearly_due_dates(plan: ExpensePlan, start: date, end: date) -> list:
    """Reconstruct the ``due_month``/``due_day`` date in every year spanned."""
    if plan.due_month is None:
        return []
    day = plan.due_day or 1
    return [safe_date(year, plan.due_month, day) for year in range(start.year, end.year + 1)]
