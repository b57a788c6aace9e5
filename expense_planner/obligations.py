"""How much of each plan falls due inside a date window.

``obligation_in_period`` is the single source of truth for "how much is due
when": the coverage report calls it once per plan per reporting period and
the cash-flow forecaster once per plan per forecast month.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from .contributions import effective_target
from .dates import in_window, months_touched
from .models import (
    NO_OBLIGATION,
    AccountCoverage,
    BankAccount,
    ExpensePlan,
    Obligation,
    ObligationType,
    Period,
    PlanAtRisk,
    PlanType,
    Purpose,
)
from .schedule import due_day_occurrences, resolve_due_date, seasonal_months_in_period, yearly_due_dates


def _fixed_monthly(plan: ExpensePlan, start: date, end: date) -> Obligation:
    if plan.due_day is not None:
        occurrences = due_day_occurrences(plan.due_day, start, end)
    else:
        occurrences = months_touched(start, end)
    amount = occurrences * plan.monthly_contribution
    return Obligation(amount, occurrences > 0 and amount > 0, occurrences)


def _yearly(plan: ExpensePlan, start: date, end: date) -> Obligation:
    if plan.purpose is Purpose.SPENDING_BUDGET:
        # Ongoing monthly cost, at most one occurrence per period.
        amount = plan.monthly_contribution
        return Obligation(amount, amount > 0, 1 if amount > 0 else 0)

    if plan.next_due_date is not None:
        due_inside = in_window(plan.next_due_date, start, end)
    else:
        due_inside = any(in_window(d, start, end) for d in yearly_due_dates(plan, start, end))
    if not due_inside:
        return NO_OBLIGATION
    return Obligation(plan.target_amount, plan.target_amount > 0, 1)


def _multi_year(plan: ExpensePlan, start: date, end: date) -> Obligation:
    due = plan.target_date or plan.next_due_date
    if not in_window(due, start, end):
        return NO_OBLIGATION
    return Obligation(plan.target_amount, plan.target_amount > 0, 1)


def _seasonal(plan: ExpensePlan, start: date, end: date) -> Obligation:
    if not plan.seasonal_months:
        return NO_OBLIGATION
    occurrences = seasonal_months_in_period(plan, start, end)
    amount = occurrences * effective_target(plan)
    return Obligation(amount, occurrences > 0 and amount > 0, occurrences)


def _emergency_fund(plan: ExpensePlan, start: date, end: date) -> Obligation:
    return NO_OBLIGATION


def _goal(plan: ExpensePlan, start: date, end: date) -> Obligation:
    occurrences = months_touched(start, end)
    amount = plan.monthly_contribution * occurrences
    return Obligation(amount, amount > 0, occurrences)


def obligation_on_next_due_date(plan: ExpensePlan, start: date, end: date) -> Obligation:
    """Full target when the cached next due date falls inside the window."""
    if not in_window(plan.next_due_date, start, end):
        return NO_OBLIGATION
    return Obligation(plan.target_amount, plan.target_amount > 0, 1)


_CALCULATORS: Dict[PlanType, Callable[[ExpensePlan, date, date], Obligation]] = {
    PlanType.FIXED_MONTHLY: _fixed_monthly,
    PlanType.YEARLY_FIXED: _yearly,
    PlanType.YEARLY_VARIABLE: _yearly,
    PlanType.MULTI_YEAR: _multi_year,
    PlanType.SEASONAL: _seasonal,
    PlanType.EMERGENCY_FUND: _emergency_fund,
    PlanType.GOAL: _goal,
}


def obligation_in_period(plan: ExpensePlan, period_start: date, period_end: date) -> Obligation:
    """Decompose a plan's cost into the part due inside ``[start, end]``.

    Example:
        >>> plan = ExpensePlan(1, 'Garden', 'sinking_fund', 'seasonal', 'seasonal',
        ...                    target_amount=900, seasonal_months=(6, 7, 8))
        >>> obligation_in_period(plan, date(2024, 6, 1), date(2024, 6, 30))
        Obligation(amount=300.0, has_obligation=True, occurrences=1)
    """
    if period_end < period_start:
        return NO_OBLIGATION
    calculator = _CALCULATORS.get(plan.plan_type, obligation_on_next_due_date)
    obligation = calculator(plan, period_start, period_end)
    return Obligation(round(obligation.amount, 2), obligation.has_obligation, obligation.occurrences)


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------

_OBLIGATION_TYPES = {
    PlanType.FIXED_MONTHLY: ObligationType.FIXED,
    PlanType.YEARLY_FIXED: ObligationType.FIXED,
    PlanType.MULTI_YEAR: ObligationType.FIXED,
    PlanType.YEARLY_VARIABLE: ObligationType.ESTIMATED,
    PlanType.SEASONAL: ObligationType.ESTIMATED,
    PlanType.GOAL: ObligationType.PRORATED,
    PlanType.EMERGENCY_FUND: ObligationType.PRORATED,
}


def obligation_type(plan: ExpensePlan) -> ObligationType:
    if plan.purpose is Purpose.SPENDING_BUDGET:
        return ObligationType.PRORATED
    return _OBLIGATION_TYPES.get(plan.plan_type, ObligationType.ESTIMATED)


def _plans_due(plans: Iterable[ExpensePlan], period: Period, today: date) -> List[PlanAtRisk]:
    items: List[PlanAtRisk] = []
    for plan in plans:
        obligation = obligation_in_period(plan, period.start, period.end)
        if not obligation.has_obligation:
            continue
        due = resolve_due_date(plan, today)
        items.append(PlanAtRisk(
            plan_id=plan.id,
            name=plan.name,
            amount=obligation.amount,
            next_due_date=due,
            days_until_due=(due - today).days if due else None,
            obligation_type=obligation_type(plan),
            icon=plan.icon,
        ))
    items.sort(key=lambda item: (item.next_due_date or date.max, item.plan_id))
    return items


def account_coverage(
    accounts: Iterable[BankAccount],
    plans: Iterable[ExpensePlan],
    period: Period,
    today: Optional[date] = None,
) -> Dict[str, object]:
    """Check whether each account can cover the plans it pays for.

    Returns a dict with ``period``, ``accounts`` (one
    :class:`AccountCoverage` per account that has plans due) and
    ``unassigned`` (plans without a payment account).
    """
    today = today or date.today()
    active = [plan for plan in plans if plan.is_active]
    by_account: Dict[Optional[int], List[ExpensePlan]] = {}
    for plan in active:
        by_account.setdefault(plan.payment_account_id, []).append(plan)

    coverages: List[AccountCoverage] = []
    for account in accounts:
        due_items = _plans_due(by_account.get(account.id, []), period, today)
        if not due_items:
            continue
        total = round(sum(item.amount for item in due_items), 2)
        projected = round(account.balance - total, 2)
        shortfall = round(max(0.0, -projected), 2)
        coverages.append(AccountCoverage(
            account_id=account.id,
            account_name=account.name,
            current_balance=round(account.balance, 2),
            upcoming_plans_total=total,
            plan_count=len(due_items),
            projected_balance=projected,
            has_shortfall=shortfall > 0,
            shortfall_amount=shortfall,
            surplus_amount=round(max(0.0, projected), 2),
            plans_at_risk=due_items if shortfall > 0 else [],
        ))

    unassigned = _plans_due(by_account.get(None, []), period, today)
    return {
        'period': period,
        'accounts': coverages,
        'unassigned': {
            'count': len(unassigned),
            'total_amount': round(sum(item.amount for item in unassigned), 2),
            'plans': unassigned,
        },
    }
