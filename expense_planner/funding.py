"""Funding projections and status classification for expense plans.

The projector does not know real balances.  It assumes a disciplined saver
who started putting ``monthly_contribution`` aside exactly early enough to
reach the target on the due date, and reports where that saver would be
today.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .contributions import effective_target
from .dates import add_months, fractional_months_between, whole_months_between
from .models import ExpensePlan, FundingStatus, FundingStatusRecord, PlanType
from .schedule import next_due_date, resolve_due_date
from .settings import get_config_value


def _thresholds() -> Dict[str, float]:
    return {
        'almost_ready': float(get_config_value('funding', 'almost_ready_ratio', default=0.8)),
        'tolerance': float(get_config_value('funding', 'contribution_tolerance', default=0.9)),
        'days_per_month': float(get_config_value('funding', 'days_per_month', default=30)),
    }


def _funding_due_date(plan: ExpensePlan, today: date) -> Optional[date]:
    return resolve_due_date(plan, today)


def _expected_raw(plan: ExpensePlan, today: date) -> float:
    if not plan.is_sinking_fund:
        return 0.0
    monthly = plan.monthly_contribution
    target = effective_target(plan)
    if monthly <= 0 or target <= 0:
        return 0.0
    due = _funding_due_date(plan, today)
    if due is None:
        return 0.0

    months_needed = math.ceil(target / monthly)
    saving_start = add_months(due, -months_needed)
    if today < saving_start:
        return 0.0

    elapsed = fractional_months_between(saving_start, today, _thresholds()['days_per_month'])
    return min(elapsed * monthly, target)


def expected_funded_by_now(plan: ExpensePlan, today: Optional[date] = None) -> float:
    """Amount a sinking fund should hold today under a linear savings plan.

    Returns 0 for spending budgets, for plans without a positive contribution
    or target, for plans without a due date, and before the backward-dated
    saving start.

    The value never decreases over time while the due date is cached
    (``next_due_date``) or anchored (``target_date``).  A due date computed
    from the recurrence moves to the next cycle on the due day itself, so
    the value drops back to the start of that cycle.

    Example:
        >>> plan = ExpensePlan(1, 'Insurance', 'sinking_fund', 'yearly_fixed', 'yearly',
        ...                    target_amount=1200, monthly_contribution=100,
        ...                    next_due_date=date(2025, 1, 1))
        >>> expected_funded_by_now(plan, date(2024, 7, 1))
        600.0
    """
    return round(_expected_raw(plan, today or date.today()), 2)


def _fixed_monthly_status(plan: ExpensePlan, today: date) -> FundingStatus:
    if plan.due_day is not None and today.day >= plan.due_day:
        return FundingStatus.FUNDED
    return FundingStatus.ON_TRACK


def funding_status(plan: ExpensePlan, today: Optional[date] = None) -> FundingStatus:
    """Classify a plan as funded, almost ready, on track or behind."""
    today = today or date.today()
    if plan.plan_type is PlanType.FIXED_MONTHLY:
        return _fixed_monthly_status(plan, today)

    due = _funding_due_date(plan, today)
    if due is None:
        return FundingStatus.ON_TRACK

    limits = _thresholds()
    target = effective_target(plan)
    expected = _expected_raw(plan, today)
    months_left = whole_months_between(today, due)

    if months_left <= 1:
        if expected >= target:
            return FundingStatus.FUNDED
        if expected >= limits['almost_ready'] * target:
            return FundingStatus.ALMOST_READY
        return FundingStatus.BEHIND

    required_monthly = target / months_left
    if plan.monthly_contribution >= limits['tolerance'] * required_monthly:
        if expected >= limits['almost_ready'] * target:
            return FundingStatus.ALMOST_READY
        return FundingStatus.ON_TRACK
    return FundingStatus.BEHIND


def funding_status_record(plan: ExpensePlan, today: Optional[date] = None) -> FundingStatusRecord:
    """Assemble the per-plan funding record handed to presentation layers."""
    today = today or date.today()
    target = effective_target(plan)
    expected = expected_funded_by_now(plan, today)
    status = funding_status(plan, today)

    if plan.plan_type is PlanType.FIXED_MONTHLY:
        due = next_due_date(plan, today)
    else:
        due = _funding_due_date(plan, today)
    months_left = whole_months_between(today, due) if due else None
    required = round(target / months_left, 2) if months_left else None
    progress = round(expected / target * 100, 1) if target > 0 else 0.0

    return FundingStatusRecord(
        plan_id=plan.id,
        name=plan.name,
        status=status,
        effective_target=round(target, 2),
        monthly_contribution=round(plan.monthly_contribution, 2),
        expected_funded_by_now=expected,
        progress_percent=progress,
        next_due_date=due,
        months_until_due=months_left,
        required_monthly=required,
        current_month_payment_made=(
            plan.plan_type is PlanType.FIXED_MONTHLY and status is FundingStatus.FUNDED
        ),
    )


_SUMMARY_BUCKETS = {
    PlanType.FIXED_MONTHLY: 'fixed_monthly',
    PlanType.YEARLY_FIXED: 'sinking_funds',
    PlanType.YEARLY_VARIABLE: 'sinking_funds',
    PlanType.MULTI_YEAR: 'sinking_funds',
    PlanType.SEASONAL: 'seasonal',
    PlanType.GOAL: 'goals',
    PlanType.EMERGENCY_FUND: 'emergency',
}


def monthly_deposit_summary(plans: Iterable[ExpensePlan], today: Optional[date] = None) -> Dict[str, Any]:
    """Total monthly set-aside grouped by plan bucket, with status counts."""
    today = today or date.today()
    by_type: Dict[str, Dict[str, Any]] = {
        bucket: {'total': 0.0, 'plans': []} for bucket in dict.fromkeys(_SUMMARY_BUCKETS.values())
    }
    total = 0.0
    plan_count = 0
    funded = 0
    behind = 0

    for plan in plans:
        if not plan.is_active:
            continue
        plan_count += 1
        total += plan.monthly_contribution
        status = funding_status(plan, today)
        if status is FundingStatus.FUNDED:
            funded += 1
        elif status is FundingStatus.BEHIND:
            behind += 1
        bucket = by_type[_SUMMARY_BUCKETS[plan.plan_type]]
        bucket['total'] += plan.monthly_contribution
        bucket['plans'].append({
            'id': plan.id,
            'name': plan.name,
            'icon': plan.icon,
            'monthly_contribution': round(plan.monthly_contribution, 2),
            'target_amount': round(plan.target_amount, 2),
            'status': status.value,
        })

    for bucket in by_type.values():
        bucket['total'] = round(bucket['total'], 2)

    return {
        'total_monthly_deposit': round(total, 2),
        'plan_count': plan_count,
        'fully_funded_count': funded,
        'behind_schedule_count': behind,
        'by_type': by_type,
    }


def timeline(plans: Iterable[ExpensePlan], today: Optional[date] = None, months: int = 12) -> List[Dict[str, Any]]:
    """Upcoming due dates within ``months`` months, soonest first."""
    today = today or date.today()
    entries: List[Dict[str, Any]] = []
    for plan in plans:
        if not plan.is_active:
            continue
        due = resolve_due_date(plan, today)
        if due is None:
            continue
        months_away = whole_months_between(today, due)
        if months_away > months:
            continue
        entries.append({
            'date': due,
            'plan_id': plan.id,
            'plan_name': plan.name,
            'icon': plan.icon,
            'amount': round(effective_target(plan), 2),
            'status': funding_status(plan, today).value,
            'months_away': months_away,
        })
    return sorted(entries, key=lambda entry: (entry['date'], entry['plan_id']))
