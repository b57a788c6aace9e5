"""Monthly set-aside amounts and per-occurrence targets.

``implied_monthly_contribution`` derives how much a plan needs each month
purely from its configuration, without looking at balances.
``effective_target`` gives the per-occurrence amount all funding-progress
math runs on.  ``adjustment_suggestion`` compares a plan's contribution
with what its category actually costs.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional

from .dates import whole_months_between
from .models import AdjustmentReason, AdjustmentSuggestion, ContributionSource, ExpensePlan, Frequency, PlanType
from .repositories import CategorySpendingReader
from .settings import get_config_value

logger = logging.getLogger(__name__)


def effective_target(plan: ExpensePlan) -> float:
    """Per-occurrence target.

    Seasonal plans (by plan type or by frequency) store the total for the
    whole season in ``target_amount``; each seasonal month gets an equal
    share.
    """
    seasonal = plan.plan_type is PlanType.SEASONAL or plan.frequency is Frequency.SEASONAL
    if seasonal and plan.seasonal_months:
        return plan.target_amount / len(plan.seasonal_months)
    return plan.target_amount


def implied_monthly_contribution(plan: ExpensePlan, today: Optional[date] = None) -> float:
    """Monthly contribution implied by the plan's recurrence.

    Manually sourced contributions are returned unchanged.

    Example:
        >>> plan = ExpensePlan(1, 'Car insurance', 'sinking_fund', 'yearly_fixed', 'yearly',
        ...                    target_amount=1200, contribution_source='calculated')
        >>> implied_monthly_contribution(plan)
        100.0
    """
    if plan.contribution_source is ContributionSource.MANUAL:
        return plan.monthly_contribution

    target = plan.target_amount
    freq = plan.frequency

    if freq is Frequency.MONTHLY:
        return target
    if freq is Frequency.QUARTERLY:
        return target / 3
    if freq is Frequency.YEARLY:
        return target / 12
    if freq is Frequency.MULTI_YEAR:
        return target / ((plan.frequency_years or 1) * 12)
    if freq is Frequency.SEASONAL:
        # Saving happens in the months outside the season.
        saving_months = 12 - len(plan.seasonal_months)
        if plan.seasonal_months and saving_months > 0:
            return target / saving_months
        return target / 12
    if freq is Frequency.ONE_TIME:
        if plan.target_date is None:
            return target / 12
        months_remaining = whole_months_between(today or date.today(), plan.target_date)
        return max(0.0, target / months_remaining)
    return target / 12


def cycle_months(plan: ExpensePlan) -> int:
    """Months in one saving cycle, used to rebuild a target from the monthly rate."""
    freq = plan.frequency
    if freq is Frequency.MONTHLY:
        return 1
    if freq is Frequency.QUARTERLY:
        return 3
    if freq is Frequency.MULTI_YEAR:
        return (plan.frequency_years or 1) * 12
    if freq is Frequency.SEASONAL and plan.seasonal_months and len(plan.seasonal_months) < 12:
        return 12 - len(plan.seasonal_months)
    return 12


def adjustment_suggestion(
    plan: ExpensePlan,
    history: CategorySpendingReader,
    user_id: Optional[int] = None,
    today: Optional[date] = None,
) -> Optional[AdjustmentSuggestion]:
    """Suggest a new monthly contribution when category spending has drifted.

    The plan's ``monthly_contribution`` is compared with the weighted monthly
    spending of its category.  A suggestion is made only when the gap is at
    least ``adjustments.threshold_percent`` of the current contribution.
    Plans without a category, inactive plans and categories without
    transactions get no suggestion.  A plan with no contribution yet and
    real spending is reported as a 100% increase.
    """
    if plan.category_id is None or not plan.is_active:
        return None

    spending = history.category_spending(
        user_id,
        plan.category_id,
        months_back=int(get_config_value('adjustments', 'months_to_analyze', default=12)),
        today=today,
        days_per_month=float(get_config_value('adjustments', 'days_per_month', default=30)),
    )
    if spending.transaction_count == 0:
        return None

    current = plan.monthly_contribution
    actual = spending.weighted_monthly_average
    if current > 0:
        percent_change = (actual - current) / current * 100
    elif actual > 0:
        percent_change = 100.0
    else:
        return None

    threshold = float(get_config_value('adjustments', 'threshold_percent', default=10))
    if abs(percent_change) < threshold:
        return None

    reason = AdjustmentReason.SPENDING_INCREASED if percent_change > 0 else AdjustmentReason.SPENDING_DECREASED
    logger.debug(
        "Plan %s (%s): contribution %.2f vs spending %.2f (%+.2f%%)",
        plan.id, plan.name, current, actual, percent_change,
    )
    return AdjustmentSuggestion(
        plan_id=plan.id,
        current_amount=round(current, 2),
        suggested_amount=actual,
        percent_change=round(percent_change, 2),
        reason=reason,
    )


def adjustment_suggestions(
    plans: Iterable[ExpensePlan],
    history: CategorySpendingReader,
    user_id: Optional[int] = None,
    today: Optional[date] = None,
) -> List[AdjustmentSuggestion]:
    """Suggestions for every plan whose contribution has drifted from actual spending."""
    suggestions: List[AdjustmentSuggestion] = []
    for plan in plans:
        suggestion = adjustment_suggestion(plan, history, user_id=user_id, today=today)
        if suggestion is not None:
            suggestions.append(suggestion)
    return suggestions
