"""Envelope balances carried month over month.

For a plan and a calendar month::

    current_balance = previous_balance + monthly_allocation - actual_spending

Sinking funds always carry the previous month forward; spending budgets do
so only when ``rollover_surplus`` is set.  Negative month-end balances are
never carried forward.  Balances are walked forward from the plan's creation
month and memoized per (plan, month) so that long-lived plans do not cost a
call stack proportional to their age.  A plan whose allocation, creation date
or rollover behaviour changed has its memoized months dropped on the next call.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .dates import month_index, previous_month
from .models import EnvelopeBalance, EnvelopeStatus, ExpensePlan, Purpose
from .repositories import SpendingReader
from .settings import get_config_value

logger = logging.getLogger(__name__)


def rolls_over(plan: ExpensePlan) -> bool:
    """Sinking funds always roll over, ignoring their own flag."""
    return plan.purpose is Purpose.SINKING_FUND or plan.rollover_surplus


def envelope_status(utilization_percent: float) -> EnvelopeStatus:
    on_budget = float(get_config_value('envelopes', 'on_budget_percent', default=90))
    over_budget = float(get_config_value('envelopes', 'over_budget_percent', default=100))
    if utilization_percent > over_budget:
        return EnvelopeStatus.OVER_BUDGET
    if utilization_percent >= on_budget:
        return EnvelopeStatus.ON_BUDGET
    return EnvelopeStatus.UNDER_BUDGET


class EnvelopeBalanceCalculator:
    """Compute envelope balances from a plan and an external spending ledger."""

    def __init__(self, spending_reader: SpendingReader):
        self.spending_reader = spending_reader
        # (plan_id, absolute month) -> balance carried out of that month
        self._carried: Dict[Tuple[int, int], float] = {}
        # plan_id -> configuration the memoized months were walked with
        self._fingerprints: Dict[int, tuple] = {}

    def clear_cache(self) -> None:
        """Forget memoized balances, e.g. after new payments were recorded."""
        self._carried.clear()
        self._fingerprints.clear()

    def _forget_if_changed(self, plan: ExpensePlan) -> None:
        fingerprint = (plan.monthly_contribution, plan.created_at, rolls_over(plan))
        known = self._fingerprints.get(plan.id)
        if known == fingerprint:
            return
        if known is not None:
            logger.debug("Envelope %s: plan configuration changed, dropping memoized balances", plan.id)
            self._carried = {key: value for key, value in self._carried.items() if key[0] != plan.id}
        self._fingerprints[plan.id] = fingerprint

    def _spending(self, plan: ExpensePlan, year: int, month: int) -> float:
        return float(self.spending_reader.sum_linked_payments_for_period(plan.id, year, month) or 0.0)

    def _creation_index(self, plan: ExpensePlan, year: int, month: int) -> int:
        if plan.created_at is None:
            # Without a creation date there is nothing to look back on.
            return month_index(year, month)
        return month_index(plan.created_at.year, plan.created_at.month)

    def previous_balance(self, plan: ExpensePlan, year: int, month: int) -> float:
        """Balance carried into ``year``/``month`` from the month before."""
        prev_year, prev_month = previous_month(year, month)
        prev_index = month_index(prev_year, prev_month)
        first_index = self._creation_index(plan, year, month)

        if prev_index < first_index:
            return 0.0
        if not rolls_over(plan):
            return 0.0

        self._forget_if_changed(plan)
        cached = self._carried.get((plan.id, prev_index))
        if cached is not None:
            return cached

        # Resume from the latest memoized month before prev_index, if any.
        start_index = first_index
        carried = 0.0
        for index in range(prev_index - 1, first_index - 1, -1):
            hit = self._carried.get((plan.id, index))
            if hit is not None:
                start_index = index + 1
                carried = hit
                break

        allocation = plan.monthly_contribution
        for index in range(start_index, prev_index + 1):
            spent = self._spending(plan, index // 12, index % 12 + 1)
            carried = max(0.0, carried + allocation - spent)
            self._carried[(plan.id, index)] = carried

        logger.debug(
            "Envelope %s: carried %.2f into %04d-%02d after %d month(s)",
            plan.id, carried, year, month, prev_index - start_index + 1,
        )
        return carried

    def balance(self, plan: ExpensePlan, year: int, month: int) -> EnvelopeBalance:
        """Envelope balance of ``plan`` for a calendar month.

        Example:
            >>> calc = EnvelopeBalanceCalculator(InMemorySpendingReader())
            >>> plan = ExpensePlan(1, 'Car', 'sinking_fund', 'yearly_fixed', 'yearly',
            ...                    monthly_contribution=100, created_at=date(2024, 1, 15))
            >>> calc.balance(plan, 2024, 3).current_balance
            300.0
        """
        allocation = plan.monthly_contribution
        spending = self._spending(plan, year, month)
        previous = self.previous_balance(plan, year, month)
        current = previous + allocation - spending
        utilization = round(spending / allocation * 100, 1) if allocation > 0 else 0.0

        return EnvelopeBalance(
            plan_id=plan.id,
            year=year,
            month=month,
            purpose=plan.purpose,
            previous_balance=round(previous, 2),
            monthly_allocation=round(allocation, 2),
            actual_spending=round(spending, 2),
            current_balance=round(current, 2),
            rollover_surplus=plan.rollover_surplus,
            utilization_percent=utilization,
            status=envelope_status(utilization),
        )

    def balances(self, plans: Iterable[ExpensePlan], year: int, month: int) -> List[EnvelopeBalance]:
        return [self.balance(plan, year, month) for plan in plans if plan.is_active]

    def total_buffer(self, plans: Iterable[ExpensePlan], year: int, month: int) -> Dict[str, Any]:
        """Sum of positive envelope balances, split by purpose."""
        balances = self.balances(plans, year, month)
        positive = round(sum(b.current_balance for b in balances if b.current_balance > 0), 2)
        return {
            'year': year,
            'month': month,
            'total_buffer': positive,
            'plan_buffers': balances,
            'by_purpose': {
                'sinking_funds': [b for b in balances if b.purpose is Purpose.SINKING_FUND],
                'spending_budgets': [b for b in balances if b.purpose is Purpose.SPENDING_BUDGET],
            },
        }


def balance_for_today(
    calculator: EnvelopeBalanceCalculator, plan: ExpensePlan, today: Optional[date] = None
) -> EnvelopeBalance:
    today = today or date.today()
    return calculator.balance(plan, today.year, today.month)
