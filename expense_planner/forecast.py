"""Month-by-month cash-flow forecast.

Two modes are supported:

``expense_plans``
    Expenses come from the plans themselves (via
    :func:`~expense_planner.obligations.obligation_in_period`) plus the
    trailing historical average of every spending category no plan covers.
    Income comes from income plans, or from the trailing historical income
    average when the user has none.

``historical``
    Each forecast month repeats the most recent historical month with the
    same calendar month, or the most recent month available.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from .dates import add_months, month_end, month_start, previous_month
from .models import ExpensePlan, ForecastMonth, IncomePlan, MonthTotals, PlanType
from .obligations import obligation_in_period
from .repositories import HistoricalAggregator, IncomePlanRepository, PlanRepository
from .settings import get_config_value

logger = logging.getLogger(__name__)

MODE_EXPENSE_PLANS = 'expense_plans'
MODE_HISTORICAL = 'historical'

MONTH_LABEL_FORMAT = '%b %Y'

# Trace the first few months at debug level.
_DEBUG_MONTHS = 3


def _excluded_plan_types() -> set:
    names = get_config_value('forecast', 'excluded_plan_types', default=['emergency_fund', 'goal'])
    return {PlanType(name) for name in names}


def _normalize_mode(mode: Optional[str]) -> str:
    if mode is None:
        return MODE_EXPENSE_PLANS
    normalized = mode.strip().lower().replace('-', '_')
    if normalized in (MODE_EXPENSE_PLANS, MODE_HISTORICAL):
        return normalized
    logger.warning("Unknown forecast mode %r, falling back to historical mode", mode)
    return MODE_HISTORICAL


def trailing_months(today: date, count: int) -> List[tuple]:
    """The ``count`` complete (year, month) pairs before today's month, oldest first."""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        year, month = previous_month(year, month)
        months.append((year, month))
    months.reverse()
    return months


class CashFlowForecaster:
    """Project income, expenses and balance for the coming months."""

    def __init__(
        self,
        plan_repository: PlanRepository,
        income_repository: IncomePlanRepository,
        aggregator: HistoricalAggregator,
        history_months: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        self.plan_repository = plan_repository
        self.income_repository = income_repository
        self.aggregator = aggregator
        self.history_months = int(
            history_months if history_months is not None
            else get_config_value('forecast', 'history_months', default=12)
        )
        self.max_workers = int(
            max_workers if max_workers is not None
            else get_config_value('forecast', 'max_workers', default=4)
        )

    def forecast(
        self,
        user_id: int,
        months: Optional[int] = None,
        starting_balance: float = 0.0,
        today: Optional[date] = None,
        mode: Optional[str] = MODE_EXPENSE_PLANS,
    ) -> List[ForecastMonth]:
        """Forecast ``months`` calendar months starting with today's month.

        Args:
            user_id: Owner of the plans and history
            months: Number of months to project (defaults to the configured value)
            starting_balance: Current real balance across the user's accounts
            today: Reference date, defaults to the current date
            mode: ``expense_plans`` or ``historical``

        Returns:
            One :class:`ForecastMonth` per month in calendar order
        """
        today = today or date.today()
        if months is None:
            months = int(get_config_value('forecast', 'default_months', default=12))
        if months <= 0:
            return []

        mode = _normalize_mode(mode)
        logger.debug("Generating %d month cash flow forecast for user %s using %s mode", months, user_id, mode)
        if mode == MODE_EXPENSE_PLANS:
            return self._from_expense_plans(user_id, months, starting_balance, today)
        return self._from_history(user_id, months, starting_balance, today)

    # ------------------------------------------------------------------
    # Historical lookups
    # ------------------------------------------------------------------

    def _trailing_totals(self, user_id: int, today: date) -> List[MonthTotals]:
        """Totals for the trailing history window, fetched concurrently."""
        periods = trailing_months(today, self.history_months)
        if not periods:
            return []
        workers = max(1, min(self.max_workers, len(periods)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() yields in submission order, whatever order the lookups finish in.
            return list(pool.map(
                lambda ym: self.aggregator.monthly_income_expense_totals(user_id, ym[0], ym[1]),
                periods,
            ))

    def _historical_income(self, user_id: int, today: date) -> float:
        totals = [t for t in self._trailing_totals(user_id, today) if t.income or t.expense]
        if not totals:
            return 0.0
        return sum(t.income for t in totals) / len(totals)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _from_expense_plans(
        self, user_id: int, months: int, starting_balance: float, today: date
    ) -> List[ForecastMonth]:
        excluded = _excluded_plan_types()
        plans = [
            plan for plan in self.plan_repository.list_active_plans(user_id)
            if plan.plan_type not in excluded
        ]
        covered = {plan.category_id for plan in plans if plan.category_id is not None}
        income_plans = self.income_repository.list_active_income_plans(user_id)

        averages = self.aggregator.monthly_average_by_category(user_id, self.history_months, today=today)
        unplanned = sum(avg.amount for avg in averages if avg.category_id not in covered)

        logger.debug("Active income plans: %d", len(income_plans))
        logger.debug("Active expense plans (excluding %s): %d", sorted(t.value for t in excluded), len(plans))
        for plan in plans:
            logger.debug(
                "  Plan %r | type=%s | purpose=%s | target=%.2f | monthly=%.2f | category=%s",
                plan.name, plan.plan_type.value, plan.purpose.value,
                plan.target_amount, plan.monthly_contribution, plan.category_id,
            )
        logger.debug("Covered categories: %s", sorted(covered, key=str))
        for avg in averages:
            logger.debug(
                "  Category %s: %s | avg/month=%.2f",
                avg.category_id, 'covered' if avg.category_id in covered else 'uncovered', avg.amount,
            )

        fallback_income = None
        if not income_plans:
            fallback_income = self._historical_income(user_id, today)
            logger.debug("No income plans, using historical income average %.2f", fallback_income)

        rows: List[ForecastMonth] = []
        balance = starting_balance
        first = month_start(today)
        for offset in range(months):
            start = add_months(first, offset)
            end = month_end(start)

            if fallback_income is None:
                income = income_for_month(income_plans, start.month)
            else:
                income = fallback_income
            planned = planned_expenses(plans, start, end)
            expenses = planned + unplanned
            balance += income - expenses

            if offset < _DEBUG_MONTHS:
                logger.debug(
                    "  %s: income=%.2f | planned=%.2f | unplanned=%.2f | expenses=%.2f",
                    start.strftime(MONTH_LABEL_FORMAT), income, planned, unplanned, expenses,
                )

            rows.append(ForecastMonth(
                month=start.strftime(MONTH_LABEL_FORMAT),
                month_start=start,
                income=round(income, 2),
                expenses=round(expenses, 2),
                projected_balance=round(balance, 2),
                planned_expenses=round(planned, 2),
                unplanned_expenses=round(unplanned, 2),
            ))
        return rows

    def _from_history(
        self, user_id: int, months: int, starting_balance: float, today: date
    ) -> List[ForecastMonth]:
        history = self.aggregator.monthly_history(user_id, self.history_months, today=today)
        if not history:
            logger.debug("No historical months for user %s, forecast is empty", user_id)
            return []

        logger.debug(
            "Historical data for forecasting: %s",
            [(f"{t.year}-{t.month:02d}", t.income, t.expense) for t in history],
        )
        most_recent = sorted(history, key=lambda t: (t.year, t.month), reverse=True)

        rows: List[ForecastMonth] = []
        balance = starting_balance
        first = month_start(today)
        for offset in range(months):
            start = add_months(first, offset)
            source = next((t for t in most_recent if t.month == start.month), most_recent[0])
            balance += source.income - source.expense
            rows.append(ForecastMonth(
                month=start.strftime(MONTH_LABEL_FORMAT),
                month_start=start,
                income=round(source.income, 2),
                expenses=round(source.expense, 2),
                projected_balance=round(balance, 2),
                unplanned_expenses=round(source.expense, 2),
            ))
        return rows


def income_for_month(income_plans: Iterable[IncomePlan], month: int) -> float:
    return sum(plan.amount_for_month(month) for plan in income_plans if plan.is_active)


def planned_expenses(plans: Iterable[ExpensePlan], start: date, end: date) -> float:
    return sum(obligation_in_period(plan, start, end).amount for plan in plans)


def forecast_to_frame(rows: Sequence[ForecastMonth]) -> pd.DataFrame:
    """Tabulate forecast rows, one per month, for reporting and charts."""
    columns = ['Month', 'Month Start', 'Income', 'Expenses', 'Planned', 'Unplanned', 'Net', 'Projected Balance']
    if not rows:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame([
        {
            'Month': row.month,
            'Month Start': pd.Timestamp(row.month_start),
            'Income': row.income,
            'Expenses': row.expenses,
            'Planned': row.planned_expenses,
            'Unplanned': row.unplanned_expenses,
            'Net': round(row.income - row.expenses, 2),
            'Projected Balance': row.projected_balance,
        }
        for row in rows
    ])
    return df[columns]
