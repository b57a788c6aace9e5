"""Interfaces to the stores the engine reads from, plus simple adapters.

The calculators never query storage themselves; they receive fully loaded
plans or one of the protocol objects below.  ``JsonPlanStore`` keeps plans
and income plans in a JSON file, loading tolerantly the same way the
dashboard's recurring-plan storage does.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from .config import PLANS_FILE
from .dates import add_months, month_end, month_start
from .models import CategoryAverage, CategorySpending, ExpensePlan, IncomePlan, MonthTotals, Period

logger = logging.getLogger(__name__)


class PlanNotFoundError(LookupError):
    """Raised when a plan id does not exist for the caller."""


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class PlanRepository(Protocol):
    def list_active_plans(self, user_id: int) -> List[ExpensePlan]: ...

    def get_plan(self, plan_id: int) -> ExpensePlan: ...


class IncomePlanRepository(Protocol):
    def list_active_income_plans(self, user_id: int) -> List[IncomePlan]: ...


class HistoricalAggregator(Protocol):
    # Trailing windows end before the month of ``today``.
    def monthly_average_by_category(
        self, user_id: int, months_back: int, today: Optional[date] = None
    ) -> List[CategoryAverage]: ...

    def monthly_income_expense_totals(self, user_id: int, year: int, month: int) -> MonthTotals: ...

    def monthly_history(
        self, user_id: int, months_back: int, today: Optional[date] = None
    ) -> List[MonthTotals]: ...


class SpendingReader(Protocol):
    def sum_linked_payments_for_period(self, plan_id: int, year: int, month: int) -> float: ...


class CategorySpendingReader(Protocol):
    def category_spending(
        self,
        user_id: Optional[int],
        category: Any,
        months_back: int = 12,
        today: Optional[date] = None,
        days_per_month: float = 30.0,
    ) -> CategorySpending: ...


# ---------------------------------------------------------------------------
# In-memory adapters
# ---------------------------------------------------------------------------

class InMemoryPlanRepository:
    """Plans keyed by user id."""

    def __init__(self, plans_by_user: Optional[Dict[int, Iterable[ExpensePlan]]] = None):
        self._plans: Dict[int, List[ExpensePlan]] = {
            user_id: list(plans) for user_id, plans in (plans_by_user or {}).items()
        }

    def add(self, user_id: int, plan: ExpensePlan) -> None:
        self._plans.setdefault(user_id, []).append(plan)

    def list_active_plans(self, user_id: int) -> List[ExpensePlan]:
        return [plan for plan in self._plans.get(user_id, []) if plan.is_active]

    def get_plan(self, plan_id: int) -> ExpensePlan:
        for plans in self._plans.values():
            for plan in plans:
                if plan.id == plan_id:
                    return plan
        raise PlanNotFoundError(f"Expense plan {plan_id} not found")


class InMemoryIncomePlanRepository:
    def __init__(self, plans_by_user: Optional[Dict[int, Iterable[IncomePlan]]] = None):
        self._plans: Dict[int, List[IncomePlan]] = {
            user_id: list(plans) for user_id, plans in (plans_by_user or {}).items()
        }

    def list_active_income_plans(self, user_id: int) -> List[IncomePlan]:
        return [plan for plan in self._plans.get(user_id, []) if plan.is_active]


@dataclass
class InMemorySpendingReader:
    """Linked payment totals keyed by (plan_id, year, month)."""

    totals: Dict[Tuple[int, int, int], float] = field(default_factory=dict)

    def add(self, plan_id: int, year: int, month: int, amount: float) -> None:
        key = (plan_id, year, month)
        self.totals[key] = self.totals.get(key, 0.0) + amount

    def sum_linked_payments_for_period(self, plan_id: int, year: int, month: int) -> float:
        return self.totals.get((plan_id, year, month), 0.0)


# ---------------------------------------------------------------------------
# JSON file store
# ---------------------------------------------------------------------------

DEFAULT_STORE = {
    'plans': [],
    'income_plans': [],
}


def _read_store(target: Path) -> Dict[str, list]:
    if not target.exists():
        return {key: [] for key in DEFAULT_STORE}
    try:
        with target.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Could not read plan store %s: %s", target, exc)
        return {key: [] for key in DEFAULT_STORE}
    if not isinstance(data, dict):
        return {key: [] for key in DEFAULT_STORE}
    plans = data.get('plans') or []
    income_plans = data.get('income_plans') or []
    return {
        'plans': plans if isinstance(plans, list) else [],
        'income_plans': income_plans if isinstance(income_plans, list) else [],
    }


class JsonPlanStore:
    """Plans and income plans persisted in one JSON document.

    Every plan row may carry a ``user_id``; rows without one belong to
    user ``default_user``.
    """

    def __init__(self, path: Optional[Path] = None, default_user: int = 1):
        if path is None:
            path = PLANS_FILE
        self.path = Path(path)
        self.default_user = default_user

    def _rows(self, key: str, user_id: Optional[int]) -> List[dict]:
        rows = _read_store(self.path)[key]
        if user_id is None:
            return rows
        return [row for row in rows if int(row.get('user_id', self.default_user)) == user_id]

    def list_plans(self, user_id: Optional[int] = None) -> List[ExpensePlan]:
        return [ExpensePlan.from_dict(row) for row in self._rows('plans', user_id)]

    def list_active_plans(self, user_id: int) -> List[ExpensePlan]:
        return [plan for plan in self.list_plans(user_id) if plan.is_active]

    def get_plan(self, plan_id: int) -> ExpensePlan:
        for row in self._rows('plans', None):
            if int(row.get('id', -1)) == plan_id:
                return ExpensePlan.from_dict(row)
        raise PlanNotFoundError(f"Expense plan {plan_id} not found")

    def list_active_income_plans(self, user_id: int) -> List[IncomePlan]:
        plans = [IncomePlan.from_dict(row) for row in self._rows('income_plans', user_id)]
        return [plan for plan in plans if plan.is_active]

    def save(
        self,
        plans: Iterable[ExpensePlan],
        income_plans: Iterable[IncomePlan] = (),
        user_id: Optional[int] = None,
    ) -> None:
        owner = user_id if user_id is not None else self.default_user
        payload = {
            'plans': [dict(plan.to_dict(), user_id=owner) for plan in plans],
            'income_plans': [dict(plan.to_dict(), user_id=owner) for plan in income_plans],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open('w', encoding='utf-8') as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)


# ---------------------------------------------------------------------------
# Named periods
# ---------------------------------------------------------------------------

def resolve_period(name: str, today: Optional[date] = None) -> Period:
    """Map a named reporting period to concrete dates."""
    today = today or date.today()
    if name == 'this_month':
        return Period(month_start(today), month_end(today))
    if name == 'next_month':
        start = add_months(month_start(today), 1)
        return Period(start, month_end(start))
    if name in ('next_30_days', 'next_60_days', 'next_90_days'):
        days = int(name.split('_')[1])
        return Period(today, today + timedelta(days=days))
    raise ValueError(f"Unknown period type: {name!r}")
