"""Domain types for expense plans, income plans and computed results.

Plans are plain dataclasses validated at construction.  The recurrence
configuration of a plan is exposed as a small tagged union
(:data:`Recurrence`) so the scheduling code can dispatch on a single type
instead of re-reading optional fields at every call site.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .dates import last_day_of_month


class Purpose(str, Enum):
    SINKING_FUND = 'sinking_fund'
    SPENDING_BUDGET = 'spending_budget'


class PlanType(str, Enum):
    FIXED_MONTHLY = 'fixed_monthly'
    YEARLY_FIXED = 'yearly_fixed'
    YEARLY_VARIABLE = 'yearly_variable'
    MULTI_YEAR = 'multi_year'
    SEASONAL = 'seasonal'
    EMERGENCY_FUND = 'emergency_fund'
    GOAL = 'goal'


class Frequency(str, Enum):
    MONTHLY = 'monthly'
    QUARTERLY = 'quarterly'
    YEARLY = 'yearly'
    MULTI_YEAR = 'multi_year'
    SEASONAL = 'seasonal'
    ONE_TIME = 'one_time'


class ContributionSource(str, Enum):
    MANUAL = 'manual'
    CALCULATED = 'calculated'


class Reliability(str, Enum):
    GUARANTEED = 'guaranteed'
    EXPECTED = 'expected'


class FundingStatus(str, Enum):
    FUNDED = 'funded'
    ALMOST_READY = 'almost_ready'
    ON_TRACK = 'on_track'
    BEHIND = 'behind'


class EnvelopeStatus(str, Enum):
    UNDER_BUDGET = 'under_budget'
    ON_BUDGET = 'on_budget'
    OVER_BUDGET = 'over_budget'


class ObligationType(str, Enum):
    FIXED = 'fixed'
    ESTIMATED = 'estimated'
    PRORATED = 'prorated'


class AdjustmentReason(str, Enum):
    SPENDING_INCREASED = 'spending_increased'
    SPENDING_DECREASED = 'spending_decreased'


MONTH_NAMES: Tuple[str, ...] = (
    'january', 'february', 'march', 'april', 'may', 'june',
    'july', 'august', 'september', 'october', 'november', 'december',
)


# ---------------------------------------------------------------------------
# Recurrence union
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MonthlyRecurrence:
    due_day: Optional[int]


@dataclass(frozen=True)
class QuarterlyRecurrence:
    due_day: Optional[int]


@dataclass(frozen=True)
class YearlyRecurrence:
    due_month: Optional[int]
    due_day: Optional[int]


@dataclass(frozen=True)
class MultiYearRecurrence:
    years: int
    anchor: Optional[date]


@dataclass(frozen=True)
class SeasonalRecurrence:
    months: Tuple[int, ...]
    due_day: int = 1


@dataclass(frozen=True)
class OneTimeRecurrence:
    target_date: Optional[date]


Recurrence = Union[
    MonthlyRecurrence,
    QuarterlyRecurrence,
    YearlyRecurrence,
    MultiYearRecurrence,
    SeasonalRecurrence,
    OneTimeRecurrence,
]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_date(value: Any) -> Optional[date]:
    """Accept ``date``, ``datetime`` or ISO strings; empty values become None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


def _coerce_enum(enum_cls, value: Any):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {enum_cls.__name__} {value!r} (expected one of: {allowed})") from None


def _check_range(name: str, value: Optional[int], low: int, high: int) -> Optional[int]:
    if value is None:
        return None
    value = int(value)
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")
    return value


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

@dataclass
class ExpensePlan:
    """A virtual envelope for a recurring or periodic obligation.

    ``target_amount`` is the aggregate annual (or per-cycle) total for
    yearly, seasonal and multi-year plans.  Spending-budget plans may use it
    as a recurring monthly ceiling instead; ``purpose`` decides.
    """

    id: int
    name: str
    purpose: Purpose
    plan_type: PlanType
    frequency: Frequency
    target_amount: float = 0.0
    monthly_contribution: float = 0.0
    contribution_source: ContributionSource = ContributionSource.MANUAL
    frequency_years: Optional[int] = None
    due_month: Optional[int] = None
    due_day: Optional[int] = None
    seasonal_months: Tuple[int, ...] = ()
    target_date: Optional[date] = None
    next_due_date: Optional[date] = None
    rollover_surplus: bool = False
    created_at: Optional[date] = None
    category_id: Optional[Union[int, str]] = None
    payment_account_id: Optional[int] = None
    icon: Optional[str] = None
    status: str = 'active'

    def __post_init__(self) -> None:
        self.purpose = _coerce_enum(Purpose, self.purpose)
        self.plan_type = _coerce_enum(PlanType, self.plan_type)
        self.frequency = _coerce_enum(Frequency, self.frequency)
        self.contribution_source = _coerce_enum(ContributionSource, self.contribution_source)
        self.target_amount = float(self.target_amount or 0.0)
        self.monthly_contribution = float(self.monthly_contribution or 0.0)
        self.due_month = _check_range('due_month', self.due_month, 1, 12)
        self.due_day = _check_range('due_day', self.due_day, 1, 31)
        if self.frequency_years is not None:
            self.frequency_years = int(self.frequency_years)
            if self.frequency_years < 1:
                raise ValueError(f"frequency_years must be positive, got {self.frequency_years}")
        months = {_check_range('seasonal month', m, 1, 12) for m in (self.seasonal_months or ())}
        self.seasonal_months = tuple(sorted(months))
        self.target_date = parse_date(self.target_date)
        self.next_due_date = parse_date(self.next_due_date)
        self.created_at = parse_date(self.created_at)

    @property
    def is_sinking_fund(self) -> bool:
        return self.purpose is Purpose.SINKING_FUND

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    @property
    def recurrence(self) -> Recurrence:
        freq = self.frequency
        if freq is Frequency.MONTHLY:
            return MonthlyRecurrence(self.due_day)
        if freq is Frequency.QUARTERLY:
            return QuarterlyRecurrence(self.due_day)
        if freq is Frequency.YEARLY:
            return YearlyRecurrence(self.due_month, self.due_day)
        if freq is Frequency.MULTI_YEAR:
            return MultiYearRecurrence(self.frequency_years or 1, self.target_date)
        if freq is Frequency.SEASONAL:
            return SeasonalRecurrence(self.seasonal_months, self.due_day or 1)
        return OneTimeRecurrence(self.target_date)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExpensePlan':
        return cls(
            id=int(data['id']),
            name=str(data.get('name') or f"Plan {data['id']}"),
            purpose=data.get('purpose', Purpose.SINKING_FUND),
            plan_type=data['plan_type'],
            frequency=data['frequency'],
            target_amount=data.get('target_amount', 0.0),
            monthly_contribution=data.get('monthly_contribution', 0.0),
            contribution_source=data.get('contribution_source', ContributionSource.MANUAL),
            frequency_years=data.get('frequency_years'),
            due_month=data.get('due_month'),
            due_day=data.get('due_day'),
            seasonal_months=tuple(data.get('seasonal_months') or ()),
            target_date=data.get('target_date'),
            next_due_date=data.get('next_due_date'),
            rollover_surplus=bool(data.get('rollover_surplus', False)),
            created_at=data.get('created_at'),
            category_id=data.get('category_id'),
            payment_account_id=data.get('payment_account_id'),
            icon=data.get('icon'),
            status=data.get('status', 'active'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'purpose': self.purpose.value,
            'plan_type': self.plan_type.value,
            'frequency': self.frequency.value,
            'target_amount': self.target_amount,
            'monthly_contribution': self.monthly_contribution,
            'contribution_source': self.contribution_source.value,
            'frequency_years': self.frequency_years,
            'due_month': self.due_month,
            'due_day': self.due_day,
            'seasonal_months': list(self.seasonal_months),
            'target_date': _iso(self.target_date),
            'next_due_date': _iso(self.next_due_date),
            'rollover_surplus': self.rollover_surplus,
            'created_at': _iso(self.created_at),
            'category_id': self.category_id,
            'payment_account_id': self.payment_account_id,
            'icon': self.icon,
            'status': self.status,
        }


@dataclass
class IncomePlan:
    """Expected income with one amount per calendar month."""

    id: int
    name: str
    reliability: Reliability
    monthly_amounts: Tuple[float, ...] = (0.0,) * 12
    status: str = 'active'

    def __post_init__(self) -> None:
        self.reliability = _coerce_enum(Reliability, self.reliability)
        amounts = tuple(float(a or 0.0) for a in self.monthly_amounts)
        if len(amounts) != 12:
            raise ValueError(f"Income plan {self.id} needs 12 monthly amounts, got {len(amounts)}")
        self.monthly_amounts = amounts

    def amount_for_month(self, month: int) -> float:
        return self.monthly_amounts[month - 1]

    @property
    def annual_total(self) -> float:
        return round(sum(self.monthly_amounts), 2)

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IncomePlan':
        return cls(
            id=int(data['id']),
            name=str(data.get('name') or f"Income {data['id']}"),
            reliability=data.get('reliability', Reliability.EXPECTED),
            monthly_amounts=tuple(data.get(name, 0.0) for name in MONTH_NAMES),
            status=data.get('status', 'active'),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'reliability': self.reliability.value,
            'status': self.status,
        }
        payload.update(zip(MONTH_NAMES, self.monthly_amounts))
        return payload


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Period:
    """Inclusive date window."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Period end {self.end} is before start {self.start}")

    def contains(self, value: Optional[date]) -> bool:
        return value is not None and self.start <= value <= self.end

    @classmethod
    def for_month(cls, year: int, month: int) -> 'Period':
        return cls(date(year, month, 1), date(year, month, last_day_of_month(year, month)))


@dataclass(frozen=True)
class Obligation:
    amount: float = 0.0
    has_obligation: bool = False
    occurrences: int = 0


NO_OBLIGATION = Obligation()


@dataclass
class EnvelopeBalance:
    plan_id: int
    year: int
    month: int
    purpose: Purpose
    previous_balance: float
    monthly_allocation: float
    actual_spending: float
    current_balance: float
    rollover_surplus: bool
    utilization_percent: float
    status: EnvelopeStatus


@dataclass
class FundingStatusRecord:
    plan_id: int
    name: str
    status: FundingStatus
    effective_target: float
    monthly_contribution: float
    expected_funded_by_now: float
    progress_percent: float
    next_due_date: Optional[date]
    months_until_due: Optional[int]
    required_monthly: Optional[float] = None
    current_month_payment_made: bool = False


@dataclass
class ForecastMonth:
    month: str
    month_start: date
    income: float
    expenses: float
    projected_balance: float
    planned_expenses: float = 0.0
    unplanned_expenses: float = 0.0


@dataclass(frozen=True)
class CategoryAverage:
    category_id: Any
    amount: float


@dataclass(frozen=True)
class MonthTotals:
    year: int
    month: int
    income: float
    expense: float


@dataclass(frozen=True)
class CategorySpending:
    """Spending in one category, averaged over the span it actually covers."""

    weighted_monthly_average: float = 0.0
    transaction_count: int = 0
    total_spending: float = 0.0
    span_months: float = 0.0


@dataclass
class AdjustmentSuggestion:
    plan_id: int
    current_amount: float
    suggested_amount: float
    percent_change: float
    reason: AdjustmentReason


@dataclass
class BankAccount:
    id: int
    name: str
    balance: float = 0.0
    institution: Optional[str] = None


@dataclass
class PlanAtRisk:
    plan_id: int
    name: str
    amount: float
    next_due_date: Optional[date]
    days_until_due: Optional[int]
    obligation_type: ObligationType
    icon: Optional[str] = None


@dataclass
class AccountCoverage:
    account_id: int
    account_name: str
    current_balance: float
    upcoming_plans_total: float
    plan_count: int
    projected_balance: float
    has_shortfall: bool
    shortfall_amount: float
    surplus_amount: float
    plans_at_risk: List[PlanAtRisk] = field(default_factory=list)


def plans_from_dicts(rows: Sequence[Dict[str, Any]]) -> List[ExpensePlan]:
    return [ExpensePlan.from_dict(row) for row in rows]
