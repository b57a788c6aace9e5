from datetime import date

import pytest

from expense_planner.envelopes import EnvelopeBalanceCalculator, balance_for_today, envelope_status
from expense_planner.models import EnvelopeStatus, ExpensePlan, Purpose
from expense_planner.repositories import InMemorySpendingReader


class CountingReader(InMemorySpendingReader):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def sum_linked_payments_for_period(self, plan_id, year, month):
        self.calls += 1
        return super().sum_linked_payments_for_period(plan_id, year, month)


def _sinking_fund(**overrides):
    values = dict(
        id=1,
        name='Car repairs',
        purpose='sinking_fund',
        plan_type='yearly_variable',
        frequency='yearly',
        target_amount=1200,
        monthly_contribution=100,
        created_at=date(2024, 1, 15),
    )
    values.update(overrides)
    return ExpensePlan(**values)


def _budget(**overrides):
    values = dict(
        id=2,
        name='Groceries',
        purpose='spending_budget',
        plan_type='fixed_monthly',
        frequency='monthly',
        target_amount=200,
        monthly_contribution=200,
        created_at=date(2024, 1, 1),
    )
    values.update(overrides)
    return ExpensePlan(**values)


def test_sinking_fund_without_spending_grows_by_allocation():
    calculator = EnvelopeBalanceCalculator(InMemorySpendingReader())
    plan = _sinking_fund()
    for k in range(24):
        year, month = 2024 + (k // 12), k % 12 + 1
        balance = calculator.balance(plan, year, month)
        assert balance.current_balance == pytest.approx((k + 1) * 100)


def test_creation_month_has_no_previous_balance():
    calculator = EnvelopeBalanceCalculator(InMemorySpendingReader())
    balance = calculator.balance(_sinking_fund(), 2024, 1)
    assert balance.previous_balance == 0.0
    assert balance.current_balance == 100.0


def test_sinking_fund_rolls_over_even_without_flag():
    reader = InMemorySpendingReader()
    reader.add(1, 2024, 2, 150)
    calculator = EnvelopeBalanceCalculator(reader)
    plan = _sinking_fund(rollover_surplus=False)
    march = calculator.balance(plan, 2024, 3)
    assert march.previous_balance == 50.0
    assert march.current_balance == 150.0


def test_budget_without_rollover_resets_each_month():
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 1, 50)
    reader.add(2, 2024, 2, 120)
    calculator = EnvelopeBalanceCalculator(reader)
    february = calculator.balance(_budget(), 2024, 2)
    assert february.previous_balance == 0.0
    assert february.current_balance == 80.0


def test_budget_with_rollover_carries_surplus():
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 1, 150)
    calculator = EnvelopeBalanceCalculator(reader)
    february = calculator.balance(_budget(rollover_surplus=True), 2024, 2)
    assert february.previous_balance == 50.0
    assert february.current_balance == 250.0


def test_negative_balances_are_not_carried():
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 1, 300)
    calculator = EnvelopeBalanceCalculator(reader)
    plan = _budget(rollover_surplus=True)
    january = calculator.balance(plan, 2024, 1)
    assert january.current_balance == -100.0
    february = calculator.balance(plan, 2024, 2)
    assert february.previous_balance == 0.0
    assert february.current_balance == 200.0


def test_missing_creation_date_means_no_lookback():
    reader = InMemorySpendingReader()
    reader.add(1, 2024, 2, 10)
    calculator = EnvelopeBalanceCalculator(reader)
    balance = calculator.balance(_sinking_fund(created_at=None), 2024, 3)
    assert balance.previous_balance == 0.0
    assert balance.current_balance == 100.0


def test_months_before_creation_have_no_carry():
    calculator = EnvelopeBalanceCalculator(InMemorySpendingReader())
    balance = calculator.balance(_sinking_fund(created_at=date(2024, 6, 1)), 2024, 3)
    assert balance.previous_balance == 0.0


def test_previous_balances_are_memoized():
    reader = CountingReader()
    calculator = EnvelopeBalanceCalculator(reader)
    plan = _sinking_fund()

    calculator.balance(plan, 2025, 12)
    assert reader.calls == 24

    calculator.balance(plan, 2025, 12)
    assert reader.calls == 25

    calculator.clear_cache()
    calculator.balance(plan, 2025, 12)
    assert reader.calls == 49


@pytest.mark.parametrize('spent,utilization,status', [
    (100, 50.0, EnvelopeStatus.UNDER_BUDGET),
    (180, 90.0, EnvelopeStatus.ON_BUDGET),
    (200, 100.0, EnvelopeStatus.ON_BUDGET),
    (201, 100.5, EnvelopeStatus.OVER_BUDGET),
])
def test_utilization_and_status(spent, utilization, status):
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 1, spent)
    balance = EnvelopeBalanceCalculator(reader).balance(_budget(), 2024, 1)
    assert balance.utilization_percent == utilization
    assert balance.status is status


def test_zero_allocation_has_zero_utilization():
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 1, 25)
    balance = EnvelopeBalanceCalculator(reader).balance(_budget(monthly_contribution=0), 2024, 1)
    assert balance.utilization_percent == 0.0
    assert balance.status is EnvelopeStatus.UNDER_BUDGET
    assert envelope_status(89.9) is EnvelopeStatus.UNDER_BUDGET


def test_total_buffer_sums_positive_balances():
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 3, 260)
    calculator = EnvelopeBalanceCalculator(reader)
    plans = [_sinking_fund(), _budget(), _budget(id=3, name='Archived', status='archived')]

    buffer = calculator.total_buffer(plans, 2024, 3)
    assert buffer['total_buffer'] == 300.0
    assert len(buffer['plan_buffers']) == 2
    assert [b.plan_id for b in buffer['by_purpose']['sinking_funds']] == [1]
    assert buffer['by_purpose']['spending_budgets'][0].purpose is Purpose.SPENDING_BUDGET


def test_balance_for_today():
    calculator = EnvelopeBalanceCalculator(InMemorySpendingReader())
    balance = balance_for_today(calculator, _sinking_fund(), date(2024, 4, 10))
    assert (balance.year, balance.month) == (2024, 4)
    assert balance.current_balance == 400.0


def test_edited_plan_is_rewalked_by_the_same_calculator():
    calculator = EnvelopeBalanceCalculator(InMemorySpendingReader())
    assert calculator.balance(_sinking_fund(), 2024, 3).current_balance == 300.0

    raised = _sinking_fund(monthly_contribution=200)
    assert calculator.balance(raised, 2024, 3).current_balance == 600.0
    fresh = EnvelopeBalanceCalculator(InMemorySpendingReader())
    assert fresh.balance(raised, 2024, 3).current_balance == 600.0

    moved = _sinking_fund(monthly_contribution=200, created_at=date(2024, 2, 10))
    assert calculator.balance(moved, 2024, 3).current_balance == 400.0


def test_rollover_budget_allocation_change_drops_stale_months():
    reader = InMemorySpendingReader()
    reader.add(2, 2024, 1, 50)
    calculator = EnvelopeBalanceCalculator(reader)
    assert calculator.balance(_budget(rollover_surplus=True), 2024, 3).previous_balance == 350.0

    calculator.balance(_budget(rollover_surplus=True, monthly_contribution=100), 2024, 2)
    assert calculator.balance(_budget(rollover_surplus=True, monthly_contribution=100), 2024, 3).previous_balance == 150.0
