from datetime import date, timedelta

import pytest

from expense_planner.funding import (
    expected_funded_by_now,
    funding_status,
    funding_status_record,
    monthly_deposit_summary,
    timeline,
)
from expense_planner.models import ExpensePlan, FundingStatus


def _sinking_fund(**overrides):
    values = dict(
        id=1,
        name='Car insurance',
        purpose='sinking_fund',
        plan_type='yearly_fixed',
        frequency='yearly',
        target_amount=1200,
        monthly_contribution=100,
        next_due_date=date(2025, 1, 1),
    )
    values.update(overrides)
    return ExpensePlan(**values)


def _bill(**overrides):
    values = dict(
        id=2,
        name='Phone',
        purpose='spending_budget',
        plan_type='fixed_monthly',
        frequency='monthly',
        target_amount=72.07,
        monthly_contribution=72.07,
        due_day=5,
    )
    values.update(overrides)
    return ExpensePlan(**values)


def test_expected_funded_follows_backdated_linear_plan():
    plan = _sinking_fund()
    assert expected_funded_by_now(plan, date(2024, 7, 1)) == 600.0
    assert expected_funded_by_now(plan, date(2024, 7, 16)) == 650.0


def test_expected_funded_is_zero_before_saving_starts():
    assert expected_funded_by_now(_sinking_fund(), date(2023, 12, 15)) == 0.0


def test_expected_funded_is_capped_at_target():
    assert expected_funded_by_now(_sinking_fund(), date(2025, 3, 1)) == 1200.0


@pytest.mark.parametrize('overrides', [
    {'purpose': 'spending_budget'},
    {'monthly_contribution': 0},
    {'target_amount': 0},
    {'next_due_date': None},
])
def test_expected_funded_guards(overrides):
    assert expected_funded_by_now(_sinking_fund(**overrides), date(2024, 7, 1)) == 0.0


def test_expected_funded_falls_back_to_target_date():
    plan = _sinking_fund(next_due_date=None, target_date=date(2025, 1, 1))
    assert expected_funded_by_now(plan, date(2024, 7, 1)) == 600.0


@pytest.mark.parametrize('due', [date(2025, 1, 1), date(2025, 1, 31), date(2025, 3, 15)])
def test_expected_funded_is_monotonic_and_bounded(due):
    plan = _sinking_fund(next_due_date=due)
    today = date(2023, 12, 1)
    previous = 0.0
    while today < date(2025, 6, 1):
        value = expected_funded_by_now(plan, today)
        assert value >= previous
        assert value <= 1200.0
        previous = value
        today += timedelta(days=1)


def test_computed_due_date_restarts_the_cycle_on_the_due_day():
    # Only cached or anchored due dates keep expected funding monotonic.
    computed = _sinking_fund(next_due_date=None, due_month=6, due_day=1)
    assert expected_funded_by_now(computed, date(2024, 5, 31)) == 1200.0
    assert expected_funded_by_now(computed, date(2024, 6, 1)) == 0.0

    cached = _sinking_fund(next_due_date=date(2024, 6, 1))
    assert expected_funded_by_now(cached, date(2024, 5, 31)) == 1200.0
    assert expected_funded_by_now(cached, date(2024, 6, 1)) == 1200.0


def test_seasonal_progress_uses_per_occurrence_target():
    plan = _sinking_fund(
        plan_type='seasonal',
        frequency='seasonal',
        target_amount=900,
        seasonal_months=(6, 7, 8),
        next_due_date=None,
    )
    # Next due 1 June, 300 per occurrence at 100/month means saving from 1 March.
    assert expected_funded_by_now(plan, date(2024, 5, 1)) == 200.0
    assert funding_status(plan, date(2024, 5, 1)) is FundingStatus.BEHIND


def test_no_due_date_is_always_on_track():
    plan = _sinking_fund(next_due_date=None)
    assert funding_status(plan, date(2024, 7, 1)) is FundingStatus.ON_TRACK


def test_large_target_due_soon_is_behind():
    plan = _sinking_fund(next_due_date=date(2024, 4, 10))
    assert funding_status(plan, date(2024, 1, 10)) is FundingStatus.BEHIND


def test_final_month_classification():
    due = date(2024, 4, 1)
    funded = _sinking_fund(target_amount=1000, monthly_contribution=300, next_due_date=date(2024, 5, 1))
    almost = _sinking_fund(target_amount=1200, monthly_contribution=1200, next_due_date=due)
    behind = _sinking_fund(target_amount=1200, monthly_contribution=1200, next_due_date=due)
    assert funding_status(funded, date(2024, 4, 20)) is FundingStatus.FUNDED
    assert funding_status(almost, date(2024, 3, 28)) is FundingStatus.ALMOST_READY
    assert funding_status(behind, date(2024, 3, 1)) is FundingStatus.BEHIND


def test_enough_contribution_is_on_track_or_almost_ready():
    on_track = _sinking_fund(monthly_contribution=150, next_due_date=date(2024, 12, 1))
    assert funding_status(on_track, date(2024, 3, 1)) is FundingStatus.ON_TRACK

    almost = _sinking_fund(monthly_contribution=1000, next_due_date=date(2024, 12, 1))
    assert funding_status(almost, date(2024, 10, 31)) is FundingStatus.ALMOST_READY


def test_under_contribution_beyond_tolerance_is_behind():
    plan = _sinking_fund(next_due_date=date(2024, 12, 1))
    assert funding_status(plan, date(2024, 3, 1)) is FundingStatus.BEHIND


def test_fixed_monthly_after_due_day_is_funded():
    plan = _bill()
    record = funding_status_record(plan, date(2024, 3, 20))
    assert record.status is FundingStatus.FUNDED
    assert record.current_month_payment_made is True
    assert record.next_due_date == date(2024, 4, 5)


def test_fixed_monthly_before_due_day_is_on_track():
    plan = _bill()
    assert funding_status(plan, date(2024, 3, 2)) is FundingStatus.ON_TRACK
    assert funding_status_record(plan, date(2024, 3, 2)).current_month_payment_made is False
    assert funding_status(_bill(due_day=None), date(2024, 3, 20)) is FundingStatus.ON_TRACK


def test_status_record_fields():
    record = funding_status_record(_sinking_fund(), date(2024, 7, 1))
    assert record.effective_target == 1200.0
    assert record.expected_funded_by_now == 600.0
    assert record.progress_percent == 50.0
    assert record.months_until_due == 6
    assert record.required_monthly == 200.0
    assert record.status is FundingStatus.BEHIND


def test_monthly_deposit_summary_groups_plans():
    plans = [
        _sinking_fund(),
        _bill(),
        _sinking_fund(id=3, name='Old', status='archived'),
        ExpensePlan(4, 'Rainy day', 'sinking_fund', 'emergency_fund', 'monthly', monthly_contribution=50),
    ]
    summary = monthly_deposit_summary(plans, date(2024, 3, 20))
    assert summary['plan_count'] == 3
    assert summary['total_monthly_deposit'] == 222.07
    assert summary['by_type']['sinking_funds']['total'] == 100.0
    assert summary['by_type']['fixed_monthly']['total'] == 72.07
    assert summary['by_type']['emergency']['total'] == 50.0
    assert summary['fully_funded_count'] == 1


def test_timeline_lists_upcoming_due_dates_in_order():
    plans = [
        _sinking_fund(id=1, next_due_date=date(2024, 9, 1)),
        _sinking_fund(id=2, name='Far away', next_due_date=date(2027, 1, 1)),
        _bill(id=3),
    ]
    entries = timeline(plans, date(2024, 3, 20), months=12)
    assert [entry['plan_id'] for entry in entries] == [3, 1]
    assert entries[0]['date'] == date(2024, 4, 5)
    assert entries[1]['months_away'] == 6
