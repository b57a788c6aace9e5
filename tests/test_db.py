from datetime import date, timedelta

import pytest

from expense_planner import db
from expense_planner.envelopes import EnvelopeBalanceCalculator
from expense_planner.models import ExpensePlan


def test_linked_sum_excludes_unlinked_payments(tmp_path):
    path = tmp_path / 'ledger.db'
    db.init_db(path)
    db.record_payment(1, 2024, 3, 50.0, 'linked', db_path=path)
    db.record_payment(1, 2024, 3, 25.0, 'manual', db_path=path)
    db.record_payment(1, 2024, 3, 100.0, 'unlinked', db_path=path)
    db.record_payment(1, 2024, 4, 10.0, db_path=path)
    db.record_payment(2, 2024, 3, 99.0, db_path=path)

    assert db.sum_linked_payments_for_period(1, 2024, 3, db_path=path) == 75.0
    assert db.sum_linked_payments_for_period(1, 2024, 5, db_path=path) == 0.0


def test_record_payment_validates_input(tmp_path):
    path = tmp_path / 'ledger.db'
    db.init_db(path)
    with pytest.raises(ValueError):
        db.record_payment(1, 2024, 3, 10.0, 'refund', db_path=path)
    with pytest.raises(ValueError):
        db.record_payment(1, 2024, 13, 10.0, db_path=path)


def test_payments_are_stamped_in_utc(tmp_path):
    path = tmp_path / 'ledger.db'
    db.init_db(path)
    db.record_payment(1, 2024, 3, 10.0, db_path=path)

    stamp = db.fetch_payments(1, db_path=path)['Created At'].iloc[0]
    assert stamp.utcoffset() == timedelta(0)


def test_fetch_payments_returns_dataframe(tmp_path):
    path = tmp_path / 'ledger.db'
    db.init_db(path)
    db.record_payment(1, 2024, 4, 10.0, db_path=path)
    db.record_payment(1, 2024, 3, 20.0, 'manual', transaction_reference='TX-1', db_path=path)
    db.record_payment(2, 2024, 3, 30.0, db_path=path)

    df = db.fetch_payments(1, db_path=path)
    assert list(df['Month']) == [3, 4]
    assert list(df['Type']) == ['manual', 'linked']
    assert df.iloc[0]['Transaction Reference'] == 'TX-1'
    assert len(db.fetch_payments(db_path=path)) == 3
    assert db.fetch_payments(year=2023, db_path=path).empty


def test_payment_ledger_feeds_envelope_balances(tmp_path):
    ledger = db.PaymentLedger(tmp_path / 'ledger.db')
    plan = ExpensePlan(
        5, 'Groceries', 'spending_budget', 'fixed_monthly', 'monthly',
        monthly_contribution=400, rollover_surplus=True, created_at=date(2024, 1, 1),
    )
    ledger.record(5, 2024, 1, 300.0)
    ledger.record(5, 2024, 1, 80.0, payment_type='unlinked')

    calculator = EnvelopeBalanceCalculator(ledger)
    assert calculator.balance(plan, 2024, 2).previous_balance == 100.0

    ledger.record(5, 2024, 1, 50.0)
    assert calculator.balance(plan, 2024, 2).previous_balance == 100.0
    calculator.clear_cache()
    assert calculator.balance(plan, 2024, 2).previous_balance == 50.0
    assert len(ledger.payments(5)) == 3
