import importlib.util
from datetime import date
from pathlib import Path

from expense_planner.models import ExpensePlan, IncomePlan
from expense_planner.repositories import JsonPlanStore

SCRIPTS_DIR = Path(__file__).resolve().parents[1] / 'scripts'


def _load_script(name):
    spec = importlib.util.spec_from_file_location(f'{name}_test', SCRIPTS_DIR / f'{name}.py')
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _store(tmp_path):
    path = tmp_path / 'plans.json'
    JsonPlanStore(path).save(
        [
            ExpensePlan(1, 'Car insurance', 'sinking_fund', 'yearly_fixed', 'yearly',
                        target_amount=1200, monthly_contribution=100, due_month=5, due_day=15),
            ExpensePlan(2, 'Phone', 'spending_budget', 'fixed_monthly', 'monthly',
                        target_amount=40, monthly_contribution=40, due_day=5),
        ],
        [IncomePlan(1, 'Salary', 'guaranteed', (2000.0,) * 12)],
    )
    return path


def test_forecast_report_prints_table(tmp_path, capsys):
    module = _load_script('forecast_report')
    module.main(_store(tmp_path), None, 1, 6, 100.0, 'expense_plans')
    out = capsys.readouterr().out
    assert 'Cash flow forecast (expense_plans)' in out
    assert 'Projected Balance' in out
    assert 'Lowest projected balance' in out


def test_forecast_report_without_history_in_historical_mode(tmp_path, capsys):
    module = _load_script('forecast_report')
    module.main(_store(tmp_path), None, 1, 6, 0.0, 'historical')
    assert 'Nothing to forecast' in capsys.readouterr().out


def test_funding_report_lists_every_plan(tmp_path, capsys):
    module = _load_script('funding_report')
    module.main(_store(tmp_path), 1, 'next_30_days', today=date(2024, 5, 1))
    out = capsys.readouterr().out
    assert 'Car insurance' in out
    assert 'Phone' in out
    assert 'Total monthly deposit: 140.00 across 2 plans' in out


def test_funding_report_with_empty_store(tmp_path, capsys):
    module = _load_script('funding_report')
    module.main(tmp_path / 'empty.json', 1, 'this_month')
    assert 'No active expense plans found.' in capsys.readouterr().out
