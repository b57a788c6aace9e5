#!/usr/bin/env python3
"""Print a cash-flow forecast for the plans in a JSON plan store."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd

from expense_planner.analytics import TransactionHistory
from expense_planner.forecast import CashFlowForecaster, forecast_to_frame
from expense_planner.repositories import JsonPlanStore


def load_transactions(path: Optional[Path]) -> pd.DataFrame:
    if path is None:
        return pd.DataFrame(columns=['Transaction Date', 'Amount', 'Category', 'Type'])
    return pd.read_csv(path)


def main(
    plans_file: Optional[Path],
    transactions_csv: Optional[Path],
    user_id: int,
    months: Optional[int],
    balance: float,
    mode: str,
) -> None:
    store = JsonPlanStore(plans_file)
    history = TransactionHistory(load_transactions(transactions_csv))
    forecaster = CashFlowForecaster(store, store, history)

    rows = forecaster.forecast(user_id, months=months, starting_balance=balance, mode=mode)
    if not rows:
        print("Nothing to forecast. Add plans or transaction history first.")
        return

    df = forecast_to_frame(rows).drop(columns=['Month Start'])
    print(f"Cash flow forecast ({mode}) for user {user_id}, starting balance {balance:,.2f}")
    print(df.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))

    lowest = df.loc[df['Projected Balance'].idxmin()]
    print(f"\nLowest projected balance: {lowest['Projected Balance']:,.2f} in {lowest['Month']}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Print a month-by-month cash flow forecast.')
    parser.add_argument('--plans', type=Path, default=None, help='JSON plan store (defaults to the configured plans file)')
    parser.add_argument('--transactions', type=Path, default=None, help='CSV of historical transactions')
    parser.add_argument('--user', type=int, default=1, help='User id to forecast for')
    parser.add_argument('--months', type=int, default=None, help='Number of months to forecast')
    parser.add_argument('--balance', type=float, default=0.0, help='Current balance across accounts')
    parser.add_argument('--mode', choices=['expense_plans', 'historical'], default='expense_plans')
    parser.add_argument('--verbose', action='store_true', help='Show debug logging')
    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')
    main(args.plans, args.transactions, args.user, args.months, args.balance, args.mode)
