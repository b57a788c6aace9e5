#!/usr/bin/env python3
"""Show funding status and upcoming obligations for every stored plan."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd

from expense_planner.funding import funding_status_record, monthly_deposit_summary
from expense_planner.obligations import obligation_in_period
from expense_planner.repositories import JsonPlanStore, resolve_period


def main(plans_file: Optional[Path], user_id: int, period_name: str, today: Optional[date] = None) -> None:
    today = today or date.today()
    plans = JsonPlanStore(plans_file).list_active_plans(user_id)
    if not plans:
        print("No active expense plans found.")
        return

    period = resolve_period(period_name, today)
    rows = []
    for plan in plans:
        record = funding_status_record(plan, today)
        obligation = obligation_in_period(plan, period.start, period.end)
        rows.append({
            'Plan': plan.name,
            'Type': plan.plan_type.value,
            'Status': record.status.value,
            'Target': record.effective_target,
            'Monthly': record.monthly_contribution,
            'Expected Now': record.expected_funded_by_now,
            'Next Due': record.next_due_date.isoformat() if record.next_due_date else '-',
            f'Due {period_name}': obligation.amount,
        })

    print(f"Funding status as of {today.isoformat()} ({period.start} to {period.end})")
    print(pd.DataFrame(rows).to_string(index=False))

    summary = monthly_deposit_summary(plans, today)
    print(f"\nTotal monthly deposit: {summary['total_monthly_deposit']:,.2f} across {summary['plan_count']} plans")
    print(f"Fully funded: {summary['fully_funded_count']}  Behind: {summary['behind_schedule_count']}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show funding status for stored expense plans.')
    parser.add_argument('--plans', type=Path, default=None, help='JSON plan store (defaults to the configured plans file)')
    parser.add_argument('--user', type=int, default=1, help='User id whose plans to show')
    parser.add_argument(
        '--period',
        default='next_30_days',
        choices=['this_month', 'next_month', 'next_30_days', 'next_60_days', 'next_90_days'],
        help='Window for the obligation column',
    )
    parser.add_argument('--verbose', action='store_true', help='Show debug logging')
    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')
    main(args.plans, args.user, args.period)
