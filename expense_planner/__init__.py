"""Top-level package for the Expense Planner engine.

The engine turns a user's expense plans (recurring bills, sinking funds,
seasonal costs, spending budgets) into funding projections, per-period
obligations, envelope balances and a cash-flow forecast.  The primary
modules are:

* ``schedule`` - next due dates per recurrence
* ``contributions`` - implied monthly set-asides, per-occurrence targets and
  spending-based adjustment suggestions
* ``funding`` - "expected funded by now" and status classification
* ``obligations`` - how much falls due inside a date window, account coverage
* ``envelopes`` - month-over-month envelope balances
* ``forecast`` - month-by-month income, expenses and projected balance
* ``visualization`` - Plotly figures for the above

Storage stays outside the calculators: plans, income plans, transaction
history and payment ledgers are read through the protocols in
``repositories`` and handed in already loaded.
"""

from .contributions import adjustment_suggestion, adjustment_suggestions, effective_target, implied_monthly_contribution
from .envelopes import EnvelopeBalanceCalculator
from .forecast import CashFlowForecaster, forecast_to_frame
from .funding import expected_funded_by_now, funding_status, funding_status_record
from .models import ExpensePlan, IncomePlan, Period
from .obligations import account_coverage, obligation_in_period
from .schedule import next_due_date

__all__ = [
    "CashFlowForecaster",
    "EnvelopeBalanceCalculator",
    "ExpensePlan",
    "IncomePlan",
    "Period",
    "account_coverage",
    "adjustment_suggestion",
    "adjustment_suggestions",
    "effective_target",
    "expected_funded_by_now",
    "forecast_to_frame",
    "funding_status",
    "funding_status_record",
    "implied_monthly_contribution",
    "next_due_date",
    "obligation_in_period",
]
