"""Historical transaction aggregates for the cash-flow forecaster.

This module turns a transactions DataFrame (the same column layout the
dashboard imports: ``Transaction Date``, ``Amount``, ``Category`` and an
optional ``Type``) into the monthly averages and totals the forecaster falls
back on for spending not covered by an expense plan, plus the per-category
spending used to suggest contribution adjustments.
"""

from __future__ import annotations

from datetime import date
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from .dates import add_months, month_start
from .models import CategoryAverage, CategorySpending, MonthTotals

TRANSFER_CATEGORY_LABELS = {'transfer', 'transfers', 'internal transfer'}
TRANSFER_TYPE_LABELS = {'transfer'}
NON_EXPENSE_CATEGORIES = {'income', 'transfer', 'transfers'}


class TransactionHistory:
    """Monthly aggregates over a transactions DataFrame.

    Rows may carry a ``user_id`` column; when it is absent every row is
    treated as belonging to whichever user is asked for.
    """

    def __init__(self, data: pd.DataFrame, today: Optional[date] = None):
        self.data = data.copy()
        self.today = today or date.today()
        self._prepare_data()

    def _prepare_data(self) -> None:
        """Normalize columns and tag each row as Income, Expense or Transfer."""
        if self.data.empty:
            self.data = pd.DataFrame(columns=['Transaction Date', 'Amount', 'Category', 'Type'])

        self.data['Transaction Date'] = pd.to_datetime(self.data['Transaction Date'], errors='coerce')
        self.data = self.data.dropna(subset=['Transaction Date']).copy()

        self.data['Amount'] = pd.to_numeric(self.data['Amount'], errors='coerce').fillna(0.0)
        self.data['Category'] = (
            self.data.get('Category', pd.Series('Uncategorized', index=self.data.index))
            .fillna('Uncategorized')
            .astype(str)
        )
        type_series = self.data.get('Type')
        if isinstance(type_series, pd.Series):
            self.data['Type'] = type_series.fillna('').astype(str)
        else:
            self.data['Type'] = ''

        lowered_category = self.data['Category'].str.strip().str.lower()
        lowered_type = self.data['Type'].str.strip().str.lower()

        is_transfer = lowered_category.isin(TRANSFER_CATEGORY_LABELS)
        uncategorized_mask = lowered_category.isin({'', 'uncategorized', 'none'})
        is_transfer |= uncategorized_mask & lowered_type.isin(TRANSFER_TYPE_LABELS)
        is_income = (self.data['Amount'] > 0) & ~is_transfer

        self.data['Flow Category'] = np.where(
            is_transfer, 'Transfer', np.where(is_income, 'Income', 'Expense')
        )
        self.data['Year'] = self.data['Transaction Date'].dt.year
        self.data['Month'] = self.data['Transaction Date'].dt.month

    def _for_user(self, user_id: Optional[int]) -> pd.DataFrame:
        if user_id is None or 'user_id' not in self.data.columns:
            return self.data
        return self.data[self.data['user_id'] == user_id]

    def _expense_rows(self, df: pd.DataFrame) -> pd.DataFrame:
        expenses = df[df['Flow Category'] == 'Expense']
        if expenses.empty:
            return expenses
        return expenses[~expenses['Category'].str.lower().isin(NON_EXPENSE_CATEGORIES)]

    def _income_rows(self, df: pd.DataFrame) -> pd.DataFrame:
        return df[df['Flow Category'] == 'Income']

    def _trailing_window(self, df: pd.DataFrame, months_back: int, today: Optional[date]) -> pd.DataFrame:
        """Rows in the ``months_back`` complete months before today's month."""
        current = month_start(today or self.today)
        start = pd.Timestamp(add_months(current, -months_back))
        end = pd.Timestamp(current)
        dates = df['Transaction Date']
        return df[(dates >= start) & (dates < end)]

    def monthly_average_by_category(
        self, user_id: Optional[int], months_back: int, today: Optional[date] = None
    ) -> List[CategoryAverage]:
        """Average monthly expense per category over the trailing window.

        Months without any spending in a category count as zero, so the
        average is always the window total divided by ``months_back``.
        """
        if months_back <= 0:
            return []
        window = self._trailing_window(self._for_user(user_id), months_back, today)
        expenses = self._expense_rows(window)
        if expenses.empty:
            return []

        totals = expenses.groupby('Category')['Amount'].sum().abs() / months_back
        totals = totals[totals > 0].sort_values(ascending=False)
        return [CategoryAverage(category, round(float(amount), 2)) for category, amount in totals.items()]

    def monthly_income_expense_totals(self, user_id: Optional[int], year: int, month: int) -> MonthTotals:
        df = self._for_user(user_id)
        monthly = df[(df['Year'] == year) & (df['Month'] == month)]
        income = float(self._income_rows(monthly)['Amount'].sum())
        expense = float(abs(self._expense_rows(monthly)['Amount'].sum()))
        return MonthTotals(year, month, round(income, 2), round(expense, 2))

    def category_spending(
        self,
        user_id: Optional[int],
        category: Any,
        months_back: int = 12,
        today: Optional[date] = None,
        days_per_month: float = 30.0,
    ) -> CategorySpending:
        """Spending in ``category`` since ``months_back`` months before today.

        The total is spread over the days between the first and last matching
        transaction (in ``days_per_month`` units, at least one month), so a
        category that only started recently is not diluted by empty months.
        """
        reference = today or self.today
        start = pd.Timestamp(add_months(reference, -months_back))
        end = pd.Timestamp(reference) + pd.Timedelta(days=1)
        expenses = self._expense_rows(self._for_user(user_id))
        dates = expenses['Transaction Date']
        rows = expenses[(expenses['Category'] == str(category)) & (dates >= start) & (dates < end)]
        if rows.empty:
            return CategorySpending()

        total = float(rows['Amount'].abs().sum())
        span = rows['Transaction Date'].max() - rows['Transaction Date'].min()
        span_months = max(span / pd.Timedelta(days=1) / days_per_month, 1.0)
        return CategorySpending(
            weighted_monthly_average=round(total / span_months, 2),
            transaction_count=int(len(rows)),
            total_spending=round(total, 2),
            span_months=round(span_months, 2),
        )

    def monthly_history(
        self, user_id: Optional[int], months_back: int, today: Optional[date] = None
    ) -> List[MonthTotals]:
        """Income and expense totals for each month with activity, oldest first."""
        window = self._trailing_window(self._for_user(user_id), months_back, today)
        if window.empty:
            return []

        window = window.copy()
        expense_index = self._expense_rows(window).index
        window['income'] = np.where(window['Flow Category'] == 'Income', window['Amount'], 0.0)
        window['expense'] = 0.0
        window.loc[expense_index, 'expense'] = window.loc[expense_index, 'Amount'].abs()
        summary = window.groupby(['Year', 'Month'])[['income', 'expense']].sum().sort_index()

        return [
            MonthTotals(int(year), int(month), round(float(row['income']), 2), round(float(row['expense']), 2))
            for (year, month), row in summary.iterrows()
        ]

    def expenses_by_category_and_month(
        self, user_id: Optional[int] = None, months_back: int = 12, today: Optional[date] = None
    ) -> pd.DataFrame:
        """Expense totals pivoted by category (rows) and calendar month 1-12 (columns)."""
        window = self._trailing_window(self._for_user(user_id), months_back, today)
        expenses = self._expense_rows(window).copy()
        if expenses.empty:
            return pd.DataFrame(columns=list(range(1, 13)))

        expenses['Spent'] = expenses['Amount'].abs()
        pivot = expenses.pivot_table(
            index='Category', columns='Month', values='Spent', aggfunc='sum', fill_value=0.0
        )
        return pivot.reindex(columns=list(range(1, 13)), fill_value=0.0).round(2)
