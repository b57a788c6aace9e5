"""Plotly figures for expense plan reports.

Each function accepts the values produced by the engine (forecast rows,
envelope balances, funding status records) and returns a
``plotly.graph_objects.Figure``.  Empty input yields an empty figure with a
"No data to display" title so callers never need to special-case it.
"""

from __future__ import annotations

from collections import Counter
from typing import Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .forecast import forecast_to_frame
from .models import EnvelopeBalance, EnvelopeStatus, ForecastMonth, FundingStatus, FundingStatusRecord

STATUS_COLORS = {
    FundingStatus.FUNDED.value: '#2ca02c',
    FundingStatus.ALMOST_READY.value: '#17becf',
    FundingStatus.ON_TRACK.value: '#1f77b4',
    FundingStatus.BEHIND.value: '#d62728',
}

ENVELOPE_COLORS = {
    EnvelopeStatus.UNDER_BUDGET.value: '#2ca02c',
    EnvelopeStatus.ON_BUDGET.value: '#ff7f0e',
    EnvelopeStatus.OVER_BUDGET.value: '#d62728',
}


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_forecast_chart(rows: Sequence[ForecastMonth], title: str | None = None) -> go.Figure:
    """Income and expense bars per month with the projected balance as a line.

    Parameters
    ----------
    rows : sequence of ForecastMonth
        Output of :meth:`CashFlowForecaster.forecast`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Combined bar and line chart.
    """
    if not rows:
        return _empty_figure()
    df = forecast_to_frame(rows)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df['Month'], y=df['Income'], name='Income', marker_color='#2ca02c'))
    fig.add_trace(go.Bar(x=df['Month'], y=df['Expenses'], name='Expenses', marker_color='#d62728'))
    fig.add_trace(go.Scatter(
        x=df['Month'],
        y=df['Projected Balance'],
        name='Projected Balance',
        mode='lines+markers',
        line=dict(color='#1f77b4', width=3),
    ))
    fig.update_layout(
        title=title or "Cash Flow Forecast",
        barmode='group',
        xaxis_title="Month",
        yaxis_title="Amount",
        hovermode='x unified',
    )
    return fig


def create_envelope_utilization_chart(
    balances: Sequence[EnvelopeBalance], plan_names: dict | None = None, title: str | None = None
) -> go.Figure:
    """Horizontal bars of envelope utilization, colored by budget status."""
    if not balances:
        return _empty_figure()
    names = plan_names or {}
    df = pd.DataFrame([
        {
            'Plan': names.get(b.plan_id, f"Plan {b.plan_id}"),
            'Utilization': b.utilization_percent,
            'Status': b.status.value,
            'Balance': b.current_balance,
        }
        for b in balances
    ])
    fig = px.bar(
        df,
        x='Utilization',
        y='Plan',
        color='Status',
        orientation='h',
        color_discrete_map=ENVELOPE_COLORS,
        hover_data=['Balance'],
    )
    fig.add_vline(x=100, line_dash='dash', line_color='gray')
    fig.update_layout(
        title=title or "Envelope Utilization",
        xaxis_title="Utilization (%)",
        yaxis_title="",
    )
    return fig


def create_funding_status_chart(records: Sequence[FundingStatusRecord], title: str | None = None) -> go.Figure:
    """Donut chart with the number of plans in each funding status."""
    if not records:
        return _empty_figure()
    counts = Counter(record.status.value for record in records)
    labels = [status for status in STATUS_COLORS if counts.get(status)]
    fig = go.Figure(data=[go.Pie(
        labels=labels,
        values=[counts[label] for label in labels],
        hole=0.4,
        marker=dict(colors=[STATUS_COLORS[label] for label in labels]),
    )])
    fig.update_layout(title=title or "Funding Status")
    return fig
