"""Plotly chart components for mortgage simulation visualization."""

from typing import Callable, Dict, List, Optional

import pandas as pd
import plotly.graph_objects as go

from simulator.models import AppliedOverpayment, Milestone, ResolvedRatePeriod, RateType

CHART_TYPES = [
    "balance_equity",
    "payment_breakdown",
    "cumulative_costs",
    "overpayment_impact",
    "rate_timeline",
]

CHART_TITLES = {
    "balance_equity": "Balance & Equity",
    "payment_breakdown": "Payment Breakdown",
    "cumulative_costs": "Cumulative Costs",
    "overpayment_impact": "Overpayment Impact",
    "rate_timeline": "Rate Timeline",
}

PERIOD_LABELS = {"monthly": "Month", "quarterly": "Quarter", "yearly": "Year"}


def _apply_layout(fig: go.Figure, title: str, x_title: str, y_title: str = 'Amount (€)') -> go.Figure:
    fig.update_layout(
        title=title,
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode='x unified',
        legend=dict(
            yanchor='top',
            y=0.99,
            xanchor='right',
            x=0.99,
        ),
    )
    if y_title.endswith('(€)'):
        fig.update_layout(yaxis=dict(tickformat='€,.0f'))
    return fig


def _add_milestone_markers(fig: go.Figure, chart_data: pd.DataFrame, milestones: List[Milestone]) -> None:
    """Mark milestones on the period containing their month."""
    for milestone in milestones:
        matching = chart_data[chart_data['month'] >= milestone.month]
        if matching.empty:
            continue
        fig.add_vline(
            x=matching['period'].iloc[0],
            line=dict(color='#7f7f7f', width=1, dash='dot'),
            annotation_text=milestone.label,
            annotation_position='top left',
        )


def create_balance_equity_chart(
    chart_data: pd.DataFrame,
    granularity: str = "yearly",
    milestones: Optional[List[Milestone]] = None,
) -> go.Figure:
    """Remaining balance against equity, with the no-overpayment balance for comparison."""
    x_title = PERIOD_LABELS[granularity]
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=chart_data['period'],
        y=chart_data['balance'],
        name='Remaining Balance',
        line=dict(color='#1f77b4', width=2),
        hovertemplate=x_title + ' %{x}<br>Balance: €%{y:,.0f}<extra></extra>',
    ))

    if chart_data['equity'].notna().any():
        fig.add_trace(go.Scatter(
            x=chart_data['period'],
            y=chart_data['equity'],
            name='Equity',
            fill='tozeroy',
            line=dict(color='#17becf', width=1),
            fillcolor='rgba(23, 190, 207, 0.3)',
            hovertemplate=x_title + ' %{x}<br>Equity: €%{y:,.0f}<extra></extra>',
        ))

    if chart_data['baseline_balance'].notna().any():
        fig.add_trace(go.Scatter(
            x=chart_data['period'],
            y=chart_data['baseline_balance'],
            name='Without Overpayments',
            line=dict(color='#7f7f7f', width=1, dash='dash'),
            hovertemplate=x_title + ' %{x}<br>Baseline: €%{y:,.0f}<extra></extra>',
        ))

    if milestones:
        _add_milestone_markers(fig, chart_data, milestones)

    return _apply_layout(fig, CHART_TITLES["balance_equity"], x_title)


def create_payment_breakdown_chart(chart_data: pd.DataFrame, granularity: str = "yearly") -> go.Figure:
    """Stacked bars of interest, principal and overpayments per period."""
    x_title = PERIOD_LABELS[granularity]
    fig = go.Figure()

    for column, name, color in [
        ('principal', 'Principal', '#2ca02c'),
        ('interest', 'Interest', '#d62728'),
        ('overpayments', 'Overpayments', '#9467bd'),
    ]:
        fig.add_trace(go.Bar(
            x=chart_data['period'],
            y=chart_data[column],
            name=name,
            marker_color=color,
            hovertemplate=x_title + ' %{x}<br>' + name + ': €%{y:,.2f}<extra></extra>',
        ))

    fig.update_layout(barmode='stack')
    return _apply_layout(fig, CHART_TITLES["payment_breakdown"], x_title)


def create_cumulative_costs_chart(chart_data: pd.DataFrame, granularity: str = "yearly") -> go.Figure:
    """Cumulative interest and principal paid."""
    x_title = PERIOD_LABELS[granularity]
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=chart_data['period'],
        y=chart_data['cumulative_principal'],
        name='Principal Paid',
        fill='tozeroy',
        line=dict(color='#2ca02c', width=1),
        fillcolor='rgba(44, 160, 44, 0.3)',
        hovertemplate=x_title + ' %{x}<br>Principal Paid: €%{y:,.0f}<extra></extra>',
    ))

    fig.add_trace(go.Scatter(
        x=chart_data['period'],
        y=chart_data['cumulative_interest'],
        name='Interest Paid',
        line=dict(color='#d62728', width=2, dash='dash'),
        hovertemplate=x_title + ' %{x}<br>Interest Paid: €%{y:,.0f}<extra></extra>',
    ))

    return _apply_layout(fig, CHART_TITLES["cumulative_costs"], x_title)


def create_overpayment_impact_chart(
    chart_data: pd.DataFrame,
    applied_overpayments: List[AppliedOverpayment],
    granularity: str = "yearly",
) -> go.Figure:
    """One-time and recurring overpayments per period, with the balance saved against the baseline."""
    x_title = PERIOD_LABELS[granularity]
    periods = chart_data[['period', 'month']].copy()

    def period_of(month: int):
        matching = periods[periods['month'] >= month]
        return matching['period'].iloc[0] if not matching.empty else None

    one_time: Dict[int, float] = {}
    recurring: Dict[int, float] = {}
    for applied in applied_overpayments:
        period = period_of(applied.month)
        if period is None:
            continue
        bucket = recurring if applied.is_recurring else one_time
        bucket[period] = bucket.get(period, 0) + applied.amount / 100

    fig = go.Figure()
    for bucket, name, color in [
        (one_time, 'One-time', '#ff7f0e'),
        (recurring, 'Recurring', '#9467bd'),
    ]:
        fig.add_trace(go.Bar(
            x=list(bucket.keys()),
            y=list(bucket.values()),
            name=name,
            marker_color=color,
            hovertemplate=x_title + ' %{x}<br>' + name + ': €%{y:,.0f}<extra></extra>',
        ))

    if chart_data['baseline_balance'].notna().any():
        fig.add_trace(go.Scatter(
            x=chart_data['period'],
            y=chart_data['baseline_balance'] - chart_data['balance'],
            name='Balance Reduction',
            line=dict(color='#2ca02c', width=2),
            hovertemplate=x_title + ' %{x}<br>Ahead of baseline: €%{y:,.0f}<extra></extra>',
        ))

    fig.update_layout(barmode='stack')
    return _apply_layout(fig, CHART_TITLES["overpayment_impact"], x_title)


def create_rate_timeline_chart(
    chart_data: pd.DataFrame,
    resolved_periods: List[ResolvedRatePeriod],
    granularity: str = "yearly",
) -> go.Figure:
    """Interest rate over time, with each rate period shaded."""
    x_title = PERIOD_LABELS[granularity]
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=chart_data['period'],
        y=chart_data['rate'],
        name='Interest Rate',
        line=dict(color='#1f77b4', width=2, shape='hv'),
        hovertemplate=x_title + ' %{x}<br>Rate: %{y:.2f}%<extra></extra>',
    ))

    months_per_period = {"monthly": 1, "quarterly": 3, "yearly": 12}[granularity]
    last_period = chart_data['period'].max() if not chart_data.empty else 0
    for period in resolved_periods:
        start = (period.start_month - 1) // months_per_period + 1
        end = last_period if period.end_month is None else (period.end_month - 1) // months_per_period + 1
        fig.add_vrect(
            x0=start - 0.5,
            x1=end + 0.5,
            fillcolor='#1f77b4' if period.type == RateType.FIXED else '#ff7f0e',
            opacity=0.08,
            line_width=0,
            annotation_text=period.label,
            annotation_position='top left',
        )

    fig.update_layout(yaxis=dict(ticksuffix='%'))
    return _apply_layout(fig, CHART_TITLES["rate_timeline"], x_title, y_title='Rate (%)')


def create_simulation_chart(
    chart_type: str,
    chart_data: pd.DataFrame,
    granularity: str = "yearly",
    milestones: Optional[List[Milestone]] = None,
    applied_overpayments: Optional[List[AppliedOverpayment]] = None,
    resolved_periods: Optional[List[ResolvedRatePeriod]] = None,
) -> go.Figure:
    """Dispatch to the chart builder for ``chart_type``.

    Raises:
        ValueError: If chart_type is not one of CHART_TYPES
    """
    builders: Dict[str, Callable[[], go.Figure]] = {
        "balance_equity": lambda: create_balance_equity_chart(chart_data, granularity, milestones),
        "payment_breakdown": lambda: create_payment_breakdown_chart(chart_data, granularity),
        "cumulative_costs": lambda: create_cumulative_costs_chart(chart_data, granularity),
        "overpayment_impact": lambda: create_overpayment_impact_chart(
            chart_data, applied_overpayments or [], granularity
        ),
        "rate_timeline": lambda: create_rate_timeline_chart(
            chart_data, resolved_periods or [], granularity
        ),
    }
    if chart_type not in builders:
        raise ValueError(f"Unknown chart type: {chart_type}")
    return builders[chart_type]()


COMPARE_CHART_COLUMNS = {
    "balance": "Remaining Balance",
    "equity": "Equity",
    "cumulative_interest": "Cumulative Interest",
    "ltv": "Loan to Value",
    "rate": "Interest Rate",
}


def create_comparison_chart(
    chart_data: pd.DataFrame,
    column: str = "balance",
    granularity: str = "yearly",
    colors: Optional[Dict[str, str]] = None,
) -> go.Figure:
    """One line per compared simulation for a single chart column.

    Raises:
        ValueError: If column is not one of COMPARE_CHART_COLUMNS
    """
    if column not in COMPARE_CHART_COLUMNS:
        raise ValueError(f"Unknown comparison column: {column}")

    x_title = PERIOD_LABELS[granularity]
    title = COMPARE_CHART_COLUMNS[column]
    if column == "ltv":
        y_title, value_format = 'LTV (%)', '%{y:.1f}%'
    elif column == "rate":
        y_title, value_format = 'Rate (%)', '%{y:.2f}%'
    else:
        y_title, value_format = 'Amount (€)', '€%{y:,.0f}'

    fig = go.Figure()
    for scenario, points in chart_data.groupby('scenario', sort=False):
        line = dict(width=2, shape='hv' if column == "rate" else 'linear')
        if colors and scenario in colors:
            line['color'] = colors[scenario]
        fig.add_trace(go.Scatter(
            x=points['period'],
            y=points[column],
            name=scenario,
            line=line,
            hovertemplate=f'{scenario}<br>{x_title} %{{x}}<br>{title}: {value_format}<extra></extra>',
        ))

    return _apply_layout(fig, f"{title} Comparison", x_title, y_title=y_title)
