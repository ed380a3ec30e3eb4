"""Yearly rollups, summary statistics and tabular views of a schedule."""

from dataclasses import asdict, fields
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import (
    AmortizationMonth,
    AmortizationYear,
    ResolvedRatePeriod,
    SimulationCompleteness,
    SimulationSummary,
    SimulationWarning,
)

GRANULARITIES = ("monthly", "quarterly", "yearly")

# Differences below a euro are rounding noise
SELF_BUILD_INTEREST_THRESHOLD = 100

SCHEDULE_COLUMNS = [f.name for f in fields(AmortizationMonth)]

YEARLY_COLUMNS = [f.name for f in fields(AmortizationYear) if f.name != "months"]

CHART_COLUMNS = [
    'period', 'month', 'balance', 'equity', 'ltv', 'interest', 'principal',
    'overpayments', 'cumulative_interest', 'cumulative_principal', 'rate',
    'baseline_balance',
]

PERIOD_LENGTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}


def aggregate_by_year(
    months: Sequence[AmortizationMonth],
    warnings: Sequence[SimulationWarning] = (),
) -> List[AmortizationYear]:
    """Roll the schedule up by year.

    Months are grouped by calendar year when they carry dates, and by
    mortgage year (12 consecutive months) otherwise. A year is flagged when
    any warning falls in one of its months.
    """
    if not months:
        return []

    has_dates = months[0].date is not None
    warning_months = {w.month for w in warnings}

    grouped = {}
    for month in months:
        key = month.date.year if has_dates else month.year
        grouped.setdefault(key, []).append(month)

    years = []
    for year, year_months in sorted(grouped.items()):
        first, last = year_months[0], year_months[-1]

        rate_changes = []
        for m in year_months:
            if not rate_changes or rate_changes[-1] != m.rate_period_id:
                rate_changes.append(m.rate_period_id)

        years.append(AmortizationYear(
            year=year,
            opening_balance=first.opening_balance,
            closing_balance=last.closing_balance,
            total_interest=sum(m.interest_portion for m in year_months),
            total_principal=sum(m.principal_portion for m in year_months),
            total_overpayments=sum(m.overpayment for m in year_months),
            total_payments=sum(m.total_payment for m in year_months),
            cumulative_interest=last.cumulative_interest,
            cumulative_principal=last.cumulative_principal,
            cumulative_total=last.cumulative_total,
            months=year_months,
            rate_changes=list(dict.fromkeys(rate_changes)),
            has_warnings=any(m.month in warning_months for m in year_months),
        ))
    return years


def compute_summary(
    months: Sequence[AmortizationMonth],
    baseline_months: Sequence[AmortizationMonth],
    interest_and_capital_baseline: Optional[int] = None,
) -> SimulationSummary:
    """Totals of a schedule compared with its no-overpayment baseline.

    Months saved are only reported when the mortgage is actually paid off;
    an incomplete simulation reports 0.

    Args:
        months: Schedule with overpayments
        baseline_months: Same mortgage without overpayments
        interest_and_capital_baseline: Baseline interest had capital been
            repaid during construction (self-build only)
    """
    if not months:
        return SimulationSummary(
            total_interest=0,
            total_paid=0,
            actual_term_months=0,
            months_saved=0,
            interest_saved=0,
        )

    last = months[-1]
    baseline_interest = baseline_months[-1].cumulative_interest if baseline_months else 0

    months_saved = 0
    if last.closing_balance <= 0:
        months_saved = max(0, len(baseline_months) - len(months))

    extra_interest = None
    if interest_and_capital_baseline is not None:
        difference = baseline_interest - interest_and_capital_baseline
        if abs(difference) > SELF_BUILD_INTEREST_THRESHOLD:
            extra_interest = difference

    return SimulationSummary(
        total_interest=last.cumulative_interest,
        total_paid=last.cumulative_total,
        actual_term_months=len(months),
        months_saved=months_saved,
        interest_saved=max(0, baseline_interest - last.cumulative_interest),
        extra_interest_from_self_build=extra_interest,
    )


def calculate_simulation_completeness(
    resolved_periods: Sequence[ResolvedRatePeriod],
    term_months: int,
    months: Optional[Sequence[AmortizationMonth]] = None,
) -> SimulationCompleteness:
    """Report whether the rate periods cover the whole term.

    Coverage comes from the resolved periods: -1 means the last period runs
    to the end of the mortgage. When the computed schedule is given, the
    outstanding balance and the months left unsimulated are reported too.
    """
    if resolved_periods and resolved_periods[-1].duration_months == 0:
        covered = -1
    else:
        covered = sum(p.duration_months for p in resolved_periods)

    is_complete = covered == -1 or covered >= term_months
    missing = 0 if is_complete else term_months - covered

    remaining_balance = 0
    if months:
        remaining_balance = months[-1].closing_balance
        if remaining_balance > 0:
            missing = max(missing, term_months - len(months))

    return SimulationCompleteness(
        is_complete=is_complete,
        covered_months=covered,
        total_months=term_months,
        missing_months=missing,
        remaining_balance=remaining_balance,
    )


def schedule_to_dataframe(months: Sequence[AmortizationMonth]) -> pd.DataFrame:
    """One row per month, amounts in cents."""
    if not months:
        return pd.DataFrame(columns=SCHEDULE_COLUMNS)
    return pd.DataFrame([asdict(m) for m in months], columns=SCHEDULE_COLUMNS)


def yearly_to_dataframe(years: Sequence[AmortizationYear]) -> pd.DataFrame:
    """One row per year, amounts in cents. Rate changes are comma-joined ids."""
    rows = []
    for y in years:
        row = {name: getattr(y, name) for name in YEARLY_COLUMNS}
        row['rate_changes'] = ", ".join(y.rate_changes)
        rows.append(row)
    return pd.DataFrame(rows, columns=YEARLY_COLUMNS)


def period_for_month(month, granularity: str):
    """Mortgage-relative chart period containing ``month`` (works on Series too)."""
    return (month - 1) // PERIOD_LENGTHS[granularity] + 1


def build_chart_data(
    months: Sequence[AmortizationMonth],
    baseline: Optional[Sequence[AmortizationMonth]] = None,
    property_value: int = 0,
    granularity: str = "yearly",
) -> pd.DataFrame:
    """Build per-period chart points, amounts in euros.

    Periods are mortgage-relative: every month, every 3 months or every 12
    months. Flows (interest, principal, overpayments) are summed over the
    period; balances are taken at the period's last month.

    Returns DataFrame with columns:
    - period: period number (1-indexed)
    - month: last mortgage month of the period
    - balance, equity, ltv
    - interest, principal, overpayments
    - cumulative_interest, cumulative_principal
    - rate: rate in effect at the end of the period
    - baseline_balance: balance without overpayments (NaN without a baseline)

    Raises:
        ValueError: If granularity is not monthly, quarterly or yearly
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity: {granularity}")

    df = schedule_to_dataframe(months)
    if df.empty:
        return pd.DataFrame(columns=CHART_COLUMNS)

    df['period'] = period_for_month(df['month'], granularity)

    chart = df.groupby('period', as_index=False).agg(
        month=('month', 'last'),
        balance=('closing_balance', 'last'),
        interest=('interest_portion', 'sum'),
        principal=('principal_portion', 'sum'),
        overpayments=('overpayment', 'sum'),
        cumulative_interest=('cumulative_interest', 'last'),
        cumulative_principal=('cumulative_principal', 'last'),
        rate=('rate', 'last'),
    )

    money = ['balance', 'interest', 'principal', 'overpayments',
             'cumulative_interest', 'cumulative_principal']
    chart[money] = chart[money] / 100

    if property_value > 0:
        chart['equity'] = property_value / 100 - chart['balance']
        chart['ltv'] = chart['balance'] / (property_value / 100) * 100
    else:
        chart['equity'] = np.nan
        chart['ltv'] = np.nan

    if baseline:
        baseline_balance = pd.Series(
            [m.closing_balance for m in baseline],
            index=[m.month for m in baseline],
        )
        chart['baseline_balance'] = (
            baseline_balance.reindex(chart['month'], fill_value=0).to_numpy() / 100
        )
    else:
        chart['baseline_balance'] = np.nan

    return chart[CHART_COLUMNS]
