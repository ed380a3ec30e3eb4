"""Streamlit table display components."""

from datetime import date
from typing import Dict, List

import pandas as pd
import streamlit as st

from simulator.models import (
    AmortizationMonth,
    AmortizationYear,
    BufferSuggestion,
    Milestone,
    Severity,
    SimulationWarning,
)
from simulator.summary import schedule_to_dataframe, yearly_to_dataframe


def _euros(cents) -> str:
    return f"€{cents / 100:,.2f}" if pd.notna(cents) else "-"


def display_amortization_table(
    months: List[AmortizationMonth],
    years: List[AmortizationYear],
    warnings: List[SimulationWarning],
    rate_labels: Dict[str, str],
    title: str = "Amortization Schedule",
    max_rows: int = 60,
) -> None:
    """Display the schedule as a yearly summary or monthly detail.

    Args:
        months: Monthly schedule
        years: Yearly rollup of the same schedule
        warnings: Simulation warnings; affected rows are flagged
        rate_labels: Rate period id to display label
        title: Table title
        max_rows: Maximum monthly rows to display at once
    """
    st.subheader(title)

    view_type = st.radio(
        "View",
        options=["Yearly Summary", "Monthly Detail"],
        horizontal=True,
        key=f"table_view_{title}",
    )

    if view_type == "Yearly Summary":
        yearly = yearly_to_dataframe(years)
        if yearly.empty:
            st.info("No schedule to show.")
            return

        display_df = pd.DataFrame({
            'Year': yearly['year'],
            'Opening Balance': yearly['opening_balance'].apply(_euros),
            'Interest': yearly['total_interest'].apply(_euros),
            'Principal': yearly['total_principal'].apply(_euros),
            'Overpayments': yearly['total_overpayments'].apply(_euros),
            'Total Paid': yearly['total_payments'].apply(_euros),
            'Closing Balance': yearly['closing_balance'].apply(_euros),
            'Rate Periods': [
                ", ".join(rate_labels.get(pid, pid) for pid in y.rate_changes) for y in years
            ],
            'Warnings': yearly['has_warnings'].map({True: "⚠️", False: ""}),
        })

        st.dataframe(
            display_df,
            use_container_width=True,
            hide_index=True,
        )
        return

    schedule = schedule_to_dataframe(months)
    total_rows = len(schedule)
    if total_rows == 0:
        st.info("No schedule to show.")
        return

    if total_rows > max_rows:
        col1, col2 = st.columns([3, 1])
        with col1:
            start_month = st.slider(
                "Start from month",
                min_value=1,
                max_value=total_rows - max_rows + 1,
                value=1,
                key=f"month_slider_{title}",
            )
        with col2:
            st.write(f"Showing {max_rows} of {total_rows} months")

        display_slice = schedule.iloc[start_month - 1:start_month - 1 + max_rows].copy()
    else:
        display_slice = schedule.copy()

    warning_months = {w.month for w in warnings}

    display_df = pd.DataFrame({
        'Month': display_slice['month'],
        'Date': display_slice['date'].apply(lambda d: d.strftime('%b %Y') if isinstance(d, date) else ""),
        'Rate': display_slice['rate'].apply(lambda r: f"{r:.2f}%"),
        'Payment': display_slice['scheduled_payment'].apply(_euros),
        'Interest': display_slice['interest_portion'].apply(_euros),
        'Principal': display_slice['principal_portion'].apply(_euros),
        'Overpayment': display_slice['overpayment'].apply(_euros),
        'Balance': display_slice['closing_balance'].apply(_euros),
        'Warnings': display_slice['month'].apply(lambda m: "⚠️" if m in warning_months else ""),
    })

    st.dataframe(
        display_df,
        use_container_width=True,
        hide_index=True,
    )


def display_warnings(warnings: List[SimulationWarning]) -> None:
    """Show simulation warnings, errors first."""
    if not warnings:
        return

    errors = [w for w in warnings if w.severity == Severity.ERROR]
    others = [w for w in warnings if w.severity != Severity.ERROR]

    for warning in errors:
        st.error(f"Month {warning.month}: {warning.message}")

    if others:
        with st.expander(f"{len(others)} overpayment warning(s)"):
            rows = [{
                'Month': w.month,
                'Overpayment': w.overpayment_label or "",
                'Warning': w.message,
            } for w in others]
            st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def display_milestones(milestones: List[Milestone]) -> None:
    """Display milestones as a timeline table."""
    if not milestones:
        return

    rows = [{
        'Milestone': m.label,
        'Month': m.month,
        'Date': m.date.strftime('%b %Y') if m.date else "",
        'Balance': _euros(m.value) if m.value is not None else "-",
    } for m in milestones]

    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def display_buffer_suggestions(suggestions: List[BufferSuggestion]) -> None:
    """Explain where a variable-rate buffer would allow penalty-free lump sums."""
    for s in suggestions:
        where = "after your final fixed period" if s.is_trailing else f"after rate period {s.after_index + 1}"
        st.info(
            f"💡 Consider a 1-month buffer on {s.lender_name} {s.suggested_rate.name} "
            f"({s.suggested_rate.rate:.2f}%) {where}. LTV at the end of the "
            f"{s.fixed_rate.name} period: {s.ltv_at_end:.1f}%. Variable rates usually "
            f"allow lump-sum overpayments without fees."
        )


def _term(months: int) -> str:
    years, remaining = divmod(int(months), 12)
    return f"{years} years" if remaining == 0 else f"{years}y {remaining}m"


def display_comparison_metrics(metrics: pd.DataFrame, highlights: pd.DataFrame) -> None:
    """Headline figures side by side, with the best and worst simulation per figure."""
    display_df = pd.DataFrame({
        'Simulation': metrics['scenario'],
        'Total Interest': metrics['total_interest'].map(lambda v: f"€{v:,.0f}"),
        'Total Paid': metrics['total_paid'].map(lambda v: f"€{v:,.0f}"),
        'Actual Term': metrics['actual_term_months'].map(_term),
        'Interest Saved': metrics['interest_saved'].map(lambda v: f"€{v:,.0f}"),
        'Term Reduced': metrics['months_saved'].map(lambda v: f"{int(v)} months"),
    })
    st.dataframe(display_df, use_container_width=True, hide_index=True)

    for row in highlights.itertuples():
        if row.best is not None:
            st.markdown(f"**{row.label}**: best {row.best}, worst {row.worst}")
