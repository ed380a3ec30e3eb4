"""Streamlit input components for simulation parameters."""

import uuid
from datetime import date
from typing import List, Optional

import pandas as pd
import streamlit as st

from simulator.models import (
    ConstructionRepaymentType,
    DrawdownStage,
    MortgageInput,
    OverpaymentConfig,
    OverpaymentEffect,
    OverpaymentFrequency,
    OverpaymentType,
    RatePeriodConfig,
    RateType,
    SelfBuildConfig,
)
from simulator.mortgage import to_cents
from simulator.rates import RateCatalog
from simulator.self_build import drawdown_stages_with_cumulative

BER_RATINGS = [
    "A1", "A2", "A3", "B1", "B2", "B3", "C1", "C2", "C3",
    "D1", "D2", "E1", "E2", "F", "G", "Exempt",
]

TERM_YEARS = list(range(5, 41))

MAX_MORTGAGE_AMOUNT = 5000000.0
MAX_PROPERTY_VALUE = 10000000.0
MAX_INTEREST_ONLY_MONTHS = 60
MAX_DRAWDOWN_STAGES = 8


def seeded(key: str, default) -> str:
    """Widget key with its default stored in session state.

    Widgets take their value from session state instead of ``value=``, so a
    loaded scenario can set it before the widget is drawn.
    """
    if key not in st.session_state:
        st.session_state[key] = default
    return key


def mortgage_input_form(key_prefix: str = "mortgage") -> Optional[MortgageInput]:
    """Create input form for the mortgage itself.

    Returns MortgageInput (amounts in cents) or None if inputs are invalid.
    """
    col1, col2 = st.columns(2)

    with col1:
        amount = st.number_input(
            "Mortgage Amount (€)",
            min_value=0.0,
            max_value=MAX_MORTGAGE_AMOUNT,
            step=5000.0,
            format="%.2f",
            key=seeded(f"{key_prefix}_amount", 300000.0),
            help="The total amount borrowed",
        )

        property_value = st.number_input(
            "Property Value (€)",
            min_value=0.0,
            max_value=MAX_PROPERTY_VALUE,
            step=5000.0,
            format="%.2f",
            key=seeded(f"{key_prefix}_property_value", 350000.0),
            help="Used for LTV-based rates, equity and milestones",
        )

        ber = st.selectbox(
            "BER Rating",
            options=BER_RATINGS,
            key=seeded(f"{key_prefix}_ber", "B2"),
            help="Some green rates are only available for high BER ratings",
        )

    with col2:
        term_years = st.selectbox(
            "Mortgage Term (years)",
            options=TERM_YEARS,
            key=seeded(f"{key_prefix}_term", 30),
            help="Length of the mortgage in years",
        )

        use_start_date = st.checkbox(
            "Set a start date",
            key=seeded(f"{key_prefix}_use_start", True),
            help="Aligns allowances and yearly totals with calendar years",
        )
        start_date = None
        if use_start_date:
            picked = st.date_input(
                "First Payment",
                key=seeded(f"{key_prefix}_start", date.today().replace(day=1)),
            )
            start_date = picked.replace(day=1)

    if amount > 0:
        return MortgageInput(
            mortgage_amount=to_cents(amount),
            mortgage_term_months=term_years * 12,
            property_value=to_cents(property_value),
            ber=ber,
            start_date=start_date,
        )

    return None


def rate_periods_editor(
    catalog: RateCatalog,
    term_months: int,
    key_prefix: str = "periods",
) -> List[RatePeriodConfig]:
    """Edit the rate period stack.

    Periods are kept in session state. Each period follows the previous
    one; a duration of 0 runs to the end of the mortgage.
    """
    state_key = f"{key_prefix}_list"
    if state_key not in st.session_state:
        st.session_state[state_key] = []
    periods: List[RatePeriodConfig] = st.session_state[state_key]

    lender_names = {l.id: l.name for l in catalog.lenders}
    if not lender_names:
        st.warning("The rate catalog has no lenders.")
        return periods

    for index, period in enumerate(list(periods)):
        rate = catalog.find_rate(period.rate_id, period.is_custom)
        rate_name = rate.name if rate else period.rate_id
        if period.is_custom:
            lender_name = (rate.custom_lender_name if rate else None) or "Custom"
        else:
            lender = catalog.find_lender(period.lender_id)
            lender_name = lender.name if lender else "Unknown"
        duration = "until end" if period.duration_months == 0 else f"{period.duration_months} months"
        col1, col2 = st.columns([4, 1])
        with col1:
            st.write(f"**{index + 1}.** {lender_name} {rate_name} ({duration})")
        with col2:
            if st.button("Remove", key=f"{key_prefix}_remove_{period.id}"):
                periods.remove(period)
                st.rerun()

    with st.expander("Add rate period", expanded=not periods):
        lender_id = st.selectbox(
            "Lender",
            options=list(lender_names),
            format_func=lambda lid: lender_names[lid],
            key=f"{key_prefix}_lender",
        )
        lender_rates = [r for r in catalog.rates if r.lender_id == lender_id]
        if not lender_rates:
            st.caption("No rates for this lender.")
            return periods

        rate_id = st.selectbox(
            "Rate",
            options=[r.id for r in lender_rates],
            format_func=lambda rid: next(f"{r.name} ({r.rate:.2f}%)" for r in lender_rates if r.id == rid),
            key=f"{key_prefix}_rate",
        )
        rate = next(r for r in lender_rates if r.id == rate_id)

        default_months = rate.fixed_term * 12 if rate.type == RateType.FIXED and rate.fixed_term else 0
        duration = st.number_input(
            "Duration (months, 0 = until end of mortgage)",
            min_value=0,
            max_value=term_months,
            value=default_months,
            step=1,
            key=f"{key_prefix}_duration_{rate_id}",
        )

        if st.button("Add Period", key=f"{key_prefix}_add"):
            periods.append(RatePeriodConfig(
                id=str(uuid.uuid4()),
                lender_id=lender_id,
                rate_id=rate_id,
                duration_months=int(duration),
            ))
            st.rerun()

    return periods


def overpayments_editor(
    rate_periods: List[RatePeriodConfig],
    term_months: int,
    key_prefix: str = "overpayments",
) -> List[OverpaymentConfig]:
    """Create input form for one-time and recurring overpayments."""
    state_key = f"{key_prefix}_list"
    if state_key not in st.session_state:
        st.session_state[state_key] = []
    configs: List[OverpaymentConfig] = st.session_state[state_key]

    for config in list(configs):
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            what = "One-time" if config.type == OverpaymentType.ONE_TIME else config.frequency.value.title()
            st.write(f"{config.label or what}: €{config.amount / 100:,.2f} from month {config.start_month}")
        with col2:
            config.enabled = st.checkbox("On", key=seeded(f"{key_prefix}_on_{config.id}", config.enabled))
        with col3:
            if st.button("Remove", key=f"{key_prefix}_remove_{config.id}"):
                configs.remove(config)
                st.rerun()

    if not rate_periods:
        st.caption("Add a rate period before adding overpayments.")
        return configs

    with st.expander("Add overpayment"):
        col1, col2 = st.columns(2)

        with col1:
            kind = st.radio(
                "Type",
                options=["One-time", "Recurring"],
                horizontal=True,
                key=f"{key_prefix}_type",
            )
            amount = st.number_input(
                "Amount (€)",
                min_value=0.0,
                max_value=1000000.0,
                value=10000.0 if kind == "One-time" else 200.0,
                step=50.0,
                format="%.2f",
                key=f"{key_prefix}_amount",
            )
            effect = st.selectbox(
                "Effect",
                options=[OverpaymentEffect.REDUCE_TERM, OverpaymentEffect.REDUCE_PAYMENT],
                format_func=lambda e: "Reduce term" if e == OverpaymentEffect.REDUCE_TERM else "Reduce payment",
                key=f"{key_prefix}_effect",
                help="Reduce payment only applies on variable rates",
            )

        with col2:
            start_month = st.number_input(
                "Start Month #",
                min_value=1,
                max_value=term_months,
                value=12,
                step=1,
                key=f"{key_prefix}_start",
            )
            frequency = None
            end_month = None
            if kind == "Recurring":
                frequency = st.selectbox(
                    "Frequency",
                    options=list(OverpaymentFrequency),
                    format_func=lambda f: f.value.title(),
                    key=f"{key_prefix}_frequency",
                )
                end = st.number_input(
                    "End Month # (0 = end of rate period)",
                    min_value=0,
                    max_value=term_months,
                    value=0,
                    step=1,
                    key=f"{key_prefix}_end",
                )
                end_month = int(end) or None

        label = st.text_input("Label (optional)", key=f"{key_prefix}_label")

        if st.button("Add Overpayment", key=f"{key_prefix}_add") and amount > 0:
            # Attach to the rate period covering the start month
            period_id = rate_periods[-1].id
            start = 1
            for period in rate_periods:
                if period.duration_months == 0 or start_month < start + period.duration_months:
                    period_id = period.id
                    break
                start += period.duration_months

            configs.append(OverpaymentConfig(
                id=str(uuid.uuid4()),
                rate_period_id=period_id,
                type=OverpaymentType.ONE_TIME if kind == "One-time" else OverpaymentType.RECURRING,
                amount=to_cents(amount),
                start_month=int(start_month),
                effect=effect,
                frequency=frequency,
                end_month=end_month,
                label=label or None,
            ))
            st.rerun()

    return configs


def self_build_input_form(
    mortgage_amount: int,
    term_months: int,
    key_prefix: str = "self_build",
) -> Optional[SelfBuildConfig]:
    """Create input form for a self-build mortgage with staged drawdowns.

    Returns SelfBuildConfig or None when self-build is switched off.
    """
    enabled = st.checkbox(
        "Self-build mortgage",
        key=seeded(f"{key_prefix}_enabled", False),
        help="Funds are released in stages while the house is built",
    )
    if not enabled:
        return None

    col1, col2 = st.columns(2)
    with col1:
        repayment_type = st.selectbox(
            "During construction",
            options=list(ConstructionRepaymentType),
            format_func=lambda t: "Interest only" if t == ConstructionRepaymentType.INTEREST_ONLY
            else "Interest and capital",
            key=seeded(f"{key_prefix}_repayment_type", ConstructionRepaymentType.INTEREST_ONLY),
        )
    with col2:
        interest_only_months = st.number_input(
            "Extra interest-only months",
            min_value=0,
            max_value=MAX_INTEREST_ONLY_MONTHS,
            step=1,
            key=seeded(f"{key_prefix}_io_months", 0),
            help="Interest-only months after the final drawdown",
        )

    num_stages = st.number_input(
        "Drawdown stages",
        min_value=1,
        max_value=MAX_DRAWDOWN_STAGES,
        step=1,
        key=seeded(f"{key_prefix}_num_stages", 4),
    )

    stages = []
    default_amount = mortgage_amount / 100 / num_stages
    for i in range(int(num_stages)):
        col1, col2 = st.columns(2)
        with col1:
            month = st.number_input(
                f"Stage {i + 1} month",
                min_value=1,
                max_value=term_months,
                step=1,
                key=seeded(f"{key_prefix}_month_{i}", min(1 + i * 3, term_months)),
            )
        with col2:
            amount = st.number_input(
                f"Stage {i + 1} amount (€)",
                min_value=0.0,
                step=1000.0,
                format="%.2f",
                key=seeded(f"{key_prefix}_amount_{i}", round(default_amount, 2)),
            )
        label = st.session_state.get(f"{key_prefix}_label_{i}") or f"Stage {i + 1}"
        stages.append(DrawdownStage(
            id=f"stage-{i + 1}",
            month=int(month),
            amount=to_cents(amount),
            label=label,
        ))

    resolved = drawdown_stages_with_cumulative(stages)
    st.dataframe(
        pd.DataFrame({
            'Stage': [r.stage.label for r in resolved],
            'Month': [r.stage.month for r in resolved],
            'Drawn': [f"€{r.stage.amount / 100:,.2f}" for r in resolved],
            'Cumulative': [f"€{r.cumulative_drawn / 100:,.2f}" for r in resolved],
            'Remaining': [f"€{r.remaining_to_draw / 100:,.2f}" for r in resolved],
        }),
        use_container_width=True,
        hide_index=True,
    )

    return SelfBuildConfig(
        enabled=True,
        drawdown_stages=stages,
        construction_repayment_type=repayment_type,
        interest_only_months=int(interest_only_months),
    )
