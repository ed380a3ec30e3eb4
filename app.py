"""Mortgage Overpayment Simulator - Streamlit Application."""

import json
import logging
import os
from typing import Dict, Iterable, List, Tuple

import streamlit as st

from components.charts import (
    CHART_TITLES,
    CHART_TYPES,
    COMPARE_CHART_COLUMNS,
    create_comparison_chart,
    create_simulation_chart,
)
from components.inputs import (
    BER_RATINGS,
    MAX_DRAWDOWN_STAGES,
    MAX_INTEREST_ONLY_MONTHS,
    MAX_MORTGAGE_AMOUNT,
    MAX_PROPERTY_VALUE,
    TERM_YEARS,
    mortgage_input_form,
    overpayments_editor,
    rate_periods_editor,
    self_build_input_form,
)
from components.tables import (
    display_amortization_table,
    display_buffer_suggestions,
    display_comparison_metrics,
    display_milestones,
    display_warnings,
)
from simulator.allowance import calculate_yearly_overpayment_plans, format_policy_description
from simulator.compare import MAX_COMPARED, compare_simulations
from simulator.export import (
    Scenario,
    decode_share_state,
    encode_share_state,
    export_schedule_csv,
    list_example_scenarios,
    load_example_scenario,
    scenario_from_dict,
    scenario_to_dict,
)
from simulator.models import CustomRate, MortgageInput, RateType, SimulationState
from simulator.rates import RateCatalog, load_catalog
from simulator.self_build import construction_end_month, is_self_build_active
from simulator.simulate import run_simulation
from simulator.summary import build_chart_data

logging.basicConfig(
    level=os.environ.get("MORTGAGE_SIM_LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

# Widget keys that survive switching pages
FORM_KEY_PREFIXES = ("mortgage_", "self_build_")

# Page configuration
st.set_page_config(
    page_title="Mortgage Overpayment Simulator",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS
st.markdown("""
<style>
    .stMetric {
        background-color: #f0f2f6;
        padding: 10px;
        border-radius: 5px;
    }
    .stMetric label, .stMetric [data-testid="stMetricValue"], .stMetric [data-testid="stMetricDelta"] {
        color: #262730 !important;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_catalog() -> RateCatalog:
    return load_catalog()


def _session_catalog(catalog: RateCatalog) -> RateCatalog:
    """The bundled catalog plus custom rates loaded in this session."""
    return catalog.with_custom_rates(st.session_state.get('custom_rates', []))


def _keep_form_state() -> None:
    """Re-own form values so Streamlit keeps them while another page is shown."""
    for key in list(st.session_state.keys()):
        if key.startswith(FORM_KEY_PREFIXES):
            st.session_state[key] = st.session_state[key]


def _capped(value: float, limit: float, what: str, notices: List[str]) -> float:
    if value > limit:
        notices.append(f"{what} of €{value:,.2f} is above the form's €{limit:,.0f} limit and was capped.")
        return limit
    return value


def _apply_state(state: SimulationState, custom_rates: Iterable[CustomRate] = ()) -> List[str]:
    """Push a loaded state into the widgets' session state.

    Custom rates are added to the session's custom rates. Returns notices
    for values the form cannot show as loaded.
    """
    notices = []
    inp = state.input

    st.session_state['mortgage_amount'] = _capped(
        inp.mortgage_amount / 100, MAX_MORTGAGE_AMOUNT, "Mortgage amount", notices
    )
    st.session_state['mortgage_property_value'] = _capped(
        inp.property_value / 100, MAX_PROPERTY_VALUE, "Property value", notices
    )
    if inp.ber in BER_RATINGS:
        st.session_state['mortgage_ber'] = inp.ber
    elif inp.ber is not None:
        notices.append(f"BER rating {inp.ber} is not recognised; the rating was left unchanged.")

    years, extra_months = divmod(inp.mortgage_term_months, 12)
    if extra_months == 0 and years in TERM_YEARS:
        st.session_state['mortgage_term'] = years
    else:
        notices.append(
            f"A term of {inp.mortgage_term_months} months cannot be shown; "
            f"the term was left at {st.session_state.get('mortgage_term', 30)} years."
        )
    term_months = st.session_state.get('mortgage_term', 30) * 12

    st.session_state['mortgage_use_start'] = inp.start_date is not None
    if inp.start_date is not None:
        st.session_state['mortgage_start'] = inp.start_date

    st.session_state['periods_list'] = list(state.rate_periods)
    st.session_state['overpayments_list'] = list(state.overpayment_configs)
    for config in state.overpayment_configs:
        st.session_state[f'overpayments_on_{config.id}'] = config.enabled

    sb = state.self_build
    stages = sorted(sb.drawdown_stages, key=lambda s: s.month) if sb is not None and sb.enabled else []
    st.session_state['self_build_enabled'] = bool(stages)
    if stages:
        st.session_state['self_build_repayment_type'] = sb.construction_repayment_type
        if sb.interest_only_months > MAX_INTEREST_ONLY_MONTHS:
            notices.append(
                f"{sb.interest_only_months} extra interest-only months is above the form's "
                f"limit of {MAX_INTEREST_ONLY_MONTHS} and was capped."
            )
        st.session_state['self_build_io_months'] = min(sb.interest_only_months, MAX_INTEREST_ONLY_MONTHS)

        if len(stages) > MAX_DRAWDOWN_STAGES:
            notices.append(
                f"Only the first {MAX_DRAWDOWN_STAGES} of {len(stages)} drawdown stages can be shown."
            )
            stages = stages[:MAX_DRAWDOWN_STAGES]
        st.session_state['self_build_num_stages'] = len(stages)
        for i, stage in enumerate(stages):
            if stage.month > term_months:
                notices.append(f"Drawdown in month {stage.month} falls after the term and was moved to month {term_months}.")
            st.session_state[f'self_build_month_{i}'] = min(stage.month, term_months)
            st.session_state[f'self_build_amount_{i}'] = stage.amount / 100
            st.session_state[f'self_build_label_{i}'] = stage.label

    loaded = {r.id: r for r in st.session_state.get('custom_rates', [])}
    loaded.update((r.id, r) for r in custom_rates)
    st.session_state['custom_rates'] = list(loaded.values())

    for notice in notices:
        logger.info("Loaded state adjusted: %s", notice)
    return notices


def _current_state(inp: MortgageInput, self_build=None) -> SimulationState:
    return SimulationState(
        input=inp,
        rate_periods=list(st.session_state.get('periods_list', [])),
        overpayment_configs=list(st.session_state.get('overpayments_list', [])),
        self_build=self_build,
    )


def _used_custom_rates(state: SimulationState) -> List[CustomRate]:
    used = {p.rate_id for p in state.rate_periods if p.is_custom}
    return [r for r in st.session_state.get('custom_rates', []) if r.id in used]


def main():
    """Main application entry point."""
    st.title("🏠 Mortgage Overpayment Simulator")
    st.markdown("*Plan rate periods and overpayments month by month*")

    try:
        catalog = get_catalog()
    except RuntimeError as e:
        st.error(str(e))
        return

    _keep_form_state()

    shared = st.query_params.get("s")
    if shared and not st.session_state.get('share_applied'):
        try:
            state, custom_rates = decode_share_state(shared)
        except ValueError as e:
            logger.info("Ignoring invalid share link: %s", e)
            st.warning(f"Could not open shared simulation: {e}")
        else:
            for notice in _apply_state(state, custom_rates):
                st.warning(notice)
        st.session_state['share_applied'] = True

    # Sidebar navigation
    st.sidebar.title("Navigation")
    page = st.sidebar.radio(
        "Select Tool",
        options=["Simulator", "Compare", "Data Management"],
    )

    st.sidebar.divider()

    st.sidebar.markdown("### Quick Reference")
    with st.sidebar.expander("Rate periods"):
        st.markdown("""
        **A stack of rates, one after another.**

        Each period starts when the previous one ends. Fixed periods usually last their fixed term; set the last period's duration to 0 to run it to the end of the mortgage.
        """)
    with st.sidebar.expander("Overpayments"):
        st.markdown("""
        **Reduce term** keeps your payment and pays the mortgage off sooner.

        **Reduce payment** keeps the end date and lowers your payment. It only applies on variable rates; fixed payments do not change.
        """)
    with st.sidebar.expander("Fee-free allowance"):
        st.markdown("""
        **Fixed rates limit overpayments.**

        Lenders allow a percentage of the balance, a percentage of the payment, or a flat amount each year without an early repayment charge. Overpaying more is simulated but flagged.
        """)
    with st.sidebar.expander("Self-build"):
        st.markdown("""
        **Funds are drawn down in stages.**

        You pay interest on what has been drawn during construction, then full repayments begin on the whole balance.
        """)
    with st.sidebar.expander("Compare"):
        st.markdown("""
        **Up to five simulations side by side.**

        Compare the current simulation with the examples or saved scenario files.
        """)

    catalog = _session_catalog(catalog)
    if page == "Simulator":
        simulator_page(catalog)
    elif page == "Compare":
        compare_page(catalog)
    elif page == "Data Management":
        data_management_page()


def simulator_page(catalog: RateCatalog):
    """Configure a mortgage and see its month-by-month simulation."""
    st.header("Simulator")

    col1, col2 = st.columns([1, 2])

    with col1:
        st.subheader("Mortgage")
        inp = mortgage_input_form()
        if inp is None:
            st.info("Enter a mortgage amount to start.")
            return

        st.subheader("Rate Periods")
        rate_periods_editor(catalog, inp.mortgage_term_months)

        st.subheader("Overpayments")
        overpayments_editor(st.session_state.get('periods_list', []), inp.mortgage_term_months)

        st.subheader("Self-Build")
        self_build = self_build_input_form(inp.mortgage_amount, inp.mortgage_term_months)

    state = _current_state(inp, self_build)
    result = run_simulation(state, catalog)
    st.session_state['current_state'] = state

    with col2:
        for problem in result.rate_period_problems:
            st.warning(problem)

        if result.drawdown_validation is not None and not result.drawdown_validation.is_valid:
            st.warning(
                f"Drawdowns total €{result.drawdown_validation.total_drawn / 100:,.2f}; "
                f"€{result.drawdown_validation.difference / 100:,.2f} left to allocate."
            )

        if result.is_empty:
            st.info("Add at least one rate period to run the simulation.")
            return

        summary = result.summary
        m1, m2, m3, m4 = st.columns(4)
        m1.metric("Total Interest", f"€{summary.total_interest / 100:,.0f}")
        m2.metric("Total Paid", f"€{summary.total_paid / 100:,.0f}")
        years, months = divmod(summary.actual_term_months, 12)
        m3.metric("Term", f"{years}y {months}m", delta=f"-{summary.months_saved} months" if summary.months_saved else None)
        m4.metric("Interest Saved", f"€{summary.interest_saved / 100:,.0f}")

        if summary.extra_interest_from_self_build:
            st.caption(
                f"Paying interest only during construction costs "
                f"€{summary.extra_interest_from_self_build / 100:,.0f} more in interest."
            )

        completeness = result.completeness
        if completeness is not None and not completeness.is_complete:
            st.warning(
                f"Rate periods cover {max(completeness.covered_months, 0)} of "
                f"{completeness.total_months} months. €{completeness.remaining_balance / 100:,.0f} "
                f"is left after the last period."
            )

        display_warnings(result.warnings)
        display_buffer_suggestions(result.buffer_suggestions)

        granularity = st.radio(
            "Chart granularity",
            options=["yearly", "quarterly", "monthly"],
            horizontal=True,
            format_func=str.title,
        )
        chart_data = build_chart_data(
            result.months, result.baseline_months, inp.property_value, granularity
        )

        tabs = st.tabs([CHART_TITLES[c] for c in CHART_TYPES] + ["Schedule", "Milestones", "Fee-free Plan"])
        for tab, chart_type in zip(tabs, CHART_TYPES):
            with tab:
                fig = create_simulation_chart(
                    chart_type,
                    chart_data,
                    granularity,
                    milestones=result.milestones,
                    applied_overpayments=result.applied_overpayments,
                    resolved_periods=result.resolved_periods,
                )
                st.plotly_chart(fig, use_container_width=True)

        with tabs[len(CHART_TYPES)]:
            display_amortization_table(
                result.months,
                result.yearly,
                result.warnings,
                {p.id: p.label for p in result.resolved_periods},
            )

        with tabs[len(CHART_TYPES) + 1]:
            display_milestones(result.milestones)

        with tabs[len(CHART_TYPES) + 2]:
            _fee_free_plan(catalog, state, result.resolved_periods)

        # Download button
        st.download_button(
            "Download Schedule (CSV)",
            export_schedule_csv(result.months),
            "mortgage_schedule.csv",
            "text/csv",
        )

        share = encode_share_state(state, _used_custom_rates(state))
        st.text_input("Share link query", value=f"?s={share}", key="share_link")


def _fee_free_plan(catalog: RateCatalog, state: SimulationState, resolved_periods):
    """Largest overpayments each fixed period allows without fees."""
    construction_end = (
        construction_end_month(state.self_build) if is_self_build_active(state.self_build) else 0
    )

    shown = False
    for period in resolved_periods:
        if period.type != RateType.FIXED:
            continue
        policy = catalog.find_policy(period.overpayment_policy_id)
        if policy is None:
            continue

        shown = True
        st.markdown(f"**{period.label}**: {format_policy_description(policy)}")
        plans = calculate_yearly_overpayment_plans(
            policy,
            period,
            state.input.mortgage_amount,
            state.input.mortgage_term_months,
            state.input.start_date,
            construction_end,
        )
        for plan in plans:
            st.write(
                f"Months {plan.start_month}-{plan.end_month}: up to "
                f"€{plan.monthly_amount / 100:,.2f} per month"
            )

    if not shown:
        st.info("No fixed periods with an overpayment allowance.")


def _comparison_candidates() -> Dict[str, Tuple[SimulationState, List[CustomRate]]]:
    """Simulations available to compare: the current one, examples and uploads."""
    candidates = {}

    current = st.session_state.get('current_state')
    if current is not None:
        candidates["Current simulation"] = (current, _used_custom_rates(current))

    for name in list_example_scenarios():
        scenario = load_example_scenario(name)
        candidates[scenario.name] = (scenario.state, scenario.custom_rates)

    uploaded_files = st.file_uploader(
        "Add scenario files", type="json", accept_multiple_files=True, key="compare_files"
    )
    for uploaded_file in uploaded_files or []:
        try:
            scenario = scenario_from_dict(json.loads(uploaded_file.getvalue()))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            st.error(f"{uploaded_file.name} is not a valid scenario file: {e}")
            continue
        candidates[scenario.name] = (scenario.state, scenario.custom_rates)

    return candidates


def compare_page(catalog: RateCatalog):
    """Compare up to five simulations side by side."""
    st.header("Compare Simulations")

    candidates = _comparison_candidates()
    if len(candidates) < 2:
        st.info("Run a simulation or upload scenario files to have two simulations to compare.")
        return

    selected = st.multiselect(
        "Simulations",
        options=list(candidates),
        default=list(candidates)[:2],
        max_selections=MAX_COMPARED,
        key="compare_selected",
    )
    granularity = st.radio(
        "Chart granularity",
        options=["yearly", "quarterly", "monthly"],
        horizontal=True,
        format_func=str.title,
        key="compare_granularity",
    )

    custom_rates = [r for name in selected for r in candidates[name][1]]
    comparison = compare_simulations(
        [candidates[name][0] for name in selected],
        selected,
        catalog.with_custom_rates(custom_rates),
        granularity,
    )

    validation = comparison.validation
    for error in validation.errors:
        st.error(error)
    if not validation.is_valid:
        return
    for warning in validation.warnings:
        st.warning(warning)
    for info in validation.infos:
        st.info(info)

    display_comparison_metrics(comparison.metrics, comparison.highlights)

    column = st.selectbox(
        "Chart",
        options=list(COMPARE_CHART_COLUMNS),
        format_func=COMPARE_CHART_COLUMNS.get,
        key="compare_column",
    )
    fig = create_comparison_chart(
        comparison.chart_data,
        column,
        granularity,
        colors={s.name: s.color for s in comparison.simulations},
    )
    st.plotly_chart(fig, use_container_width=True)


def _show_loaded(notices: List[str], message: str) -> None:
    for notice in notices:
        st.warning(notice)
    st.success(message)


def data_management_page():
    """Import/export scenarios and load examples."""
    st.header("Data Management")

    tab1, tab2, tab3 = st.tabs(["Export Scenario", "Import Scenario", "Example Scenarios"])

    with tab1:
        st.subheader("Export Current Scenario")

        state = st.session_state.get('current_state')
        if state is None:
            st.info("Run a simulation first.")
        else:
            name = st.text_input("Scenario Name", value="My Mortgage Scenario")
            description = st.text_area("Description", value="")

            scenario = Scenario(
                name=name,
                description=description,
                state=state,
                custom_rates=_used_custom_rates(state),
            )

            st.download_button(
                "Download JSON",
                json.dumps(scenario_to_dict(scenario), indent=2),
                f"{name.lower().replace(' ', '_')}.json",
                "application/json",
            )

    with tab2:
        st.subheader("Import Scenario")

        uploaded_file = st.file_uploader("Choose a JSON file", type="json")

        if uploaded_file is not None:
            try:
                data = json.loads(uploaded_file.getvalue())
                scenario = scenario_from_dict(data)
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                st.error(f"Not a valid scenario file: {e}")
            else:
                st.success(f"Loaded scenario: {scenario.name}")
                st.json(data)

                if st.button("Apply Scenario"):
                    notices = _apply_state(scenario.state, scenario.custom_rates)
                    _show_loaded(notices, "Scenario applied! Go to Simulator to view.")

        st.subheader("Open Share Link")
        encoded = st.text_input("Paste the value after ?s=")
        if encoded and st.button("Open"):
            try:
                state, custom_rates = decode_share_state(encoded)
            except ValueError as e:
                st.error(str(e))
            else:
                notices = _apply_state(state, custom_rates)
                _show_loaded(notices, "Shared simulation applied! Go to Simulator to view.")

    with tab3:
        st.subheader("Example Scenarios")

        for name in list_example_scenarios():
            scenario = load_example_scenario(name)
            with st.expander(scenario.name):
                st.markdown(scenario.description)

                if st.button(f"Load {scenario.name}", key=f"load_{name}"):
                    notices = _apply_state(scenario.state, scenario.custom_rates)
                    _show_loaded(notices, f"Loaded '{scenario.name}'! Go to Simulator to view.")


if __name__ == "__main__":
    main()
