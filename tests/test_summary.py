"""Tests for yearly rollups, summaries and chart data."""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from simulator.models import RateType, ResolvedRatePeriod, Severity, SimulationWarning, WarningType
from simulator.summary import (
    SCHEDULE_COLUMNS,
    aggregate_by_year,
    build_chart_data,
    calculate_simulation_completeness,
    compute_summary,
    period_for_month,
    schedule_to_dataframe,
    yearly_to_dataframe,
)


def _resolved(period_id, start, duration):
    return ResolvedRatePeriod(
        id=period_id,
        lender_id="test-lender",
        rate_id="test-rate",
        is_custom=False,
        rate=3.5,
        type=RateType.VARIABLE,
        lender_name="Test Bank",
        rate_name="Test Variable",
        start_month=start,
        duration_months=duration,
        label=period_id,
    )


@pytest.fixture
def plain(make_state, simulate):
    return simulate(make_state()).months


@pytest.fixture
def switching(make_state, simulate, fixed_then_variable):
    return simulate(make_state(rate_periods=fixed_then_variable)).months


class TestAggregateByYear:
    """Tests for the yearly rollup."""

    def test_mortgage_years(self, plain):
        """Test 12-month groups without a start date."""
        years = aggregate_by_year(plain)
        assert len(years) == 30
        first = years[0]
        assert first.year == 1
        assert len(first.months) == 12
        assert first.opening_balance == 30000000
        assert first.closing_balance == plain[11].closing_balance
        assert first.total_interest == sum(m.interest_portion for m in plain[:12])
        assert first.cumulative_interest == plain[11].cumulative_interest

    def test_totals_add_up(self, plain):
        """Test that yearly totals add up to the whole schedule."""
        years = aggregate_by_year(plain)
        assert sum(y.total_interest for y in years) == plain[-1].cumulative_interest
        assert sum(y.total_principal for y in years) == 30000000
        assert years[-1].closing_balance == 0

    def test_calendar_years(self, make_state, simulate):
        """Test calendar-year groups with a start date."""
        months = simulate(make_state(start_date=date(2025, 7, 1))).months
        years = aggregate_by_year(months)
        assert years[0].year == 2025
        assert len(years[0].months) == 6
        assert len(years) == 31
        assert len(years[-1].months) == 6

    def test_rate_changes(self, switching):
        """Test the rate periods seen in each year."""
        years = aggregate_by_year(switching)
        assert years[4].rate_changes == ["fixed"]
        assert years[5].rate_changes == ["variable"]

    def test_rate_change_mid_year(self, make_state, simulate, fixed_then_variable):
        """Test a year with two rate periods."""
        months = simulate(make_state(rate_periods=fixed_then_variable, start_date=date(2025, 7, 1))).months
        years = aggregate_by_year(months)
        # Months 55-66 fall in 2030
        assert years[5].year == 2030
        assert years[5].rate_changes == ["fixed", "variable"]

    def test_warning_flags(self, plain):
        """Test that years with warnings are flagged."""
        warning = SimulationWarning(
            type=WarningType.ALLOWANCE_EXCEEDED, month=14, message="", severity=Severity.WARNING,
        )
        years = aggregate_by_year(plain, [warning])
        assert [y.year for y in years if y.has_warnings] == [2]

    def test_empty(self):
        """Test that no months means no years."""
        assert aggregate_by_year([]) == []


class TestComputeSummary:
    """Tests for summary statistics."""

    def test_no_overpayments(self, plain):
        """Test that a schedule equal to its baseline saves nothing."""
        summary = compute_summary(plain, plain)
        assert summary.total_interest == plain[-1].cumulative_interest
        assert summary.total_paid == plain[-1].cumulative_total
        assert summary.actual_term_months == 360
        assert summary.months_saved == 0
        assert summary.interest_saved == 0
        assert summary.extra_interest_from_self_build is None

    def test_savings(self, make_state, simulate, one_time, plain):
        """Test months and interest saved by overpaying."""
        months = simulate(make_state(overpayments=[one_time(5000000, 12)])).months
        summary = compute_summary(months, plain)
        assert summary.months_saved == 360 - len(months)
        assert summary.months_saved > 0
        assert summary.interest_saved == plain[-1].cumulative_interest - months[-1].cumulative_interest

    def test_incomplete_reports_no_months_saved(self, switching, make_state, simulate, fixed_then_variable):
        """Test that a schedule stopping with a balance saves no months."""
        short = simulate(make_state(rate_periods=fixed_then_variable[:1])).months
        assert compute_summary(short, switching).months_saved == 0

    def test_self_build_difference(self, plain):
        """Test that only differences over a euro are reported."""
        interest = plain[-1].cumulative_interest
        assert compute_summary(plain, plain, interest - 50).extra_interest_from_self_build is None
        assert compute_summary(plain, plain, interest - 500000).extra_interest_from_self_build == 500000

    def test_empty(self):
        """Test the summary of an empty schedule."""
        summary = compute_summary([], [])
        assert summary.total_interest == 0
        assert summary.actual_term_months == 0


class TestSimulationCompleteness:
    """Tests for rate period coverage."""

    def test_open_ended(self):
        """Test that an open-ended last period covers everything."""
        completeness = calculate_simulation_completeness([_resolved("a", 1, 60), _resolved("b", 61, 0)], 360)
        assert completeness.is_complete
        assert completeness.covered_months == -1
        assert completeness.missing_months == 0

    def test_short(self):
        """Test a closed stack shorter than the term."""
        completeness = calculate_simulation_completeness([_resolved("a", 1, 60)], 360)
        assert not completeness.is_complete
        assert completeness.covered_months == 60
        assert completeness.missing_months == 300

    def test_exact_cover(self):
        """Test a closed stack that covers the whole term."""
        assert calculate_simulation_completeness([_resolved("a", 1, 360)], 360).is_complete

    def test_remaining_balance(self, make_state, simulate, fixed_then_variable):
        """Test the balance left after the last simulated month."""
        months = simulate(make_state(rate_periods=fixed_then_variable[:1])).months
        completeness = calculate_simulation_completeness([_resolved("fixed", 1, 60)], 360, months)
        assert completeness.remaining_balance == months[-1].closing_balance
        assert completeness.remaining_balance > 0
        assert completeness.missing_months == 300

    def test_no_periods(self):
        """Test that no periods cover nothing."""
        completeness = calculate_simulation_completeness([], 360)
        assert not completeness.is_complete
        assert completeness.missing_months == 360


class TestDataFrames:
    """Tests for tabular views."""

    def test_schedule_dataframe(self, plain):
        """Test one row per month with every field."""
        df = schedule_to_dataframe(plain)
        assert len(df) == 360
        assert list(df.columns) == SCHEDULE_COLUMNS
        assert df['interest_portion'].sum() == plain[-1].cumulative_interest

    def test_empty_schedule_dataframe(self):
        """Test that an empty schedule still has columns."""
        df = schedule_to_dataframe([])
        assert df.empty
        assert list(df.columns) == SCHEDULE_COLUMNS

    def test_yearly_dataframe(self, switching):
        """Test one row per year with joined rate changes."""
        df = yearly_to_dataframe(aggregate_by_year(switching))
        assert len(df) == 30
        assert 'months' not in df.columns
        assert df.loc[0, 'rate_changes'] == "fixed"


class TestBuildChartData:
    """Tests for chart points."""

    def test_period_for_month(self):
        """Test mortgage-relative period numbers."""
        assert [period_for_month(m, "monthly") for m in (1, 2, 13)] == [1, 2, 13]
        assert [period_for_month(m, "quarterly") for m in (1, 3, 4, 12)] == [1, 1, 2, 4]
        assert [period_for_month(m, "yearly") for m in (1, 12, 13, 360)] == [1, 1, 2, 30]
        assert list(period_for_month(pd.Series([3, 4]), "quarterly")) == [1, 2]

    def test_yearly(self, plain):
        """Test yearly points in euros."""
        chart = build_chart_data(plain, plain, 35000000, "yearly")
        assert len(chart) == 30
        assert chart.loc[0, 'month'] == 12
        assert chart.loc[0, 'balance'] == pytest.approx(plain[11].closing_balance / 100)
        assert chart.loc[0, 'interest'] == pytest.approx(sum(m.interest_portion for m in plain[:12]) / 100)
        assert chart.loc[0, 'equity'] == pytest.approx(350000 - plain[11].closing_balance / 100)
        assert chart.loc[0, 'ltv'] == pytest.approx(plain[11].closing_balance / 35000000 * 100)
        np.testing.assert_allclose(chart['baseline_balance'], chart['balance'])

    def test_granularities(self, plain):
        """Test the number of points for each granularity."""
        assert len(build_chart_data(plain, granularity="monthly")) == 360
        quarterly = build_chart_data(plain, granularity="quarterly")
        assert len(quarterly) == 120
        assert list(quarterly['month'][:4]) == [3, 6, 9, 12]

    def test_rate_at_period_end(self, switching):
        """Test that each point carries the rate in effect at its end."""
        chart = build_chart_data(switching, granularity="yearly")
        assert chart.loc[4, 'rate'] == 3.0
        assert chart.loc[5, 'rate'] == 3.5

    def test_missing_inputs_are_nan(self, plain):
        """Test points without a property value or baseline."""
        chart = build_chart_data(plain)
        assert chart['equity'].isna().all()
        assert chart['ltv'].isna().all()
        assert chart['baseline_balance'].isna().all()

    def test_baseline_past_its_end(self, make_state, simulate, one_time, plain):
        """Test a baseline shorter than the schedule is padded with zero."""
        shorter = simulate(make_state(overpayments=[one_time(10000000, 12)])).months
        chart = build_chart_data(plain, shorter, granularity="yearly")
        assert chart['baseline_balance'].iloc[-1] == 0

    def test_unknown_granularity(self, plain):
        """Test that unknown granularities are rejected."""
        with pytest.raises(ValueError, match="Unknown granularity"):
            build_chart_data(plain, granularity="weekly")

    def test_empty(self):
        """Test that an empty schedule gives an empty frame."""
        chart = build_chart_data([])
        assert isinstance(chart, pd.DataFrame)
        assert chart.empty
        assert 'baseline_balance' in chart.columns
