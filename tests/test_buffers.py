"""Tests for variable-rate buffer suggestions."""

import pytest

from simulator.buffers import calculate_buffer_suggestions
from simulator.engine import calculate_amortization
from simulator.models import RatePeriodConfig
from simulator.rates import load_catalog, resolve_rate_periods


@pytest.fixture
def bundled():
    return load_catalog()


def _period(lender_id, rate_id, duration=0):
    return RatePeriodConfig(
        id=f"{rate_id}-{duration}",
        lender_id=lender_id,
        rate_id=rate_id,
        duration_months=duration,
    )


def _suggest(state, catalog):
    resolved = resolve_rate_periods(state.rate_periods, catalog.rates, catalog.custom_rates, catalog.lenders)
    months = calculate_amortization(
        state, catalog.rates, catalog.custom_rates, catalog.lenders, catalog.policies
    ).months
    return calculate_buffer_suggestions(state, catalog.rates, catalog.custom_rates, resolved, months)


class TestBufferSuggestions:
    """Tests for where buffers are suggested."""

    def test_between_fixed_periods(self, make_state, bundled):
        """Test a suggestion between two back-to-back fixed periods."""
        state = make_state(rate_periods=[
            _period("boi", "boi-fixed-4yr", 48),
            _period("boi", "boi-fixed-10yr", 120),
            _period("boi", "boi-variable"),
        ])
        suggestions = _suggest(state, bundled)
        assert len(suggestions) == 1
        suggestion = suggestions[0]
        assert suggestion.after_index == 0
        assert not suggestion.is_trailing
        assert suggestion.fixed_rate.id == "boi-fixed-4yr"
        assert suggestion.suggested_rate.id == "boi-variable"
        assert suggestion.lender_name == "Bank of Ireland"

    def test_ltv_from_balance_at_end(self, make_state, bundled):
        """Test that LTV comes from the closing balance of the fixed period's last month."""
        state = make_state(rate_periods=[
            _period("boi", "boi-fixed-4yr", 48),
            _period("boi", "boi-fixed-10yr", 120),
        ], term=168)
        months = calculate_amortization(
            state, bundled.rates, bundled.custom_rates, bundled.lenders, bundled.policies
        ).months
        suggestion = _suggest(state, bundled)[0]
        assert suggestion.ltv_at_end == pytest.approx(months[47].closing_balance / 35000000 * 100)

    def test_prefers_existing_customer_variable(self, make_state, bundled):
        """Test that the follow-on rate is the existing-customer rate when there is one."""
        state = make_state(rate_periods=[
            _period("aib", "aib-fixed-3yr", 36),
            _period("aib", "aib-fixed-5yr", 60),
            _period("aib", "aib-variable-80"),
        ])
        suggestions = _suggest(state, bundled)
        assert [s.suggested_rate.id for s in suggestions] == ["aib-variable-existing"]

    def test_trailing_fixed_period(self, make_state, bundled):
        """Test a final fixed period that ends before the term."""
        state = make_state(rate_periods=[_period("boi", "boi-fixed-4yr", 48)])
        suggestions = _suggest(state, bundled)
        assert len(suggestions) == 1
        assert suggestions[0].is_trailing
        assert suggestions[0].after_index == 0

    def test_fixed_to_variable_needs_no_buffer(self, make_state, bundled):
        """Test that a fixed period rolling onto a variable rate gets no suggestion."""
        state = make_state(rate_periods=[
            _period("aib", "aib-fixed-5yr", 60),
            _period("aib", "aib-variable-80"),
        ])
        assert _suggest(state, bundled) == []

    def test_no_rate_for_ltv(self, make_state, bundled):
        """Test that nothing is suggested when no variable rate covers the LTV."""
        state = make_state(
            rate_periods=[_period("avant", "avant-fixed-5yr", 60)],
            property_value=31000000,
        )
        assert _suggest(state, bundled) == []

    def test_no_property_value(self, make_state, bundled):
        """Test that LTV-based suggestions need a property value."""
        state = make_state(rate_periods=[_period("boi", "boi-fixed-4yr", 48)], property_value=0)
        assert _suggest(state, bundled) == []

    def test_no_periods(self, make_state, bundled):
        """Test an empty stack."""
        assert calculate_buffer_suggestions(make_state(), bundled.rates, [], [], []) == []
