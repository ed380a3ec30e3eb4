"""Tests for overpayment schedule matching."""

from simulator.models import OverpaymentFrequency, OverpaymentType, RateType, ResolvedRatePeriod
from simulator.overpayments import (
    amount_for,
    bound_to_rate_periods,
    config_applies_to_month,
    default_label,
    matching_configs,
)


def _resolved(period_id, start, duration):
    return ResolvedRatePeriod(
        id=period_id,
        lender_id="test-lender",
        rate_id="test-fixed-5yr",
        is_custom=False,
        rate=3.0,
        type=RateType.FIXED,
        lender_name="Test Bank",
        rate_name="Test 5 Year Fixed",
        start_month=start,
        duration_months=duration,
        label=period_id,
    )


class TestConfigAppliesToMonth:
    """Tests for when an overpayment pays."""

    def test_one_time(self, one_time):
        """Test that one-time overpayments pay only in their month."""
        config = one_time(100000, 5)
        assert config_applies_to_month(config, 5)
        assert not config_applies_to_month(config, 4)
        assert not config_applies_to_month(config, 6)

    def test_monthly(self, recurring):
        """Test a monthly overpayment with an inclusive end."""
        config = recurring(10000, start_month=3, end_month=6)
        assert [m for m in range(1, 10) if config_applies_to_month(config, m)] == [3, 4, 5, 6]

    def test_quarterly(self, recurring):
        """Test that quarterly overpayments count from the start month."""
        config = recurring(10000, start_month=2, end_month=14, frequency=OverpaymentFrequency.QUARTERLY)
        assert [m for m in range(1, 20) if config_applies_to_month(config, m)] == [2, 5, 8, 11, 14]

    def test_yearly_open_ended(self, recurring):
        """Test a yearly overpayment with no end month."""
        config = recurring(10000, start_month=12, frequency=OverpaymentFrequency.YEARLY)
        assert [m for m in range(1, 50) if config_applies_to_month(config, m)] == [12, 24, 36, 48]

    def test_disabled(self, one_time):
        """Test that disabled configs never pay."""
        assert not config_applies_to_month(one_time(100000, 5, enabled=False), 5)


class TestAmountFor:
    """Tests for combining overpayments in one month."""

    def test_sums_matching_configs(self, one_time, recurring):
        """Test that every matching config contributes."""
        configs = [one_time(100000, 12), recurring(5000, start_month=1), one_time(7000, 13)]
        assert amount_for(configs, 12, 30000000) == 105000
        assert amount_for(configs, 11, 30000000) == 5000
        assert [c.amount for c in matching_configs(configs, 13)] == [5000, 7000]

    def test_nothing_matches(self, one_time):
        """Test a month with no overpayments."""
        assert amount_for([one_time(100000, 12)], 1, 30000000) == 0


class TestBoundToRatePeriods:
    """Tests for limiting recurring overpayments to their rate period."""

    def test_open_ended_recurring_gets_period_end(self, recurring):
        """Test that the period's last month becomes the end month."""
        config = recurring(10000, start_month=1, period_id="fixed")
        bounded = bound_to_rate_periods([config], [_resolved("fixed", 1, 60)])
        assert bounded[0].end_month == 60
        # Input configs are not modified
        assert config.end_month is None

    def test_explicit_end_kept(self, recurring):
        """Test that a configured end month is left alone."""
        config = recurring(10000, start_month=1, end_month=24, period_id="fixed")
        assert bound_to_rate_periods([config], [_resolved("fixed", 1, 60)])[0].end_month == 24

    def test_open_ended_period(self, recurring):
        """Test that recurring overpayments on an open-ended period stay open."""
        config = recurring(10000, start_month=61, period_id="variable")
        assert bound_to_rate_periods([config], [_resolved("variable", 61, 0)])[0].end_month is None

    def test_one_time_untouched(self, one_time):
        """Test that one-time overpayments are returned as they are."""
        config = one_time(100000, 5, period_id="fixed")
        assert bound_to_rate_periods([config], [_resolved("fixed", 1, 60)]) == [config]


class TestDefaultLabel:
    """Tests for overpayment display labels."""

    def test_labels(self, one_time, recurring):
        """Test explicit and generated labels."""
        config = one_time(100000, 5)
        assert default_label(config) == "One-time"
        config.label = "Bonus"
        assert default_label(config) == "Bonus"
        assert default_label(recurring(10000)) == "Recurring"
        assert recurring(10000).type == OverpaymentType.RECURRING
