"""Tests for core mortgage arithmetic."""

from datetime import date

import numpy as np
import pytest

from simulator.mortgage import (
    add_months,
    calculate_monthly_payment,
    calendar_date_for_month,
    calendar_year_for_month,
    monthly_rate,
    round_cents,
    to_cents,
)


class TestRounding:
    """Tests for cent rounding."""

    def test_halves_round_up(self):
        """Test that exact halves round up, not to even."""
        assert round_cents(0.5) == 1
        assert round_cents(2.5) == 3
        assert round_cents(87499.5) == 87500

    def test_below_half_rounds_down(self):
        """Test values just under a half cent."""
        assert round_cents(2.4999) == 2
        assert round_cents(10.0) == 10

    def test_to_cents(self):
        """Test converting euros to cents."""
        assert to_cents(1234.56) == 123456
        assert to_cents(0.1 + 0.2) == 30
        assert to_cents(65) == 6500


class TestMonthlyPayment:
    """Tests for the annuity payment formula."""

    def test_monthly_rate(self):
        """Test annual percentage to monthly decimal."""
        assert monthly_rate(3.5) == pytest.approx(0.035 / 12)
        assert monthly_rate(0) == 0

    def test_golden_payments(self):
        """Test payments locked to the cent."""
        # €300,000 at 3.5%
        assert round_cents(calculate_monthly_payment(30000000, 3.5, 300)) == 150187
        assert round_cents(calculate_monthly_payment(30000000, 3.5, 360)) == 134713
        # €300,000 at 3.0% over 30 years
        assert round_cents(calculate_monthly_payment(30000000, 3.0, 360)) == 126481

    def test_zero_rate(self):
        """Test edge case of 0% interest."""
        assert calculate_monthly_payment(12000000, 0.0, 120) == 100000.0

    def test_no_months_left(self):
        """Test that the whole balance is due when no months remain."""
        assert calculate_monthly_payment(500000, 3.5, 0) == 500000

    def test_matches_closed_form(self):
        """Test against the textbook formula for a range of rates."""
        rates = np.array([1.0, 2.5, 3.5, 4.25, 6.0])
        r = rates / 100 / 12
        expected = 30000000 * r * (1 + r) ** 300 / ((1 + r) ** 300 - 1)
        actual = np.array([calculate_monthly_payment(30000000, rate, 300) for rate in rates])
        np.testing.assert_allclose(actual, expected, rtol=1e-9)

    def test_payment_clears_balance(self):
        """Test that the unrounded payment leaves nothing after the term."""
        balance = 20000000.0
        payment = calculate_monthly_payment(balance, 4.0, 180)
        r = monthly_rate(4.0)
        for _ in range(180):
            balance = balance * (1 + r) - payment
        assert abs(balance) < 1e-3


class TestCalendar:
    """Tests for calendar anchoring."""

    def test_add_months_crosses_year(self):
        """Test month arithmetic across a year boundary."""
        assert add_months(date(2025, 11, 1), 2) == date(2026, 1, 1)
        assert add_months(date(2025, 1, 1), 12) == date(2026, 1, 1)

    def test_month_one_is_start_date(self):
        """Test that payment 1 falls on the start date."""
        assert calendar_date_for_month(date(2025, 7, 1), 1) == date(2025, 7, 1)
        assert calendar_date_for_month(date(2025, 7, 1), 7) == date(2026, 1, 1)

    def test_no_start_date(self):
        """Test that months have no date without a start date."""
        assert calendar_date_for_month(None, 5) is None
        assert calendar_year_for_month(None, 5) is None

    def test_calendar_year(self):
        """Test the calendar year of a mortgage month."""
        assert calendar_year_for_month(date(2025, 7, 1), 6) == 2025
        assert calendar_year_for_month(date(2025, 7, 1), 7) == 2026
