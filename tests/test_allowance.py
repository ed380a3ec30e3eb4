"""Tests for fee-free overpayment allowances."""

from datetime import date

import pytest

from simulator.allowance import (
    allowance_year_key,
    calculate_allowance,
    calculate_yearly_overpayment_plans,
    check_allowance,
    format_policy_description,
    is_monthly_basis,
    max_monthly_overpayment,
    transaction_period_key,
)
from simulator.models import (
    AllowanceBasis,
    AllowanceType,
    OverpaymentPolicy,
    RateType,
    ResolvedRatePeriod,
    TransactionPeriod,
)


@pytest.fixture
def flat_policy():
    return OverpaymentPolicy(
        id="flat-65k",
        allowance_type=AllowanceType.FLAT,
        allowance_value=65000,
        label="€65,000",
    )


@pytest.fixture
def monthly_policy():
    return OverpaymentPolicy(
        id="monthly-10",
        allowance_type=AllowanceType.PERCENTAGE,
        allowance_value=10,
        allowance_basis=AllowanceBasis.MONTHLY,
        min_amount=65,
    )


@pytest.fixture
def fixed_period():
    return ResolvedRatePeriod(
        id="fixed",
        lender_id="test-lender",
        rate_id="test-fixed-5yr",
        is_custom=False,
        rate=3.0,
        type=RateType.FIXED,
        lender_name="Test Bank",
        rate_name="Test 5 Year Fixed",
        start_month=1,
        duration_months=60,
        label="Test Bank 5-Year Fixed @ 3.0%",
        fixed_term=5,
        overpayment_policy_id="test-policy",
    )


class TestCalculateAllowance:
    """Tests for the size of the fee-free allowance."""

    def test_balance_percentage(self, balance_policy):
        """Test 10% of the year-start balance."""
        assert calculate_allowance(balance_policy, 30000000, 126481) == 3000000

    def test_flat(self, flat_policy):
        """Test a flat yearly amount in euros."""
        assert calculate_allowance(flat_policy, 30000000, 126481) == 6500000

    def test_monthly_payment_percentage(self, monthly_policy):
        """Test 10% of the monthly payment."""
        assert calculate_allowance(monthly_policy, 30000000, 126481) == 12648

    def test_minimum_amount(self, monthly_policy):
        """Test that the minimum acts as a floor."""
        assert calculate_allowance(monthly_policy, 30000000, 50000) == 6500

    def test_no_policy(self):
        """Test that no policy means no allowance."""
        assert calculate_allowance(None, 30000000, 126481) == 0

    def test_is_monthly_basis(self, balance_policy, monthly_policy, flat_policy):
        """Test the monthly window detection."""
        assert is_monthly_basis(monthly_policy)
        assert not is_monthly_basis(balance_policy)
        assert not is_monthly_basis(flat_policy)
        assert not is_monthly_basis(None)


class TestCheckAllowance:
    """Tests for checking one overpayment."""

    def test_within(self, balance_policy):
        """Test an overpayment inside the allowance."""
        check = check_allowance(balance_policy, 2500000, 0, 30000000, 126481)
        assert not check.exceeded
        assert check.allowance_amount == 3000000
        assert check.excess_amount == 0

    def test_exactly_at_limit(self, balance_policy):
        """Test that the full allowance can be used."""
        assert not check_allowance(balance_policy, 1000000, 2000000, 30000000, 126481).exceeded

    def test_exceeded(self, balance_policy):
        """Test the excess over what is left."""
        check = check_allowance(balance_policy, 2000000, 1750000, 30000000, 126481)
        assert check.exceeded
        assert check.excess_amount == 750000

    def test_already_over(self, balance_policy):
        """Test that nothing is left once the allowance is used up."""
        check = check_allowance(balance_policy, 10000, 4000000, 30000000, 126481)
        assert check.excess_amount == 10000

    def test_no_policy(self):
        """Test that no policy never restricts."""
        assert not check_allowance(None, 99999999, 0, 30000000, 126481).exceeded


class TestAllowanceWindows:
    """Tests for allowance years and transaction limit keys."""

    def test_mortgage_years(self):
        """Test 12-month years without a start date."""
        assert allowance_year_key(None, 1) == 1
        assert allowance_year_key(None, 12) == 1
        assert allowance_year_key(None, 13) == 2

    def test_calendar_years(self):
        """Test calendar years with a start date."""
        assert allowance_year_key(date(2025, 7, 1), 6) == 2025
        assert allowance_year_key(date(2025, 7, 1), 7) == 2026

    def test_transaction_keys_without_dates(self):
        """Test grouping by mortgage month, quarter and year."""
        assert transaction_period_key("p", 4, None, TransactionPeriod.MONTH) == "p-m4"
        assert transaction_period_key("p", 4, None, TransactionPeriod.QUARTER) == "p-q2"
        assert transaction_period_key("p", 13, None, TransactionPeriod.YEAR) == "p-y2"
        assert transaction_period_key("p", 13, None, TransactionPeriod.FIXED_PERIOD) == "p"

    def test_transaction_keys_with_dates(self):
        """Test grouping by calendar month, quarter and year."""
        start = date(2025, 11, 1)
        assert transaction_period_key("p", 3, start, TransactionPeriod.MONTH) == "p-2026-1"
        assert transaction_period_key("p", 1, start, TransactionPeriod.QUARTER) == (
            transaction_period_key("p", 2, start, TransactionPeriod.QUARTER)
        )
        assert transaction_period_key("p", 2, start, TransactionPeriod.YEAR) == "p-2025"
        assert transaction_period_key("p", 3, start, TransactionPeriod.YEAR) == "p-2026"


class TestFormatPolicyDescription:
    """Tests for policy descriptions."""

    def test_descriptions(self, balance_policy, flat_policy, monthly_policy):
        """Test each kind of policy."""
        assert format_policy_description(balance_policy) == "10% of balance per year"
        assert format_policy_description(flat_policy) == "€65,000 per year"
        assert format_policy_description(monthly_policy) == "10% of monthly payment"
        assert format_policy_description(None) == "No allowance"


class TestOverpaymentPlans:
    """Tests for fee-free overpayment plans."""

    def test_max_monthly_overpayment(self, balance_policy, flat_policy, monthly_policy):
        """Test the largest even monthly overpayment for each policy."""
        assert max_monthly_overpayment(balance_policy, 30000000, 126481) == 250000
        assert max_monthly_overpayment(flat_policy, 30000000, 126481) == 541666
        assert max_monthly_overpayment(monthly_policy, 30000000, 126481) == 12648

    def test_flat_single_plan(self, flat_policy, fixed_period):
        """Test that balance-independent allowances give one plan."""
        plans = calculate_yearly_overpayment_plans(flat_policy, fixed_period, 30000000, 360)
        assert len(plans) == 1
        assert (plans[0].start_month, plans[0].end_month) == (1, 60)
        assert plans[0].monthly_amount == 541666

    def test_balance_plans_shrink(self, balance_policy, fixed_period):
        """Test one plan per year, shrinking with the balance."""
        plans = calculate_yearly_overpayment_plans(balance_policy, fixed_period, 30000000, 360)
        assert [(p.start_month, p.end_month) for p in plans] == [
            (1, 12), (13, 24), (25, 36), (37, 48), (49, 60),
        ]
        assert plans[0].monthly_amount == 250000
        assert plans[0].estimated_balance == 30000000
        amounts = [p.monthly_amount for p in plans]
        assert amounts == sorted(amounts, reverse=True)
        assert amounts[-1] < amounts[0]

    def test_calendar_years(self, balance_policy, fixed_period):
        """Test that a start date splits plans at calendar years."""
        plans = calculate_yearly_overpayment_plans(
            balance_policy, fixed_period, 30000000, 360, start_date=date(2025, 7, 1)
        )
        assert (plans[0].start_month, plans[0].end_month) == (1, 6)
        assert (plans[1].start_month, plans[1].end_month) == (7, 18)

    def test_starts_after_construction(self, flat_policy, fixed_period):
        """Test that self-build plans start after the final drawdown."""
        plans = calculate_yearly_overpayment_plans(
            flat_policy, fixed_period, 30000000, 360, construction_end_month=7
        )
        assert plans[0].start_month == 8

    def test_construction_covers_period(self, flat_policy, fixed_period):
        """Test that no plan is made when construction outlasts the period."""
        assert calculate_yearly_overpayment_plans(
            flat_policy, fixed_period, 30000000, 360, construction_end_month=60
        ) == []
