"""Shared fixtures: a small rate catalog and state builders."""

import pytest

from simulator.engine import calculate_amortization
from simulator.models import (
    AllowanceBasis,
    AllowanceType,
    Lender,
    MortgageInput,
    MortgageRate,
    OverpaymentConfig,
    OverpaymentEffect,
    OverpaymentFrequency,
    OverpaymentPolicy,
    OverpaymentType,
    RatePeriodConfig,
    RateType,
    SimulationState,
)
from simulator.rates import RateCatalog

LENDER_ID = "test-lender"


@pytest.fixture
def variable_rate():
    return MortgageRate(
        id="test-rate",
        name="Test Variable",
        lender_id=LENDER_ID,
        type=RateType.VARIABLE,
        rate=3.5,
    )


@pytest.fixture
def fixed_rate():
    return MortgageRate(
        id="test-fixed-5yr",
        name="Test 5 Year Fixed",
        lender_id=LENDER_ID,
        type=RateType.FIXED,
        rate=3.0,
        fixed_term=5,
        max_ltv=90,
    )


@pytest.fixture
def balance_policy():
    return OverpaymentPolicy(
        id="test-policy",
        allowance_type=AllowanceType.PERCENTAGE,
        allowance_value=10,
        allowance_basis=AllowanceBasis.BALANCE,
        label="10%",
    )


@pytest.fixture
def lender():
    return Lender(id=LENDER_ID, name="Test Bank", overpayment_policy="test-policy")


@pytest.fixture
def catalog(variable_rate, fixed_rate, lender, balance_policy):
    return RateCatalog(
        rates=[fixed_rate, variable_rate],
        lenders=[lender],
        policies=[balance_policy],
    )


@pytest.fixture
def variable_only():
    """A single variable period running to the end of the mortgage."""
    return [RatePeriodConfig(id="period-1", lender_id=LENDER_ID, rate_id="test-rate", duration_months=0)]


@pytest.fixture
def fixed_then_variable():
    """Five years fixed, then variable until the end."""
    return [
        RatePeriodConfig(id="fixed", lender_id=LENDER_ID, rate_id="test-fixed-5yr", duration_months=60),
        RatePeriodConfig(id="variable", lender_id=LENDER_ID, rate_id="test-rate", duration_months=0),
    ]


@pytest.fixture
def make_state(variable_only):
    """Build a SimulationState: €300,000 over 30 years on a €350,000 property by default."""
    def _make(
        rate_periods=None,
        overpayments=(),
        amount=30000000,
        term=360,
        property_value=35000000,
        start_date=None,
        self_build=None,
        ber="B2",
    ):
        return SimulationState(
            input=MortgageInput(
                mortgage_amount=amount,
                mortgage_term_months=term,
                property_value=property_value,
                ber=ber,
                start_date=start_date,
            ),
            rate_periods=list(variable_only if rate_periods is None else rate_periods),
            overpayment_configs=list(overpayments),
            self_build=self_build,
        )
    return _make


@pytest.fixture
def one_time():
    def _one_time(amount, month, period_id="period-1", effect=OverpaymentEffect.REDUCE_TERM,
                  config_id=None, enabled=True):
        return OverpaymentConfig(
            id=config_id or f"one-time-{month}",
            rate_period_id=period_id,
            type=OverpaymentType.ONE_TIME,
            amount=amount,
            start_month=month,
            effect=effect,
            enabled=enabled,
        )
    return _one_time


@pytest.fixture
def recurring():
    def _recurring(amount, start_month=1, end_month=None, period_id="period-1",
                   frequency=OverpaymentFrequency.MONTHLY, effect=OverpaymentEffect.REDUCE_TERM,
                   config_id=None):
        return OverpaymentConfig(
            id=config_id or f"recurring-{start_month}",
            rate_period_id=period_id,
            type=OverpaymentType.RECURRING,
            amount=amount,
            start_month=start_month,
            effect=effect,
            frequency=frequency,
            end_month=end_month,
        )
    return _recurring


@pytest.fixture
def simulate(catalog):
    """Run the engine against the test catalog (or another one)."""
    def _simulate(state, against=None):
        c = against or catalog
        return calculate_amortization(state, c.rates, c.custom_rates, c.lenders, c.policies)
    return _simulate
