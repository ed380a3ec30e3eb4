"""Fee-free overpayment allowance tracking.

Fixed-rate periods usually limit how much can be overpaid without an early
repayment charge. Lenders express the limit as:

- a percentage of the balance at the start of each year,
- a percentage of the monthly payment, checked month by month,
- a flat amount per year,

optionally with a minimum amount and a cap on the number of overpayments
per month, quarter, year or fixed period. Exceeding an allowance never
blocks an overpayment; it only produces a warning.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .models import (
    AllowanceBasis,
    AllowanceType,
    OverpaymentPolicy,
    ResolvedRatePeriod,
    TransactionPeriod,
    YearlyOverpaymentPlan,
)
from .mortgage import (
    calculate_monthly_payment,
    calendar_date_for_month,
    calendar_year_for_month,
    monthly_rate,
    round_cents,
    to_cents,
)


@dataclass
class AllowanceCheck:
    exceeded: bool
    allowance_amount: int  # full allowance for the window, in cents
    excess_amount: int = 0


def is_monthly_basis(policy: Optional[OverpaymentPolicy]) -> bool:
    return (
        policy is not None
        and policy.allowance_type == AllowanceType.PERCENTAGE
        and policy.allowance_basis == AllowanceBasis.MONTHLY
    )


def calculate_allowance(
    policy: Optional[OverpaymentPolicy],
    year_start_balance: int,
    monthly_payment: int,
) -> int:
    """Full fee-free allowance for one allowance window, in cents.

    The window is a month for monthly-basis policies and a year otherwise.
    ``min_amount`` is applied as a floor whatever the basis.
    """
    if policy is None:
        return 0

    allowance = 0
    if policy.allowance_type == AllowanceType.FLAT:
        allowance = to_cents(policy.allowance_value)
    elif policy.allowance_basis == AllowanceBasis.BALANCE:
        allowance = round_cents(year_start_balance * policy.allowance_value / 100)
    elif policy.allowance_basis == AllowanceBasis.MONTHLY:
        allowance = round_cents(monthly_payment * policy.allowance_value / 100)

    if policy.min_amount:
        allowance = max(allowance, to_cents(policy.min_amount))

    return allowance


def check_allowance(
    policy: Optional[OverpaymentPolicy],
    overpayment_amount: int,
    already_paid: int,
    year_start_balance: int,
    monthly_payment: int,
) -> AllowanceCheck:
    """Check an overpayment against the fee-free allowance.

    Args:
        policy: Policy of the active fixed period, None for no restriction
        overpayment_amount: Amount being overpaid now, in cents
        already_paid: Overpayments already made in the current window
                      (this month for monthly-basis policies, this year
                      otherwise)
        year_start_balance: Balance at the start of the allowance year
        monthly_payment: Current scheduled payment

    Returns:
        AllowanceCheck with the full allowance and the excess, if any
    """
    if policy is None:
        return AllowanceCheck(exceeded=False, allowance_amount=0)

    allowance = calculate_allowance(policy, year_start_balance, monthly_payment)
    remaining = max(0, allowance - already_paid)

    if overpayment_amount > remaining:
        return AllowanceCheck(
            exceeded=True,
            allowance_amount=allowance,
            excess_amount=overpayment_amount - remaining,
        )
    return AllowanceCheck(exceeded=False, allowance_amount=allowance)


def allowance_year_key(start_date: Optional[date], month: int):
    """Allowance year of ``month``: calendar year with a start date, else mortgage year."""
    calendar_year = calendar_year_for_month(start_date, month)
    if calendar_year is not None:
        return calendar_year
    return (month - 1) // 12 + 1


def transaction_period_key(
    rate_period_id: str,
    month: int,
    start_date: Optional[date],
    period: TransactionPeriod,
) -> str:
    """Key grouping overpayments that count towards the same transaction limit."""
    if period == TransactionPeriod.FIXED_PERIOD:
        return rate_period_id

    month_date = calendar_date_for_month(start_date, month)
    if month_date is None:
        if period == TransactionPeriod.MONTH:
            return f"{rate_period_id}-m{month}"
        if period == TransactionPeriod.QUARTER:
            return f"{rate_period_id}-q{math.ceil(month / 3)}"
        return f"{rate_period_id}-y{math.ceil(month / 12)}"

    if period == TransactionPeriod.MONTH:
        return f"{rate_period_id}-{month_date.year}-{month_date.month}"
    if period == TransactionPeriod.QUARTER:
        return f"{rate_period_id}-{month_date.year}-Q{(month_date.month - 1) // 3}"
    return f"{rate_period_id}-{month_date.year}"


def format_policy_description(policy: Optional[OverpaymentPolicy]) -> str:
    if policy is None:
        return "No allowance"

    if policy.allowance_type == AllowanceType.PERCENTAGE:
        if policy.allowance_basis == AllowanceBasis.BALANCE:
            return f"{policy.allowance_value:g}% of balance per year"
        if policy.allowance_basis == AllowanceBasis.MONTHLY:
            return f"{policy.allowance_value:g}% of monthly payment"

    if policy.allowance_type == AllowanceType.FLAT:
        return f"€{policy.allowance_value:,.0f} per year"

    return "No allowance"


def max_monthly_overpayment(
    policy: OverpaymentPolicy,
    balance: int,
    monthly_payment: int,
) -> int:
    """Largest even monthly overpayment that stays inside the allowance."""
    if policy.allowance_type == AllowanceType.FLAT:
        amount = to_cents(policy.allowance_value) // 12
    elif policy.allowance_basis == AllowanceBasis.BALANCE:
        amount = math.floor(balance * policy.allowance_value / 100 / 12)
    elif policy.allowance_basis == AllowanceBasis.MONTHLY:
        amount = math.floor(monthly_payment * policy.allowance_value / 100)
    else:
        amount = 0

    if policy.min_amount:
        amount = max(amount, to_cents(policy.min_amount))

    return amount


def _year_boundaries(start_date: Optional[date], first_month: int, last_month: int):
    """(start, end) month pairs of each allowance year between two months."""
    boundaries = []
    current = first_month
    while current <= last_month:
        month_date = calendar_date_for_month(start_date, current)
        if month_date is None:
            year_end = current + 11
        else:
            year_end = current + (12 - month_date.month)
        year_end = min(year_end, last_month)
        boundaries.append((current, year_end))
        current = year_end + 1
    return boundaries


def calculate_yearly_overpayment_plans(
    policy: OverpaymentPolicy,
    period: ResolvedRatePeriod,
    mortgage_amount: int,
    total_months: int,
    start_date: Optional[date] = None,
    construction_end_month: int = 0,
) -> List[YearlyOverpaymentPlan]:
    """Plan the largest fee-free monthly overpayments through a fixed period.

    Balance-based allowances shrink as the balance falls, so the plan is
    projected one allowance year at a time. Flat and monthly-payment
    allowances do not depend on the balance and give a single plan for the
    whole period. Self-build mortgages start overpaying after construction.
    """
    plans: List[YearlyOverpaymentPlan] = []
    duration = period.duration_months or total_months - period.start_month + 1
    period_end = period.start_month + duration - 1

    first_month = period.start_month
    if construction_end_month and period.start_month <= construction_end_month:
        first_month = construction_end_month + 1
    if first_month > period_end:
        return plans

    payment = round_cents(
        calculate_monthly_payment(mortgage_amount, period.rate, total_months - period.start_month + 1)
    )

    balance_independent = policy.allowance_type == AllowanceType.FLAT or is_monthly_basis(policy)
    if balance_independent:
        amount = max_monthly_overpayment(policy, mortgage_amount, payment)
        if amount > 0:
            plans.append(YearlyOverpaymentPlan(
                year=1,
                start_month=first_month,
                end_month=period_end,
                monthly_amount=amount,
                estimated_balance=mortgage_amount,
            ))
        return plans

    r = monthly_rate(period.rate)
    balance = mortgage_amount
    for year, (year_start, year_end) in enumerate(_year_boundaries(start_date, first_month, period_end), 1):
        amount = max_monthly_overpayment(policy, balance, payment)
        if amount > 0:
            plans.append(YearlyOverpaymentPlan(
                year=year,
                start_month=year_start,
                end_month=year_end,
                monthly_amount=amount,
                estimated_balance=balance,
            ))

        for _ in range(year_end - year_start + 1):
            interest = round_cents(balance * r)
            balance = max(0, balance - (payment - interest) - amount)

        if balance <= 0:
            break

    return plans
