"""Core mortgage arithmetic shared by the simulation modules."""

import math
from datetime import date
from typing import Optional


def round_cents(amount: float) -> int:
    """Round a cent amount to a whole cent, halves rounding up.

    Every rounded value in a schedule goes through here so final-month
    payoff pennies are reproducible.
    """
    return int(math.floor(amount + 0.5))


def to_cents(euros: float) -> int:
    """Convert a whole-currency amount (as published by lenders) to cents."""
    return round_cents(euros * 100)


def monthly_rate(annual_rate: float) -> float:
    """Convert an annual percentage (e.g. 3.5) to a decimal monthly rate."""
    return annual_rate / 100 / 12


def calculate_monthly_payment(balance: float, annual_rate: float, months: int) -> float:
    """Calculate the annuity payment that clears ``balance`` in ``months``.

    payment = B * r / (1 - (1 + r)^-n)

    Args:
        balance: Outstanding balance in cents
        annual_rate: Annual rate as a percentage
        months: Remaining months

    Returns:
        Unrounded monthly payment in cents
    """
    if months <= 0:
        return float(balance)

    r = monthly_rate(annual_rate)
    if r == 0:
        return balance / months

    return balance * r / (1 - (1 + r) ** (-months))


def add_months(start: date, months: int) -> date:
    """Shift a first-of-month date by a whole number of months."""
    total = start.year * 12 + (start.month - 1) + months
    return date(total // 12, total % 12 + 1, 1)


def calendar_date_for_month(start_date: Optional[date], month: int) -> Optional[date]:
    """Calendar month of mortgage month ``month`` (1 = start date)."""
    if start_date is None:
        return None
    return add_months(start_date, month - 1)


def calendar_year_for_month(start_date: Optional[date], month: int) -> Optional[int]:
    """Calendar year of mortgage month ``month``, or None without a start date."""
    month_date = calendar_date_for_month(start_date, month)
    return month_date.year if month_date else None
