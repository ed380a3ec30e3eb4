"""Overpayment schedule matching."""

from dataclasses import replace
from typing import Iterable, List, Sequence

from .models import OverpaymentConfig, OverpaymentType, ResolvedRatePeriod


def config_applies_to_month(config: OverpaymentConfig, month: int) -> bool:
    """Check whether an overpayment config pays anything in ``month``.

    One-time overpayments apply only in their start month. Recurring ones
    apply from ``start_month`` through ``end_month`` (inclusive, open-ended
    when unset) every 1, 3 or 12 months depending on the frequency.
    """
    if not config.enabled:
        return False

    if config.type == OverpaymentType.ONE_TIME:
        return config.start_month == month

    if month < config.start_month:
        return False
    if config.end_month is not None and month > config.end_month:
        return False

    return (month - config.start_month) % config.period_length == 0


def matching_configs(configs: Iterable[OverpaymentConfig], month: int) -> List[OverpaymentConfig]:
    """Configs paying in ``month``, in their configured order."""
    return [c for c in configs if config_applies_to_month(c, month)]


def amount_for(configs: Iterable[OverpaymentConfig], month: int, opening_balance: int) -> int:
    """Total overpayment requested for ``month``.

    The result is the raw sum of matching amounts. Capping against what is
    left to repay happens in the amortization loop, which also knows the
    month's scheduled principal.
    """
    return sum(c.amount for c in matching_configs(configs, month))


def bound_to_rate_periods(
    configs: Sequence[OverpaymentConfig],
    resolved_periods: Sequence[ResolvedRatePeriod],
) -> List[OverpaymentConfig]:
    """Give open-ended recurring overpayments the end month of their rate period.

    A recurring overpayment without ``end_month`` runs until its rate period
    ends. Configs attached to an open-ended or unknown period are returned
    unchanged.
    """
    end_months = {p.id: p.end_month for p in resolved_periods}
    bounded = []
    for config in configs:
        period_end = end_months.get(config.rate_period_id)
        if (
            config.type == OverpaymentType.RECURRING
            and config.end_month is None
            and period_end is not None
        ):
            config = replace(config, end_month=period_end)
        bounded.append(config)
    return bounded


def default_label(config: OverpaymentConfig) -> str:
    if config.label:
        return config.label
    return "One-time" if config.type == OverpaymentType.ONE_TIME else "Recurring"
