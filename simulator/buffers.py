"""Suggest short variable-rate buffers around fixed periods.

Many lenders only allow penalty-free lump sums while on a variable rate. A
month on the lender's variable rate between two fixed commitments (or after
a final fixed period that does not reach the end of the term) gives the
borrower a window to overpay.
"""

import logging
from typing import List, Optional, Sequence

from .models import (
    AmortizationMonth,
    BufferSuggestion,
    CustomRate,
    MortgageRate,
    RateType,
    ResolvedRatePeriod,
    SimulationState,
)
from .rates import find_variable_rate

logger = logging.getLogger(__name__)


def _catalog_rate(
    period: ResolvedRatePeriod,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
) -> Optional[MortgageRate]:
    pool = custom_rates if period.is_custom else rates
    return next((r for r in pool if r.id == period.rate_id), None)


def _balance_at_month(months: Sequence[AmortizationMonth], month: int, default: int) -> int:
    record = next((m for m in months if m.month == month), None)
    if record is not None:
        return record.closing_balance
    if months:
        return months[-1].closing_balance
    return default


def calculate_buffer_suggestions(
    state: SimulationState,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    resolved_periods: Sequence[ResolvedRatePeriod],
    months: Sequence[AmortizationMonth],
) -> List[BufferSuggestion]:
    """Find fixed-to-fixed transitions and trailing fixed periods that could use a buffer.

    The suggested rate is the fixed rate's lender's variable rate valid at
    the LTV reached when the fixed period ends.
    """
    suggestions: List[BufferSuggestion] = []
    inp = state.input
    if not resolved_periods or inp.property_value <= 0:
        return suggestions

    def suggest(index: int, period: ResolvedRatePeriod, end_month: int, is_trailing: bool):
        fixed_rate = _catalog_rate(period, rates, custom_rates)
        if fixed_rate is None:
            return
        balance = _balance_at_month(months, end_month, inp.mortgage_amount)
        ltv = balance / inp.property_value * 100
        variable = find_variable_rate(fixed_rate, rates, ltv, inp.ber)
        if variable is None:
            logger.debug("No variable rate for %s at %.1f%% LTV", fixed_rate.id, ltv)
            return
        suggestions.append(BufferSuggestion(
            after_index=index,
            fixed_rate=fixed_rate,
            suggested_rate=variable,
            lender_name=period.lender_name,
            ltv_at_end=ltv,
            is_trailing=is_trailing,
        ))

    for i, (current, following) in enumerate(zip(resolved_periods, resolved_periods[1:])):
        if current.type == RateType.FIXED and following.type == RateType.FIXED:
            suggest(i, current, current.start_month + current.duration_months - 1, False)

    last = resolved_periods[-1]
    if last.type == RateType.FIXED and last.duration_months > 0:
        end_month = last.start_month + last.duration_months - 1
        if end_month < inp.mortgage_term_months:
            suggest(len(resolved_periods) - 1, last, end_month, True)

    return suggestions
