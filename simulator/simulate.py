"""Top-level simulation controller.

Runs every stage of a simulation from one immutable state snapshot and
returns all the derived outputs together. Nothing is cached between calls:
the UI re-runs the whole simulation whenever an input changes.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .buffers import calculate_buffer_suggestions
from .engine import (
    calculate_amortization,
    calculate_baseline,
    calculate_interest_and_capital_baseline,
    has_required_data,
)
from .milestones import detect_milestones
from .models import (
    AmortizationMonth,
    AmortizationYear,
    AppliedOverpayment,
    BufferSuggestion,
    Milestone,
    ResolvedRatePeriod,
    SimulationCompleteness,
    SimulationState,
    SimulationSummary,
    SimulationWarning,
)
from .rates import RateCatalog, resolve_rate_periods, validate_rate_periods
from .self_build import DrawdownValidation, is_self_build_active, validate_drawdown_total
from .summary import aggregate_by_year, calculate_simulation_completeness, compute_summary

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Everything derived from one simulation state."""

    resolved_periods: List[ResolvedRatePeriod] = field(default_factory=list)
    months: List[AmortizationMonth] = field(default_factory=list)
    yearly: List[AmortizationYear] = field(default_factory=list)
    baseline_months: List[AmortizationMonth] = field(default_factory=list)
    warnings: List[SimulationWarning] = field(default_factory=list)
    applied_overpayments: List[AppliedOverpayment] = field(default_factory=list)
    summary: Optional[SimulationSummary] = None
    milestones: List[Milestone] = field(default_factory=list)
    buffer_suggestions: List[BufferSuggestion] = field(default_factory=list)
    completeness: Optional[SimulationCompleteness] = None
    rate_period_problems: List[str] = field(default_factory=list)
    drawdown_validation: Optional[DrawdownValidation] = None

    @property
    def is_empty(self) -> bool:
        return not self.months


def run_simulation(state: SimulationState, catalog: RateCatalog) -> SimulationResult:
    """Simulate ``state`` against ``catalog``.

    States without the required data give an empty result carrying only the
    rate period problems, so the UI can explain what is missing.
    """
    result = SimulationResult(
        rate_period_problems=validate_rate_periods(
            state.rate_periods, state.input.mortgage_term_months
        ),
    )
    if not has_required_data(state):
        logger.debug("Not enough data to simulate")
        return result

    tables = (catalog.rates, catalog.custom_rates, catalog.lenders, catalog.policies)

    result.resolved_periods = resolve_rate_periods(
        state.rate_periods, catalog.rates, catalog.custom_rates, catalog.lenders
    )

    amortization = calculate_amortization(state, *tables)
    result.months = amortization.months
    result.warnings = amortization.warnings
    result.applied_overpayments = amortization.applied_overpayments

    result.baseline_months = calculate_baseline(state, *tables)
    result.yearly = aggregate_by_year(result.months, result.warnings)
    result.summary = compute_summary(
        result.months,
        result.baseline_months,
        calculate_interest_and_capital_baseline(state, *tables),
    )
    result.milestones = detect_milestones(result.months, state.input, state.self_build)
    result.buffer_suggestions = calculate_buffer_suggestions(
        state, catalog.rates, catalog.custom_rates, result.resolved_periods, result.months
    )
    result.completeness = calculate_simulation_completeness(
        result.resolved_periods, state.input.mortgage_term_months, result.months
    )

    if is_self_build_active(state.self_build):
        result.drawdown_validation = validate_drawdown_total(
            state.self_build, state.input.mortgage_amount
        )

    logger.debug(
        "Simulated %d months: %d warnings, %d milestones",
        len(result.months), len(result.warnings), len(result.milestones),
    )
    return result
