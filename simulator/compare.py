"""Side-by-side comparison of several simulations.

Each compared simulation is run against the same catalog. The comparison
carries one row of headline figures per simulation, which of them is best
and worst on each figure, and chart data aligned on a common period axis
so the schedules can be drawn on one set of axes.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import SimulationState
from .rates import RateCatalog
from .simulate import SimulationResult, run_simulation
from .summary import (
    CHART_COLUMNS,
    GRANULARITIES,
    PERIOD_LENGTHS,
    build_chart_data,
    period_for_month,
)

logger = logging.getLogger(__name__)

MIN_COMPARED = 2
MAX_COMPARED = 5

COMPARE_COLORS = ['#3b82f6', '#10b981', '#f59e0b', '#8b5cf6', '#ec4899']

# (column, label, lower is better)
COMPARE_METRICS = [
    ('total_interest', 'Total Interest', True),
    ('total_paid', 'Total Paid', True),
    ('actual_term_months', 'Actual Term', True),
    ('interest_saved', 'Interest Saved (Overpayments)', False),
    ('months_saved', 'Term Reduced (Overpayments)', False),
]

METRIC_COLUMNS = ['scenario'] + [column for column, _, _ in COMPARE_METRICS]

HIGHLIGHT_COLUMNS = ['metric', 'label', 'best', 'worst']


@dataclass
class ComparedSimulation:
    name: str
    state: SimulationState
    result: SimulationResult
    color: str


@dataclass
class CompareValidation:
    """Errors block the comparison; warnings and infos are shown alongside it."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    infos: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class SimulationComparison:
    simulations: List[ComparedSimulation]
    validation: CompareValidation
    metrics: pd.DataFrame
    highlights: pd.DataFrame
    chart_data: pd.DataFrame


def validate_comparison(simulations: Sequence[ComparedSimulation]) -> CompareValidation:
    """Check that a set of simulations can be compared meaningfully."""
    validation = CompareValidation()

    if len(simulations) < MIN_COMPARED:
        validation.errors.append(f"Select at least {MIN_COMPARED} simulations to compare")
        return validation
    if len(simulations) > MAX_COMPARED:
        validation.errors.append(f"Compare at most {MAX_COMPARED} simulations")
        return validation

    names = [s.name for s in simulations]
    if len(set(names)) != len(names):
        validation.errors.append("Simulation names must be unique")

    for sim in simulations:
        if sim.result.is_empty:
            validation.errors.append(f"{sim.name} has no schedule to compare")

    self_build = [s.state.self_build is not None and s.state.self_build.enabled for s in simulations]
    if any(self_build) and not all(self_build):
        validation.warnings.append("Comparing self-build and standard mortgages")

    property_values = [s.state.input.property_value for s in simulations]
    if len(set(property_values)) > 1:
        validation.warnings.append(
            f"Property values vary: €{min(property_values) / 100:,.0f} - "
            f"€{max(property_values) / 100:,.0f}"
        )

    if len(simulations) == 2:
        first, second = (s.state for s in simulations)
        one_overpays = bool(first.overpayment_configs) != bool(second.overpayment_configs)
        if one_overpays and (
            replace(first, overpayment_configs=[]) == replace(second, overpayment_configs=[])
        ):
            validation.infos.append(
                "These simulations differ only in overpayments; open either one "
                "to see the overpayment impact chart"
            )

    return validation


def compare_summary_metrics(simulations: Sequence[ComparedSimulation]) -> pd.DataFrame:
    """Headline figures per simulation, amounts in euros."""
    rows = []
    for sim in simulations:
        summary = sim.result.summary
        rows.append({
            'scenario': sim.name,
            'total_interest': summary.total_interest / 100,
            'total_paid': summary.total_paid / 100,
            'actual_term_months': summary.actual_term_months,
            'interest_saved': summary.interest_saved / 100,
            'months_saved': summary.months_saved,
        })
    return pd.DataFrame(rows, columns=METRIC_COLUMNS)


def metric_highlights(metrics: pd.DataFrame) -> pd.DataFrame:
    """Best and worst simulation for every metric.

    Ties list every tied name. Both are None when all simulations agree.
    """
    rows = []
    for column, label, lower_is_better in COMPARE_METRICS:
        values = metrics[column]
        best_value, worst_value = (
            (values.min(), values.max()) if lower_is_better else (values.max(), values.min())
        )
        best = worst = None
        if best_value != worst_value:
            best = ", ".join(metrics.loc[values == best_value, 'scenario'])
            worst = ", ".join(metrics.loc[values == worst_value, 'scenario'])
        rows.append({'metric': column, 'label': label, 'best': best, 'worst': worst})
    return pd.DataFrame(rows, columns=HIGHLIGHT_COLUMNS)


def _last_period(sim: ComparedSimulation, granularity: str) -> int:
    last_months = [m[-1].month for m in (sim.result.months, sim.result.baseline_months) if m]
    return period_for_month(max(last_months), granularity)


def _aligned_chart_data(sim: ComparedSimulation, granularity: str, periods: pd.Index) -> pd.DataFrame:
    """Chart points for one simulation over ``periods``.

    After a mortgage is paid off its balance stays at zero and its
    cumulative totals stay where they ended. A schedule that stops with a
    balance left (uncovered months) is left blank instead.
    """
    months = sim.result.months
    baseline = sim.result.baseline_months
    property_value = sim.state.input.property_value

    chart = build_chart_data(months, None, property_value, granularity).set_index('period')
    chart = chart.reindex(periods)
    chart.index.name = 'period'

    chart['month'] = chart['month'].fillna(
        pd.Series(periods * PERIOD_LENGTHS[granularity], index=periods)
    ).astype(int)

    if months[-1].closing_balance == 0:
        after = chart.index > period_for_month(months[-1].month, granularity)
        chart.loc[after, ['balance', 'interest', 'principal', 'overpayments']] = 0.0
        cumulative = ['cumulative_interest', 'cumulative_principal']
        chart[cumulative] = chart[cumulative].ffill()
        if property_value > 0:
            chart.loc[after, 'equity'] = property_value / 100
            chart.loc[after, 'ltv'] = 0.0

    if baseline:
        baseline_balance = pd.Series(
            [m.closing_balance / 100 for m in baseline],
            index=[period_for_month(m.month, granularity) for m in baseline],
        ).groupby(level=0).last().reindex(periods)
        if baseline[-1].closing_balance == 0:
            baseline_balance[baseline_balance.index > period_for_month(baseline[-1].month, granularity)] = 0.0
        chart['baseline_balance'] = baseline_balance
    else:
        chart['baseline_balance'] = np.nan

    chart = chart.reset_index()
    chart.insert(0, 'scenario', sim.name)
    return chart[['scenario'] + CHART_COLUMNS]


def compare_chart_data(simulations: Sequence[ComparedSimulation], granularity: str = "yearly") -> pd.DataFrame:
    """Long-format chart data: one row per simulation and period.

    Every simulation covers the same periods, up to the longest schedule
    or baseline among them.

    Raises:
        ValueError: If granularity is not monthly, quarterly or yearly
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity: {granularity}")

    columns = ['scenario'] + CHART_COLUMNS
    if not simulations:
        return pd.DataFrame(columns=columns)

    max_period = max(_last_period(sim, granularity) for sim in simulations)
    periods = pd.RangeIndex(1, max_period + 1)
    frames = [_aligned_chart_data(sim, granularity, periods) for sim in simulations]
    return pd.concat(frames, ignore_index=True)[columns]


def compare_simulations(
    states: Sequence[SimulationState],
    names: Sequence[str],
    catalog: RateCatalog,
    granularity: str = "yearly",
    colors: Optional[Sequence[str]] = None,
) -> SimulationComparison:
    """Simulate every state and line the results up for comparison.

    An invalid comparison keeps the simulations and validation but has
    empty metrics and chart data.

    Raises:
        ValueError: If names and states differ in length, or on an unknown granularity
    """
    if len(states) != len(names):
        raise ValueError(f"Got {len(names)} names for {len(states)} simulations")
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity: {granularity}")

    palette = list(colors or COMPARE_COLORS)
    simulations = [
        ComparedSimulation(
            name=name,
            state=state,
            result=run_simulation(state, catalog),
            color=palette[i % len(palette)],
        )
        for i, (state, name) in enumerate(zip(states, names))
    ]

    validation = validate_comparison(simulations)
    if not validation.is_valid:
        logger.debug("Comparison rejected: %s", "; ".join(validation.errors))
        return SimulationComparison(
            simulations=simulations,
            validation=validation,
            metrics=pd.DataFrame(columns=METRIC_COLUMNS),
            highlights=pd.DataFrame(columns=HIGHLIGHT_COLUMNS),
            chart_data=pd.DataFrame(columns=['scenario'] + CHART_COLUMNS),
        )

    metrics = compare_summary_metrics(simulations)
    logger.debug("Compared %d simulations", len(simulations))
    return SimulationComparison(
        simulations=simulations,
        validation=validation,
        metrics=metrics,
        highlights=metric_highlights(metrics),
        chart_data=compare_chart_data(simulations, granularity),
    )
