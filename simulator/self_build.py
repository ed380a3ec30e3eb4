"""Self-build mortgage phases.

Self-build mortgages release funds in stages while the house is built.
During construction only interest is charged on what has been drawn (unless
the borrower opts to pay capital too), optionally followed by a further
interest-only period. Full amortization starts after that.
"""

from dataclasses import dataclass
from typing import List, Optional

from .models import (
    ConstructionRepaymentType,
    DrawdownStage,
    SelfBuildConfig,
    SelfBuildPhase,
)


@dataclass
class DrawdownValidation:
    is_valid: bool
    total_drawn: int
    difference: int  # positive = under-drawn, negative = over-drawn


@dataclass
class ResolvedDrawdownStage:
    stage: DrawdownStage
    cumulative_drawn: int
    remaining_to_draw: int
    total_approved: int


def is_self_build_active(config: Optional[SelfBuildConfig]) -> bool:
    return config is not None and config.enabled and len(config.drawdown_stages) > 0


def drawdown_for_month(month: int, stages: List[DrawdownStage]) -> int:
    return sum(s.amount for s in stages if s.month == month)


def final_drawdown_month(stages: List[DrawdownStage]) -> int:
    if not stages:
        return 0
    return max(s.month for s in stages)


def construction_end_month(config: SelfBuildConfig) -> int:
    """Month of the final drawdown."""
    return final_drawdown_month(config.drawdown_stages)


def interest_only_end_month(config: SelfBuildConfig) -> int:
    return final_drawdown_month(config.drawdown_stages) + config.interest_only_months


def determine_phase(month: int, config: SelfBuildConfig) -> SelfBuildPhase:
    if month <= construction_end_month(config):
        return SelfBuildPhase.CONSTRUCTION
    if month <= interest_only_end_month(config):
        return SelfBuildPhase.INTEREST_ONLY
    return SelfBuildPhase.REPAYMENT


def is_interest_only_month(month: int, config: SelfBuildConfig) -> bool:
    """Whether ``month`` pays interest only.

    Paying capital during construction leaves only the explicit
    interest-only period after the final drawdown.
    """
    phase = determine_phase(month, config)
    if config.construction_repayment_type == ConstructionRepaymentType.INTEREST_AND_CAPITAL:
        return phase == SelfBuildPhase.INTEREST_ONLY
    return phase in (SelfBuildPhase.CONSTRUCTION, SelfBuildPhase.INTEREST_ONLY)


def initial_self_build_balance(config: SelfBuildConfig) -> int:
    """Balance in month 1: the earliest drawdown."""
    if not config.drawdown_stages:
        return 0
    first = min(s.month for s in config.drawdown_stages)
    return drawdown_for_month(first, config.drawdown_stages)


def validate_drawdown_total(config: SelfBuildConfig, mortgage_amount: int) -> DrawdownValidation:
    """Check that the drawdowns add up to the mortgage amount, to the cent."""
    total = sum(s.amount for s in config.drawdown_stages)
    difference = mortgage_amount - total
    return DrawdownValidation(
        is_valid=abs(difference) < 1,
        total_drawn=total,
        difference=difference,
    )


def drawdown_stages_with_cumulative(stages: List[DrawdownStage]) -> List[ResolvedDrawdownStage]:
    ordered = sorted(stages, key=lambda s: s.month)
    total = sum(s.amount for s in ordered)

    resolved = []
    cumulative = 0
    for stage in ordered:
        cumulative += stage.amount
        resolved.append(ResolvedDrawdownStage(
            stage=stage,
            cumulative_drawn=cumulative,
            remaining_to_draw=total - cumulative,
            total_approved=total,
        ))
    return resolved
