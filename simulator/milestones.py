"""Milestone detection over a computed schedule."""

from typing import List, Optional, Sequence

from .models import (
    AmortizationMonth,
    Milestone,
    MilestoneType,
    MortgageInput,
    SelfBuildConfig,
)
from .mortgage import calendar_date_for_month
from .self_build import (
    construction_end_month,
    initial_self_build_balance,
    interest_only_end_month,
    is_self_build_active,
    validate_drawdown_total,
)

MILESTONE_LABELS = {
    MilestoneType.MORTGAGE_START: "Mortgage Starts",
    MilestoneType.CONSTRUCTION_COMPLETE: "Construction Complete",
    MilestoneType.FULL_PAYMENTS_START: "Full Payments Start",
    MilestoneType.PRINCIPAL_25_PERCENT: "25% Paid Off",
    MilestoneType.PRINCIPAL_50_PERCENT: "50% Paid Off",
    MilestoneType.PRINCIPAL_75_PERCENT: "75% Paid Off",
    MilestoneType.LTV_80_PERCENT: "LTV Below 80%",
    MilestoneType.MORTGAGE_COMPLETE: "Mortgage Complete",
}

PRINCIPAL_THRESHOLDS = (
    (MilestoneType.PRINCIPAL_25_PERCENT, 0.25),
    (MilestoneType.PRINCIPAL_50_PERCENT, 0.50),
    (MilestoneType.PRINCIPAL_75_PERCENT, 0.75),
)

LTV_THRESHOLD = 80.0


def _milestone(milestone_type: MilestoneType, month: AmortizationMonth, value: int) -> Milestone:
    return Milestone(
        type=milestone_type,
        month=month.month,
        label=MILESTONE_LABELS[milestone_type],
        date=month.date,
        value=value,
    )


def detect_milestones(
    months: Sequence[AmortizationMonth],
    input: MortgageInput,
    self_build: Optional[SelfBuildConfig] = None,
) -> List[Milestone]:
    """Find the notable points of a schedule, in month order.

    Every milestone fires at most once. Self-build mortgages hold back the
    principal and LTV milestones until full repayments begin, and all
    construction milestones until the drawdowns add up to the mortgage
    amount.
    """
    if not months:
        return []

    active = is_self_build_active(self_build)
    construction_end = construction_end_month(self_build) if active else 0
    interest_only_end = interest_only_end_month(self_build) if active else 0
    drawdown_complete = (
        not active or validate_drawdown_total(self_build, input.mortgage_amount).is_valid
    )

    milestones = [Milestone(
        type=MilestoneType.MORTGAGE_START,
        month=1,
        label=MILESTONE_LABELS[MilestoneType.MORTGAGE_START],
        date=calendar_date_for_month(input.start_date, 1),
        value=initial_self_build_balance(self_build) if active else input.mortgage_amount,
    )]
    reached = {MilestoneType.MORTGAGE_START}

    # Only worth showing when the mortgage starts above the threshold
    track_ltv = (
        input.property_value > 0
        and input.mortgage_amount / input.property_value * 100 > LTV_THRESHOLD
    )

    for month in months:
        if active and drawdown_complete:
            if (
                MilestoneType.CONSTRUCTION_COMPLETE not in reached
                and month.month == construction_end
            ):
                milestones.append(_milestone(
                    MilestoneType.CONSTRUCTION_COMPLETE, month, month.closing_balance
                ))
                reached.add(MilestoneType.CONSTRUCTION_COMPLETE)

            if (
                MilestoneType.FULL_PAYMENTS_START not in reached
                and interest_only_end > construction_end
                and month.month == interest_only_end + 1
            ):
                milestones.append(_milestone(
                    MilestoneType.FULL_PAYMENTS_START, month, month.opening_balance
                ))
                reached.add(MilestoneType.FULL_PAYMENTS_START)

        repaying = not active or (drawdown_complete and month.month > interest_only_end)
        if repaying:
            for milestone_type, share in PRINCIPAL_THRESHOLDS:
                if (
                    milestone_type not in reached
                    and month.cumulative_principal >= input.mortgage_amount * share
                ):
                    milestones.append(_milestone(milestone_type, month, month.closing_balance))
                    reached.add(milestone_type)

            if (
                track_ltv
                and MilestoneType.LTV_80_PERCENT not in reached
                and month.closing_balance / input.property_value * 100 <= LTV_THRESHOLD
            ):
                milestones.append(_milestone(
                    MilestoneType.LTV_80_PERCENT, month, month.closing_balance
                ))
                reached.add(MilestoneType.LTV_80_PERCENT)

        if drawdown_complete and month.closing_balance <= 0:
            milestones.append(_milestone(MilestoneType.MORTGAGE_COMPLETE, month, 0))
            break

    return milestones
