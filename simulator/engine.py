"""Month-by-month amortization across a stack of rate periods."""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from .allowance import (
    AllowanceCheck,
    allowance_year_key,
    check_allowance,
    is_monthly_basis,
    transaction_period_key,
)
from .models import (
    AmortizationMonth,
    AmortizationResult,
    AppliedOverpayment,
    ConstructionRepaymentType,
    CustomRate,
    Lender,
    MortgageRate,
    OverpaymentEffect,
    OverpaymentPolicy,
    OverpaymentType,
    RateType,
    SelfBuildPhase,
    Severity,
    SimulationState,
    SimulationWarning,
    TransactionPeriod,
    WarningType,
)
from .mortgage import (
    calculate_monthly_payment,
    calendar_date_for_month,
    monthly_rate,
    round_cents,
)
from .overpayments import amount_for, bound_to_rate_periods, default_label, matching_configs
from .rates import find_rate_period_for_month, resolve_rate_periods
from .self_build import (
    determine_phase,
    drawdown_for_month,
    is_interest_only_month,
    is_self_build_active,
)

logger = logging.getLogger(__name__)


def has_required_data(state: SimulationState) -> bool:
    """Whether the state holds enough to simulate anything."""
    return (
        state.input.mortgage_amount > 0
        and state.input.mortgage_term_months > 0
        and len(state.rate_periods) > 0
    )


def calculate_amortization(
    state: SimulationState,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    lenders: Sequence[Lender],
    policies: Sequence[OverpaymentPolicy],
) -> AmortizationResult:
    """Simulate the mortgage one month at a time.

    Each month:
    1. Find the rate period covering the month (months of unresolvable
       periods are skipped; the loop stops at the first uncovered month).
    2. Recalculate the payment when the rate period changes, after a
       self-build drawdown, or when full repayments begin. The payment is
       sized on the balance plus all reduce-term overpayments so far, so
       reduce-term overpayments keep shortening the term across rate
       changes.
    3. Split the payment into interest and principal. The last month of the
       term clears whatever rounding has left.
    4. Apply overpayments, capped so the balance never goes negative, and
       check each against the fixed period's allowance policy.
    5. On variable rates, scale next month's payment down by the share of
       the balance repaid by reduce-payment overpayments.

    The loop ends when the balance is cleared or the term runs out.

    Returns:
        AmortizationResult with the month records, warnings and applied
        overpayments. Degenerate input gives an empty result.
    """
    result = AmortizationResult()
    if not has_required_data(state):
        return result

    inp = state.input
    term = inp.mortgage_term_months

    resolved_periods = resolve_rate_periods(state.rate_periods, rates, custom_rates, lenders)
    resolved_by_id = {p.id: p for p in resolved_periods}
    policies_by_id = {p.id: p for p in policies}
    configs = bound_to_rate_periods(state.overpayment_configs, resolved_periods)

    self_build = state.self_build if is_self_build_active(state.self_build) else None
    if self_build is not None:
        balance = drawdown_for_month(1, self_build.drawdown_stages)
        cumulative_drawn = balance
    else:
        balance = inp.mortgage_amount
        cumulative_drawn = 0
    previous_phase = None

    cumulative_interest = 0
    cumulative_principal = 0
    cumulative_overpayments = 0
    reduce_term_total = 0

    payment: Optional[int] = None
    last_period_id: Optional[str] = None

    # Keyed by (rate period id, allowance year)
    paid_this_year = {}
    year_start_balance = {}
    transaction_counts = {}

    for month in range(1, term + 1):
        still_drawing = self_build is not None and cumulative_drawn < inp.mortgage_amount
        if balance <= 0 and not still_drawing:
            break

        found = find_rate_period_for_month(state.rate_periods, month)
        if found is None:
            logger.debug("No rate period covers month %d of %d", month, term)
            break

        period_config, _ = found
        period = resolved_by_id.get(period_config.id)
        if period is None:
            continue

        # Self-build drawdowns and phases
        drawdown = 0
        phase = None
        interest_only = False
        entering_repayment = False
        if self_build is not None:
            if month > 1:
                drawdown = drawdown_for_month(month, self_build.drawdown_stages)
                balance += drawdown
                cumulative_drawn += drawdown
            phase = determine_phase(month, self_build)
            interest_only = is_interest_only_month(month, self_build)
            entering_repayment = (
                phase == SelfBuildPhase.REPAYMENT and previous_phase != SelfBuildPhase.REPAYMENT
            )
            previous_phase = phase

        year_key = (period.id, allowance_year_key(inp.start_date, month))
        if year_key not in paid_this_year:
            paid_this_year[year_key] = 0
            year_start_balance[year_key] = balance

        needs_recalc = (
            payment is None
            or period.id != last_period_id
            or drawdown > 0
            or entering_repayment
        )
        if not interest_only and needs_recalc:
            remaining_months = term - month + 1
            payment = round_cents(
                calculate_monthly_payment(balance + reduce_term_total, period.rate, remaining_months)
            )
            last_period_id = period.id

        interest = round_cents(balance * monthly_rate(period.rate))
        if interest_only:
            scheduled = interest
            principal = 0
        else:
            scheduled = payment
            principal = max(0, min(scheduled - interest, balance))
        if month == term:
            principal = balance

        # Overpayments, capped at what is left after the scheduled principal
        requested = amount_for(configs, month, balance)
        available = min(requested, balance - principal)

        policy = None
        if period.type == RateType.FIXED:
            policy = policies_by_id.get(period.overpayment_policy_id)

        overpayment = 0
        paid_this_month = 0
        reduce_payment_amount = 0
        for config in matching_configs(configs, month):
            amount = min(config.amount, available - overpayment)
            if amount <= 0:
                continue

            check = AllowanceCheck(exceeded=False, allowance_amount=0)
            if policy is not None:
                already_paid = paid_this_month if is_monthly_basis(policy) else paid_this_year[year_key]
                check = check_allowance(policy, amount, already_paid, year_start_balance[year_key], scheduled)

            overpayment += amount
            paid_this_month += amount
            paid_this_year[year_key] += amount

            if config.effect == OverpaymentEffect.REDUCE_TERM:
                reduce_term_total += amount
            else:
                reduce_payment_amount += amount

            result.applied_overpayments.append(AppliedOverpayment(
                month=month,
                amount=amount,
                config_id=config.id,
                is_recurring=config.type == OverpaymentType.RECURRING,
                within_allowance=not check.exceeded,
                excess_amount=check.excess_amount,
            ))

            if check.exceeded:
                policy_label = policy.label or "fee-free"
                result.warnings.append(SimulationWarning(
                    type=WarningType.ALLOWANCE_EXCEEDED,
                    month=month,
                    message=f"Exceeds {policy_label} allowance by €{check.excess_amount / 100:,.2f}",
                    severity=Severity.WARNING,
                    config_id=config.id,
                    overpayment_label=default_label(config),
                ))

            if policy is not None and policy.max_transactions and policy.max_transactions_period:
                key = transaction_period_key(
                    period.id, month, inp.start_date, policy.max_transactions_period
                )
                transaction_counts[key] = transaction_counts.get(key, 0) + 1
                if transaction_counts[key] > policy.max_transactions:
                    if policy.max_transactions_period == TransactionPeriod.FIXED_PERIOD:
                        period_label = "fixed period"
                    else:
                        period_label = policy.max_transactions_period.value
                    result.warnings.append(SimulationWarning(
                        type=WarningType.TRANSACTION_LIMIT_EXCEEDED,
                        month=month,
                        message=f"Exceeds {policy.max_transactions} overpayments per {period_label} limit",
                        severity=Severity.WARNING,
                        config_id=config.id,
                        overpayment_label=default_label(config),
                    ))

        closing = max(0, balance - principal - overpayment)

        if closing == 0 and period.type == RateType.FIXED and period.end_month is not None:
            if month < period.end_month:
                result.warnings.append(SimulationWarning(
                    type=WarningType.EARLY_REDEMPTION,
                    month=month,
                    message=(
                        f"Mortgage paid off {period.end_month - month} months before fixed "
                        f"period ends. Early redemption fees may apply."
                    ),
                    severity=Severity.ERROR,
                ))

        cumulative_interest += interest
        cumulative_principal += principal + overpayment
        cumulative_overpayments += overpayment

        record = AmortizationMonth(
            month=month,
            year=(month - 1) // 12 + 1,
            month_of_year=(month - 1) % 12 + 1,
            date=calendar_date_for_month(inp.start_date, month),
            opening_balance=balance,
            closing_balance=closing,
            scheduled_payment=scheduled,
            interest_portion=interest,
            principal_portion=principal,
            overpayment=overpayment,
            total_payment=interest + principal + overpayment,
            rate=period.rate,
            rate_period_id=period.id,
            cumulative_interest=cumulative_interest,
            cumulative_principal=cumulative_principal,
            cumulative_overpayments=cumulative_overpayments,
            cumulative_total=cumulative_interest + cumulative_principal,
        )
        if self_build is not None:
            record.drawdown_this_month = drawdown_for_month(month, self_build.drawdown_stages)
            record.cumulative_drawn = cumulative_drawn
            record.phase = phase
            record.is_interest_only = interest_only
        result.months.append(record)

        # Fixed rates keep their payment for the whole fixed term
        if reduce_payment_amount > 0 and period.type == RateType.VARIABLE and not interest_only and closing > 0:
            payment = round_cents(payment * closing / (closing + reduce_payment_amount))

        balance = closing

    if result.months and result.months[-1].closing_balance > 0:
        logger.debug(
            "Simulation stopped after %d of %d months with %d cents outstanding",
            len(result.months), term, result.months[-1].closing_balance,
        )

    return result


def calculate_baseline(
    state: SimulationState,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    lenders: Sequence[Lender],
    policies: Sequence[OverpaymentPolicy],
) -> List[AmortizationMonth]:
    """The same mortgage without any overpayments."""
    baseline_state = replace(state, overpayment_configs=[])
    return calculate_amortization(baseline_state, rates, custom_rates, lenders, policies).months


def calculate_baseline_interest(
    state: SimulationState,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    lenders: Sequence[Lender],
    policies: Sequence[OverpaymentPolicy],
) -> int:
    months = calculate_baseline(state, rates, custom_rates, lenders, policies)
    return months[-1].cumulative_interest if months else 0


def calculate_interest_and_capital_baseline(
    state: SimulationState,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    lenders: Sequence[Lender],
    policies: Sequence[OverpaymentPolicy],
) -> Optional[int]:
    """Baseline interest if capital were also repaid during construction.

    Only meaningful for active self-build mortgages; returns None otherwise.
    """
    if not is_self_build_active(state.self_build):
        return None

    self_build = replace(
        state.self_build,
        construction_repayment_type=ConstructionRepaymentType.INTEREST_AND_CAPITAL,
    )
    return calculate_baseline_interest(
        replace(state, self_build=self_build), rates, custom_rates, lenders, policies
    )
