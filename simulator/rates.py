"""Rate period resolution against the rate, lender and policy catalogs."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Sequence

from .models import (
    AllowanceBasis,
    AllowanceType,
    CustomRate,
    Lender,
    MortgageRate,
    OverpaymentPolicy,
    RatePeriodConfig,
    RateType,
    ResolvedRatePeriod,
    TransactionPeriod,
)

logger = logging.getLogger(__name__)

# Bundled sample catalog, overridable with MORTGAGE_SIM_CATALOG
BUNDLED_CATALOG_PATH = Path(__file__).parent.parent / "data" / "catalog.json"

BTL_BUYER_TYPES = ("btl",)


@dataclass
class RateCatalog:
    """Read-only reference data supplied to every simulation."""

    rates: list[MortgageRate] = field(default_factory=list)
    custom_rates: list[CustomRate] = field(default_factory=list)
    lenders: list[Lender] = field(default_factory=list)
    policies: list[OverpaymentPolicy] = field(default_factory=list)

    def find_rate(self, rate_id: str, is_custom: bool = False) -> MortgageRate | None:
        pool = self.custom_rates if is_custom else self.rates
        return next((r for r in pool if r.id == rate_id), None)

    def find_lender(self, lender_id: str) -> Lender | None:
        return next((l for l in self.lenders if l.id == lender_id), None)

    def find_policy(self, policy_id: str | None) -> OverpaymentPolicy | None:
        if policy_id is None:
            return None
        return next((p for p in self.policies if p.id == policy_id), None)

    def with_custom_rates(self, custom_rates: Iterable[CustomRate]) -> RateCatalog:
        """Copy of the catalog with ``custom_rates`` added; same ids replace existing ones."""
        added = list(custom_rates)
        ids = {r.id for r in added}
        kept = [r for r in self.custom_rates if r.id not in ids]
        return replace(self, custom_rates=kept + added)


def rate_from_dict(data: dict, custom: bool = False) -> MortgageRate:
    kwargs = dict(
        id=data["id"],
        name=data["name"],
        lender_id=data["lenderId"],
        type=RateType(data["type"]),
        rate=data["rate"],
        fixed_term=data.get("fixedTerm"),
        min_ltv=data.get("minLtv", 0.0),
        max_ltv=data.get("maxLtv", 100.0),
        min_loan=data.get("minLoan"),
        buyer_types=data.get("buyerTypes", ["ftb", "mover"]),
        ber_eligible=data.get("berEligible"),
        new_business=data.get("newBusiness"),
    )
    if custom:
        return CustomRate(custom_lender_name=data.get("customLenderName"), **kwargs)
    return MortgageRate(**kwargs)


def rate_to_dict(rate: MortgageRate) -> dict:
    """Inverse of ``rate_from_dict``, in the catalog's camelCase keys."""
    data = {
        "id": rate.id,
        "name": rate.name,
        "lenderId": rate.lender_id,
        "type": rate.type.value,
        "rate": rate.rate,
        "fixedTerm": rate.fixed_term,
        "minLtv": rate.min_ltv,
        "maxLtv": rate.max_ltv,
        "minLoan": rate.min_loan,
        "buyerTypes": list(rate.buyer_types),
        "berEligible": rate.ber_eligible,
        "newBusiness": rate.new_business,
    }
    if isinstance(rate, CustomRate):
        data["customLenderName"] = rate.custom_lender_name
    return data


def _policy_from_dict(data: dict) -> OverpaymentPolicy:
    basis = data.get("allowanceBasis")
    period = data.get("maxTransactionsPeriod")
    return OverpaymentPolicy(
        id=data["id"],
        allowance_type=AllowanceType(data["allowanceType"]),
        allowance_value=data["allowanceValue"],
        allowance_basis=AllowanceBasis(basis) if basis else None,
        min_amount=data.get("minAmount"),
        max_transactions=data.get("maxTransactions"),
        max_transactions_period=TransactionPeriod(period) if period else None,
        label=data.get("label", ""),
        description=data.get("description", ""),
    )


def load_catalog(path: Path | str | None = None) -> RateCatalog:
    """Load rates, lenders and overpayment policies from a JSON catalog file.

    Args:
        path: Catalog file. Defaults to $MORTGAGE_SIM_CATALOG, then the
              bundled sample catalog.

    Raises:
        RuntimeError: If the file does not exist or is malformed
    """
    if path is None:
        path = os.environ.get("MORTGAGE_SIM_CATALOG") or BUNDLED_CATALOG_PATH
    path = Path(path)

    if not path.exists():
        raise RuntimeError(f"Catalog file not found: {path}")

    try:
        with open(path) as f:
            data = json.load(f)

        catalog = RateCatalog(
            rates=[rate_from_dict(r) for r in data.get("rates", [])],
            custom_rates=[rate_from_dict(r, custom=True) for r in data.get("customRates", [])],
            lenders=[
                Lender(
                    id=l["id"],
                    name=l["name"],
                    overpayment_policy=l.get("overpaymentPolicy"),
                    allows_self_build=l.get("allowsSelfBuild", True),
                )
                for l in data.get("lenders", [])
            ],
            policies=[_policy_from_dict(p) for p in data.get("overpaymentPolicies", [])],
        )
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        raise RuntimeError(f"Invalid catalog file {path}: {e}") from e

    logger.debug(
        "Loaded catalog %s: %d rates, %d lenders, %d policies",
        path, len(catalog.rates), len(catalog.lenders), len(catalog.policies),
    )
    return catalog


def _generate_label(rate: MortgageRate, lender_name: str) -> str:
    if rate.type == RateType.FIXED and rate.fixed_term:
        return f"{lender_name} {rate.fixed_term}-Year Fixed @ {rate.rate}%"
    return f"{lender_name} Variable @ {rate.rate}%"


def resolve_rate_period(
    period: RatePeriodConfig,
    start_month: int,
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    lenders: Sequence[Lender],
) -> ResolvedRatePeriod | None:
    """Join one rate period config with its catalog rate and lender.

    Returns None when the referenced rate cannot be found. A missing lender
    is not fatal: the period resolves with lender name "Unknown".
    """
    lender = next((l for l in lenders if l.id == period.lender_id), None)

    if period.is_custom:
        rate = next((r for r in custom_rates if r.id == period.rate_id), None)
        lender_name = (getattr(rate, "custom_lender_name", None) or "Custom") if rate else "Custom"
    else:
        rate = next(
            (r for r in rates if r.id == period.rate_id and r.lender_id == period.lender_id),
            None,
        )
        lender_name = lender.name if lender else "Unknown"

    if rate is None:
        return None

    # Allowance policies only restrict fixed-rate periods
    policy_id = None
    if rate.type == RateType.FIXED and lender is not None:
        policy_id = lender.overpayment_policy

    return ResolvedRatePeriod(
        id=period.id,
        lender_id=period.lender_id,
        rate_id=period.rate_id,
        is_custom=period.is_custom,
        rate=rate.rate,
        type=rate.type,
        lender_name=lender_name,
        rate_name=rate.name,
        start_month=start_month,
        duration_months=period.duration_months,
        label=period.label or _generate_label(rate, lender_name),
        fixed_term=rate.fixed_term,
        overpayment_policy_id=policy_id,
    )


def resolve_rate_periods(
    periods: Iterable[RatePeriodConfig],
    rates: Sequence[MortgageRate],
    custom_rates: Sequence[CustomRate],
    lenders: Sequence[Lender],
) -> list[ResolvedRatePeriod]:
    """Resolve the whole rate period stack in one pass.

    Start months come from the stack position: the first period starts in
    month 1 and each next one starts where the previous ends. Periods whose
    rate cannot be found are left out, but still advance the start month
    so later periods keep their place in the timeline.
    """
    resolved = []
    start_month = 1
    for period in periods:
        r = resolve_rate_period(period, start_month, rates, custom_rates, lenders)
        if r is None:
            logger.debug(
                "Skipping rate period %s: rate %s (custom=%s) not found",
                period.id, period.rate_id, period.is_custom,
            )
        else:
            resolved.append(r)
        start_month += period.duration_months
    return resolved


def find_rate_period_for_month(
    periods: Sequence[RatePeriodConfig],
    month: int,
) -> tuple[RatePeriodConfig, int] | None:
    """Find the stack entry covering ``month`` and its start month."""
    start = 1
    for period in periods:
        if period.duration_months == 0:
            if month >= start:
                return period, start
        elif start <= month <= start + period.duration_months - 1:
            return period, start
        start += period.duration_months
    return None


def validate_rate_periods(periods: Sequence[RatePeriodConfig], term_months: int) -> list[str]:
    """Describe structural problems in a rate period stack.

    The UI lets users pass through invalid states while editing, so this
    reports problems instead of raising.
    """
    problems = []
    if not periods:
        problems.append("No rate periods configured")
        return problems

    open_ended = [i for i, p in enumerate(periods) if p.duration_months == 0]
    if len(open_ended) > 1:
        problems.append("Only one rate period can run until the end of the mortgage")
    if open_ended and open_ended[-1] != len(periods) - 1:
        problems.append("The open-ended rate period must be the last one")
    if any(p.duration_months < 0 for p in periods):
        problems.append("Rate period durations cannot be negative")

    covered = sum(p.duration_months for p in periods)
    if not open_ended and covered < term_months:
        problems.append(
            f"Rate periods cover {covered} of {term_months} months"
        )
    return problems


def is_valid_follow_on_rate(
    fixed_rate: MortgageRate,
    variable_rate: MortgageRate,
    exact_ltv: float | None = None,
) -> bool:
    """Check whether a variable rate can follow a lender's fixed rate.

    With ``exact_ltv`` the LTV must fall inside the variable rate's band;
    without it the two LTV bands only need to overlap.
    """
    if variable_rate.type != RateType.VARIABLE or variable_rate.lender_id != fixed_rate.lender_id:
        return False

    fixed_is_btl = any(bt in BTL_BUYER_TYPES for bt in fixed_rate.buyer_types)
    variable_is_btl = any(bt in BTL_BUYER_TYPES for bt in variable_rate.buyer_types)
    if fixed_is_btl != variable_is_btl:
        return False

    if exact_ltv is not None:
        return variable_rate.min_ltv <= exact_ltv <= variable_rate.max_ltv

    return fixed_rate.max_ltv > variable_rate.min_ltv and fixed_rate.min_ltv < variable_rate.max_ltv


def find_variable_rate(
    fixed_rate: MortgageRate,
    rates: Sequence[MortgageRate],
    ltv: float | None = None,
    ber: str | None = None,
) -> MortgageRate | None:
    """Find the variable rate a borrower rolls onto after ``fixed_rate`` ends.

    Existing-customer rates (``new_business is False``) win over rates open
    to anyone.
    """
    candidates = [
        r for r in rates
        if is_valid_follow_on_rate(fixed_rate, r, ltv)
        and (ber is None or r.ber_eligible is None or ber in r.ber_eligible)
    ]
    if not candidates:
        return None

    follow_on = next((r for r in candidates if r.new_business is False), None)
    return follow_on or candidates[0]
