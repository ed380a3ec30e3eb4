"""Records consumed and produced by the simulation engine.

All monetary amounts are integer cents. Rates are annual percentages
(3.5 means 3.5%). Policy amounts (``allowance_value`` for flat policies,
``min_amount``) and ``min_loan`` are in whole euros, matching how lenders
publish them.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class RateType(str, Enum):
    FIXED = "fixed"
    VARIABLE = "variable"


class OverpaymentType(str, Enum):
    ONE_TIME = "one_time"
    RECURRING = "recurring"


class OverpaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class OverpaymentEffect(str, Enum):
    REDUCE_TERM = "reduce_term"
    REDUCE_PAYMENT = "reduce_payment"


class AllowanceType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class AllowanceBasis(str, Enum):
    BALANCE = "balance"
    MONTHLY = "monthly"


class TransactionPeriod(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    FIXED_PERIOD = "fixed_period"


class WarningType(str, Enum):
    ALLOWANCE_EXCEEDED = "allowance_exceeded"
    EARLY_REDEMPTION = "early_redemption"
    TRANSACTION_LIMIT_EXCEEDED = "transaction_limit_exceeded"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class MilestoneType(str, Enum):
    MORTGAGE_START = "mortgage_start"
    CONSTRUCTION_COMPLETE = "construction_complete"
    FULL_PAYMENTS_START = "full_payments_start"
    PRINCIPAL_25_PERCENT = "principal_25_percent"
    PRINCIPAL_50_PERCENT = "principal_50_percent"
    PRINCIPAL_75_PERCENT = "principal_75_percent"
    LTV_80_PERCENT = "ltv_80_percent"
    MORTGAGE_COMPLETE = "mortgage_complete"


class SelfBuildPhase(str, Enum):
    CONSTRUCTION = "construction"
    INTEREST_ONLY = "interest_only"
    REPAYMENT = "repayment"


class ConstructionRepaymentType(str, Enum):
    INTEREST_ONLY = "interest_only"
    INTEREST_AND_CAPITAL = "interest_and_capital"


# Reference catalogs


@dataclass
class MortgageRate:
    """A rate product published by a lender."""

    id: str
    name: str
    lender_id: str
    type: RateType
    rate: float  # annual percentage
    fixed_term: Optional[int] = None  # years, fixed rates only
    min_ltv: float = 0.0
    max_ltv: float = 100.0
    min_loan: Optional[float] = None  # euros
    buyer_types: List[str] = field(default_factory=lambda: ["ftb", "mover"])
    ber_eligible: Optional[List[str]] = None  # None = every BER rating
    new_business: Optional[bool] = None  # False = existing customers only


@dataclass
class CustomRate(MortgageRate):
    """A user-entered rate, optionally for a lender outside the catalog."""

    custom_lender_name: Optional[str] = None


@dataclass
class Lender:
    id: str
    name: str
    overpayment_policy: Optional[str] = None
    allows_self_build: bool = True


@dataclass
class OverpaymentPolicy:
    """Fee-free overpayment allowance attached to a lender's fixed rates."""

    id: str
    allowance_type: AllowanceType
    allowance_value: float
    allowance_basis: Optional[AllowanceBasis] = None  # percentage only
    min_amount: Optional[float] = None  # euros
    max_transactions: Optional[int] = None
    max_transactions_period: Optional[TransactionPeriod] = None
    label: str = ""
    description: str = ""


# Simulation inputs


@dataclass
class MortgageInput:
    mortgage_amount: int
    mortgage_term_months: int
    property_value: int
    ber: Optional[str] = None
    start_date: Optional[date] = None  # first of the month of payment 1


@dataclass
class RatePeriodConfig:
    """One entry of the rate period stack.

    Start months are never stored; they follow from the durations of the
    entries before it. ``duration_months == 0`` means until the end of the
    mortgage and is only valid for the last entry.
    """

    id: str
    lender_id: str
    rate_id: str
    is_custom: bool = False
    duration_months: int = 0
    label: Optional[str] = None


@dataclass
class OverpaymentConfig:
    id: str
    rate_period_id: str
    type: OverpaymentType
    amount: int
    start_month: int
    effect: OverpaymentEffect = OverpaymentEffect.REDUCE_TERM
    frequency: Optional[OverpaymentFrequency] = None  # recurring only
    end_month: Optional[int] = None  # recurring only, inclusive
    enabled: bool = True
    label: Optional[str] = None

    @property
    def period_length(self) -> int:
        """Months between two applications of a recurring overpayment."""
        if self.frequency == OverpaymentFrequency.QUARTERLY:
            return 3
        if self.frequency == OverpaymentFrequency.YEARLY:
            return 12
        return 1


@dataclass
class DrawdownStage:
    id: str
    month: int
    amount: int
    label: Optional[str] = None


@dataclass
class SelfBuildConfig:
    enabled: bool
    drawdown_stages: List[DrawdownStage] = field(default_factory=list)
    construction_repayment_type: ConstructionRepaymentType = ConstructionRepaymentType.INTEREST_ONLY
    interest_only_months: int = 0


@dataclass
class SimulationState:
    """The minimal input state; everything else is derived from it."""

    input: MortgageInput
    rate_periods: List[RatePeriodConfig] = field(default_factory=list)
    overpayment_configs: List[OverpaymentConfig] = field(default_factory=list)
    self_build: Optional[SelfBuildConfig] = None


# Derived records


@dataclass
class ResolvedRatePeriod:
    """A rate period joined with its catalog rate and lender."""

    id: str
    lender_id: str
    rate_id: str
    is_custom: bool
    rate: float
    type: RateType
    lender_name: str
    rate_name: str
    start_month: int
    duration_months: int
    label: str
    fixed_term: Optional[int] = None
    overpayment_policy_id: Optional[str] = None

    @property
    def end_month(self) -> Optional[int]:
        """Last month covered, or None when open-ended."""
        if self.duration_months == 0:
            return None
        return self.start_month + self.duration_months - 1


@dataclass
class AmortizationMonth:
    month: int
    year: int
    month_of_year: int
    date: Optional[date]
    opening_balance: int
    closing_balance: int
    scheduled_payment: int
    interest_portion: int
    principal_portion: int
    overpayment: int
    total_payment: int
    rate: float
    rate_period_id: str
    cumulative_interest: int
    cumulative_principal: int  # scheduled principal plus overpayments
    cumulative_overpayments: int
    cumulative_total: int

    # Self-build only
    drawdown_this_month: Optional[int] = None
    cumulative_drawn: Optional[int] = None
    phase: Optional[SelfBuildPhase] = None
    is_interest_only: Optional[bool] = None


@dataclass
class AmortizationYear:
    year: int  # calendar year when a start date is set, mortgage year otherwise
    opening_balance: int
    closing_balance: int
    total_interest: int
    total_principal: int
    total_overpayments: int
    total_payments: int
    cumulative_interest: int
    cumulative_principal: int
    cumulative_total: int
    months: List[AmortizationMonth]
    rate_changes: List[str]  # distinct rate period ids, in order of appearance
    has_warnings: bool = False


@dataclass
class AppliedOverpayment:
    month: int
    amount: int
    config_id: str
    is_recurring: bool
    within_allowance: bool
    excess_amount: int


@dataclass
class SimulationWarning:
    type: WarningType
    month: int
    message: str
    severity: Severity
    config_id: Optional[str] = None
    overpayment_label: Optional[str] = None


@dataclass
class AmortizationResult:
    months: List[AmortizationMonth] = field(default_factory=list)
    warnings: List[SimulationWarning] = field(default_factory=list)
    applied_overpayments: List[AppliedOverpayment] = field(default_factory=list)


@dataclass
class Milestone:
    type: MilestoneType
    month: int
    label: str
    date: Optional[date] = None
    value: Optional[int] = None


@dataclass
class SimulationSummary:
    total_interest: int
    total_paid: int
    actual_term_months: int
    months_saved: int
    interest_saved: int
    extra_interest_from_self_build: Optional[int] = None


@dataclass
class SimulationCompleteness:
    is_complete: bool
    covered_months: int  # -1 when the last period runs to the end of the term
    total_months: int
    missing_months: int = 0
    remaining_balance: int = 0


@dataclass
class BufferSuggestion:
    after_index: int
    fixed_rate: MortgageRate
    suggested_rate: MortgageRate
    lender_name: str
    ltv_at_end: float
    is_trailing: bool = False


@dataclass
class YearlyOverpaymentPlan:
    year: int
    start_month: int
    end_month: int
    monthly_amount: int
    estimated_balance: int
