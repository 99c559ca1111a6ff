"""Type definitions for calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


class RoundingMode(str, Enum):
    """Rounding policies applied to monetary amounts."""

    NEAREST = "nearest"
    FLOOR = "floor"
    CEIL = "ceil"
    BANKER = "banker"


class SalaryFrequency(str, Enum):
    """Frequency the base salary is quoted in."""

    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"
    ANNUAL = "annual"


class PayFrequency(str, Enum):
    """Frequency of a recurring allowance or deduction."""

    MONTHLY = "monthly"
    PER_PAYROLL = "per_payroll"
    ANNUAL = "annual"


class DeductionType(str, Enum):
    """How a personal deduction is computed."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"
    FORMULA = "formula"


class DeductionBasis(str, Enum):
    """Whether a personal deduction is quoted per year or per month."""

    ANNUAL = "annual"
    MONTHLY = "monthly"


class Periodization(str, Enum):
    """Income tax periodization declared by a rule."""

    ANNUALIZED = "annualized"
    TRUE_PERIOD = "true_period"
    CUMULATIVE = "cumulative"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CASH = "cash"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ============================================================================
# Jurisdiction rules
# ============================================================================


@dataclass(frozen=True)
class TaxBand:
    """Progressive income tax band.

    Amounts are annual cents. ``max_amount`` of None means no upper limit.
    """

    order: int
    name: str
    min_amount: int
    max_amount: int | None
    rate: Decimal  # As decimal, e.g., 0.25 for 25%
    flat_amount: int = 0  # Carried from rule records; not part of band tax


@dataclass(frozen=True)
class PersonalDeduction:
    """Personal deduction configuration of an income tax rule."""

    type: DeductionType
    basis: DeductionBasis = DeductionBasis.ANNUAL
    fixed_amount: int | None = None
    percentage: Decimal | None = None
    formula: str | None = None  # e.g. "MAX(1560000, {annualGross} * 0.333)"
    min_amount: int | None = None
    max_amount: int | None = None


@dataclass(frozen=True)
class IncomeTaxRule:
    """Income tax (PAYE) rule for one jurisdiction and tax year."""

    jurisdiction_id: str
    tax_year: int
    tax_bands: list[TaxBand]
    personal_deduction: PersonalDeduction | None
    periodization: Periodization = Periodization.ANNUALIZED
    rounding_mode: RoundingMode = RoundingMode.NEAREST
    rounding_precision: int = 1

    def sorted_bands(self) -> list[TaxBand]:
        return sorted(self.tax_bands, key=lambda b: b.order)


@dataclass(frozen=True)
class SocialSecurityRule:
    """Social security (NIS) contribution rule for one jurisdiction and year."""

    jurisdiction_id: str
    year: int
    employee_rate: Decimal
    employer_rate: Decimal
    earnings_floor: int | None = None
    earnings_ceiling: int | None = None
    rounding_mode: RoundingMode = RoundingMode.NEAREST
    rounding_precision: int = 1
    name: str = "National Insurance Scheme"
    code: str = "NIS"


# ============================================================================
# Employee and payroll run inputs
# ============================================================================


@dataclass(frozen=True)
class Allowance:
    code: str
    name: str
    amount: int
    frequency: PayFrequency = PayFrequency.MONTHLY
    is_taxable: bool = True


@dataclass(frozen=True)
class Deduction:
    code: str
    name: str
    amount: int
    frequency: PayFrequency = PayFrequency.MONTHLY


@dataclass(frozen=True)
class TaxSettings:
    """Per-employee overrides of jurisdiction defaults."""

    number_of_dependents: int | None = None
    paye_exempt: bool = False
    nis_exempt: bool = False
    additional_deduction: int | None = None  # Annual cents


@dataclass(frozen=True)
class Employee:
    """Employee fields consumed by the payslip calculation."""

    id: str
    base_salary: int
    salary_frequency: SalaryFrequency = SalaryFrequency.MONTHLY
    allowances: list[Allowance] = field(default_factory=list)
    deductions: list[Deduction] = field(default_factory=list)
    tax_settings: TaxSettings | None = None
    tax_id: str | None = None
    nis_number: str | None = None
    organization_id: str | None = None


@dataclass(frozen=True)
class PayrollRun:
    """Payroll run period fields copied onto every payslip."""

    id: str
    period_start: date
    period_end: date
    pay_date: date


# ============================================================================
# Calculation results
# ============================================================================


@dataclass(frozen=True)
class BandTax:
    """Contribution of one tax band to the annual tax."""

    band_name: str
    amount: int
    rate: Decimal
    tax: Decimal  # Exact, unrounded

    def to_dict(self) -> dict[str, Any]:
        return {
            "bandName": self.band_name,
            "amount": self.amount,
            "rate": str(self.rate),
            "tax": str(self.tax),
        }


@dataclass(frozen=True)
class PayeResult:
    """Result of an income tax calculation, kept for the audit trail."""

    annual_gross: int
    personal_deduction: int
    taxable_income: int
    tax_bands: list[BandTax]
    annual_tax: int
    monthly_tax: int
    effective_tax_rate: Decimal  # Percentage, unrounded
    marginal_tax_rate: Decimal  # Percentage
    jurisdiction_id: str
    tax_year: int


@dataclass(frozen=True)
class NisResult:
    """Result of a social security contribution calculation."""

    gross_earnings: int
    nisable_earnings: int
    employee_contribution: int
    employer_contribution: int
    total_contribution: int
    employee_rate: Decimal
    employer_rate: Decimal
    ceiling_applied: bool
    earnings_ceiling: int | None
    jurisdiction_id: str
    year: int


@dataclass(frozen=True)
class EarningsLine:
    code: str
    name: str
    amount: int
    is_taxable: bool
    is_nisable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "amount": self.amount,
            "isTaxable": self.is_taxable,
            "isNisable": self.is_nisable,
        }


@dataclass(frozen=True)
class DeductionLine:
    code: str
    name: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "name": self.name, "amount": self.amount}


@dataclass(frozen=True)
class TaxDetails:
    """Income tax audit record stored on the payslip."""

    jurisdiction_id: str
    tax_year: int
    annual_gross: int
    personal_deduction: int
    tax_bands: list[BandTax]
    annual_tax: int
    monthly_tax: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "jurisdictionId": self.jurisdiction_id,
            "taxYear": self.tax_year,
            "annualGross": self.annual_gross,
            "personalDeduction": self.personal_deduction,
            "taxableBands": [b.to_dict() for b in self.tax_bands],
            "annualTax": self.annual_tax,
            "monthlyTax": self.monthly_tax,
        }


@dataclass(frozen=True)
class Payslip:
    """Payslip for one employee and one pay period.

    All monetary fields are integer cents. Instances are immutable; the
    caller owns persistence.
    """

    payroll_run_id: str
    employee_id: str
    organization_id: str | None

    period_start: date
    period_end: date
    pay_date: date

    # Earnings
    base_pay: int
    allowances: int
    gross_earnings: int
    earnings_breakdown: list[EarningsLine]

    # Statutory
    taxable_income: int
    paye_amount: int
    nisable_earnings: int
    nis_employee: int
    nis_employer: int
    tax_details: TaxDetails

    # Other deductions
    other_deductions: int
    deductions_breakdown: list[DeductionLine]

    # Totals
    total_deductions: int
    net_pay: int

    # Year to date
    ytd_gross_earnings: int
    ytd_net_pay: int
    ytd_paye: int
    ytd_nis: int

    overtime_pay: int = 0
    bonuses: int = 0
    commissions: int = 0
    other_earnings: int = 0
    union_dues: int = 0
    loan_repayments: int = 0
    advance_deductions: int = 0

    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    payment_status: PaymentStatus = PaymentStatus.PENDING

    has_retro_adjustments: int = 0
    retro_adjustment_amount: int = 0

    def with_retro_adjustment(self, amount: int) -> Payslip:
        """Return a copy flagged as carrying a retroactive adjustment."""
        return replace(
            self,
            has_retro_adjustments=1,
            retro_adjustment_amount=self.retro_adjustment_amount + amount,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase record handed to persistence."""
        return {
            "payrollRunId": self.payroll_run_id,
            "employeeId": self.employee_id,
            "organizationId": self.organization_id,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "payDate": self.pay_date.isoformat(),
            "basePay": self.base_pay,
            "overtimePay": self.overtime_pay,
            "allowances": self.allowances,
            "bonuses": self.bonuses,
            "commissions": self.commissions,
            "otherEarnings": self.other_earnings,
            "grossEarnings": self.gross_earnings,
            "earningsBreakdown": [line.to_dict() for line in self.earnings_breakdown],
            "taxableIncome": self.taxable_income,
            "payeAmount": self.paye_amount,
            "nisableEarnings": self.nisable_earnings,
            "nisEmployee": self.nis_employee,
            "nisEmployer": self.nis_employer,
            "taxDetails": self.tax_details.to_dict(),
            "unionDues": self.union_dues,
            "loanRepayments": self.loan_repayments,
            "advanceDeductions": self.advance_deductions,
            "otherDeductions": self.other_deductions,
            "deductionsBreakdown": [line.to_dict() for line in self.deductions_breakdown],
            "totalDeductions": self.total_deductions,
            "netPay": self.net_pay,
            "ytdGrossEarnings": self.ytd_gross_earnings,
            "ytdNetPay": self.ytd_net_pay,
            "ytdPaye": self.ytd_paye,
            "ytdNis": self.ytd_nis,
            "paymentMethod": self.payment_method.value,
            "paymentStatus": self.payment_status.value,
            "hasRetroAdjustments": self.has_retro_adjustments,
            "retroAdjustmentAmount": self.retro_adjustment_amount,
        }


@dataclass(frozen=True)
class PayslipResult:
    """Payslip plus advisory warnings. Warnings never block creation."""

    payslip: Payslip
    warnings: list[str]


@dataclass
class PayrollTotals:
    """Totals across the payslips of one payroll run."""

    total_gross_earnings: int = 0
    total_net_pay: int = 0
    total_paye: int = 0
    total_nis_employee: int = 0
    total_nis_employer: int = 0
    total_deductions: int = 0
    employee_count: int = 0


@dataclass
class PayRunResult:
    """Result of calculating an entire payroll run."""

    payroll_run_id: str
    results: dict[str, PayslipResult]  # employee_id -> result
    totals: PayrollTotals
    errors: dict[str, str] = field(default_factory=dict)  # employee_id -> message

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0
