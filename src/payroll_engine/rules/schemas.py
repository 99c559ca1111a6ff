"""Pydantic schemas for jurisdiction rules and calculation inputs.

Payloads use the camelCase keys of the jurisdiction configuration store,
e.g. ``{"jurisdictionId": ..., "taxBands": [{"minAmount": 0, ...}]}``.
Snake_case field names are accepted as well. Every schema converts to the
calculator dataclasses with ``to_domain()``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from payroll_engine.calculators.types import (
    Allowance,
    Deduction,
    DeductionBasis,
    DeductionType,
    Employee,
    IncomeTaxRule,
    PayFrequency,
    PayrollRun,
    Periodization,
    PersonalDeduction,
    RoundingMode,
    SalaryFrequency,
    SocialSecurityRule,
    TaxBand,
    TaxSettings,
)
from payroll_engine.config import get_settings


def _default_rounding_mode() -> RoundingMode:
    return RoundingMode(get_settings().default_rounding_mode)


def _default_rounding_precision() -> int:
    return get_settings().default_rounding_precision


class CamelModel(BaseModel):
    """Base schema accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ============================================================================
# Income tax rules
# ============================================================================


class TaxBandSchema(CamelModel):
    order: int
    name: str
    min_amount: int = Field(ge=0)
    max_amount: int | None = Field(default=None, ge=0)
    rate: Decimal = Field(ge=0, le=1)
    flat_amount: int = Field(default=0, ge=0)

    def to_domain(self) -> TaxBand:
        return TaxBand(
            order=self.order,
            name=self.name,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            rate=self.rate,
            flat_amount=self.flat_amount,
        )


class PersonalDeductionSchema(CamelModel):
    type: DeductionType
    basis: DeductionBasis = DeductionBasis.ANNUAL
    fixed_amount: int | None = None
    percentage: Decimal | None = Field(default=None, ge=0, le=1)
    formula: str | None = None
    min_amount: int | None = None
    max_amount: int | None = None

    def to_domain(self) -> PersonalDeduction:
        return PersonalDeduction(
            type=self.type,
            basis=self.basis,
            fixed_amount=self.fixed_amount,
            percentage=self.percentage,
            formula=self.formula,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
        )


class IncomeTaxRuleSchema(CamelModel):
    jurisdiction_id: str
    tax_year: int
    tax_bands: list[TaxBandSchema] = Field(min_length=1)
    personal_deduction: PersonalDeductionSchema | None = None
    periodization: Periodization = Periodization.ANNUALIZED
    rounding_mode: RoundingMode = Field(default_factory=_default_rounding_mode)
    rounding_precision: int = Field(default_factory=_default_rounding_precision, gt=0)

    def to_domain(self) -> IncomeTaxRule:
        return IncomeTaxRule(
            jurisdiction_id=self.jurisdiction_id,
            tax_year=self.tax_year,
            tax_bands=[b.to_domain() for b in self.tax_bands],
            personal_deduction=(
                self.personal_deduction.to_domain() if self.personal_deduction else None
            ),
            periodization=self.periodization,
            rounding_mode=self.rounding_mode,
            rounding_precision=self.rounding_precision,
        )


# ============================================================================
# Social security rules
# ============================================================================


class SocialSecurityRuleSchema(CamelModel):
    jurisdiction_id: str
    year: int
    employee_rate: Decimal = Field(ge=0, le=1)
    employer_rate: Decimal = Field(ge=0, le=1)
    earnings_floor: int | None = Field(default=None, ge=0)
    earnings_ceiling: int | None = Field(default=None, ge=0)
    rounding_mode: RoundingMode = Field(default_factory=_default_rounding_mode)
    rounding_precision: int = Field(default_factory=_default_rounding_precision, gt=0)
    name: str = "National Insurance Scheme"
    code: str = "NIS"

    def to_domain(self) -> SocialSecurityRule:
        return SocialSecurityRule(
            jurisdiction_id=self.jurisdiction_id,
            year=self.year,
            employee_rate=self.employee_rate,
            employer_rate=self.employer_rate,
            earnings_floor=self.earnings_floor,
            earnings_ceiling=self.earnings_ceiling,
            rounding_mode=self.rounding_mode,
            rounding_precision=self.rounding_precision,
            name=self.name,
            code=self.code,
        )


class RulesDocument(CamelModel):
    """A file of jurisdiction rules as loaded by the rule registry."""

    income_tax_rules: list[IncomeTaxRuleSchema] = Field(default_factory=list)
    social_security_rules: list[SocialSecurityRuleSchema] = Field(default_factory=list)


# ============================================================================
# Employee and payroll run inputs
# ============================================================================


class AllowanceSchema(CamelModel):
    code: str
    name: str
    amount: int
    frequency: PayFrequency = PayFrequency.MONTHLY
    is_taxable: bool = True

    def to_domain(self) -> Allowance:
        return Allowance(
            code=self.code,
            name=self.name,
            amount=self.amount,
            frequency=self.frequency,
            is_taxable=self.is_taxable,
        )


class DeductionSchema(CamelModel):
    code: str
    name: str
    amount: int
    frequency: PayFrequency = PayFrequency.MONTHLY

    def to_domain(self) -> Deduction:
        return Deduction(
            code=self.code,
            name=self.name,
            amount=self.amount,
            frequency=self.frequency,
        )


class TaxSettingsSchema(CamelModel):
    number_of_dependents: int | None = Field(default=None, ge=0)
    paye_exempt: bool = False
    nis_exempt: bool = False
    additional_deduction: int | None = Field(default=None, ge=0)

    def to_domain(self) -> TaxSettings:
        return TaxSettings(
            number_of_dependents=self.number_of_dependents,
            paye_exempt=self.paye_exempt,
            nis_exempt=self.nis_exempt,
            additional_deduction=self.additional_deduction,
        )


class EmployeeSchema(CamelModel):
    id: str
    base_salary: int = Field(ge=0)
    salary_frequency: SalaryFrequency = SalaryFrequency.MONTHLY
    allowances: list[AllowanceSchema] = Field(default_factory=list)
    deductions: list[DeductionSchema] = Field(default_factory=list)
    tax_settings: TaxSettingsSchema | None = None
    tax_id: str | None = None
    nis_number: str | None = None
    organization_id: str | None = None

    def to_domain(self) -> Employee:
        return Employee(
            id=self.id,
            base_salary=self.base_salary,
            salary_frequency=self.salary_frequency,
            allowances=[a.to_domain() for a in self.allowances],
            deductions=[d.to_domain() for d in self.deductions],
            tax_settings=self.tax_settings.to_domain() if self.tax_settings else None,
            tax_id=self.tax_id,
            nis_number=self.nis_number,
            organization_id=self.organization_id,
        )


class PayrollRunSchema(CamelModel):
    id: str
    period_start: date
    period_end: date
    pay_date: date

    def to_domain(self) -> PayrollRun:
        return PayrollRun(
            id=self.id,
            period_start=self.period_start,
            period_end=self.period_end,
            pay_date=self.pay_date,
        )


class PayslipRequest(CamelModel):
    """Input for previewing one payslip."""

    employee: EmployeeSchema
    payroll_run: PayrollRunSchema
    jurisdiction_id: str
    tax_year: int
    ytd_gross_earnings: int = 0
    ytd_paye: int = 0
    ytd_nis: int = 0


class PayRunRequest(CamelModel):
    """Input for calculating a whole payroll run."""

    payroll_run: PayrollRunSchema
    employees: list[EmployeeSchema]
    jurisdiction_id: str
    tax_year: int
