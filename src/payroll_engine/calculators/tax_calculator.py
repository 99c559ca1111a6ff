"""Income tax (PAYE) and social security (NIS) calculation."""

from __future__ import annotations

from decimal import Decimal

from payroll_engine.calculators.formula import FormulaEvaluator
from payroll_engine.calculators.rounding import round_to_cents
from payroll_engine.calculators.types import (
    BandTax,
    DeductionBasis,
    DeductionType,
    IncomeTaxRule,
    NisResult,
    PayeResult,
    SocialSecurityRule,
)

MONTHS_PER_YEAR = 12


class TaxRuleNotConfiguredError(LookupError):
    """Raised when no tax rule exists for a jurisdiction and year."""

    def __init__(self, jurisdiction_id: str, year: int, rule_kind: str = "Tax rules"):
        self.jurisdiction_id = jurisdiction_id
        self.year = year
        self.rule_kind = rule_kind
        super().__init__(
            f"{rule_kind} not configured for jurisdiction {jurisdiction_id} and year {year}"
        )


class TaxCalculator:
    """Calculates PAYE and NIS from pre-resolved jurisdiction rules.

    The calculator never looks rules up; callers resolve them first and
    raise TaxRuleNotConfiguredError when one is missing. Rule data is
    assumed to have passed ingestion validation.

    Formula variables available to personal deduction formulas:
        {gross}        monthly gross (annual / 12)
        {annualGross}  annual gross
        {dependents}   number of dependents
    """

    def __init__(self, formula_evaluator: FormulaEvaluator | None = None):
        self.formula_evaluator = formula_evaluator or FormulaEvaluator()

    # ------------------------------------------------------------------
    # PAYE
    # ------------------------------------------------------------------

    def calculate_personal_deduction(
        self,
        annual_gross_salary: int,
        tax_rule: IncomeTaxRule,
        dependents: int = 0,
        custom_deduction: int = 0,
    ) -> int:
        """Annual personal deduction in cents, including any custom deduction."""
        deduction = Decimal("0")
        config = tax_rule.personal_deduction

        if config is not None:
            deduction_type = DeductionType(config.type)
            if deduction_type is DeductionType.FIXED:
                deduction = Decimal(config.fixed_amount or 0)
            elif deduction_type is DeductionType.PERCENTAGE:
                deduction = Decimal(annual_gross_salary) * (config.percentage or Decimal("0"))
            elif deduction_type is DeductionType.FORMULA:
                if config.formula:
                    deduction = self.formula_evaluator.evaluate(
                        config.formula,
                        {
                            "gross": Decimal(annual_gross_salary) / MONTHS_PER_YEAR,
                            "annualGross": annual_gross_salary,
                            "dependents": dependents,
                        },
                    )
            else:
                raise ValueError(f"Unsupported personal deduction type: {config.type}")

            if config.min_amount is not None and deduction < config.min_amount:
                deduction = Decimal(config.min_amount)
            if config.max_amount is not None and deduction > config.max_amount:
                deduction = Decimal(config.max_amount)

            if DeductionBasis(config.basis) is DeductionBasis.MONTHLY:
                deduction *= MONTHS_PER_YEAR

        return round_to_cents(deduction) + custom_deduction

    def calculate_paye(
        self,
        annual_gross_salary: int,
        tax_rule: IncomeTaxRule,
        dependents: int = 0,
        custom_deduction: int = 0,
    ) -> PayeResult:
        """Calculate annual and monthly income tax over progressive bands."""
        personal_deduction = self.calculate_personal_deduction(
            annual_gross_salary, tax_rule, dependents, custom_deduction
        )
        taxable_income = max(0, annual_gross_salary - personal_deduction)

        band_taxes: list[BandTax] = []
        remaining = taxable_income
        total_tax = Decimal("0")

        for band in tax_rule.sorted_bands():
            if remaining <= 0:
                break

            if band.max_amount is None:
                amount_in_band = remaining
            else:
                amount_in_band = max(0, min(remaining, band.max_amount - band.min_amount))
            if amount_in_band == 0:
                continue

            band_tax = Decimal(amount_in_band) * band.rate
            band_taxes.append(
                BandTax(
                    band_name=band.name,
                    amount=amount_in_band,
                    rate=band.rate,
                    tax=band_tax,
                )
            )
            total_tax += band_tax
            remaining -= amount_in_band

        mode = tax_rule.rounding_mode
        precision = tax_rule.rounding_precision
        annual_tax = round_to_cents(total_tax, mode, precision)
        monthly_tax = round_to_cents(Decimal(annual_tax) / MONTHS_PER_YEAR, mode, precision)

        if annual_gross_salary > 0:
            effective_rate = Decimal(annual_tax) / annual_gross_salary * 100
        else:
            effective_rate = Decimal("0")
        marginal_rate = band_taxes[-1].rate * 100 if band_taxes else Decimal("0")

        return PayeResult(
            annual_gross=annual_gross_salary,
            personal_deduction=personal_deduction,
            taxable_income=taxable_income,
            tax_bands=band_taxes,
            annual_tax=annual_tax,
            monthly_tax=monthly_tax,
            effective_tax_rate=effective_rate,
            marginal_tax_rate=marginal_rate,
            jurisdiction_id=tax_rule.jurisdiction_id,
            tax_year=tax_rule.tax_year,
        )

    def calculate_ytd_paye(
        self,
        ytd_gross_earnings: int,
        tax_rule: IncomeTaxRule,
        dependents: int = 0,
    ) -> int:
        """Cumulative tax due on year-to-date gross (not divided into months)."""
        return self.calculate_paye(ytd_gross_earnings, tax_rule, dependents).annual_tax

    # ------------------------------------------------------------------
    # NIS
    # ------------------------------------------------------------------

    def calculate_nis(self, gross_earnings: int, nis_rule: SocialSecurityRule) -> NisResult:
        """Calculate employee and employer contributions for one period.

        Earnings above the ceiling are capped; earnings below the floor
        contribute nothing (no pro-rating).
        """
        nisable = gross_earnings
        ceiling_applied = False

        if nis_rule.earnings_ceiling is not None and gross_earnings > nis_rule.earnings_ceiling:
            nisable = nis_rule.earnings_ceiling
            ceiling_applied = True

        if nis_rule.earnings_floor is not None and nisable < nis_rule.earnings_floor:
            nisable = 0

        employee_raw = Decimal(nisable) * nis_rule.employee_rate
        employer_raw = Decimal(nisable) * nis_rule.employer_rate

        mode = nis_rule.rounding_mode
        precision = nis_rule.rounding_precision

        return NisResult(
            gross_earnings=gross_earnings,
            nisable_earnings=nisable,
            employee_contribution=round_to_cents(employee_raw, mode, precision),
            employer_contribution=round_to_cents(employer_raw, mode, precision),
            total_contribution=round_to_cents(employee_raw + employer_raw, mode, precision),
            employee_rate=nis_rule.employee_rate,
            employer_rate=nis_rule.employer_rate,
            ceiling_applied=ceiling_applied,
            earnings_ceiling=nis_rule.earnings_ceiling,
            jurisdiction_id=nis_rule.jurisdiction_id,
            year=nis_rule.year,
        )


_default_calculator = TaxCalculator()


def calculate_paye(
    annual_gross_salary: int,
    tax_rule: IncomeTaxRule,
    dependents: int = 0,
    custom_deduction: int = 0,
) -> PayeResult:
    return _default_calculator.calculate_paye(
        annual_gross_salary, tax_rule, dependents, custom_deduction
    )


def calculate_nis(gross_earnings: int, nis_rule: SocialSecurityRule) -> NisResult:
    return _default_calculator.calculate_nis(gross_earnings, nis_rule)


def calculate_ytd_paye(ytd_gross_earnings: int, tax_rule: IncomeTaxRule, dependents: int = 0) -> int:
    return _default_calculator.calculate_ytd_paye(ytd_gross_earnings, tax_rule, dependents)
