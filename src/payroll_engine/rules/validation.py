"""Rule ingestion checks.

The calculators trust their rule records; malformed bands only yield
partially-correct tax there. These checks run when rules are loaded so
bad configuration is rejected before any payroll is calculated.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_engine.calculators.formula import FormulaError, substitute_variables, tokenize
from payroll_engine.calculators.types import (
    DeductionType,
    IncomeTaxRule,
    SocialSecurityRule,
)

FORMULA_VARIABLES = {"gross": 1, "annualGross": 1, "dependents": 1}


class RuleValidationError(ValueError):
    """Raised when a jurisdiction rule fails validation."""

    def __init__(self, rule_label: str, errors: list[str]):
        self.rule_label = rule_label
        self.errors = errors
        super().__init__(f"Invalid {rule_label}: " + "; ".join(errors))


def validate_income_tax_rule(rule: IncomeTaxRule) -> list[str]:
    """Return a list of problems with an income tax rule (empty if valid)."""
    errors: list[str] = []

    bands = rule.sorted_bands()
    if not bands:
        errors.append("Income tax rule has no tax bands")

    orders = [b.order for b in bands]
    if len(set(orders)) != len(orders):
        errors.append("Tax band order values must be unique")

    expected_min = 0
    for i, band in enumerate(bands):
        if not Decimal("0") <= band.rate <= Decimal("1"):
            errors.append(f"Band '{band.name}' rate {band.rate} is outside [0, 1]")
        if band.min_amount != expected_min:
            errors.append(
                f"Band '{band.name}' starts at {band.min_amount}, expected {expected_min} "
                "(bands must tile from 0 with no gaps or overlaps)"
            )
        is_last = i == len(bands) - 1
        if band.max_amount is None:
            if not is_last:
                errors.append(f"Only the last band may be open-ended; '{band.name}' is not last")
                break
        else:
            if band.max_amount <= band.min_amount:
                errors.append(
                    f"Band '{band.name}' max {band.max_amount} must exceed min {band.min_amount}"
                )
            expected_min = band.max_amount
    if bands and bands[-1].max_amount is not None:
        errors.append(f"Last band '{bands[-1].name}' must be open-ended (no max amount)")

    if rule.rounding_precision <= 0:
        errors.append(f"Rounding precision must be positive, got {rule.rounding_precision}")

    errors.extend(_validate_personal_deduction(rule))
    return errors


def _validate_personal_deduction(rule: IncomeTaxRule) -> list[str]:
    config = rule.personal_deduction
    if config is None:
        return []

    errors: list[str] = []
    deduction_type = DeductionType(config.type)
    if deduction_type is DeductionType.FIXED and config.fixed_amount is None:
        errors.append("Fixed personal deduction requires fixedAmount")
    elif deduction_type is DeductionType.PERCENTAGE and config.percentage is None:
        errors.append("Percentage personal deduction requires percentage")
    elif deduction_type is DeductionType.FORMULA:
        if not config.formula:
            errors.append("Formula personal deduction requires formula")
        else:
            try:
                tokenize(substitute_variables(config.formula, FORMULA_VARIABLES))
            except FormulaError as e:
                errors.append(f"Personal deduction formula is invalid: {e}")

    if (
        config.min_amount is not None
        and config.max_amount is not None
        and config.min_amount > config.max_amount
    ):
        errors.append(
            f"Personal deduction minAmount {config.min_amount} exceeds maxAmount {config.max_amount}"
        )
    return errors


def validate_social_security_rule(rule: SocialSecurityRule) -> list[str]:
    """Return a list of problems with a social security rule (empty if valid)."""
    errors: list[str] = []
    for label, rate in (("employeeRate", rule.employee_rate), ("employerRate", rule.employer_rate)):
        if not Decimal("0") <= rate <= Decimal("1"):
            errors.append(f"{label} {rate} is outside [0, 1]")
    if (
        rule.earnings_floor is not None
        and rule.earnings_ceiling is not None
        and rule.earnings_floor > rule.earnings_ceiling
    ):
        errors.append(
            f"earningsFloor {rule.earnings_floor} exceeds earningsCeiling {rule.earnings_ceiling}"
        )
    if rule.rounding_precision <= 0:
        errors.append(f"Rounding precision must be positive, got {rule.rounding_precision}")
    return errors


def ensure_valid_income_tax_rule(rule: IncomeTaxRule) -> IncomeTaxRule:
    errors = validate_income_tax_rule(rule)
    if errors:
        raise RuleValidationError(
            f"income tax rule for {rule.jurisdiction_id}/{rule.tax_year}", errors
        )
    return rule


def ensure_valid_social_security_rule(rule: SocialSecurityRule) -> SocialSecurityRule:
    errors = validate_social_security_rule(rule)
    if errors:
        raise RuleValidationError(
            f"social security rule for {rule.jurisdiction_id}/{rule.year}", errors
        )
    return rule
