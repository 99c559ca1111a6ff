"""Tests for rule schemas, validation and the rule registry."""

import dataclasses
import json
import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from payroll_engine.calculators.tax_calculator import TaxRuleNotConfiguredError
from payroll_engine.calculators.types import (
    DeductionBasis,
    DeductionType,
    PayFrequency,
    PersonalDeduction,
    RoundingMode,
    SalaryFrequency,
    TaxBand,
)
from payroll_engine.rules import (
    RuleValidationError,
    TaxRuleRegistry,
    load_rules_file,
    validate_income_tax_rule,
    validate_social_security_rule,
)
from payroll_engine.rules.schemas import EmployeeSchema, IncomeTaxRuleSchema, PayslipRequest

RULES_DOCUMENT = {
    "incomeTaxRules": [
        {
            "jurisdictionId": "GY",
            "taxYear": 2025,
            "taxBands": [
                {"order": 1, "name": "Lower", "minAmount": 0, "maxAmount": 936000000, "rate": "0.25"},
                {"order": 2, "name": "Upper", "minAmount": 936000000, "maxAmount": None, "rate": "0.35"},
            ],
            "personalDeduction": {
                "type": "formula",
                "basis": "annual",
                "formula": "MAX(1560000, {annualGross} * 0.333)",
            },
            "roundingMode": "nearest",
            "roundingPrecision": 1,
        }
    ],
    "socialSecurityRules": [
        {
            "jurisdictionId": "GY",
            "year": 2025,
            "employeeRate": "0.056",
            "employerRate": "0.084",
            "earningsCeiling": 28000000,
        }
    ],
}


class TestSchemas:
    """Test camelCase payload parsing into calculator dataclasses."""

    def test_income_tax_rule_from_camel_case(self):
        rule = IncomeTaxRuleSchema.model_validate(RULES_DOCUMENT["incomeTaxRules"][0]).to_domain()

        assert rule.jurisdiction_id == "GY"
        assert rule.tax_bands[1].max_amount is None
        assert rule.tax_bands[0].rate == Decimal("0.25")
        assert rule.personal_deduction.type is DeductionType.FORMULA
        assert rule.personal_deduction.basis is DeductionBasis.ANNUAL
        assert rule.rounding_mode is RoundingMode.NEAREST

    def test_snake_case_is_accepted(self):
        schema = IncomeTaxRuleSchema.model_validate(
            {
                "jurisdiction_id": "TT",
                "tax_year": 2024,
                "tax_bands": [{"order": 1, "name": "All", "min_amount": 0, "rate": "0.1"}],
            }
        )
        assert schema.tax_bands[0].max_amount is None
        assert schema.personal_deduction is None

    def test_rate_outside_unit_interval_rejected(self):
        payload = json.loads(json.dumps(RULES_DOCUMENT["incomeTaxRules"][0]))
        payload["taxBands"][0]["rate"] = "1.5"
        with pytest.raises(ValidationError):
            IncomeTaxRuleSchema.model_validate(payload)

    def test_empty_bands_rejected(self):
        with pytest.raises(ValidationError):
            IncomeTaxRuleSchema.model_validate({"jurisdictionId": "GY", "taxYear": 2025, "taxBands": []})

    def test_employee_payload(self):
        employee = EmployeeSchema.model_validate(
            {
                "id": "emp-9",
                "baseSalary": 6000000,
                "salaryFrequency": "annual",
                "allowances": [{"code": "HOUSING", "name": "Housing", "amount": 120000, "frequency": "annual"}],
                "deductions": [{"code": "LOAN", "name": "Loan", "amount": 5000}],
                "taxSettings": {"numberOfDependents": 2, "payeExempt": True},
                "taxId": "TIN-9",
            }
        ).to_domain()

        assert employee.salary_frequency is SalaryFrequency.ANNUAL
        assert employee.allowances[0].frequency is PayFrequency.ANNUAL
        assert employee.deductions[0].frequency is PayFrequency.MONTHLY
        assert employee.tax_settings.number_of_dependents == 2
        assert employee.tax_settings.paye_exempt is True
        assert employee.nis_number is None

    def test_unknown_salary_frequency_rejected(self):
        with pytest.raises(ValidationError):
            EmployeeSchema.model_validate({"id": "e", "baseSalary": 1, "salaryFrequency": "fortnightly"})

    def test_payslip_request(self):
        request = PayslipRequest.model_validate(
            {
                "employee": {"id": "emp-1", "baseSalary": 500000},
                "payrollRun": {
                    "id": "run-1",
                    "periodStart": "2025-01-01",
                    "periodEnd": "2025-01-31",
                    "payDate": "2025-01-31",
                },
                "jurisdictionId": "GY",
                "taxYear": 2025,
                "ytdPaye": 1000,
            }
        )
        assert request.payroll_run.to_domain().pay_date.isoformat() == "2025-01-31"
        assert request.ytd_paye == 1000
        assert request.ytd_gross_earnings == 0


class TestIncomeTaxRuleValidation:
    """Test tax band tiling and personal deduction checks."""

    def test_valid_rule(self, two_band_tax_rule, flat_rate_tax_rule):
        assert validate_income_tax_rule(two_band_tax_rule) == []
        assert validate_income_tax_rule(flat_rate_tax_rule) == []

    def test_gap_between_bands(self, two_band_tax_rule):
        bands = [
            two_band_tax_rule.tax_bands[0],
            dataclasses.replace(two_band_tax_rule.tax_bands[1], min_amount=150000),
        ]
        errors = validate_income_tax_rule(dataclasses.replace(two_band_tax_rule, tax_bands=bands))
        assert any("starts at 150000, expected 100000" in e for e in errors)

    def test_first_band_must_start_at_zero(self, flat_rate_tax_rule):
        bands = [dataclasses.replace(flat_rate_tax_rule.tax_bands[0], min_amount=100)]
        errors = validate_income_tax_rule(dataclasses.replace(flat_rate_tax_rule, tax_bands=bands))
        assert any("expected 0" in e for e in errors)

    def test_last_band_must_be_open_ended(self, two_band_tax_rule):
        bands = [
            two_band_tax_rule.tax_bands[0],
            dataclasses.replace(two_band_tax_rule.tax_bands[1], max_amount=500000),
        ]
        errors = validate_income_tax_rule(dataclasses.replace(two_band_tax_rule, tax_bands=bands))
        assert any("must be open-ended" in e for e in errors)

    def test_open_ended_band_must_be_last(self, two_band_tax_rule):
        bands = [
            dataclasses.replace(two_band_tax_rule.tax_bands[0], max_amount=None),
            two_band_tax_rule.tax_bands[1],
        ]
        errors = validate_income_tax_rule(dataclasses.replace(two_band_tax_rule, tax_bands=bands))
        assert any("Only the last band may be open-ended" in e for e in errors)

    def test_duplicate_orders(self, two_band_tax_rule):
        bands = [
            two_band_tax_rule.tax_bands[0],
            dataclasses.replace(two_band_tax_rule.tax_bands[1], order=1),
        ]
        errors = validate_income_tax_rule(dataclasses.replace(two_band_tax_rule, tax_bands=bands))
        assert "Tax band order values must be unique" in errors

    def test_rate_out_of_range(self, flat_rate_tax_rule):
        bands = [TaxBand(order=1, name="Bad", min_amount=0, max_amount=None, rate=Decimal("1.2"))]
        errors = validate_income_tax_rule(dataclasses.replace(flat_rate_tax_rule, tax_bands=bands))
        assert any("outside [0, 1]" in e for e in errors)

    def test_no_bands(self, flat_rate_tax_rule):
        errors = validate_income_tax_rule(dataclasses.replace(flat_rate_tax_rule, tax_bands=[]))
        assert "Income tax rule has no tax bands" in errors

    def test_non_positive_precision(self, flat_rate_tax_rule):
        errors = validate_income_tax_rule(dataclasses.replace(flat_rate_tax_rule, rounding_precision=0))
        assert any("Rounding precision must be positive" in e for e in errors)

    def test_fixed_deduction_requires_amount(self, flat_rate_tax_rule):
        rule = dataclasses.replace(
            flat_rate_tax_rule, personal_deduction=PersonalDeduction(type=DeductionType.FIXED)
        )
        assert "Fixed personal deduction requires fixedAmount" in validate_income_tax_rule(rule)

    def test_unparseable_formula(self, flat_rate_tax_rule):
        rule = dataclasses.replace(
            flat_rate_tax_rule,
            personal_deduction=PersonalDeduction(type=DeductionType.FORMULA, formula="{gross} $ 2"),
        )
        errors = validate_income_tax_rule(rule)
        assert any("formula is invalid" in e for e in errors)

    def test_min_exceeds_max(self, flat_rate_tax_rule):
        rule = dataclasses.replace(
            flat_rate_tax_rule,
            personal_deduction=PersonalDeduction(
                type=DeductionType.FIXED, fixed_amount=10, min_amount=500, max_amount=100
            ),
        )
        assert any("exceeds maxAmount" in e for e in validate_income_tax_rule(rule))


class TestSocialSecurityRuleValidation:
    def test_valid_rule(self, nis_rule):
        assert validate_social_security_rule(nis_rule) == []

    def test_floor_above_ceiling(self, nis_rule):
        rule = dataclasses.replace(nis_rule, earnings_floor=500, earnings_ceiling=100)
        assert any("exceeds earningsCeiling" in e for e in validate_social_security_rule(rule))

    def test_rate_out_of_range(self, nis_rule):
        rule = dataclasses.replace(nis_rule, employer_rate=Decimal("-0.1"))
        assert any(e.startswith("employerRate") for e in validate_social_security_rule(rule))


class TestTaxRuleRegistry:
    def test_resolve(self, flat_rate_tax_rule, nis_rule):
        registry = TaxRuleRegistry()
        registry.add_income_tax_rule(flat_rate_tax_rule)
        registry.add_social_security_rule(nis_rule)

        resolved = registry.resolve("GY", 2025)

        assert resolved.income_tax is flat_rate_tax_rule
        assert resolved.social_security is nis_rule
        assert len(registry) == 2

    def test_missing_year_raises(self, flat_rate_tax_rule, nis_rule):
        registry = TaxRuleRegistry()
        registry.add_income_tax_rule(flat_rate_tax_rule)
        registry.add_social_security_rule(nis_rule)

        with pytest.raises(TaxRuleNotConfiguredError, match="jurisdiction GY and year 2026"):
            registry.resolve("GY", 2026)

    def test_missing_social_security_rule_raises(self, flat_rate_tax_rule):
        registry = TaxRuleRegistry()
        registry.add_income_tax_rule(flat_rate_tax_rule)

        with pytest.raises(TaxRuleNotConfiguredError):
            registry.resolve("GY", 2025)
        with pytest.raises(TaxRuleNotConfiguredError, match="^Social security rule not configured"):
            registry.social_security_rule("GY", 2025)

    def test_invalid_rule_is_rejected(self, flat_rate_tax_rule):
        registry = TaxRuleRegistry()
        bad = dataclasses.replace(flat_rate_tax_rule, rounding_precision=-1)

        with pytest.raises(RuleValidationError) as exc_info:
            registry.add_income_tax_rule(bad)
        assert exc_info.value.rule_label == "income tax rule for GY/2025"
        assert len(registry) == 0

    def test_duplicate_rule_is_rejected(self, flat_rate_tax_rule):
        registry = TaxRuleRegistry()
        registry.add_income_tax_rule(flat_rate_tax_rule)
        with pytest.raises(ValueError, match="already registered"):
            registry.add_income_tax_rule(flat_rate_tax_rule)

    def test_from_document(self):
        registry = TaxRuleRegistry.from_document(RULES_DOCUMENT)
        rules = registry.resolve("GY", 2025)

        assert rules.income_tax.personal_deduction.formula.startswith("MAX(")
        assert rules.social_security.earnings_ceiling == 28000000


class TestLoadRulesFile:
    def test_loads_json_file(self, tmp_path, caplog):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(RULES_DOCUMENT), encoding="utf-8")

        with caplog.at_level(logging.INFO, logger="payroll_engine.rules.registry"):
            registry = load_rules_file(path)

        assert len(registry) == 2
        assert "Loaded 2 tax rules" in caplog.text

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_rules_file(tmp_path / "missing.json")
