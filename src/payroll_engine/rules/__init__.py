"""Jurisdiction rule ingestion: schemas, validation and lookup."""

from payroll_engine.rules.registry import ResolvedRules, TaxRuleRegistry, load_rules_file
from payroll_engine.rules.validation import (
    RuleValidationError,
    validate_income_tax_rule,
    validate_social_security_rule,
)

__all__ = [
    "ResolvedRules",
    "RuleValidationError",
    "TaxRuleRegistry",
    "load_rules_file",
    "validate_income_tax_rule",
    "validate_social_security_rule",
]
