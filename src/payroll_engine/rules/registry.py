"""In-memory lookup of jurisdiction tax rules by tax year."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from payroll_engine.calculators.tax_calculator import TaxRuleNotConfiguredError
from payroll_engine.calculators.types import IncomeTaxRule, SocialSecurityRule
from payroll_engine.rules.schemas import RulesDocument
from payroll_engine.rules.validation import (
    ensure_valid_income_tax_rule,
    ensure_valid_social_security_rule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRules:
    """Both rules needed to calculate a payslip."""

    income_tax: IncomeTaxRule
    social_security: SocialSecurityRule


class TaxRuleRegistry:
    """Holds validated rules keyed by (jurisdiction_id, year).

    Rules are read-only once registered, so one registry can be shared by
    every payslip calculation of a run.
    """

    def __init__(self) -> None:
        self._income_tax: dict[tuple[str, int], IncomeTaxRule] = {}
        self._social_security: dict[tuple[str, int], SocialSecurityRule] = {}

    def add_income_tax_rule(self, rule: IncomeTaxRule) -> None:
        ensure_valid_income_tax_rule(rule)
        key = (rule.jurisdiction_id, rule.tax_year)
        if key in self._income_tax:
            raise ValueError(
                f"Income tax rule already registered for jurisdiction "
                f"{rule.jurisdiction_id} and year {rule.tax_year}"
            )
        self._income_tax[key] = rule

    def add_social_security_rule(self, rule: SocialSecurityRule) -> None:
        ensure_valid_social_security_rule(rule)
        key = (rule.jurisdiction_id, rule.year)
        if key in self._social_security:
            raise ValueError(
                f"Social security rule already registered for jurisdiction "
                f"{rule.jurisdiction_id} and year {rule.year}"
            )
        self._social_security[key] = rule

    def income_tax_rule(self, jurisdiction_id: str, year: int) -> IncomeTaxRule:
        try:
            return self._income_tax[(jurisdiction_id, year)]
        except KeyError:
            raise TaxRuleNotConfiguredError(jurisdiction_id, year, "Income tax rule") from None

    def social_security_rule(self, jurisdiction_id: str, year: int) -> SocialSecurityRule:
        try:
            return self._social_security[(jurisdiction_id, year)]
        except KeyError:
            raise TaxRuleNotConfiguredError(
                jurisdiction_id, year, "Social security rule"
            ) from None

    def resolve(self, jurisdiction_id: str, year: int) -> ResolvedRules:
        """Return both rules or raise TaxRuleNotConfiguredError."""
        income_tax = self._income_tax.get((jurisdiction_id, year))
        social_security = self._social_security.get((jurisdiction_id, year))
        if income_tax is None or social_security is None:
            raise TaxRuleNotConfiguredError(jurisdiction_id, year)
        return ResolvedRules(income_tax=income_tax, social_security=social_security)

    def __len__(self) -> int:
        return len(self._income_tax) + len(self._social_security)

    @classmethod
    def from_document(cls, payload: dict[str, Any]) -> TaxRuleRegistry:
        """Build a registry from a rules document payload."""
        document = RulesDocument.model_validate(payload)
        registry = cls()
        for rule in document.income_tax_rules:
            registry.add_income_tax_rule(rule.to_domain())
        for rule in document.social_security_rules:
            registry.add_social_security_rule(rule.to_domain())
        return registry


def load_rules_file(path: str | Path) -> TaxRuleRegistry:
    """Load and validate a JSON rules document."""
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        payload = json.load(f)
    registry = TaxRuleRegistry.from_document(payload)
    logger.info("Loaded %d tax rules from %s", len(registry), path)
    return registry
