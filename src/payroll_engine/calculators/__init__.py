"""Payroll calculation engine."""

from payroll_engine.calculators.engine import (
    PayrollEngine,
    YtdBalances,
    calculate_payroll_totals,
    calculate_payslip,
)
from payroll_engine.calculators.formula import FormulaEvaluator, evaluate_formula
from payroll_engine.calculators.rounding import round_amount, round_to_cents
from payroll_engine.calculators.tax_calculator import (
    TaxCalculator,
    TaxRuleNotConfiguredError,
    calculate_nis,
    calculate_paye,
    calculate_ytd_paye,
)

__all__ = [
    "FormulaEvaluator",
    "PayrollEngine",
    "TaxCalculator",
    "TaxRuleNotConfiguredError",
    "YtdBalances",
    "calculate_nis",
    "calculate_paye",
    "calculate_payroll_totals",
    "calculate_payslip",
    "calculate_ytd_paye",
    "evaluate_formula",
    "round_amount",
    "round_to_cents",
]
