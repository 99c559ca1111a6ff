"""Conversion of quoted amounts to the monthly pay period.

Payroll runs are monthly-equivalent. Base salary and recurring
allowances/deductions are converted here so both follow one table.

Known gap: a weekly salary is passed through unconverted. The payslip
calculation flags it with a warning rather than guessing a conversion.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_engine.calculators.rounding import round_to_cents
from payroll_engine.calculators.types import PayFrequency, SalaryFrequency

MONTHS_PER_YEAR = 12
BIWEEKLY_PERIODS_PER_MONTH = 2


def base_pay_for_period(base_salary: int, frequency: SalaryFrequency | str) -> int:
    """Convert a base salary quoted at ``frequency`` to one monthly period."""
    frequency = SalaryFrequency(frequency)
    if frequency is SalaryFrequency.MONTHLY:
        return base_salary
    if frequency is SalaryFrequency.ANNUAL:
        return round_to_cents(Decimal(base_salary) / MONTHS_PER_YEAR)
    if frequency is SalaryFrequency.BIWEEKLY:
        return base_salary * BIWEEKLY_PERIODS_PER_MONTH
    if frequency is SalaryFrequency.WEEKLY:
        return base_salary
    raise ValueError(f"Unsupported salary frequency: {frequency}")


def recurring_amount_for_period(amount: int, frequency: PayFrequency | str) -> int:
    """Convert an allowance or deduction amount to one monthly period."""
    frequency = PayFrequency(frequency)
    if frequency is PayFrequency.ANNUAL:
        return round_to_cents(Decimal(amount) / MONTHS_PER_YEAR)
    if frequency in (PayFrequency.MONTHLY, PayFrequency.PER_PAYROLL):
        return amount
    raise ValueError(f"Unsupported pay frequency: {frequency}")


def annualize_monthly_amount(monthly_amount: int) -> int:
    return monthly_amount * MONTHS_PER_YEAR


def monthly_from_annual_amount(annual_amount: int) -> int:
    return round_to_cents(Decimal(annual_amount) / MONTHS_PER_YEAR)
