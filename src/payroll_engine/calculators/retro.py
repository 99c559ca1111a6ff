"""Retroactive adjustment differences between two payslips.

When an already-calculated period is corrected (salary change, allowance
added, statutory correction), the corrected payslip is recalculated with
the same engine and compared to the original. The resulting deltas feed a
retro adjustment request that is applied to a later payslip.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from payroll_engine.calculators.types import Payslip


@dataclass(frozen=True)
class LineAdjustment:
    code: str
    name: str
    original_amount: int
    corrected_amount: int

    @property
    def delta(self) -> int:
        return self.corrected_amount - self.original_amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "originalAmount": self.original_amount,
            "correctedAmount": self.corrected_amount,
            "delta": self.delta,
        }


@dataclass(frozen=True)
class RetroAdjustment:
    """Differences between an original and a corrected payslip."""

    employee_id: str
    original_period_start: Any
    original_period_end: Any
    earnings_adjustments: list[LineAdjustment] = field(default_factory=list)
    deductions_adjustments: list[LineAdjustment] = field(default_factory=list)
    original_taxable_income: int = 0
    corrected_taxable_income: int = 0
    original_paye: int = 0
    corrected_paye: int = 0
    original_nisable_earnings: int = 0
    corrected_nisable_earnings: int = 0
    original_nis: int = 0
    corrected_nis: int = 0
    original_net_pay: int = 0
    corrected_net_pay: int = 0

    @property
    def gross_delta(self) -> int:
        return sum(a.delta for a in self.earnings_adjustments)

    @property
    def paye_delta(self) -> int:
        return self.corrected_paye - self.original_paye

    @property
    def nis_delta(self) -> int:
        return self.corrected_nis - self.original_nis

    @property
    def net_delta(self) -> int:
        """Amount owed to (positive) or recovered from (negative) the employee."""
        return self.corrected_net_pay - self.original_net_pay

    @property
    def has_changes(self) -> bool:
        return bool(self.earnings_adjustments or self.deductions_adjustments) or any(
            (self.paye_delta, self.nis_delta, self.net_delta)
        )

    def to_calculation_details(self) -> dict[str, Any]:
        return {
            "earningsAdjustments": [a.to_dict() for a in self.earnings_adjustments],
            "deductionsAdjustments": [a.to_dict() for a in self.deductions_adjustments],
            "taxRecalculation": {
                "originalTaxableIncome": self.original_taxable_income,
                "correctedTaxableIncome": self.corrected_taxable_income,
                "originalPaye": self.original_paye,
                "correctedPaye": self.corrected_paye,
            },
            "nisRecalculation": {
                "originalNisableEarnings": self.original_nisable_earnings,
                "correctedNisableEarnings": self.corrected_nisable_earnings,
                "originalNis": self.original_nis,
                "correctedNis": self.corrected_nis,
            },
        }


def _diff_lines(
    original: list[tuple[str, str, int]],
    corrected: list[tuple[str, str, int]],
) -> list[LineAdjustment]:
    """Pair lines by code; missing lines count as zero. Unchanged lines are dropped."""
    original_by_code = {code: (name, amount) for code, name, amount in original}
    corrected_by_code = {code: (name, amount) for code, name, amount in corrected}

    codes = list(original_by_code)
    codes.extend(c for c in corrected_by_code if c not in original_by_code)

    adjustments = []
    for code in codes:
        name, original_amount = original_by_code.get(code, ("", 0))
        corrected_name, corrected_amount = corrected_by_code.get(code, (name, 0))
        if original_amount == corrected_amount:
            continue
        adjustments.append(
            LineAdjustment(
                code=code,
                name=corrected_name or name,
                original_amount=original_amount,
                corrected_amount=corrected_amount,
            )
        )
    return adjustments


def build_retro_adjustment(original: Payslip, corrected: Payslip) -> RetroAdjustment:
    """Compare two payslips for the same employee and period."""
    if original.employee_id != corrected.employee_id:
        raise ValueError(
            f"Cannot compare payslips of different employees: "
            f"{original.employee_id} != {corrected.employee_id}"
        )

    earnings = _diff_lines(
        [(e.code, e.name, e.amount) for e in original.earnings_breakdown],
        [(e.code, e.name, e.amount) for e in corrected.earnings_breakdown],
    )
    deductions = _diff_lines(
        [(d.code, d.name, d.amount) for d in original.deductions_breakdown],
        [(d.code, d.name, d.amount) for d in corrected.deductions_breakdown],
    )

    return RetroAdjustment(
        employee_id=original.employee_id,
        original_period_start=original.period_start,
        original_period_end=original.period_end,
        earnings_adjustments=earnings,
        deductions_adjustments=deductions,
        original_taxable_income=original.taxable_income,
        corrected_taxable_income=corrected.taxable_income,
        original_paye=original.paye_amount,
        corrected_paye=corrected.paye_amount,
        original_nisable_earnings=original.nisable_earnings,
        corrected_nisable_earnings=corrected.nisable_earnings,
        original_nis=original.nis_employee,
        corrected_nis=corrected.nis_employee,
        original_net_pay=original.net_pay,
        corrected_net_pay=corrected.net_pay,
    )


def apply_retro_adjustment(payslip: Payslip, adjustment: RetroAdjustment) -> Payslip:
    """Return a copy of ``payslip`` carrying the adjustment's net delta."""
    return payslip.with_retro_adjustment(adjustment.net_delta)
