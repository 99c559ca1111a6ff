"""Payroll calculation engine - main orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal

from payroll_engine.calculators.periodization import (
    annualize_monthly_amount,
    base_pay_for_period,
    recurring_amount_for_period,
)
from payroll_engine.calculators.rounding import round_to_cents
from payroll_engine.calculators.tax_calculator import TaxCalculator
from payroll_engine.calculators.types import (
    DeductionLine,
    EarningsLine,
    Employee,
    IncomeTaxRule,
    PayrollRun,
    PayrollTotals,
    PayRunResult,
    Payslip,
    PayslipResult,
    Periodization,
    SalaryFrequency,
    SocialSecurityRule,
    TaxDetails,
)
from payroll_engine.config import get_settings

logger = logging.getLogger(__name__)

BASE_PAY_CODE = "BASE"
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class YtdBalances:
    """Year-to-date balances carried into a payslip calculation."""

    gross_earnings: int = 0
    paye: int = 0
    nis: int = 0


class PayrollEngine:
    """Main payroll calculation engine.

    Calculation pipeline (stable order per employee):
    1) Normalize base pay to the monthly period
    2) Add allowances (all NIS-able) to reach gross earnings
    3) PAYE on annualized gross
    4) NIS on base pay plus allowances
    5) Other employee deductions
    6) Totals and net pay
    7) Year-to-date accumulation
    8) Advisory warnings (never block the payslip)

    Every payslip is computed from its inputs alone, so employees of one
    run can be calculated in parallel.
    """

    def __init__(
        self,
        tax_calculator: TaxCalculator | None = None,
        max_workers: int | None = None,
    ):
        self.tax_calculator = tax_calculator or TaxCalculator()
        self.max_workers = max_workers if max_workers is not None else get_settings().max_workers

    def calculate_payslip(
        self,
        employee: Employee,
        payroll_run: PayrollRun,
        income_tax_rule: IncomeTaxRule,
        nis_rule: SocialSecurityRule,
        ytd_gross_earnings: int = 0,
        ytd_paye: int = 0,
        ytd_nis: int = 0,
    ) -> PayslipResult:
        """Calculate a complete payslip for one employee."""
        warnings: list[str] = []
        tax_settings = employee.tax_settings

        # 1) Base pay
        base_pay = base_pay_for_period(employee.base_salary, employee.salary_frequency)
        if SalaryFrequency(employee.salary_frequency) is SalaryFrequency.WEEKLY:
            warnings.append(
                "Weekly salary frequency is not converted to the monthly pay period; "
                "base pay uses the weekly amount as-is"
            )

        # 2) Allowances
        earnings_breakdown = [
            EarningsLine(
                code=BASE_PAY_CODE,
                name="Base Salary",
                amount=base_pay,
                is_taxable=True,
                is_nisable=True,
            )
        ]
        total_allowances = 0
        nisable_allowances = 0
        for allowance in employee.allowances:
            amount = recurring_amount_for_period(allowance.amount, allowance.frequency)
            total_allowances += amount
            # NIS base differs from PAYE base: every allowance is NIS-able.
            nisable_allowances += amount
            earnings_breakdown.append(
                EarningsLine(
                    code=allowance.code,
                    name=allowance.name,
                    amount=amount,
                    is_taxable=allowance.is_taxable,
                    is_nisable=True,
                )
            )

        gross_earnings = base_pay + total_allowances

        # 3) PAYE
        annual_gross = annualize_monthly_amount(gross_earnings)
        dependents = 0
        custom_deduction = 0
        if tax_settings is not None:
            dependents = tax_settings.number_of_dependents or 0
            custom_deduction = tax_settings.additional_deduction or 0

        paye_result = self.tax_calculator.calculate_paye(
            annual_gross,
            income_tax_rule,
            dependents=dependents,
            custom_deduction=custom_deduction,
        )
        paye_amount = paye_result.monthly_tax
        if tax_settings is not None and tax_settings.paye_exempt:
            paye_amount = 0
        taxable_income = round_to_cents(Decimal(paye_result.taxable_income) / MONTHS_PER_YEAR)

        periodization = Periodization(income_tax_rule.periodization)
        if periodization is not Periodization.ANNUALIZED:
            warnings.append(
                f"Income tax rule declares '{periodization.value}' "
                "periodization; PAYE was calculated on the annualized method"
            )

        # 4) NIS
        nisable_earnings = base_pay + nisable_allowances
        nis_result = self.tax_calculator.calculate_nis(nisable_earnings, nis_rule)
        nis_employee = nis_result.employee_contribution
        nis_employer = nis_result.employer_contribution
        if tax_settings is not None and tax_settings.nis_exempt:
            nis_employee = 0
            nis_employer = 0

        # 5) Other deductions
        deductions_breakdown: list[DeductionLine] = []
        other_deductions = 0
        for deduction in employee.deductions:
            amount = recurring_amount_for_period(deduction.amount, deduction.frequency)
            other_deductions += amount
            deductions_breakdown.append(
                DeductionLine(code=deduction.code, name=deduction.name, amount=amount)
            )

        # 6) Totals
        total_deductions = paye_amount + nis_employee + other_deductions
        net_pay = gross_earnings - total_deductions

        # 7) YTD - net is derived so adjustments flow through gross and tax
        new_ytd_gross = ytd_gross_earnings + gross_earnings
        new_ytd_paye = ytd_paye + paye_amount
        new_ytd_nis = ytd_nis + nis_employee
        new_ytd_net = new_ytd_gross - new_ytd_paye - new_ytd_nis

        # 8) Warnings
        if net_pay < 0:
            warnings.append(
                f"Negative net pay ({Decimal(net_pay) / 100}) - deductions exceed gross earnings"
            )
        if not employee.tax_id:
            warnings.append("Employee missing Tax ID (TIN)")
        if not employee.nis_number:
            warnings.append("Employee missing NIS Number")

        payslip = Payslip(
            payroll_run_id=payroll_run.id,
            employee_id=employee.id,
            organization_id=employee.organization_id,
            period_start=payroll_run.period_start,
            period_end=payroll_run.period_end,
            pay_date=payroll_run.pay_date,
            base_pay=base_pay,
            allowances=total_allowances,
            gross_earnings=gross_earnings,
            earnings_breakdown=earnings_breakdown,
            taxable_income=taxable_income,
            paye_amount=paye_amount,
            nisable_earnings=nisable_earnings,
            nis_employee=nis_employee,
            nis_employer=nis_employer,
            tax_details=TaxDetails(
                jurisdiction_id=income_tax_rule.jurisdiction_id,
                tax_year=income_tax_rule.tax_year,
                annual_gross=annual_gross,
                personal_deduction=paye_result.personal_deduction,
                tax_bands=paye_result.tax_bands,
                annual_tax=paye_result.annual_tax,
                monthly_tax=paye_result.monthly_tax,
            ),
            other_deductions=other_deductions,
            deductions_breakdown=deductions_breakdown,
            total_deductions=total_deductions,
            net_pay=net_pay,
            ytd_gross_earnings=new_ytd_gross,
            ytd_net_pay=new_ytd_net,
            ytd_paye=new_ytd_paye,
            ytd_nis=new_ytd_nis,
        )
        return PayslipResult(payslip=payslip, warnings=warnings)

    def calculate_pay_run(
        self,
        payroll_run: PayrollRun,
        employees: Iterable[Employee],
        income_tax_rule: IncomeTaxRule,
        nis_rule: SocialSecurityRule,
        ytd_balances: Mapping[str, YtdBalances] | None = None,
    ) -> PayRunResult:
        """Calculate payslips for every employee of a payroll run.

        A failure for one employee is recorded in ``errors`` and excluded
        from the totals; the rest of the run still completes. Only the
        first employee with a given id is calculated; repeats are errors.
        """
        ytd_balances = ytd_balances or {}

        errors: dict[str, str] = {}
        seen: set[str] = set()
        unique_employees: list[Employee] = []
        for employee in employees:
            if employee.id in seen:
                logger.warning(
                    "Duplicate employee %s in payroll run %s skipped",
                    employee.id,
                    payroll_run.id,
                )
                errors[employee.id] = f"Duplicate employee id {employee.id} in payroll run"
                continue
            seen.add(employee.id)
            unique_employees.append(employee)
        employees = unique_employees

        def _calculate(employee: Employee) -> tuple[str, PayslipResult | None, str | None]:
            ytd = ytd_balances.get(employee.id, YtdBalances())
            try:
                result = self.calculate_payslip(
                    employee,
                    payroll_run,
                    income_tax_rule,
                    nis_rule,
                    ytd_gross_earnings=ytd.gross_earnings,
                    ytd_paye=ytd.paye,
                    ytd_nis=ytd.nis,
                )
            except Exception as e:
                logger.exception(
                    "Payslip calculation failed for employee %s in payroll run %s",
                    employee.id,
                    payroll_run.id,
                )
                return employee.id, None, f"Unexpected error: {e}"
            return employee.id, result, None

        if self.max_workers > 1 and len(employees) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(_calculate, employees))
        else:
            outcomes = [_calculate(employee) for employee in employees]

        results: dict[str, PayslipResult] = {}
        for employee_id, result, error in outcomes:
            if result is not None:
                results[employee_id] = result
            else:
                errors[employee_id] = error or "Unknown error"

        totals = calculate_payroll_totals(r.payslip for r in results.values())
        logger.info(
            "Calculated payroll run %s: %d payslips, %d errors",
            payroll_run.id,
            totals.employee_count,
            len(errors),
        )
        return PayRunResult(
            payroll_run_id=payroll_run.id,
            results=results,
            totals=totals,
            errors=errors,
        )


def calculate_payroll_totals(payslips: Iterable[Payslip]) -> PayrollTotals:
    """Sum payslip amounts into payroll run totals."""
    totals = PayrollTotals()
    for payslip in payslips:
        totals.total_gross_earnings += payslip.gross_earnings
        totals.total_net_pay += payslip.net_pay
        totals.total_paye += payslip.paye_amount
        totals.total_nis_employee += payslip.nis_employee
        totals.total_nis_employer += payslip.nis_employer
        totals.total_deductions += payslip.total_deductions
        totals.employee_count += 1
    return totals


_default_engine: PayrollEngine | None = None


def calculate_payslip(
    employee: Employee,
    payroll_run: PayrollRun,
    income_tax_rule: IncomeTaxRule,
    nis_rule: SocialSecurityRule,
    ytd_gross_earnings: int = 0,
    ytd_paye: int = 0,
    ytd_nis: int = 0,
) -> PayslipResult:
    """Calculate one payslip with a default engine."""
    global _default_engine
    if _default_engine is None:
        _default_engine = PayrollEngine(max_workers=1)
    return _default_engine.calculate_payslip(
        employee,
        payroll_run,
        income_tax_rule,
        nis_rule,
        ytd_gross_earnings=ytd_gross_earnings,
        ytd_paye=ytd_paye,
        ytd_nis=ytd_nis,
    )
