"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from payroll_engine.calculators.types import (
    Allowance,
    DeductionBasis,
    DeductionType,
    Employee,
    IncomeTaxRule,
    PayrollRun,
    PersonalDeduction,
    SocialSecurityRule,
    TaxBand,
    TaxSettings,
)

JURISDICTION_ID = "GY"
TAX_YEAR = 2025


@pytest.fixture
def flat_rate_tax_rule() -> IncomeTaxRule:
    """Single 10% band with a fixed annual personal deduction of 100000."""
    return IncomeTaxRule(
        jurisdiction_id=JURISDICTION_ID,
        tax_year=TAX_YEAR,
        tax_bands=[
            TaxBand(
                order=1,
                name="Single band",
                min_amount=0,
                max_amount=None,
                rate=Decimal("0.10"),
            )
        ],
        personal_deduction=PersonalDeduction(
            type=DeductionType.FIXED,
            basis=DeductionBasis.ANNUAL,
            fixed_amount=100000,
        ),
    )


@pytest.fixture
def two_band_tax_rule() -> IncomeTaxRule:
    """10% up to 100000, 20% above; no personal deduction."""
    return IncomeTaxRule(
        jurisdiction_id=JURISDICTION_ID,
        tax_year=TAX_YEAR,
        tax_bands=[
            TaxBand(order=1, name="First band", min_amount=0, max_amount=100000, rate=Decimal("0.10")),
            TaxBand(order=2, name="Second band", min_amount=100000, max_amount=None, rate=Decimal("0.20")),
        ],
        personal_deduction=None,
    )


@pytest.fixture
def nis_rule() -> SocialSecurityRule:
    return SocialSecurityRule(
        jurisdiction_id=JURISDICTION_ID,
        year=TAX_YEAR,
        employee_rate=Decimal("0.056"),
        employer_rate=Decimal("0.084"),
    )


@pytest.fixture
def payroll_run() -> PayrollRun:
    return PayrollRun(
        id="run-2025-01",
        period_start=date(2025, 1, 1),
        period_end=date(2025, 1, 31),
        pay_date=date(2025, 1, 31),
    )


@pytest.fixture
def employee() -> Employee:
    """Monthly employee with one taxable monthly allowance."""
    return Employee(
        id="emp-1",
        base_salary=500000,
        allowances=[
            Allowance(code="TRANSPORT", name="Transport Allowance", amount=50000),
        ],
        tax_settings=TaxSettings(number_of_dependents=0),
        tax_id="TIN-001",
        nis_number="NIS-001",
        organization_id="org-1",
    )
