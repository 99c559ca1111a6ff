"""Payroll calculation engine: PAYE, NIS and payslip assembly."""

__version__ = "1.0.0"
