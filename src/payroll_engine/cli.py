"""Payroll engine command line interface.

Provides offline tools for:
- Payslip preview from a JSON input
- Payroll run calculation
- Rule file validation
- Formula evaluation

Usage:
    python -m payroll_engine preview --rules rules.json --input payslip.json
    python -m payroll_engine run --rules rules.json --input run.json
    python -m payroll_engine validate-rules rules.json
    python -m payroll_engine evaluate "MAX(1560000, {annualGross} * 0.333)" annualGross=6000000
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from payroll_engine.calculators.engine import PayrollEngine
from payroll_engine.calculators.formula import evaluate_formula
from payroll_engine.calculators.tax_calculator import TaxRuleNotConfiguredError
from payroll_engine.config import get_settings
from payroll_engine.rules.registry import TaxRuleRegistry, load_rules_file
from payroll_engine.rules.schemas import PayRunRequest, PayslipRequest
from payroll_engine.rules.validation import RuleValidationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def parse_variable(s: str) -> tuple[str, Decimal]:
    """Parse a ``name=value`` formula variable."""
    name, sep, value = s.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"Expected name=value, got {s!r}")
    try:
        return name.strip(), Decimal(value.strip())
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Variable {name!r} is not numeric: {value!r}") from None


def _read_json(path: str) -> Any:
    with Path(path).open(encoding="utf-8") as f:
        return json.load(f)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


class PayrollCli:
    """Payroll engine command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m payroll_engine",
            description="Payroll calculation tools",
        )
        parser.add_argument(
            "--log-level",
            type=str.upper,
            choices=LOG_LEVELS,
            help="Logging level (default: $PAYROLL_LOG_LEVEL or INFO)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # preview command
        preview = subparsers.add_parser(
            "preview",
            help="Calculate one payslip and print it as JSON",
        )
        preview.add_argument(
            "--rules",
            type=str,
            help="Rules file (default: $PAYROLL_RULES_PATH)",
        )
        preview.add_argument(
            "--input",
            type=str,
            required=True,
            help="Payslip request JSON (employee, payrollRun, jurisdictionId, taxYear)",
        )

        # run command
        run = subparsers.add_parser(
            "run",
            help="Calculate every payslip of a payroll run and print totals",
        )
        run.add_argument(
            "--rules",
            type=str,
            help="Rules file (default: $PAYROLL_RULES_PATH)",
        )
        run.add_argument(
            "--input",
            type=str,
            required=True,
            help="Payroll run request JSON (payrollRun, employees, jurisdictionId, taxYear)",
        )
        run.add_argument(
            "--payslips",
            action="store_true",
            help="Include every payslip in the output",
        )

        # validate-rules command
        validate = subparsers.add_parser(
            "validate-rules",
            help="Validate a jurisdiction rules file",
        )
        validate.add_argument("path", type=str, help="Rules file to validate")

        # evaluate command
        evaluate = subparsers.add_parser(
            "evaluate",
            help="Evaluate a deduction formula",
        )
        evaluate.add_argument("formula", type=str, help="Formula text")
        evaluate.add_argument(
            "variables",
            type=parse_variable,
            nargs="*",
            help="Variables as name=value",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        logging.basicConfig(
            level=(parsed.log_level or get_settings().log_level).upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "preview": self._cmd_preview,
            "run": self._cmd_run,
            "validate-rules": self._cmd_validate_rules,
            "evaluate": self._cmd_evaluate,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except (ValidationError, RuleValidationError, TaxRuleNotConfiguredError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        except (OSError, json.JSONDecodeError) as e:
            print(f"ERROR: cannot read input: {e}", file=sys.stderr)
            return 1

    def _load_registry(self, path: str | None) -> TaxRuleRegistry:
        rules_path = path or get_settings().rules_path
        if not rules_path:
            raise OSError("No rules file given (use --rules or set PAYROLL_RULES_PATH)")
        return load_rules_file(rules_path)

    def _cmd_preview(self, args: argparse.Namespace) -> int:
        """Calculate and print one payslip."""
        registry = self._load_registry(args.rules)
        request = PayslipRequest.model_validate(_read_json(args.input))
        rules = registry.resolve(request.jurisdiction_id, request.tax_year)

        engine = PayrollEngine(max_workers=1)
        result = engine.calculate_payslip(
            request.employee.to_domain(),
            request.payroll_run.to_domain(),
            rules.income_tax,
            rules.social_security,
            ytd_gross_earnings=request.ytd_gross_earnings,
            ytd_paye=request.ytd_paye,
            ytd_nis=request.ytd_nis,
        )
        _print_json({"payslip": result.payslip.to_dict(), "warnings": result.warnings})
        return 0

    def _cmd_run(self, args: argparse.Namespace) -> int:
        """Calculate a payroll run and print its totals."""
        registry = self._load_registry(args.rules)
        request = PayRunRequest.model_validate(_read_json(args.input))
        rules = registry.resolve(request.jurisdiction_id, request.tax_year)

        engine = PayrollEngine()
        result = engine.calculate_pay_run(
            request.payroll_run.to_domain(),
            [e.to_domain() for e in request.employees],
            rules.income_tax,
            rules.social_security,
        )

        totals = result.totals
        output: dict[str, Any] = {
            "payrollRunId": result.payroll_run_id,
            "totals": {
                "totalGrossEarnings": totals.total_gross_earnings,
                "totalNetPay": totals.total_net_pay,
                "totalPaye": totals.total_paye,
                "totalNisEmployee": totals.total_nis_employee,
                "totalNisEmployer": totals.total_nis_employer,
                "totalDeductions": totals.total_deductions,
                "employeeCount": totals.employee_count,
            },
            "warnings": {
                employee_id: r.warnings for employee_id, r in result.results.items() if r.warnings
            },
            "errors": result.errors,
        }
        if args.payslips:
            output["payslips"] = [r.payslip.to_dict() for r in result.results.values()]
        _print_json(output)
        return 0 if result.success else 2

    def _cmd_validate_rules(self, args: argparse.Namespace) -> int:
        """Validate a rules file."""
        registry = load_rules_file(args.path)
        print(f"Rules file OK: {len(registry)} rule(s)")
        return 0

    def _cmd_evaluate(self, args: argparse.Namespace) -> int:
        """Evaluate a formula and print the result."""
        errors: list[str] = []
        variables = dict(args.variables)
        result = evaluate_formula(
            args.formula,
            variables,
            on_error=lambda formula, exc: errors.append(str(exc)),
        )
        print(format(result, "f"))
        for error in errors:
            print(f"WARNING: {error}", file=sys.stderr)
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
