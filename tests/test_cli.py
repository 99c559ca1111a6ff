"""Tests for the payroll engine CLI."""

import json

import pytest

from payroll_engine.cli import PayrollCli, parse_variable

RULES = {
    "incomeTaxRules": [
        {
            "jurisdictionId": "GY",
            "taxYear": 2025,
            "taxBands": [{"order": 1, "name": "Single band", "minAmount": 0, "rate": "0.10"}],
            "personalDeduction": {"type": "fixed", "fixedAmount": 100000},
        }
    ],
    "socialSecurityRules": [
        {"jurisdictionId": "GY", "year": 2025, "employeeRate": "0.056", "employerRate": "0.084"}
    ],
}

PAYROLL_RUN = {
    "id": "run-2025-01",
    "periodStart": "2025-01-01",
    "periodEnd": "2025-01-31",
    "payDate": "2025-01-31",
}

EMPLOYEE = {
    "id": "emp-1",
    "baseSalary": 500000,
    "allowances": [{"code": "TRANSPORT", "name": "Transport Allowance", "amount": 50000}],
    "taxId": "TIN-001",
    "nisNumber": "NIS-001",
}


@pytest.fixture
def rules_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(RULES), encoding="utf-8")
    return path


def write_json(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


class TestPreview:
    def test_prints_payslip(self, tmp_path, rules_file, capsys):
        request = write_json(
            tmp_path,
            "payslip.json",
            {"employee": EMPLOYEE, "payrollRun": PAYROLL_RUN, "jurisdictionId": "GY", "taxYear": 2025},
        )

        exit_code = PayrollCli().run(["preview", "--rules", str(rules_file), "--input", request])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["payslip"]["grossEarnings"] == 550000
        assert output["payslip"]["payeAmount"] == 54167
        assert output["payslip"]["nisEmployee"] == 30800
        assert output["payslip"]["netPay"] == 465033
        assert output["warnings"] == []

    def test_unknown_tax_year(self, tmp_path, rules_file, capsys):
        request = write_json(
            tmp_path,
            "payslip.json",
            {"employee": EMPLOYEE, "payrollRun": PAYROLL_RUN, "jurisdictionId": "GY", "taxYear": 2030},
        )

        exit_code = PayrollCli().run(["preview", "--rules", str(rules_file), "--input", request])

        assert exit_code == 1
        assert "not configured for jurisdiction GY and year 2030" in capsys.readouterr().err

    def test_invalid_input(self, tmp_path, rules_file, capsys):
        request = write_json(tmp_path, "payslip.json", {"employee": {"id": "emp-1"}})

        exit_code = PayrollCli().run(["preview", "--rules", str(rules_file), "--input", request])

        assert exit_code == 1
        assert capsys.readouterr().err.startswith("ERROR:")


class TestRun:
    def test_totals(self, tmp_path, rules_file, capsys):
        second = dict(EMPLOYEE, id="emp-2", baseSalary=300000, allowances=[])
        request = write_json(
            tmp_path,
            "run.json",
            {
                "payrollRun": PAYROLL_RUN,
                "employees": [EMPLOYEE, second],
                "jurisdictionId": "GY",
                "taxYear": 2025,
            },
        )

        exit_code = PayrollCli().run(
            ["run", "--rules", str(rules_file), "--input", request, "--payslips"]
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["totals"]["employeeCount"] == 2
        assert output["totals"]["totalGrossEarnings"] == 850000
        assert output["errors"] == {}
        assert [p["employeeId"] for p in output["payslips"]] == ["emp-1", "emp-2"]

    def test_missing_rules_path(self, tmp_path, capsys, monkeypatch):
        from payroll_engine import config

        monkeypatch.delenv("PAYROLL_RULES_PATH", raising=False)
        monkeypatch.setattr(config, "load_dotenv", lambda: None)
        config.get_settings.cache_clear()
        request = write_json(tmp_path, "run.json", {})
        try:
            exit_code = PayrollCli().run(["run", "--input", request])
        finally:
            config.get_settings.cache_clear()

        assert exit_code == 1
        assert "No rules file given" in capsys.readouterr().err


class TestValidateRules:
    def test_valid_file(self, rules_file, capsys):
        assert PayrollCli().run(["validate-rules", str(rules_file)]) == 0
        assert "Rules file OK: 2 rule(s)" in capsys.readouterr().out

    def test_band_gap_reported(self, tmp_path, capsys):
        rules = json.loads(json.dumps(RULES))
        rules["incomeTaxRules"][0]["taxBands"] = [
            {"order": 1, "name": "Lower", "minAmount": 0, "maxAmount": 1000, "rate": "0.1"},
            {"order": 2, "name": "Upper", "minAmount": 2000, "rate": "0.2"},
        ]
        path = write_json(tmp_path, "bad.json", rules)

        assert PayrollCli().run(["validate-rules", path]) == 1
        assert "expected 1000" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert PayrollCli().run(["validate-rules", str(tmp_path / "nope.json")]) == 1
        assert "cannot read input" in capsys.readouterr().err


class TestEvaluate:
    def test_prints_result(self, capsys):
        assert PayrollCli().run(["evaluate", "MAX(1560000, {annualGross} * 0.333)", "annualGross=6000000"]) == 0
        assert capsys.readouterr().out.strip() == "1998000.000"

    def test_failure_prints_zero_and_warning(self, capsys):
        assert PayrollCli().run(["evaluate", "10 / 0"]) == 0
        captured = capsys.readouterr()
        assert captured.out.strip() == "0"
        assert "WARNING:" in captured.err

    def test_parse_variable(self):
        name, value = parse_variable("dependents=2")
        assert name == "dependents"
        assert value == 2

    def test_parse_variable_rejects_missing_value(self):
        import argparse

        with pytest.raises(argparse.ArgumentTypeError):
            parse_variable("dependents")


class TestLogLevel:
    def test_unknown_level_is_rejected_by_parser(self, rules_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            PayrollCli().run(["--log-level", "verbose", "validate-rules", str(rules_file)])

        assert exc_info.value.code == 2
        assert "invalid choice" in capsys.readouterr().err

    def test_level_is_case_insensitive(self, rules_file, capsys):
        assert PayrollCli().run(["--log-level", "debug", "validate-rules", str(rules_file)]) == 0
        assert "Rules file OK" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert PayrollCli().run([]) == 1
    assert "usage:" in capsys.readouterr().out
