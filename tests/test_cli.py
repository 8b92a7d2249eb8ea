"""Tests for the command line tools that need no database."""

import json

import pytest

from ee_payroll.cli import PayrollCli


@pytest.fixture
def cli() -> PayrollCli:
    return PayrollCli()


class TestTaxPreview:
    def test_json_output(self, cli, capsys):
        code = cli.run(["tax-preview", "--gross", "2000", "--basic-exemption", "--json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["income_tax"] == "286.00"
        assert data["net_salary"] == "1642.00"
        assert data["total_employer_cost"] == "2676.00"

    def test_without_exemption(self, cli, capsys):
        code = cli.run(["tax-preview", "--gross", "2000", "--json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["basic_exemption"] == "0.00"
        assert data["income_tax"] == "440.00"

    def test_table_output(self, cli, capsys):
        assert cli.run(["tax-preview", "--gross", "2000", "--basic-exemption"]) == 0
        out = capsys.readouterr().out
        assert "Tax Preview" in out
        assert "1,642.00" in out

    def test_negative_gross(self, cli, capsys):
        assert cli.run(["tax-preview", "--gross", "-1"]) == 1
        assert "cannot be negative" in capsys.readouterr().err

    def test_bad_amount_exits(self, cli):
        with pytest.raises(SystemExit):
            cli.run(["tax-preview", "--gross", "abc"])


class TestValidateCode:
    def test_valid(self, cli, capsys):
        assert cli.run(["validate-code", "38001010009"]) == 0
        assert capsys.readouterr().out.strip() == "38001010009: valid"

    def test_invalid(self, cli, capsys):
        assert cli.run(["validate-code", "38001010001"]) == 1
        assert capsys.readouterr().out.strip() == "38001010001: invalid"


def test_no_command_prints_help(cli, capsys):
    assert cli.run([]) == 1
    assert "usage" in capsys.readouterr().out
