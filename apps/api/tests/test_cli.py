"""Tests for the admin CLI."""

from click.testing import CliRunner

from dealer_aml.cli import cli


def test_period_command_prints_window():
    result = CliRunner().invoke(cli, ["period", "--year", "2024", "--month", "1"])

    assert result.exit_code == 0, result.output
    assert "Enero 2024 (202401)" in result.output
    assert "Start:    2023-12-17T00:00:00-06:00" in result.output
    assert "Deadline: 2024-02-17T23:59:59.999999-06:00" in result.output


def test_period_command_rejects_out_of_range_year():
    result = CliRunner().invoke(cli, ["period", "--year", "2019", "--month", "1"])
    assert result.exit_code != 0
    assert "Year must be between" in result.output


def test_create_org_validates_rfc():
    result = CliRunner().invoke(cli, ["create-org", "--name", "X", "--slug", "x", "--rfc", "SHORT"])
    assert result.exit_code != 0
    assert "RFC must be 12" in result.output
