import json

from click.testing import CliRunner

from debt_calc.main import cli

BASE_ARGS = ["-p", "1000", "-r", "12", "--period", "monthly", "-s", "2024-01-01"]


def test_history_prints_balance_after_payment():
    runner = CliRunner()
    result = runner.invoke(cli, ["history", *BASE_ARGS, "--payment", "2024-02-01:100", "--today", "2024-02-01"])
    assert result.exit_code == 0, result.output
    assert "2024-01-01\t1000.00" in result.output
    assert "2024-02-01\t910.19" in result.output


def test_history_exports_json(tmp_path):
    out = tmp_path / "history.json"
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["history", *BASE_ARGS, "--payment", "2024-02-01:100", "--today", "2024-02-01", "--output", str(out)],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["history"] == [
        {"date": "2024-01-01", "balance": 1000.0},
        {"date": "2024-02-01", "balance": 910.19},
    ]


def test_monthly_payment_repeats_until_today():
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["summary", "-p", "1k", "-r", "0", "-s", "2024-01-01", "--monthly-payment", "100", "--today", "2024-04-01"],
    )
    assert result.exit_code == 0, result.output
    assert "Payments made      : 3" in result.output
    assert "Current balance    : 700.00" in result.output


def test_chart_exports_csv(tmp_path):
    out = tmp_path / "chart.csv"
    runner = CliRunner()
    result = runner.invoke(cli, ["chart", *BASE_ARGS, "--today", "2024-03-01", "--output", str(out)])
    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Label,Date,Balance"
    assert lines[-1] == "Today,2024-03-01,1019.73"


def test_malformed_payment_is_rejected():
    runner = CliRunner()
    result = runner.invoke(cli, ["history", *BASE_ARGS, "--payment", "2024-02-01"])
    assert result.exit_code != 0
    assert "YYYY-MM-DD:AMOUNT" in result.output


def test_payment_before_start_is_rejected():
    runner = CliRunner()
    result = runner.invoke(cli, ["history", *BASE_ARGS, "--payment", "2023-12-01:50"])
    assert result.exit_code != 0
    assert "before the start date" in result.output


def test_summary_rejects_csv_output(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ["summary", *BASE_ARGS, "--output", str(tmp_path / "summary.csv")])
    assert result.exit_code != 0


def test_non_finite_numbers_are_usage_errors():
    runner = CliRunner()
    for args in (
        ["-p", "1000", "-r", "nan", "-s", "2024-01-01"],
        ["-p", "inf", "-r", "12", "-s", "2024-01-01"],
        [*BASE_ARGS, "--monthly-payment", "inf"],
        [*BASE_ARGS, "--payment", "2024-02-01:nan"],
    ):
        result = runner.invoke(cli, ["history", *args, "--today", "2024-03-01"])
        assert result.exit_code == 2, (args, result.output)
        assert "Invalid numeric value" in result.output
