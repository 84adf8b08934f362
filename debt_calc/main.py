"""Command-line interface for the debt calculator.

This module uses the ``click`` library to implement a multi-command interface.
Users can compute the balance history of a debt, sample it for charting or
view a summary. Results can be printed to the terminal or exported to
JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .data_models import BalancePoint, ChartSeries, Debt, INTEREST_PERIODS, Payment
from .utils import add_months, decimal_from_str, parse_date
from .engine import compute_balance_history, generate_chart_series, summarize_debt
from .formatter import print_chart, print_history, print_summary


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain floats ("18500") and shorthand with ``k``/``m`` suffixes
    (e.g., "18.5k" meaning 18_500). Returns a float.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = 1.0
    if value.endswith("k"):
        factor = 1_000.0
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000.0
        value = value[:-1]
    try:
        return float(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def _parse_date_option(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _parse_decimal_option(value) -> Decimal:
    try:
        return decimal_from_str(str(value))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_payment_strings(values: Tuple[str, ...]) -> List[Payment]:
    payments: List[Payment] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(
                f"Payment must be in YYYY-MM-DD:AMOUNT format; got {item}"
            )
        date_str, amount_str = parts
        amount = _parse_decimal_option(parse_amount(amount_str))
        if amount <= 0:
            raise click.BadParameter(f"Payment amount must be positive; got {item}")
        payments.append(Payment(date=_parse_date_option(date_str), amount=amount))
    return payments


def build_debt_from_options(
    principal: str,
    rate: float,
    period: str,
    start_date: str,
    interest_start_date: Optional[str],
    payment: Tuple[str, ...],
    monthly_payment: Optional[str] = None,
    today: Optional[str] = None,
) -> Tuple[Debt, List[Payment], date]:
    principal_value = _parse_decimal_option(parse_amount(principal))
    if principal_value <= 0:
        raise click.BadParameter("Principal must be positive")
    rate_value = _parse_decimal_option(rate)
    if rate_value < 0:
        raise click.BadParameter("Interest rate must be non-negative")
    start_dt = _parse_date_option(start_date)
    interest_start_dt = _parse_date_option(interest_start_date) if interest_start_date else start_dt
    if interest_start_dt < start_dt:
        raise click.BadParameter("Interest start date cannot be before the start date")
    today_dt = _parse_date_option(today) if today else date.today()

    payments = parse_payment_strings(payment) if payment else []
    # A recurring payment on the same day of every month after the start date
    if monthly_payment:
        amount = _parse_decimal_option(parse_amount(monthly_payment))
        if amount <= 0:
            raise click.BadParameter("Monthly payment must be positive")
        i = 1
        while add_months(start_dt, i) <= today_dt:
            payments.append(Payment(date=add_months(start_dt, i), amount=amount))
            i += 1
    for p in payments:
        if p.date < start_dt:
            raise click.BadParameter(
                f"Payment on {p.date.isoformat()} is before the start date"
            )

    debt = Debt(
        principal=principal_value,
        interest_rate=rate_value,
        interest_period=period.lower(),
        start_date=start_dt,
        interest_start_date=interest_start_dt,
    )
    return debt, payments, today_dt


def _serialize_history(history: List[BalancePoint]) -> List[Dict[str, Any]]:
    return [{"date": p.date.isoformat(), "balance": float(p.balance)} for p in history]


def _serialize_chart(series: ChartSeries) -> Dict[str, Any]:
    return {
        "cadence": series.cadence,
        "labels": list(series.labels),
        "dates": [d.isoformat() for d in series.dates],
        "balances": [float(b) for b in series.balances],
    }


def export_to_json(path: Path, data: Dict[str, Any]) -> None:
    """Export a JSON-serializable payload to ``path``."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_history_to_csv(path: Path, history: List[BalancePoint]) -> None:
    """Export a balance history to a CSV file."""
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["Date", "Balance"])
        for p in history:
            writer.writerow([p.date.isoformat(), float(p.balance)])


def export_chart_to_csv(path: Path, series: ChartSeries) -> None:
    """Export a chart series to a CSV file."""
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["Label", "Date", "Balance"])
        for label, when, balance in zip(series.labels, series.dates, series.balances):
            writer.writerow([label, when.isoformat(), float(balance)])


def debt_options(func):
    """Attach the options describing a debt and its payments to a command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Original amount owed"),
        click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)"),
        click.option("--period", "period", type=click.Choice(list(INTEREST_PERIODS)), default="monthly", help="Compounding period"),
        click.option("--start-date", "-s", "start_date", required=True, help="Loan start date (YYYY-MM-DD)"),
        click.option("--interest-start-date", "interest_start_date", help="Date interest starts accruing (YYYY-MM-DD); defaults to the start date"),
        click.option("--payment", "payment", multiple=True, help="Payment in YYYY-MM-DD:AMOUNT format"),
        click.option(
            "--monthly-payment",
            "monthly_payment",
            help="Apply the same payment every month after the start date, up to today. Example: --monthly-payment 150",
        ),
        click.option("--today", "today", help="Date to extrapolate the balance to (YYYY-MM-DD); defaults to the current date"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
def cli() -> None:
    """A command-line debt tracker computing balances with interest accrual."""
    pass


@cli.command()
@debt_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def history(
    principal: str,
    rate: float,
    period: str,
    start_date: str,
    interest_start_date: Optional[str],
    payment: Tuple[str, ...],
    monthly_payment: Optional[str],
    today: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print the balance history of a debt."""
    debt, payments, today_dt = build_debt_from_options(
        principal, rate, period, start_date, interest_start_date, payment, monthly_payment, today
    )
    points = compute_balance_history(debt, payments, today_dt)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, {"history": _serialize_history(points)})
        elif path.suffix.lower() == ".csv":
            export_history_to_csv(path, points)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"History exported to {path}")
    else:
        print_history(points)


@cli.command()
@debt_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def chart(
    principal: str,
    rate: float,
    period: str,
    start_date: str,
    interest_start_date: Optional[str],
    payment: Tuple[str, ...],
    monthly_payment: Optional[str],
    today: Optional[str],
    output: Optional[str],
) -> None:
    """Sample the balance history monthly or yearly for charting."""
    debt, payments, today_dt = build_debt_from_options(
        principal, rate, period, start_date, interest_start_date, payment, monthly_payment, today
    )
    series = generate_chart_series(debt, payments, today_dt)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, {"chart": _serialize_chart(series)})
        elif path.suffix.lower() == ".csv":
            export_chart_to_csv(path, series)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Chart series exported to {path}")
    else:
        print_chart(series)


@cli.command()
@debt_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    rate: float,
    period: str,
    start_date: str,
    interest_start_date: Optional[str],
    payment: Tuple[str, ...],
    monthly_payment: Optional[str],
    today: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print only the summary metrics for a debt."""
    debt, payments, today_dt = build_debt_from_options(
        principal, rate, period, start_date, interest_start_date, payment, monthly_payment, today
    )
    summary_data = summarize_debt(debt, payments, today_dt)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        export_to_json(path, {"summary": summary_data})
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data)


if __name__ == "__main__":
    cli()
