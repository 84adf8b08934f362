"""Output helpers for the debt calculator.

This module provides simple functions to render balance histories, chart
series and summaries in a tabular text format. We rely only on built-in
printing and string formatting.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .data_models import BalancePoint, ChartSeries


def print_summary(summary: Dict[str, object]) -> None:
    """Print a summary of debt metrics in a human-readable format."""
    print("Summary")
    print("-" * 48)
    if summary.get("name"):
        print(f"Debt               : {summary['name']}")
    print(f"Principal          : {summary['principal']:.2f}")
    print(f"Interest rate      : {summary['interest_rate']:.2f}% ({summary['interest_period']})")
    print(f"Start date         : {summary['start_date']}")
    if summary["interest_start_date"] != summary["start_date"]:
        print(f"Interest from      : {summary['interest_start_date']}")
    print(f"Payments made      : {summary['payments_made']}")
    if summary.get("last_payment_date"):
        print(f"Last payment       : {summary['last_payment_date']}")
    print(f"Total paid         : {summary['total_paid']:.2f}")
    print(f"Interest accrued   : {summary['total_interest']:.2f}")
    print(f"Current balance    : {summary['current_balance']:.2f}")
    if summary.get("paid_off"):
        print("Status             : paid off")
    print("-" * 48)


def print_history(history: Iterable[BalancePoint]) -> None:
    """Print a balance history as a two-column table."""
    print("\t".join(["Date", "Balance"]))
    for point in history:
        print(f"{point.date.isoformat()}\t{point.balance:.2f}")


def print_chart(series: ChartSeries) -> None:
    """Print a sampled chart series, one labelled row per sample."""
    print(f"Cadence: {series.cadence}")
    for label, when, balance in zip(series.labels, series.dates, series.balances):
        print(f"{label:8s}\t{when.isoformat()}\t{balance:.2f}")
