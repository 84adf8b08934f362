"""Core calculation engine for the debt calculator.

This module turns the static terms of a debt plus its payment history into a
chronological balance series. Interest is simple interest recomputed from the
running balance between events: the annual rate is converted to a rate per
compounding period and multiplied by the (fractional) number of periods that
elapsed. Payments are applied after the interest accrued up to their date and
can never push the balance below zero.

Results are returned as lists of ``BalancePoint`` objects, a ``ChartSeries``
sampled at a fixed cadence, or a summary dictionary.
"""

from __future__ import annotations

from bisect import bisect_right
from datetime import date
from decimal import Decimal, getcontext
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import BalancePoint, ChartSeries, Debt, Payment, PERIODS_PER_YEAR
from .utils import add_months, first_of_next_month, first_of_next_year, quantize_cents

getcontext().prec = 28  # increase precision for financial calculations

DAYS_PER_YEAR = Decimal(365)

# Loans younger than this many months are charted month by month.
MONTHLY_CHART_SPAN = 36

TODAY_LABEL = "Today"


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def compute_interest(balance, rate, period: str, days) -> Decimal:
    """Return the interest accrued on ``balance`` over ``days`` days.

    The annual ``rate`` (in percent) is split into ``periods_per_year`` equal
    period rates and multiplied by the number of periods elapsed:

        period_rate = (rate / 100) / periods_per_year
        periods     = (days / 365) * periods_per_year
        interest    = balance * period_rate * periods

    ``days`` may be fractional. Zero days or a zero rate yield zero interest.
    """
    try:
        periods_per_year = Decimal(PERIODS_PER_YEAR[period])
    except KeyError:
        raise ValueError(f"Unknown interest period: {period}") from None
    period_rate = (_as_decimal(rate) / Decimal(100)) / periods_per_year
    periods = (_as_decimal(days) / DAYS_PER_YEAR) * periods_per_year
    return _as_decimal(balance) * period_rate * periods


def _validate(debt: Debt, payments: Sequence[Payment]) -> None:
    """Reject inputs the calculator cannot produce a meaningful series for."""
    if debt.principal <= 0:
        raise ValueError("Principal must be positive")
    if debt.interest_rate < 0:
        raise ValueError("Interest rate must be non-negative")
    if debt.interest_period not in PERIODS_PER_YEAR:
        raise ValueError(f"Unknown interest period: {debt.interest_period}")
    if debt.interest_start_date < debt.start_date:
        raise ValueError("Interest start date cannot be before the start date")
    for payment in payments:
        if payment.date < debt.start_date:
            raise ValueError(f"Payment on {payment.date.isoformat()} is before the start date")
        if payment.amount <= 0:
            raise ValueError("Payment amounts must be positive")


def _build_history(
    debt: Debt, payments: Iterable[Payment], today: Optional[date]
) -> Tuple[List[BalancePoint], Decimal, Decimal]:
    """Walk the payment history and return the series plus running totals.

    Returns the balance points, the total interest accrued and the total
    amount of payments actually applied (after clamping at zero).
    """
    ordered = sorted(payments, key=lambda p: p.date)
    _validate(debt, ordered)
    if today is None:
        today = date.today()

    rate = _as_decimal(debt.interest_rate)
    period = debt.interest_period
    interest_start = debt.interest_start_date

    balance = _as_decimal(debt.principal)
    total_interest = Decimal("0")
    total_applied = Decimal("0")
    points: List[BalancePoint] = [BalancePoint(debt.start_date, quantize_cents(balance))]

    # The flat segment ends with a point on the interest start date. Payments
    # made before that date are applied first so the series stays ordered.
    flat_point_pending = interest_start > debt.start_date

    for payment in ordered:
        if flat_point_pending and payment.date >= interest_start:
            points.append(BalancePoint(interest_start, quantize_cents(balance)))
            flat_point_pending = False

        if payment.date >= interest_start:
            since = max(points[-1].date, interest_start)
            interest = compute_interest(balance, rate, period, (payment.date - since).days)
            balance += interest
            total_interest += interest

        amount = _as_decimal(payment.amount)
        total_applied += min(amount, balance)
        balance = max(Decimal("0"), balance - amount)
        points.append(BalancePoint(payment.date, quantize_cents(balance)))

    if flat_point_pending:
        points.append(BalancePoint(interest_start, quantize_cents(balance)))

    last_date = points[-1].date
    if today > last_date and today > interest_start:
        since = max(last_date, interest_start)
        interest = compute_interest(balance, rate, period, (today - since).days)
        balance += interest
        total_interest += interest
        points.append(BalancePoint(today, quantize_cents(balance)))

    return points, total_interest, total_applied


def compute_balance_history(
    debt: Debt, payments: Iterable[Payment], today: Optional[date] = None
) -> List[BalancePoint]:
    """Compute the balance of ``debt`` over time.

    Parameters
    ----------
    debt: Debt
        The static terms of the debt.
    payments: Iterable[Payment]
        The payments made on the debt, in any order.
    today: date, optional
        The date the series is extrapolated to. Defaults to ``date.today()``.

    Returns
    -------
    List[BalancePoint]
        Points ordered by date, starting with ``(start_date, principal)``. One
        point is emitted per payment, one on the interest start date when it
        differs from the start date and a final one for ``today`` when it lies
        after both the last event and the interest start date.
    """
    points, _, _ = _build_history(debt, payments, today)
    return points


def _balance_at(debt: Debt, history: List[BalancePoint], dates: List[date], when: date) -> Decimal:
    """Balance on ``when``, accrued from the nearest earlier history point."""
    index = bisect_right(dates, when) - 1
    point = history[max(index, 0)]
    since = max(point.date, debt.interest_start_date)
    balance = point.balance
    if when > since:
        balance += compute_interest(balance, debt.interest_rate, debt.interest_period, (when - since).days)
    return quantize_cents(balance)


def generate_chart_series(
    debt: Debt, payments: Iterable[Payment], today: Optional[date] = None
) -> ChartSeries:
    """Sample the balance history of ``debt`` at a fixed cadence for charting.

    Loans that started at most three years before ``today`` are sampled on the
    first of every month, older loans on the first of every year. The first
    sample is the start date and the last one is always ``today``, even when
    it falls in the middle of a period.
    """
    if today is None:
        today = date.today()
    history = compute_balance_history(debt, payments, today)
    history_dates = [point.date for point in history]

    if today > add_months(debt.start_date, MONTHLY_CHART_SPAN):
        series = ChartSeries(cadence="yearly")
        next_boundary = first_of_next_year
        label_format = "%Y"
    else:
        series = ChartSeries(cadence="monthly")
        next_boundary = first_of_next_month
        label_format = "%b %y"

    samples = [(debt.start_date, debt.start_date.strftime(label_format))]
    if today > debt.start_date:
        boundary = next_boundary(debt.start_date)
        while boundary < today:
            samples.append((boundary, boundary.strftime(label_format)))
            boundary = next_boundary(boundary)
        samples.append((today, TODAY_LABEL))

    for when, label in samples:
        series.dates.append(when)
        series.labels.append(label)
        series.balances.append(_balance_at(debt, history, history_dates, when))
    return series


def summarize_debt(
    debt: Debt, payments: Iterable[Payment], today: Optional[date] = None
) -> Dict[str, object]:
    """Return aggregate figures for a debt as a JSON-friendly dictionary."""
    payments = list(payments)
    history, total_interest, total_applied = _build_history(debt, payments, today)
    current_balance = history[-1].balance
    last_payment = max((p.date for p in payments), default=None)
    return {
        "name": debt.name,
        "principal": float(quantize_cents(debt.principal)),
        "interest_rate": float(debt.interest_rate),
        "interest_period": debt.interest_period,
        "start_date": debt.start_date.isoformat(),
        "interest_start_date": debt.interest_start_date.isoformat(),
        "current_balance": float(current_balance),
        "total_paid": float(quantize_cents(total_applied)),
        "total_interest": float(quantize_cents(total_interest)),
        "payments_made": len(payments),
        "last_payment_date": last_payment.isoformat() if last_payment else None,
        "paid_off": current_balance == 0,
    }
