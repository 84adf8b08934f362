"""Data models for the debt balance calculator.

This module defines dataclasses representing the entities the calculator
works with: the static terms of a debt, the payments applied to it and the
points of the resulting balance series. Using dataclasses makes it easy to
construct, compare and serialize these structures.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List


# Number of compounding periods in a year for each supported interest period.
PERIODS_PER_YEAR: Dict[str, int] = {
    "daily": 365,
    "monthly": 12,
    "annually": 1,
}

INTEREST_PERIODS = tuple(PERIODS_PER_YEAR)


@dataclass(frozen=True)
class Debt:
    """The static terms of a debt.

    Attributes
    ----------
    principal: Decimal
        The original amount owed. The balance equals this value on
        ``start_date``.
    interest_rate: Decimal
        Annual interest rate in percent (``Decimal("5.5")`` means 5.5 %).
    interest_period: str
        Compounding basis, one of ``"daily"``, ``"monthly"`` or ``"annually"``.
    start_date: date
        The date the loan began.
    interest_start_date: date
        The date interest begins to accrue. Between ``start_date`` and this
        date the balance is flat.
    name: str
        Optional display name (e.g. ``"Federal Student Loan"``).
    """

    principal: Decimal
    interest_rate: Decimal
    interest_period: str
    start_date: date
    interest_start_date: date
    name: str = ""


@dataclass(frozen=True)
class Payment:
    """Money applied to a debt on a given date."""

    date: date
    amount: Decimal


@dataclass(frozen=True)
class BalancePoint:
    """One point of a balance series. ``balance`` is rounded to cents."""

    date: date
    balance: Decimal


@dataclass
class ChartSeries:
    """A fixed-cadence sampling of a balance series, ready for plotting.

    ``labels`` and ``balances`` are parallel lists; ``dates`` holds the date
    each sample was taken at. ``cadence`` is ``"monthly"`` or ``"yearly"``.
    """

    cadence: str
    labels: List[str] = field(default_factory=list)
    balances: List[Decimal] = field(default_factory=list)
    dates: List[date] = field(default_factory=list)
