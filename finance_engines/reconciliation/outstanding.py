"""
finance_engines.reconciliation.outstanding -- Outstanding items and difference.

Responsibility:
    Summarize statement lines that have not cleared into deposits in transit
    and outstanding checks, and derive the reconciliation difference from
    the bank balance, those totals, and the books balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - deposits_in_transit = sum of uncleared positive amounts (>= 0).
    - outstanding_checks = sum of uncleared negative amounts (<= 0).
    - difference = (bank_ending + deposits_in_transit + outstanding_checks)
      - books_ending, rounded to cents.  Zero-amount lines contribute to
      neither total.

Failure modes:
    - None.  An empty line list yields zero totals.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from finance_engines.tracer import traced_engine
from finance_kernel.db.types import ZERO, round_money


class ClearableLine(Protocol):
    """Anything with a signed amount and a cleared flag."""

    amount: Decimal
    cleared: bool


@dataclass(frozen=True)
class OutstandingTotals:
    """Uncleared activity, bank sign."""

    deposits_in_transit: Decimal = ZERO
    outstanding_checks: Decimal = ZERO
    uncleared_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.deposits_in_transit + self.outstanding_checks


@traced_engine("outstanding", "1.0")
def calculate_outstanding(lines: Iterable[ClearableLine]) -> OutstandingTotals:
    """Totals over lines with ``cleared`` False."""
    deposits = Decimal("0")
    checks = Decimal("0")
    count = 0
    for line in lines:
        if line.cleared:
            continue
        count += 1
        if line.amount > 0:
            deposits += line.amount
        elif line.amount < 0:
            checks += line.amount
    return OutstandingTotals(
        deposits_in_transit=round_money(deposits),
        outstanding_checks=round_money(checks),
        uncleared_count=count,
    )


def compute_difference(
    bank_ending: Decimal,
    outstanding: OutstandingTotals,
    books_ending: Decimal,
) -> Decimal:
    """
    Adjusted bank balance minus books balance, rounded to cents.

    Example:
        bank 1000.00, deposits in transit 50.00, books 950.00 -> 100.00
    """
    adjusted_bank = bank_ending + outstanding.deposits_in_transit + outstanding.outstanding_checks
    return round_money(adjusted_bank - books_ending)


def within_tolerance(difference: Decimal, tolerance: Decimal) -> bool:
    """|difference| <= tolerance, inclusive."""
    return abs(difference) <= tolerance
