"""
Reconciliation - pure calculations over statement lines.
"""

from finance_engines.reconciliation.outstanding import (
    ClearableLine,
    OutstandingTotals,
    calculate_outstanding,
    compute_difference,
    within_tolerance,
)

__all__ = [
    "ClearableLine",
    "OutstandingTotals",
    "calculate_outstanding",
    "compute_difference",
    "within_tolerance",
]
