"""
Module: finance_engines
Responsibility:
    Re-exports the pure calculation engines used by bank reconciliation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import finance_kernel (logging, money helpers) and sibling engines.
    MUST NOT import finance_services or finance_modules.

Invariants enforced:
    - Engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for money.
    - Identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``
    (see ``finance_engines.tracer``).

Usage:
    from finance_engines.matching import MatchingEngine, MatchTolerance
    from finance_engines.reconciliation import calculate_outstanding
"""

from finance_engines.matching import (
    CandidateKey,
    LedgerCandidate,
    LedgerEntryType,
    MatchableLine,
    MatchingEngine,
    MatchProposal,
    MatchTolerance,
)
from finance_engines.reconciliation import (
    OutstandingTotals,
    calculate_outstanding,
    compute_difference,
    within_tolerance,
)
from finance_engines.tracer import traced_engine

__all__ = [
    "CandidateKey",
    "LedgerCandidate",
    "LedgerEntryType",
    "MatchableLine",
    "MatchingEngine",
    "MatchProposal",
    "MatchTolerance",
    "OutstandingTotals",
    "calculate_outstanding",
    "compute_difference",
    "within_tolerance",
    "traced_engine",
]
