"""
finance_engines.matching -- Bank statement to ledger matching engine.

Responsibility:
    Decide which ledger candidate (posted cash journal line, customer
    payment, vendor payment) a bank statement line corresponds to, using
    amount and date tolerances.  Produces match proposals; persistence is the
    caller's job.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  MUST NOT import
    finance_services or finance_modules.

Invariants enforced:
    - Eligibility: |line.amount - candidate.amount| <= amount_tolerance AND
      |line.date - candidate.date| <= date_tolerance_days.  Both bounds are
      inclusive.
    - Winner: among eligible, unclaimed candidates the smallest date distance
      wins; on a tie the candidate seen first (input order) wins.
    - Uniqueness: a candidate key claimed earlier in a run (or passed in as
      already claimed) is never proposed again.  Smart matching is greedy and
      single-pass; an earlier line can take a candidate a later line would
      have fitted better.
    - Determinism: identical inputs in identical order give identical output.

Failure modes:
    - None raised.  Lines without an eligible candidate are simply absent
      from the plan.

Audit relevance:
    Proposals carry the date distance and amount difference that justified
    them; every invocation is traced via ``@traced_engine``.

Usage:
    from finance_engines.matching import MatchingEngine, MatchTolerance

    engine = MatchingEngine()
    plan = engine.plan_smart_matches(
        lines=unmatched_lines,
        candidates=candidates,
        claimed=already_matched_keys,
        tolerance=MatchTolerance(),
    )
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from finance_engines.tracer import traced_engine
from finance_kernel.logging_config import get_logger

logger = get_logger("engines.matching")


class LedgerEntryType(str, Enum):
    """Source of a ledger candidate."""

    JE_LINE = "je_line"  # Posted journal line on the bank's cash account
    AR_PAYMENT = "ar_payment"  # Customer payment, positive
    AP_PAYMENT = "ap_payment"  # Vendor payment, negated


@dataclass(frozen=True)
class CandidateKey:
    """
    Identity of a ledger candidate: (type, id).

    Ids from different sources may collide in principle, so the type is part
    of the key.  Hashable and compared structurally, which makes a
    ``set[CandidateKey]`` the claimed-candidate tracker.
    """

    entry_type: LedgerEntryType
    entry_id: UUID

    @classmethod
    def of(cls, entry_type: LedgerEntryType | str, entry_id: UUID | str) -> CandidateKey:
        return cls(
            LedgerEntryType(entry_type),
            entry_id if isinstance(entry_id, UUID) else UUID(str(entry_id)),
        )

    def __str__(self) -> str:
        return f"{self.entry_type.value}:{self.entry_id}"


@dataclass(frozen=True)
class LedgerCandidate:
    """
    A ledger item projected into bank-sign terms.

    amount uses the bank's sign: money into the account is positive.
    """

    id: UUID
    type: LedgerEntryType
    amount: Decimal
    date: date
    description: str | None = None
    reference: str | None = None

    @property
    def key(self) -> CandidateKey:
        return CandidateKey(self.type, self.id)


@dataclass(frozen=True)
class MatchableLine:
    """The parts of a statement line the engine looks at."""

    line_id: UUID
    line_date: date
    amount: Decimal


@dataclass(frozen=True)
class MatchTolerance:
    """
    Tolerance rules for statement-to-ledger matching.

    Defaults: one cent, three calendar days.
    """

    amount_tolerance: Decimal = Decimal("0.01")
    date_tolerance_days: int = 3

    def __post_init__(self) -> None:
        if self.amount_tolerance < 0:
            raise ValueError("amount_tolerance cannot be negative")
        if self.date_tolerance_days < 0:
            raise ValueError("date_tolerance_days cannot be negative")

    def amount_within(self, a: Decimal, b: Decimal) -> bool:
        return abs(a - b) <= self.amount_tolerance


@dataclass(frozen=True)
class MatchProposal:
    """One line-to-candidate pairing chosen by the engine."""

    statement_line_id: UUID
    candidate: LedgerCandidate
    date_distance_days: int
    amount_difference: Decimal

    @property
    def key(self) -> CandidateKey:
        return self.candidate.key


class MatchingEngine:
    """
    Tolerance-based statement matching.

    Contract:
        Pure functions; no I/O.  Callers pass statement lines in statement
        order (line date, then insertion) and candidates in source order.
    Non-goals:
        - Does not persist matches or flip cleared flags.
        - No many-to-one or one-to-many matching.
        - No global optimization; greedy by design of the workflow.
    """

    def evaluate(
        self,
        line: MatchableLine,
        candidate: LedgerCandidate,
        tolerance: MatchTolerance,
    ) -> MatchProposal | None:
        """Proposal for this pair, or None if outside tolerance."""
        amount_difference = line.amount - candidate.amount
        if abs(amount_difference) > tolerance.amount_tolerance:
            return None
        distance = abs((line.line_date - candidate.date).days)
        if distance > tolerance.date_tolerance_days:
            return None
        return MatchProposal(
            statement_line_id=line.line_id,
            candidate=candidate,
            date_distance_days=distance,
            amount_difference=amount_difference,
        )

    @traced_engine("matching", "2.0", fingerprint_fields=("line", "candidates"))
    def find_best_match(
        self,
        line: MatchableLine,
        candidates: Sequence[LedgerCandidate],
        claimed: Iterable[CandidateKey] = (),
        tolerance: MatchTolerance | None = None,
    ) -> MatchProposal | None:
        """
        Best unclaimed candidate for a single line.

        Returns:
            The eligible proposal with the smallest date distance (first found
            on ties), or None.
        """
        tolerance = tolerance or MatchTolerance()
        claimed_keys = claimed if isinstance(claimed, (set, frozenset)) else set(claimed)
        return self._best(line, candidates, claimed_keys, tolerance)

    @traced_engine("matching", "2.0", fingerprint_fields=("lines", "candidates", "claimed"))
    def plan_smart_matches(
        self,
        lines: Sequence[MatchableLine],
        candidates: Sequence[LedgerCandidate],
        claimed: Iterable[CandidateKey] = (),
        tolerance: MatchTolerance | None = None,
    ) -> list[MatchProposal]:
        """
        Greedy single pass over lines.

        Each line takes its best unclaimed candidate, which is then claimed
        for the rest of the run.

        Args:
            lines: Unmatched statement lines in statement order.
            candidates: Ledger candidates in source order.
            claimed: Keys already matched in this reconciliation.
            tolerance: Matching tolerances (defaults: 0.01, 3 days).

        Returns:
            Proposals in line order; at most one per line and per candidate.
        """
        t0 = time.monotonic()
        tolerance = tolerance or MatchTolerance()
        claimed_keys: set[CandidateKey] = set(claimed)

        logger.info("smart_match_plan_started", extra={
            "line_count": len(lines),
            "candidate_count": len(candidates),
            "already_claimed": len(claimed_keys),
        })

        plan: list[MatchProposal] = []
        for line in lines:
            proposal = self._best(line, candidates, claimed_keys, tolerance)
            if proposal is None:
                continue
            claimed_keys.add(proposal.key)
            plan.append(proposal)
            logger.debug("smart_match_proposed", extra={
                "statement_line_id": str(line.line_id),
                "candidate": str(proposal.key),
                "date_distance_days": proposal.date_distance_days,
            })

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("smart_match_plan_completed", extra={
            "lines_evaluated": len(lines),
            "proposals": len(plan),
            "duration_ms": duration_ms,
        })
        return plan

    def _best(
        self,
        line: MatchableLine,
        candidates: Sequence[LedgerCandidate],
        claimed: set[CandidateKey] | frozenset[CandidateKey],
        tolerance: MatchTolerance,
    ) -> MatchProposal | None:
        best: MatchProposal | None = None
        for candidate in candidates:
            if candidate.key in claimed:
                continue
            proposal = self.evaluate(line, candidate, tolerance)
            if proposal is None:
                continue
            # Strict < keeps the first-found candidate on equal distance
            if best is None or proposal.date_distance_days < best.date_distance_days:
                best = proposal
        return best
