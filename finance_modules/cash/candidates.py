"""
finance_modules.cash.candidates
================================

Responsibility:
    Build the list of ledger candidates a bank account's statement lines can
    be matched against: posted journal lines on the account's GL cash
    account, customer payments and vendor payments of the organization.

Architecture:
    Module layer (finance_modules).  Read-only.  Reads journal lines through
    ``finance_kernel.selectors.LedgerSelector`` and payments through the AR
    and AP ORM models.

Invariants enforced:
    - Amounts are in bank sign: journal lines as debit - credit, customer
      payments positive, vendor payments negated.
    - Only posted journal entries contribute.  No date filtering.
    - Source order is fixed (journal lines, customer payments, vendor
      payments; each oldest first), so matching tie-breaks are repeatable.
    - Nothing is cached; every call reads the database again.

Failure modes:
    - A source whose query fails is logged (``candidate_source_failed``) and
      skipped.  The caller gets the candidates of the remaining sources.
"""

from collections.abc import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_engines.matching import LedgerCandidate, LedgerEntryType
from finance_kernel.db.types import to_money
from finance_kernel.logging_config import get_logger
from finance_kernel.selectors.ledger_selector import LedgerSelector
from finance_modules.ap.orm import VendorPaymentModel
from finance_modules.ar.orm import CustomerPaymentModel

logger = get_logger("modules.cash.candidates")


class LedgerCandidateAggregator:
    """
    Read-through projection of ledger activity into match candidates.

    Contract:
        ``collect(organization_id, gl_account_id)`` returns a fresh list on
        every call.  Each source runs inside its own SAVEPOINT so a failed
        query does not poison the caller's transaction.
    """

    def __init__(self, session: Session):
        self._session = session
        self._ledger = LedgerSelector(session)

    def collect(self, organization_id: UUID, gl_account_id: UUID) -> list[LedgerCandidate]:
        sources: list[tuple[str, Callable[[], list[LedgerCandidate]]]] = [
            ("je_line", lambda: self.journal_line_candidates(gl_account_id)),
            ("ar_payment", lambda: self.customer_payment_candidates(organization_id)),
            ("ap_payment", lambda: self.vendor_payment_candidates(organization_id)),
        ]

        candidates: list[LedgerCandidate] = []
        for source_name, load in sources:
            try:
                with self._session.begin_nested():
                    loaded = load()
            except SQLAlchemyError:
                logger.warning(
                    "candidate_source_failed",
                    extra={"source": source_name, "gl_account_id": str(gl_account_id)},
                    exc_info=True,
                )
                continue
            candidates.extend(loaded)

        logger.debug(
            "candidates_collected",
            extra={"gl_account_id": str(gl_account_id), "count": len(candidates)},
        )
        return candidates

    def journal_line_candidates(self, gl_account_id: UUID) -> list[LedgerCandidate]:
        return [
            LedgerCandidate(
                id=row.line_id,
                type=LedgerEntryType.JE_LINE,
                amount=row.signed_amount,
                date=row.effective_date,
                description=row.memo or f"Journal Entry {row.journal_number}",
                reference=row.journal_number,
            )
            for row in self._ledger.posted_lines(gl_account_id)
        ]

    def customer_payment_candidates(self, organization_id: UUID) -> list[LedgerCandidate]:
        payments = self._session.execute(
            select(CustomerPaymentModel)
            .where(CustomerPaymentModel.organization_id == organization_id)
            .order_by(CustomerPaymentModel.payment_date, CustomerPaymentModel.created_at)
        ).scalars()
        return [
            LedgerCandidate(
                id=p.id,
                type=LedgerEntryType.AR_PAYMENT,
                amount=to_money(p.amount),
                date=p.payment_date,
                description="Customer payment",
                reference=p.reference,
            )
            for p in payments
        ]

    def vendor_payment_candidates(self, organization_id: UUID) -> list[LedgerCandidate]:
        payments = self._session.execute(
            select(VendorPaymentModel)
            .where(VendorPaymentModel.organization_id == organization_id)
            .order_by(VendorPaymentModel.payment_date, VendorPaymentModel.created_at)
        ).scalars()
        return [
            LedgerCandidate(
                id=p.id,
                type=LedgerEntryType.AP_PAYMENT,
                amount=-to_money(p.amount),
                date=p.payment_date,
                description="Vendor payment",
                reference=p.reference,
            )
            for p in payments
        ]
