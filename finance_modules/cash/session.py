"""
finance_modules.cash.session
=============================

Responsibility:
    Recompute the derived balances of a reconciliation: the books balance of
    the GL cash account as of the statement end date, the outstanding totals
    over the statement's uncleared lines, and the difference.

Architecture:
    Module layer (finance_modules).  Flush-only; the calling service owns
    the transaction.  Delegates arithmetic to
    ``finance_engines.reconciliation.outstanding``.

Invariants enforced:
    - difference = (bank + deposits_in_transit + outstanding_checks) - books,
      rounded to cents.
    - Idempotent: running twice without intervening writes stores the same
      books balance and difference.
    - ``updated_at`` is set from the injected clock on every run.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from finance_engines.reconciliation.outstanding import (
    OutstandingTotals,
    calculate_outstanding,
    compute_difference,
)
from finance_kernel.db.types import round_money
from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.logging_config import get_logger
from finance_kernel.selectors.ledger_selector import LedgerSelector
from finance_modules.cash.models import BalanceSnapshot
from finance_modules.cash.orm import (
    BankAccountModel,
    BankStatementLineModel,
    BankStatementModel,
    ReconciliationModel,
)

logger = get_logger("modules.cash.session")


class ReconciliationSession:
    """Balance recompute for one reconciliation at a time."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    def outstanding(self, statement_id) -> OutstandingTotals:
        lines = self._session.execute(
            select(BankStatementLineModel)
            .where(BankStatementLineModel.statement_id == statement_id)
            .order_by(BankStatementLineModel.line_date, BankStatementLineModel.line_seq)
        ).scalars().all()
        return calculate_outstanding(lines)

    def recompute(self, reconciliation: ReconciliationModel) -> BalanceSnapshot:
        """
        Recompute and store books balance and difference.

        Pending changes to statement lines must be flushed first; the
        outstanding totals are read back from the database.
        """
        self._session.flush()

        statement = self._session.get(BankStatementModel, reconciliation.statement_id)
        bank_account = self._session.get(BankAccountModel, reconciliation.bank_account_id)

        books = self._ledger.account_balance(
            bank_account.gl_account_id,
            as_of_date=statement.end_date,
        )
        totals = self.outstanding(statement.id)
        bank = round_money(reconciliation.ending_balance_per_bank)
        difference = compute_difference(bank, totals, books)

        reconciliation.ending_balance_per_books = books
        reconciliation.difference = difference
        reconciliation.updated_at = self._clock.now()
        self._session.flush()

        logger.info(
            "reconciliation_recomputed",
            extra={
                "reconciliation_id": str(reconciliation.id),
                "ending_balance_per_bank": str(bank),
                "ending_balance_per_books": str(books),
                "deposits_in_transit": str(totals.deposits_in_transit),
                "outstanding_checks": str(totals.outstanding_checks),
                "difference": str(difference),
            },
        )
        return BalanceSnapshot(
            ending_balance_per_bank=bank,
            ending_balance_per_books=books,
            deposits_in_transit=totals.deposits_in_transit,
            outstanding_checks=totals.outstanding_checks,
            difference=difference,
        )
