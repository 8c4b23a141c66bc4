"""
finance_modules.cash.adjustments
=================================

Responsibility:
    Book bank-originated items discovered during reconciliation (service
    charges and interest) as balanced two-line journal entries, then link
    the new cash line to the statement line that reported the item.

Architecture:
    Module layer (finance_modules).  Flush-only.  Posting goes through
    ``finance_kernel.services.JournalWriter``; numbering through its
    ``SequenceService`` (prefix ``BR``).

Invariants enforced:
    - Fee:      Dr fee expense   / Cr bank cash account, equal amounts.
    - Interest: Dr bank cash     / Cr interest income,   equal amounts.
    - Auto-link target: the first line of the statement (statement order)
      with neither a matched pointer nor a match row in this reconciliation,
      whose amount is within the match tolerance of the signed cash effect
      (-amount for a fee, +amount for interest).  At most one line.

Failure modes:
    - AdjustmentAccountsMissingError: the fee or interest account code is not
      in the organization's chart of accounts.
    - Errors from JournalWriter (inactive account, unbalanced) propagate.
    - AdjustmentCashLineMissingError: the posted entry has no cash line.
"""

from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.exceptions import (
    AdjustmentAccountsMissingError,
    AdjustmentCashLineMissingError,
)
from finance_kernel.logging_config import get_logger
from finance_kernel.models.account import Account
from finance_kernel.models.journal import JournalEntry, JournalLine, LineSide
from finance_kernel.services.journal_writer import DraftLine, JournalDraft, JournalWriter
from finance_modules.cash.config import CashConfig
from finance_modules.cash.models import AdjustmentType, BankAdjustmentRequest, LedgerEntryType
from finance_modules.cash.orm import (
    BankAccountModel,
    BankStatementLineModel,
    ReconciliationMatchModel,
    ReconciliationModel,
)

logger = get_logger("modules.cash.adjustments")

ADJUSTMENT_SOURCE = "bank_reconciliation"

DEFAULT_MEMOS = {
    AdjustmentType.FEE: "Bank service charge adjustment",
    AdjustmentType.INTEREST: "Bank interest income adjustment",
}


@dataclass(frozen=True)
class AdjustmentAccounts:
    fee_account_id: UUID
    interest_account_id: UUID


@dataclass(frozen=True)
class PostedAdjustment:
    """Outcome of one adjustment: the entry and the line it cleared, if any."""
    journal_entry_id: UUID
    journal_number: str
    cash_line_id: UUID
    matched_statement_line_id: UUID | None


class AdjustmentPoster:
    """Posts fee / interest adjustments for a draft reconciliation."""

    def __init__(
        self,
        session: Session,
        config: CashConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or CashConfig()
        self._clock = clock or SystemClock()
        self._writer = JournalWriter(session, clock=self._clock)

    def resolve_accounts(self, organization_id: UUID) -> AdjustmentAccounts:
        """Look up the fee expense and interest income accounts by code."""
        fee_code = self._config.fee_account_code
        interest_code = self._config.interest_account_code
        rows = self._session.execute(
            select(Account.code, Account.id).where(
                Account.organization_id == organization_id,
                Account.code.in_((fee_code, interest_code)),
            )
        ).all()
        by_code = {row.code: row.id for row in rows}

        missing = [code for code in (fee_code, interest_code) if code not in by_code]
        if missing:
            logger.error(
                "adjustment_accounts_missing",
                extra={"missing_codes": missing, "organization_id": str(organization_id)},
            )
            raise AdjustmentAccountsMissingError(missing)
        return AdjustmentAccounts(
            fee_account_id=by_code[fee_code],
            interest_account_id=by_code[interest_code],
        )

    def post(
        self,
        reconciliation: ReconciliationModel,
        request: BankAdjustmentRequest,
        actor_id: UUID,
    ) -> PostedAdjustment:
        """
        Post the adjustment entry and try to link it to a statement line.

        The caller has already checked that the reconciliation is draft.
        """
        bank_account = self._session.get(BankAccountModel, reconciliation.bank_account_id)
        accounts = self.resolve_accounts(reconciliation.organization_id)
        cash_account_id = bank_account.gl_account_id
        memo = request.memo or DEFAULT_MEMOS[request.adjustment_type]
        amount = request.amount

        if request.adjustment_type == AdjustmentType.FEE:
            lines = (
                DraftLine(accounts.fee_account_id, LineSide.DEBIT, amount, memo),
                DraftLine(cash_account_id, LineSide.CREDIT, amount, memo),
            )
            cash_effect = -amount
        else:
            lines = (
                DraftLine(cash_account_id, LineSide.DEBIT, amount, memo),
                DraftLine(accounts.interest_account_id, LineSide.CREDIT, amount, memo),
            )
            cash_effect = amount

        entry = self._writer.post(
            JournalDraft(
                organization_id=reconciliation.organization_id,
                effective_date=request.adjustment_date,
                description=memo,
                lines=lines,
                number_prefix=self._config.journal_number_prefix,
                source=ADJUSTMENT_SOURCE,
                source_id=reconciliation.id,
                currency=bank_account.currency,
            ),
            actor_id=actor_id,
        )
        cash_line = self._cash_line(entry, cash_account_id)

        matched_line_id = self._auto_link(reconciliation, cash_line, cash_effect, actor_id)

        logger.info(
            "bank_adjustment_posted",
            extra={
                "reconciliation_id": str(reconciliation.id),
                "adjustment_type": request.adjustment_type.value,
                "amount": str(amount),
                "journal_number": entry.journal_number,
                "auto_matched": matched_line_id is not None,
            },
        )
        return PostedAdjustment(
            journal_entry_id=entry.id,
            journal_number=entry.journal_number,
            cash_line_id=cash_line.id,
            matched_statement_line_id=matched_line_id,
        )

    @staticmethod
    def _cash_line(entry: JournalEntry, cash_account_id: UUID) -> JournalLine:
        for line in entry.lines:
            if line.account_id == cash_account_id:
                return line
        raise AdjustmentCashLineMissingError(entry.journal_number, cash_account_id)

    def _auto_link(
        self,
        reconciliation: ReconciliationModel,
        cash_line: JournalLine,
        cash_effect,
        actor_id: UUID,
    ) -> UUID | None:
        tolerance = self._config.match_amount_tolerance
        has_match = exists().where(
            ReconciliationMatchModel.reconciliation_id == reconciliation.id,
            ReconciliationMatchModel.statement_line_id == BankStatementLineModel.id,
        )
        unmatched = self._session.execute(
            select(BankStatementLineModel)
            .where(
                BankStatementLineModel.statement_id == reconciliation.statement_id,
                BankStatementLineModel.matched_ledger_id.is_(None),
                ~has_match,
            )
            .order_by(BankStatementLineModel.line_date, BankStatementLineModel.line_seq)
        ).scalars()

        target = next(
            (line for line in unmatched if abs(line.amount - cash_effect) <= tolerance),
            None,
        )
        if target is None:
            logger.info(
                "bank_adjustment_no_statement_line",
                extra={"reconciliation_id": str(reconciliation.id), "amount": str(cash_effect)},
            )
            return None

        self._session.add(
            ReconciliationMatchModel(
                id=uuid4(),
                reconciliation_id=reconciliation.id,
                statement_line_id=target.id,
                ledger_entry_id=cash_line.id,
                ledger_entry_type=LedgerEntryType.JE_LINE.value,
                auto_matched=True,
                matched_by_id=actor_id,
                created_by_id=actor_id,
            )
        )
        target.cleared = True
        target.matched_ledger_id = cash_line.id
        target.updated_by_id = actor_id
        self._session.flush()
        return target.id
