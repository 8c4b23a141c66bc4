"""
Module: finance_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries used by reconciliation: the signed
    balance of an account as of a date ("per books"), and the posted lines of
    an account projected for candidate matching.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Only POSTED entries count.  Draft entries never affect the books
      balance and never become match candidates.
    - No stored balances.  Everything derives from journal lines at query
      time, so recomputing twice without new postings gives the same number.

Failure modes:
    - Returns a zero balance / empty list when no posted lines exist.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from finance_kernel.db.types import to_money
from finance_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    LineSide,
)
from finance_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerLineRow:
    """A posted journal line with its entry header fields."""

    line_id: UUID
    entry_id: UUID
    journal_number: str
    effective_date: date
    signed_amount: Decimal
    description: str | None
    memo: str | None


class LedgerSelector(BaseSelector):
    """Query interface over posted journal lines."""

    def account_balance(
        self,
        account_id: UUID,
        as_of_date: date | None = None,
    ) -> Decimal:
        """
        Signed (debit - credit) balance of an account, rounded to cents.

        Args:
            account_id: Account to query.
            as_of_date: Include entries with effective_date on/before this date.
                None means all posted entries.
        """
        signed = func.sum(
            case(
                (JournalLine.side == LineSide.DEBIT.value, JournalLine.amount),
                else_=-JournalLine.amount,
            )
        )

        query = (
            select(signed)
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalLine.account_id == account_id,
            )
        )
        if as_of_date is not None:
            query = query.where(JournalEntry.effective_date <= as_of_date)

        return to_money(self.session.execute(query).scalar())

    def posted_lines(self, account_id: UUID) -> list[LedgerLineRow]:
        """
        Every posted line on an account, oldest first.

        Ordered by effective date, then journal number and line sequence, so
        iteration order is stable across calls.
        """
        rows = self.session.execute(
            select(
                JournalLine.id,
                JournalLine.journal_entry_id,
                JournalLine.side,
                JournalLine.amount,
                JournalLine.line_memo,
                JournalEntry.journal_number,
                JournalEntry.effective_date,
                JournalEntry.description,
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalLine.account_id == account_id,
            )
            .order_by(
                JournalEntry.effective_date,
                JournalEntry.journal_number,
                JournalLine.line_seq,
            )
        ).all()

        result: list[LedgerLineRow] = []
        for row in rows:
            amount = to_money(row.amount)
            result.append(
                LedgerLineRow(
                    line_id=row.id,
                    entry_id=row.journal_entry_id,
                    journal_number=row.journal_number,
                    effective_date=row.effective_date,
                    signed_amount=amount if row.side == LineSide.DEBIT.value else -amount,
                    description=row.description,
                    memo=row.line_memo,
                )
            )
        return result
