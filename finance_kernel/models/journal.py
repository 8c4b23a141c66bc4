"""
Module: finance_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines, the
    general ledger that bank activity is reconciled against.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Journal numbers are unique per organization.
    - Debits == credits per entry (checked by JournalWriter before flush;
      is_balanced is the read-side convenience).
    - Line amounts are positive; side carries the sign.  The signed
      (debit - credit) value of a cash line is what reconciliation compares
      with the bank statement.

Failure modes:
    - IntegrityError on duplicate (organization_id, journal_number).
    - UnbalancedEntryError if debits != credits at posting time.

Audit relevance:
    Posted lines on the cash account are the "per books" side of every
    reconciliation.  Draft entries are ignored by both the books balance and
    the ledger candidate list.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finance_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from finance_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry: DRAFT -> POSTED."""

    DRAFT = "draft"
    POSTED = "posted"


class LineSide(str, Enum):
    """Which side of the entry this line is on."""

    DEBIT = "debit"
    CREDIT = "credit"


class JournalEntry(TrackedBase):
    """
    Journal entry header, the atomic unit of double-entry accounting.

    Contract:
        source / source_id identify the business object that produced the
        entry (for bank adjustments: "bank_reconciliation" and the
        reconciliation id).  Entries posted by reconciliation are created
        directly in POSTED status with posted_at set.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "journal_number", name="uq_journal_org_number"
        ),
        Index("idx_journal_effective_date", "effective_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_source", "source", "source_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Human-readable number, e.g. BR-2024-001
    journal_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Accounting date; the books balance includes entries dated on/before
    # the statement end date
    effective_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    source: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    source_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.journal_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        """Sum of all debit line amounts."""
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        """Sum of all credit line amounts."""
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.CREDIT),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        amount is always positive; side determines sign.  A line on the
        bank's cash account is a ledger candidate (type "je_line") once its
        entry is posted.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    side: Mapped[LineSide] = mapped_column(
        String(10),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    line_memo: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Ordering within the entry
    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    entry: Mapped["JournalEntry"] = relationship(
        back_populates="lines",
    )

    account: Mapped["Account"] = relationship(
        back_populates="journal_lines",
    )

    def __repr__(self) -> str:
        return f"<JournalLine {self.side} {self.amount} {self.currency}>"

    @property
    def is_debit(self) -> bool:
        return self.side == LineSide.DEBIT

    @property
    def signed_amount(self) -> Decimal:
        """Debits positive, credits negative."""
        if self.is_debit:
            return self.amount
        return -self.amount
