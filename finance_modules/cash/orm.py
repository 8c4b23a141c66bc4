"""
Cash Management ORM Models (``finance_modules.cash.orm``).

Responsibility
--------------
SQLAlchemy persistence for bank reconciliation: bank accounts, statements,
statement lines, reconciliations and reconciliation matches.  Maps the
frozen dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``finance_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``finance_kernel``.

Invariants enforced
-------------------
* One reconciliation per statement (``uq_cash_reconciliations_statement``).
* Within a reconciliation, a statement line has at most one match and a
  ledger candidate ``(type, id)`` is the target of at most one match.
  The service checks both first; the constraints back it up.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finance_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# BankAccountModel
# ---------------------------------------------------------------------------

class BankAccountModel(TrackedBase):
    """
    ORM model for ``BankAccount`` -- a bank account linked to its GL cash
    account.

    Table: ``cash_bank_accounts``
    """

    __tablename__ = "cash_bank_accounts"

    organization_id: Mapped[UUID]
    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200))
    gl_account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    institution: Mapped[str | None] = mapped_column(String(200), nullable=True)
    account_number_masked: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    statements: Mapped[list["BankStatementModel"]] = relationship(
        back_populates="bank_account",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_cash_bank_accounts_org_code"),
        Index("idx_cash_bank_accounts_gl_account_id", "gl_account_id"),
    )

    def to_dto(self):
        from finance_modules.cash.models import BankAccount
        return BankAccount(
            id=self.id,
            organization_id=self.organization_id,
            code=self.code,
            name=self.name,
            gl_account_id=self.gl_account_id,
            currency=self.currency,
            institution=self.institution,
            account_number_masked=self.account_number_masked,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BankAccountModel":
        return cls(
            id=dto.id,
            organization_id=dto.organization_id,
            code=dto.code,
            name=dto.name,
            gl_account_id=dto.gl_account_id,
            currency=dto.currency,
            institution=dto.institution,
            account_number_masked=dto.account_number_masked,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<BankAccountModel(id={self.id!r}, code={self.code!r})>"


# ---------------------------------------------------------------------------
# BankStatementModel
# ---------------------------------------------------------------------------

class BankStatementModel(TrackedBase):
    """
    ORM model for ``BankStatement`` -- one statement period of a bank
    account.

    Table: ``cash_bank_statements``
    """

    __tablename__ = "cash_bank_statements"

    bank_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_bank_accounts.id"),
    )
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    starting_balance: Mapped[Decimal]
    ending_balance: Mapped[Decimal]
    imported_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    bank_account: Mapped["BankAccountModel"] = relationship(
        back_populates="statements",
    )
    lines: Mapped[list["BankStatementLineModel"]] = relationship(
        back_populates="statement",
        order_by="[BankStatementLineModel.line_date, BankStatementLineModel.line_seq]",
    )

    __table_args__ = (
        Index("idx_cash_bank_statements_bank_account_id", "bank_account_id"),
        Index("idx_cash_bank_statements_end_date", "end_date"),
    )

    def to_dto(self):
        from finance_modules.cash.models import BankStatement
        return BankStatement(
            id=self.id,
            bank_account_id=self.bank_account_id,
            start_date=self.start_date,
            end_date=self.end_date,
            starting_balance=self.starting_balance,
            ending_balance=self.ending_balance,
            imported_by_id=self.imported_by_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BankStatementModel":
        return cls(
            id=dto.id,
            bank_account_id=dto.bank_account_id,
            start_date=dto.start_date,
            end_date=dto.end_date,
            starting_balance=dto.starting_balance,
            ending_balance=dto.ending_balance,
            imported_by_id=dto.imported_by_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<BankStatementModel(id={self.id!r}, "
            f"period={self.start_date}..{self.end_date})>"
        )


# ---------------------------------------------------------------------------
# BankStatementLineModel
# ---------------------------------------------------------------------------

class BankStatementLineModel(TrackedBase):
    """
    ORM model for ``BankStatementLine``.

    Lines are appended and never deleted.  ``cleared`` and
    ``matched_ledger_id`` change with matching; ``line_seq`` keeps insertion
    order for lines sharing a date.

    Table: ``cash_bank_statement_lines``
    """

    __tablename__ = "cash_bank_statement_lines"

    statement_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_bank_statements.id"),
    )
    line_date: Mapped[date] = mapped_column(Date)
    amount: Mapped[Decimal]
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cleared: Mapped[bool] = mapped_column(Boolean, default=False)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    matched_ledger_id: Mapped[UUID | None] = mapped_column(nullable=True)
    line_seq: Mapped[int] = mapped_column(Integer, default=0)

    statement: Mapped["BankStatementModel"] = relationship(
        back_populates="lines",
    )

    __table_args__ = (
        Index("idx_cash_bank_statement_lines_statement_id", "statement_id"),
        Index("idx_cash_bank_statement_lines_line_date", "line_date"),
        Index("idx_cash_bank_statement_lines_matched_ledger_id", "matched_ledger_id"),
    )

    def to_dto(self):
        from finance_modules.cash.models import BankStatementLine
        return BankStatementLine(
            id=self.id,
            statement_id=self.statement_id,
            line_date=self.line_date,
            amount=self.amount,
            description=self.description,
            type=self.type,
            reference=self.reference,
            cleared=self.cleared,
            note=self.note,
            matched_ledger_id=self.matched_ledger_id,
            line_seq=self.line_seq,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BankStatementLineModel":
        return cls(
            id=dto.id,
            statement_id=dto.statement_id,
            line_date=dto.line_date,
            amount=dto.amount,
            description=dto.description,
            type=dto.type,
            reference=dto.reference,
            cleared=dto.cleared,
            note=dto.note,
            matched_ledger_id=dto.matched_ledger_id,
            line_seq=dto.line_seq,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<BankStatementLineModel(id={self.id!r}, date={self.line_date}, "
            f"amount={self.amount}, cleared={self.cleared})>"
        )


# ---------------------------------------------------------------------------
# ReconciliationModel
# ---------------------------------------------------------------------------

class ReconciliationModel(TrackedBase):
    """
    ORM model for ``Reconciliation`` -- the reconciliation of one statement.

    Table: ``cash_reconciliations``
    """

    __tablename__ = "cash_reconciliations"

    organization_id: Mapped[UUID]
    statement_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_bank_statements.id"),
    )
    bank_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_bank_accounts.id"),
    )
    status: Mapped[str] = mapped_column(String(20), default="draft")
    ending_balance_per_bank: Mapped[Decimal]
    ending_balance_per_books: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    difference: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reconciled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    statement: Mapped["BankStatementModel"] = relationship()
    bank_account: Mapped["BankAccountModel"] = relationship()
    matches: Mapped[list["ReconciliationMatchModel"]] = relationship(
        back_populates="reconciliation",
    )

    __table_args__ = (
        UniqueConstraint("statement_id", name="uq_cash_reconciliations_statement"),
        Index("idx_cash_reconciliations_org_status", "organization_id", "status"),
        Index("idx_cash_reconciliations_bank_account_id", "bank_account_id"),
    )

    def to_dto(self):
        from finance_modules.cash.models import Reconciliation, ReconciliationStatus
        return Reconciliation(
            id=self.id,
            organization_id=self.organization_id,
            statement_id=self.statement_id,
            bank_account_id=self.bank_account_id,
            status=ReconciliationStatus(self.status),
            ending_balance_per_bank=self.ending_balance_per_bank,
            ending_balance_per_books=self.ending_balance_per_books,
            difference=self.difference,
            reconciled_by_id=self.reconciled_by_id,
            reconciled_at=self.reconciled_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ReconciliationModel":
        return cls(
            id=dto.id,
            organization_id=dto.organization_id,
            statement_id=dto.statement_id,
            bank_account_id=dto.bank_account_id,
            status=dto.status.value,
            ending_balance_per_bank=dto.ending_balance_per_bank,
            ending_balance_per_books=dto.ending_balance_per_books,
            difference=dto.difference,
            reconciled_by_id=dto.reconciled_by_id,
            reconciled_at=dto.reconciled_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<ReconciliationModel(id={self.id!r}, status={self.status!r}, "
            f"difference={self.difference})>"
        )


# ---------------------------------------------------------------------------
# ReconciliationMatchModel
# ---------------------------------------------------------------------------

class ReconciliationMatchModel(TrackedBase):
    """
    ORM model for ``ReconciliationMatch`` -- a statement line linked to a
    ledger candidate.

    Unmatching deletes the row.

    Table: ``cash_reconciliation_matches``
    """

    __tablename__ = "cash_reconciliation_matches"

    reconciliation_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_reconciliations.id"),
    )
    statement_line_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_bank_statement_lines.id"),
    )
    ledger_entry_id: Mapped[UUID]
    ledger_entry_type: Mapped[str] = mapped_column(String(20))
    auto_matched: Mapped[bool] = mapped_column(Boolean, default=False)
    matched_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    reconciliation: Mapped["ReconciliationModel"] = relationship(
        back_populates="matches",
    )

    __table_args__ = (
        UniqueConstraint(
            "reconciliation_id", "statement_line_id",
            name="uq_cash_reconciliation_matches_line",
        ),
        UniqueConstraint(
            "reconciliation_id", "ledger_entry_type", "ledger_entry_id",
            name="uq_cash_reconciliation_matches_candidate",
        ),
        Index("idx_cash_reconciliation_matches_reconciliation_id", "reconciliation_id"),
    )

    def to_dto(self):
        from finance_modules.cash.models import LedgerEntryType, ReconciliationMatch
        return ReconciliationMatch(
            id=self.id,
            reconciliation_id=self.reconciliation_id,
            statement_line_id=self.statement_line_id,
            ledger_entry_id=self.ledger_entry_id,
            ledger_entry_type=LedgerEntryType(self.ledger_entry_type),
            auto_matched=self.auto_matched,
            matched_by_id=self.matched_by_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ReconciliationMatchModel":
        return cls(
            id=dto.id,
            reconciliation_id=dto.reconciliation_id,
            statement_line_id=dto.statement_line_id,
            ledger_entry_id=dto.ledger_entry_id,
            ledger_entry_type=dto.ledger_entry_type.value,
            auto_matched=dto.auto_matched,
            matched_by_id=dto.matched_by_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<ReconciliationMatchModel(line={self.statement_line_id!r}, "
            f"{self.ledger_entry_type}:{self.ledger_entry_id})>"
        )
