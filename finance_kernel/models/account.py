"""
Module: finance_kernel.models.account
Responsibility: ORM persistence for the chart of accounts, the target of
    every journal line.  Reconciliation uses it in two ways: the bank
    account's cash GL account, and the fee-expense / interest-income accounts
    resolved by code when posting adjustments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (organization_id, code) is unique, so a code resolves to at most one
      account per tenant.
    - Inactive accounts are never posted to (enforced by JournalWriter).

Failure modes:
    - AccountNotFoundError when a lookup by id or code misses.
    - AccountInactiveError when a posting targets an inactive account.

Audit relevance:
    Account rows define what the signed ledger amounts mean.  The cash
    account's debit-minus-credit balance is the "per books" side of every
    reconciliation.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finance_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from finance_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        code is unique within an organization.  Cash accounts linked from a
        bank account are debit-normal assets; the fee account is an expense
        and the interest account is revenue, but the model does not police
        which account plays which role.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_account_org_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Human-readable code, e.g. "1000", "6100"
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        String(10),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT
