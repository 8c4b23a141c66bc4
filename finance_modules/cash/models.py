"""
finance_modules.cash.models
============================

Responsibility:
    Frozen dataclass value objects for bank reconciliation: bank accounts,
    statements and their lines, reconciliations, matches, plus the validated
    request objects and read models that operations accept and return.  No
    persistence; structure and input validation only.

Architecture:
    Module layer (finance_modules).  In-memory DTOs, NOT SQLAlchemy models.
    ORM classes in ``orm.py`` convert to and from these via ``to_dto`` /
    ``from_dto``.

Invariants enforced:
    - All monetary fields are ``Decimal``; caller input is coerced through
      ``parse_amount`` (floats via ``str``).
    - Request objects validate in ``__post_init__`` and raise
      ``ValidationError`` before any write happens.

Failure modes:
    - ``ValidationError`` for non-positive adjustment amounts, memos over 500
      characters, malformed dates, unknown ledger entry types or actions.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from finance_engines.matching import CandidateKey, LedgerCandidate, LedgerEntryType
from finance_engines.reconciliation import OutstandingTotals
from finance_kernel.db.types import round_money
from finance_kernel.exceptions import ValidationError
from finance_kernel.logging_config import get_logger

logger = get_logger("modules.cash.models")

MEMO_MAX_LENGTH = 500

__all__ = [
    "AdjustmentType",
    "BalanceSnapshot",
    "BankAccount",
    "BankAdjustmentRequest",
    "BankStatement",
    "BankStatementLine",
    "CandidateKey",
    "LedgerCandidate",
    "LedgerEntryType",
    "ManualMatchRequest",
    "MatchAction",
    "Reconciliation",
    "ReconciliationDetail",
    "ReconciliationFilter",
    "ReconciliationList",
    "ReconciliationMatch",
    "ReconciliationStatus",
    "StatementLineInput",
    "parse_amount",
    "parse_date",
    "parse_uuid",
]


class ReconciliationStatus(Enum):
    """Reconciliation states.  See ``workflows.RECONCILIATION_WORKFLOW``."""
    DRAFT = "draft"
    FINALIZED = "finalized"


class AdjustmentType(Enum):
    """Bank-originated items booked during reconciliation."""
    FEE = "fee"
    INTEREST = "interest"


class MatchAction(Enum):
    MATCH = "match"
    UNMATCH = "unmatch"


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def parse_amount(value, field_name: str = "amount") -> Decimal:
    """Coerce caller input to Decimal; floats go through ``str``."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(
                f"{field_name} must be a number", field=field_name
            ) from None
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite", field=field_name)
    return amount


def parse_date(value, field_name: str = "date") -> date:
    """Accept a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(
        f"{field_name} must be a date in YYYY-MM-DD format", field=field_name
    )


def parse_uuid(value, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be a UUID", field=field_name) from None


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"{field_name} must be one of: {allowed}", field=field_name
        ) from None


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BankAccount:
    """
    A bank account of the organization, linked to its GL cash account.

    Contract:
        ``gl_account_id`` is the account whose posted lines form the books
        side of every reconciliation for this bank account.
    """
    id: UUID
    organization_id: UUID
    code: str
    name: str
    gl_account_id: UUID
    currency: str = "USD"
    institution: str | None = None
    account_number_masked: str | None = None  # last 4 digits only
    is_active: bool = True


@dataclass(frozen=True)
class BankStatement:
    """A bank statement for one period."""
    id: UUID
    bank_account_id: UUID
    start_date: date
    end_date: date
    starting_balance: Decimal
    ending_balance: Decimal
    imported_by_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class BankStatementLine:
    """
    A single line of a bank statement.

    ``amount`` is signed from the bank's point of view: deposits positive,
    withdrawals negative.  ``matched_ledger_id`` mirrors the line's match.
    """
    id: UUID
    statement_id: UUID
    line_date: date
    amount: Decimal
    description: str | None = None
    type: str | None = None
    reference: str | None = None
    cleared: bool = False
    note: str | None = None
    matched_ledger_id: UUID | None = None
    line_seq: int = 0

    @property
    def is_matched(self) -> bool:
        return self.matched_ledger_id is not None


@dataclass(frozen=True)
class Reconciliation:
    """
    A bank reconciliation for one statement.

    Contract:
        Workflow: draft -> finalized, one way.  Balances are derived and
        rewritten by every recompute while draft.
    """
    id: UUID
    organization_id: UUID
    statement_id: UUID
    bank_account_id: UUID
    status: ReconciliationStatus
    ending_balance_per_bank: Decimal
    ending_balance_per_books: Decimal
    difference: Decimal
    reconciled_by_id: UUID | None = None
    reconciled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_draft(self) -> bool:
        return self.status == ReconciliationStatus.DRAFT


@dataclass(frozen=True)
class ReconciliationMatch:
    """A link between a statement line and one ledger candidate."""
    id: UUID
    reconciliation_id: UUID
    statement_line_id: UUID
    ledger_entry_id: UUID
    ledger_entry_type: LedgerEntryType
    auto_matched: bool = False
    matched_by_id: UUID | None = None

    @property
    def candidate_key(self) -> CandidateKey:
        return CandidateKey(self.ledger_entry_type, self.ledger_entry_id)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatementLineInput:
    """One already-parsed statement row to append to a statement."""
    line_date: date
    amount: Decimal
    description: str | None = None
    type: str | None = None
    reference: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "line_date", parse_date(self.line_date, "line_date"))
        object.__setattr__(self, "amount", parse_amount(self.amount))


@dataclass(frozen=True)
class ManualMatchRequest:
    """Match or unmatch one statement line against one ledger candidate."""
    reconciliation_id: UUID
    statement_line_id: UUID
    ledger_entry_id: UUID
    ledger_entry_type: LedgerEntryType
    action: MatchAction = MatchAction.MATCH

    def __post_init__(self):
        object.__setattr__(
            self, "reconciliation_id",
            parse_uuid(self.reconciliation_id, "reconciliation_id"),
        )
        object.__setattr__(
            self, "statement_line_id",
            parse_uuid(self.statement_line_id, "statement_line_id"),
        )
        object.__setattr__(
            self, "ledger_entry_id",
            parse_uuid(self.ledger_entry_id, "ledger_entry_id"),
        )
        object.__setattr__(
            self, "ledger_entry_type",
            _parse_enum(LedgerEntryType, self.ledger_entry_type, "ledger_entry_type"),
        )
        object.__setattr__(
            self, "action", _parse_enum(MatchAction, self.action, "action"),
        )

    @property
    def candidate_key(self) -> CandidateKey:
        return CandidateKey(self.ledger_entry_type, self.ledger_entry_id)


@dataclass(frozen=True)
class BankAdjustmentRequest:
    """
    A bank fee or interest item to book.

    Guarantees (after construction):
        - amount > 0, rounded to cents.
        - memo is None or at most 500 characters.
    """
    reconciliation_id: UUID
    adjustment_type: AdjustmentType
    amount: Decimal
    adjustment_date: date
    memo: str | None = None

    def __post_init__(self):
        object.__setattr__(
            self, "reconciliation_id",
            parse_uuid(self.reconciliation_id, "reconciliation_id"),
        )
        object.__setattr__(
            self, "adjustment_type",
            _parse_enum(AdjustmentType, self.adjustment_type, "type"),
        )
        amount = parse_amount(self.amount)
        if amount <= 0:
            logger.warning(
                "bank_adjustment_invalid_amount",
                extra={"amount": str(amount)},
            )
            raise ValidationError("Amount must be positive", field="amount")
        object.__setattr__(self, "amount", round_money(amount))
        object.__setattr__(
            self, "adjustment_date", parse_date(self.adjustment_date, "date"),
        )
        if self.memo is not None:
            memo = self.memo.strip()
            if len(memo) > MEMO_MAX_LENGTH:
                raise ValidationError(
                    f"Memo must be at most {MEMO_MAX_LENGTH} characters", field="memo"
                )
            object.__setattr__(self, "memo", memo or None)


@dataclass(frozen=True)
class ReconciliationFilter:
    """Filters for listing reconciliations (created-at date range)."""
    bank_account_id: UUID | None = None
    status: ReconciliationStatus | None = None
    date_from: date | None = None
    date_to: date | None = None

    def __post_init__(self):
        if self.status is not None:
            object.__setattr__(
                self, "status", _parse_enum(ReconciliationStatus, self.status, "status"),
            )
        if self.date_from is not None:
            object.__setattr__(self, "date_from", parse_date(self.date_from, "date_from"))
        if self.date_to is not None:
            object.__setattr__(self, "date_to", parse_date(self.date_to, "date_to"))


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceSnapshot:
    """Derived balances written by a recompute."""
    ending_balance_per_bank: Decimal
    ending_balance_per_books: Decimal
    deposits_in_transit: Decimal
    outstanding_checks: Decimal
    difference: Decimal


@dataclass(frozen=True)
class ReconciliationDetail:
    """Everything needed to work a reconciliation."""
    reconciliation: Reconciliation
    statement: BankStatement
    bank_account: BankAccount
    lines: tuple[BankStatementLine, ...]
    matches: tuple[ReconciliationMatch, ...]
    candidates: tuple[LedgerCandidate, ...]
    outstanding: OutstandingTotals


@dataclass(frozen=True)
class ReconciliationList:
    """Filtered reconciliations with status counts."""
    items: tuple[Reconciliation, ...] = ()
    summary: dict[str, int] = field(default_factory=dict)
