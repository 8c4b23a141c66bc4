"""
JournalWriter -- balanced journal entry posting.

Responsibility:
    Turns a ``JournalDraft`` (accounts, sides, positive amounts) into
    persisted, POSTED ``JournalEntry`` and ``JournalLine`` rows with a
    sequential journal number.

Architecture position:
    Kernel > Services.  Flush-only: the calling module service owns the
    transaction boundary and commits or rolls back the whole operation.
    Delegates numbering to SequenceService.

Invariants enforced:
    - Debits == credits per entry, checked before anything is written.
    - Every line amount is strictly positive; side carries the sign.
    - Every line references an existing, active account of the entry's
      organization.
    - Journal numbers come from the locked sequence counter.

Failure modes:
    - ValidationError: fewer than two lines, or a non-positive amount.
    - UnbalancedEntryError: debits != credits.
    - AccountNotFoundError / AccountInactiveError: bad account reference.

Audit relevance:
    Each written line and the posted entry are logged with structured fields
    (journal_number, account, side, amount).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    UnbalancedEntryError,
    ValidationError,
)
from finance_kernel.logging_config import get_logger
from finance_kernel.models.account import Account
from finance_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    LineSide,
)
from finance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")


@dataclass(frozen=True)
class DraftLine:
    """One debit or credit of a draft entry."""

    account_id: UUID
    side: LineSide
    amount: Decimal
    memo: str | None = None


@dataclass(frozen=True)
class JournalDraft:
    """A balanced entry ready for posting."""

    organization_id: UUID
    effective_date: date
    description: str | None
    lines: tuple[DraftLine, ...]
    number_prefix: str = "JE"
    source: str | None = None
    source_id: UUID | None = None
    currency: str = "USD"

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.CREDIT),
            Decimal("0"),
        )


class JournalWriter:
    """
    Posts balanced journal entries.

    Contract:
        ``post(draft, actor_id)`` validates the draft, writes the entry and
        its lines, and marks the entry POSTED.  Does NOT commit.

    Non-goals:
        - No reversal or draft editing.
        - No multi-currency balancing; one currency per entry.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = sequence_service or SequenceService(session)

    def post(self, draft: JournalDraft, actor_id: UUID) -> JournalEntry:
        """
        Validate and post a draft.

        Postconditions:
            - Returned entry is POSTED with posted_at from the injected clock.
            - entry.is_balanced is True.

        Raises:
            ValidationError, UnbalancedEntryError, AccountNotFoundError,
            AccountInactiveError.
        """
        self._validate(draft)

        journal_number = self._sequence_service.next_journal_number(
            draft.organization_id,
            draft.number_prefix,
            draft.effective_date.year,
        )

        entry = JournalEntry(
            id=uuid4(),
            organization_id=draft.organization_id,
            journal_number=journal_number,
            effective_date=draft.effective_date,
            actor_id=actor_id,
            status=JournalEntryStatus.DRAFT.value,
            source=draft.source,
            source_id=draft.source_id,
            description=draft.description,
            created_by_id=actor_id,
        )
        self._session.add(entry)

        for seq, line in enumerate(draft.lines, start=1):
            entry.lines.append(
                JournalLine(
                    account_id=line.account_id,
                    side=LineSide(line.side).value,
                    amount=line.amount,
                    currency=draft.currency,
                    line_memo=line.memo,
                    line_seq=seq,
                    created_by_id=actor_id,
                )
            )
            logger.info(
                "line_written",
                extra={
                    "journal_number": journal_number,
                    "line_seq": seq,
                    "account_id": str(line.account_id),
                    "side": LineSide(line.side).value,
                    "amount": str(line.amount),
                },
            )

        entry.status = JournalEntryStatus.POSTED.value
        entry.posted_at = self._clock.now()
        self._session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "journal_number": journal_number,
                "effective_date": str(entry.effective_date),
                "source": entry.source,
                "total": str(draft.total_debits),
            },
        )
        return entry

    def _validate(self, draft: JournalDraft) -> None:
        if len(draft.lines) < 2:
            raise ValidationError(
                "A journal entry needs at least two lines", field="lines"
            )
        for line in draft.lines:
            if line.amount <= 0:
                raise ValidationError(
                    f"Line amounts must be positive, got {line.amount}",
                    field="amount",
                )

        debits, credits = draft.total_debits, draft.total_credits
        if debits != credits:
            logger.warning(
                "unbalanced_entry_rejected",
                extra={"debits": str(debits), "credits": str(credits)},
            )
            raise UnbalancedEntryError(str(debits), str(credits), draft.currency)

        account_ids = {line.account_id for line in draft.lines}
        accounts = {
            account.id: account
            for account in self._session.execute(
                select(Account).where(Account.id.in_(account_ids))
            ).scalars()
        }
        for account_id in account_ids:
            account = accounts.get(account_id)
            if account is None or account.organization_id != draft.organization_id:
                raise AccountNotFoundError(account_id)
            if not account.is_active:
                raise AccountInactiveError(account_id)
