"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers, and formats them into
    human-readable journal numbers such as ``BR-2024-001``.  Uses a dedicated
    counter table with row-level locking (``SELECT ... FOR UPDATE``) so two
    concurrent adjustments never receive the same number.

Architecture position:
    Kernel > Services.  Called by the bank adjustment poster when it numbers
    a new journal entry.

Invariants enforced:
    - The locked counter row is the sole source of the next value; the
      aggregate-max-plus-one pattern is never used.
    - The increment is only visible once the caller's transaction commits;
      rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and re-read).

Audit relevance:
    Allocation is logged at DEBUG level with sequence_name and value.
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from finance_kernel.db.base import Base
from finance_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is one named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "journal:BR:<organization_id>:2024"
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Transactional sequence numbers.

    Contract:
        ``next_value(name)`` returns the next strictly increasing integer for
        ``name``.  Does NOT call ``session.commit()``; the caller owns the
        transaction.

    Usage:
        number = SequenceService(session).next_journal_number(org_id, "BR", 2024)
        # "BR-2024-001", "BR-2024-002", ...
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it, and
        returns the new value.

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value previously
              committed for this name.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use; another transaction may be creating it concurrently.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    @staticmethod
    def journal_sequence_name(organization_id: UUID, prefix: str, year: int) -> str:
        return f"journal:{prefix}:{organization_id}:{year}"

    def next_journal_number(
        self,
        organization_id: UUID,
        prefix: str,
        year: int,
    ) -> str:
        """
        Allocate the next journal number for a prefix and year.

        Numbers restart at 001 each year and are zero-padded to three digits
        (wider once a year exceeds 999 entries).
        """
        value = self.next_value(
            self.journal_sequence_name(organization_id, prefix, year)
        )
        return f"{prefix}-{year}-{value:03d}"
