"""
finance_modules.cash.statements
================================

Responsibility:
    Create bank statements and append already-parsed statement rows to
    them, skipping rows that repeat a line the statement already has.

Architecture:
    Module layer (finance_modules).  Flush-only; the calling service owns
    the transaction.  File parsing (CSV, OFX, ...) happens upstream.

Invariants enforced:
    - start_date <= end_date.
    - Lines are appended, never updated or deleted here.
    - A row duplicates an existing line when the dates are equal, the
      amounts differ by less than one cent, and reference and description
      are equal ignoring case (None counts as "").
    - ``line_seq`` continues from the statement's highest sequence, so
      statement order (date, then insertion) is stable.
"""

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finance_kernel.db.types import round_money
from finance_kernel.exceptions import ValidationError
from finance_kernel.logging_config import get_logger
from finance_modules.cash.models import StatementLineInput
from finance_modules.cash.orm import (
    BankAccountModel,
    BankStatementLineModel,
    BankStatementModel,
)

logger = get_logger("modules.cash.statements")

DUPLICATE_AMOUNT_TOLERANCE = Decimal("0.01")


def _fold(value: str | None) -> str:
    return (value or "").lower()


def is_duplicate_line(existing: BankStatementLineModel, row: StatementLineInput) -> bool:
    return (
        existing.line_date == row.line_date
        and abs(existing.amount - row.amount) < DUPLICATE_AMOUNT_TOLERANCE
        and _fold(existing.reference) == _fold(row.reference)
        and _fold(existing.description) == _fold(row.description)
    )


class StatementBook:
    """Writes statements and statement lines."""

    def __init__(self, session: Session):
        self._session = session

    def create_statement(
        self,
        bank_account: BankAccountModel,
        start_date: date,
        end_date: date,
        starting_balance: Decimal,
        ending_balance: Decimal,
        actor_id: UUID,
    ) -> BankStatementModel:
        if start_date > end_date:
            raise ValidationError(
                "Statement start date must be on or before end date",
                field="start_date",
            )
        statement = BankStatementModel(
            id=uuid4(),
            bank_account_id=bank_account.id,
            start_date=start_date,
            end_date=end_date,
            starting_balance=round_money(starting_balance),
            ending_balance=round_money(ending_balance),
            imported_by_id=actor_id,
            created_by_id=actor_id,
        )
        self._session.add(statement)
        self._session.flush()
        logger.info(
            "bank_statement_created",
            extra={
                "statement_id": str(statement.id),
                "bank_account_id": str(bank_account.id),
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return statement

    def import_lines(
        self,
        statement: BankStatementModel,
        rows: Sequence[StatementLineInput],
        actor_id: UUID,
    ) -> list[BankStatementLineModel]:
        """
        Append rows not already on the statement.

        Returns:
            The inserted lines, in input order.
        """
        if not rows:
            raise ValidationError("No statement rows provided", field="rows")

        existing = list(self._existing_lines(statement.id))
        next_seq = self._max_line_seq(statement.id) + 1

        inserted: list[BankStatementLineModel] = []
        skipped = 0
        for row in rows:
            if any(is_duplicate_line(line, row) for line in existing):
                skipped += 1
                continue
            line = BankStatementLineModel(
                id=uuid4(),
                statement_id=statement.id,
                line_date=row.line_date,
                amount=round_money(row.amount),
                description=row.description,
                type=row.type,
                reference=row.reference,
                cleared=False,
                line_seq=next_seq,
                created_by_id=actor_id,
            )
            next_seq += 1
            self._session.add(line)
            inserted.append(line)

        self._session.flush()
        logger.info(
            "statement_lines_imported",
            extra={
                "statement_id": str(statement.id),
                "inserted": len(inserted),
                "skipped_duplicates": skipped,
            },
        )
        return inserted

    def _existing_lines(self, statement_id: UUID) -> Iterable[BankStatementLineModel]:
        return self._session.execute(
            select(BankStatementLineModel).where(
                BankStatementLineModel.statement_id == statement_id
            )
        ).scalars()

    def _max_line_seq(self, statement_id: UUID) -> int:
        value = self._session.execute(
            select(func.max(BankStatementLineModel.line_seq)).where(
                BankStatementLineModel.statement_id == statement_id
            )
        ).scalar()
        return value or 0
