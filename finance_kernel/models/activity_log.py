"""
Module: finance_kernel.models.activity_log
Responsibility: ORM persistence for the reconciliation activity trail, one
    row per mutating operation with a before/after diff.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are append-only; nothing in the system updates or deletes them.

Failure modes:
    - None surfaced to callers: ActivityLogger writes inside a savepoint and
      logs (never raises) on failure.

Audit relevance:
    Answers "who matched, cleared, adjusted or finalized what, and when" for a
    reconciliation.  Unlike journal lines it is not financial truth, which is
    why a failed write never fails the business operation.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from finance_kernel.db.base import Base, UUIDString


class ActivityAction(str, Enum):
    """Actions recorded against reconciliation entities."""

    CREATE = "create"
    UPDATE = "update"
    MATCH = "match"
    UNMATCH = "unmatch"
    AUTO_MATCH = "auto_match"
    CLEAR = "clear"
    ADJUST = "adjust"
    RECALCULATE = "recalculate"
    FINALIZE = "finalize"
    IMPORT = "import"


class ActivityLog(Base):
    """One activity trail entry."""

    __tablename__ = "activity_log"

    __table_args__ = (
        Index("idx_activity_entity", "entity", "entity_id"),
        Index("idx_activity_org_occurred", "organization_id", "occurred_at"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # e.g. "bank_reconciliation", "bank_statement_line"
    entity: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    action: Mapped[ActivityAction] = mapped_column(
        String(30),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # {"before": {...} | None, "after": {...} | None}
    diff: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} on {self.entity}:{self.entity_id}>"
