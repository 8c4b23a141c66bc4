"""
ActivityLogger -- best-effort activity trail writes.

Responsibility:
    Appends ``ActivityLog`` rows (entity, entity_id, action, actor,
    before/after diff) for reconciliation operations.

Architecture position:
    Kernel > Services.  Flush-only; runs inside the caller's transaction.

Invariants enforced:
    - A failed activity write never fails the business operation.  Each
      write is isolated in a SAVEPOINT; on error the savepoint is rolled
      back, the failure is logged, and the caller continues.

Failure modes:
    - None raised.  Failures surface as ``activity_log_write_failed``
      warnings with the traceback attached.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.logging_config import get_logger
from finance_kernel.models.activity_log import ActivityAction, ActivityLog

logger = get_logger("services.activity_logger")


def _jsonable(value: Any) -> Any:
    """Convert diff payload values into JSON-safe primitives."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class ActivityLogger:
    """Writes activity trail entries without ever failing the caller."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def record(
        self,
        *,
        organization_id: UUID,
        actor_id: UUID,
        entity: str,
        entity_id: UUID,
        action: ActivityAction,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> bool:
        """
        Record one activity entry.

        Returns:
            True if the row was written, False if the write failed (logged).
        """
        action_value = getattr(action, "value", action)
        try:
            with self._session.begin_nested():
                self._session.add(
                    ActivityLog(
                        organization_id=organization_id,
                        entity=entity,
                        entity_id=entity_id,
                        action=ActivityAction(action).value,
                        actor_id=actor_id,
                        occurred_at=self._clock.now(),
                        diff={"before": _jsonable(before), "after": _jsonable(after)},
                    )
                )
                self._session.flush()
        except Exception:
            logger.warning(
                "activity_log_write_failed",
                extra={
                    "entity": entity,
                    "entity_id": str(entity_id),
                    "action": action_value,
                },
                exc_info=True,
            )
            return False

        logger.debug(
            "activity_logged",
            extra={"entity": entity, "entity_id": str(entity_id), "action": action_value},
        )
        return True
