"""
Module: finance_kernel.db.base
Responsibility: Declarative base classes shared by every ORM model in the
    reconciliation system: UUID primary keys, the column type map for money
    and timestamps, and the TrackedBase audit mixin.
Architecture position: Kernel > DB.  Lowest import target inside the kernel.
    MUST NOT import from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - Every row is keyed by a uuid4 stored as String(36), so statement
      lines, journal lines and payments can be addressed uniformly by
      ledger candidates regardless of backend.
    - Decimal maps to Numeric(38, 9).  Money is never a float.
    - TrackedBase rows always carry created_at and created_by_id.

Failure modes:
    - IntegrityError on a duplicate primary key (practically impossible with
      uuid4, still guarded by the PK constraint).

Audit relevance:
    created_by_id / updated_by_id record which actor wrote a statement line,
    match, or reconciliation row; together with the activity log they answer
    "who touched this reconciliation".
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as its 36-character string form.

    Works identically on PostgreSQL and SQLite, which keeps the test backend
    and the production backend on one schema.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            return str(PyUUID(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Guarantees:
        - id is a uuid4 stored as String(36).
        - Decimal -> Numeric(38, 9); datetime -> DateTime(timezone=True);
          int -> BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base adding creation/modification timestamps and actors.

    updated_at is refreshed on every UPDATE through onupdate=func.now(); the
    reconciliation recompute relies on this to stamp each recalculation.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
