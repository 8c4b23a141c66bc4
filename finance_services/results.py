"""
finance_services.results -- Discriminated operation results.

Responsibility:
    Give every reconciliation operation one return shape: success with data,
    or failure with a message, a machine-readable code and a category.
    Callers branch on ``success`` instead of catching exceptions.

Invariants:
    - success=True implies error is None; success=False implies error is set.
    - error_code / category come from the ``FinanceKernelError`` subclass
      that caused the failure; anything else is ``INTERNAL_ERROR`` /
      ``internal`` with a generic message (details stay in the logs).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from finance_kernel.exceptions import FinanceKernelError

T = TypeVar("T")

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Result of a reconciliation operation."""

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    category: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> OperationResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def from_error(cls, exc: FinanceKernelError) -> OperationResult[T]:
        details = {
            k: v for k, v in vars(exc).items() if not k.startswith("_")
        }
        return cls(
            success=False,
            error=str(exc),
            error_code=exc.code,
            category=exc.category,
            details=details or None,
        )

    @classmethod
    def internal(cls, message: str = "Unexpected error") -> OperationResult[T]:
        return cls(
            success=False,
            error=message,
            error_code=INTERNAL_ERROR_CODE,
            category="internal",
        )

    @property
    def is_success(self) -> bool:
        return self.success
