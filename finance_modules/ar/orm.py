"""
Accounts Receivable ORM Models (``finance_modules.ar.orm``).

Responsibility
--------------
Persistence for customer payments.  Maps the ``CustomerPayment`` frozen
dataclass to the ``ar_payments`` table.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``finance_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``finance_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finance_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# CustomerPaymentModel
# ---------------------------------------------------------------------------


class CustomerPaymentModel(TrackedBase):
    """
    ORM model for payments received from customers.

    Guarantees:
        - amount is stored positive; reconciliation uses it as-is (money in).
    """

    __tablename__ = "ar_payments"

    __table_args__ = (
        Index("idx_ar_payments_org", "organization_id"),
        Index("idx_ar_payments_payment_date", "payment_date"),
        Index("idx_ar_payments_reference", "reference"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    invoice_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from finance_modules.ar.models import CustomerPayment

        return CustomerPayment(
            id=self.id,
            organization_id=self.organization_id,
            payment_date=self.payment_date,
            amount=self.amount,
            currency=self.currency,
            customer_id=self.customer_id,
            invoice_id=self.invoice_id,
            method=self.method,
            reference=self.reference,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "CustomerPaymentModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            organization_id=dto.organization_id,
            customer_id=dto.customer_id,
            invoice_id=dto.invoice_id,
            payment_date=dto.payment_date,
            amount=dto.amount,
            currency=dto.currency,
            method=dto.method,
            reference=dto.reference,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<CustomerPaymentModel {self.id} {self.payment_date} {self.amount}>"
