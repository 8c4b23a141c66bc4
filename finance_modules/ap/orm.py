"""
Accounts Payable ORM Models (``finance_modules.ap.orm``).

Responsibility
--------------
Persistence for vendor payments (``ap_payments`` table).

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
# VendorPaymentModel
# ---------------------------------------------------------------------------


class VendorPaymentModel(TrackedBase):
    """
    ORM model for payments made to vendors.

    Guarantees:
        - amount is stored positive; the candidate aggregator negates it.
    """

    __tablename__ = "ap_payments"

    __table_args__ = (
        Index("idx_ap_payments_org", "organization_id"),
        Index("idx_ap_payments_payment_date", "payment_date"),
        Index("idx_ap_payments_vendor_id", "vendor_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    vendor_id: Mapped[UUID | None] = mapped_column(nullable=True)
    bill_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from finance_modules.ap.models import VendorPayment

        return VendorPayment(
            id=self.id,
            organization_id=self.organization_id,
            payment_date=self.payment_date,
            amount=self.amount,
            currency=self.currency,
            vendor_id=self.vendor_id,
            bill_id=self.bill_id,
            method=self.method,
            reference=self.reference,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "VendorPaymentModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            organization_id=dto.organization_id,
            vendor_id=dto.vendor_id,
            bill_id=dto.bill_id,
            payment_date=dto.payment_date,
            amount=dto.amount,
            currency=dto.currency,
            method=dto.method,
            reference=dto.reference,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<VendorPaymentModel {self.id} {self.payment_date} {self.amount}>"
