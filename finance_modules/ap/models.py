"""
Accounts Payable Domain Models (``finance_modules.ap.models``).

Responsibility
--------------
Frozen value objects for money paid to vendors.  Reconciliation reads these
as disbursement candidates and flips their sign, since a vendor payment
leaves the bank account.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Payment amounts are stored positive; the sign is applied by the reader.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from finance_kernel.logging_config import get_logger

logger = get_logger("modules.ap.models")


@dataclass(frozen=True)
class VendorPayment:
    """A payment made to a vendor against a bill."""
    id: UUID
    organization_id: UUID
    payment_date: date
    amount: Decimal
    currency: str = "USD"
    vendor_id: UUID | None = None
    bill_id: UUID | None = None
    method: str | None = None
    reference: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.amount <= 0:
            logger.warning(
                "vendor_payment_invalid_amount",
                extra={"payment_id": str(self.id), "amount": str(self.amount)},
            )
            raise ValueError("Vendor payment amount must be positive")
