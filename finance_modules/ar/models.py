"""
Accounts Receivable Domain Models (``finance_modules.ar.models``).

Responsibility
--------------
Frozen value objects for money received from customers.  Reconciliation
reads these as deposit candidates; invoice management lives elsewhere.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Payment amounts are positive ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from finance_kernel.logging_config import get_logger

logger = get_logger("modules.ar.models")


@dataclass(frozen=True)
class CustomerPayment:
    """A payment received from a customer."""
    id: UUID
    organization_id: UUID
    payment_date: date
    amount: Decimal
    currency: str = "USD"
    customer_id: UUID | None = None
    invoice_id: UUID | None = None
    method: str | None = None  # check, ach, wire, card
    reference: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.amount <= 0:
            logger.warning(
                "customer_payment_invalid_amount",
                extra={"payment_id": str(self.id), "amount": str(self.amount)},
            )
            raise ValueError("Customer payment amount must be positive")
