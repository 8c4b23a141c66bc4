"""
Accounts Payable Module.

Vendor payments.  Reconciliation treats each payment as a disbursement
candidate (negated amount).
"""

from finance_modules.ap.models import VendorPayment

__all__ = ["VendorPayment"]
