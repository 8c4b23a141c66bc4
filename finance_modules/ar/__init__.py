"""
Accounts Receivable Module.

Customer payments.  Reconciliation treats each payment as a deposit
candidate (positive amount).
"""

from finance_modules.ar.models import CustomerPayment

__all__ = ["CustomerPayment"]
