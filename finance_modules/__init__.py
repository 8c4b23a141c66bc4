"""
Finance Modules.

Business modules over the Finance Kernel and Engines.  Each module contains:
- Domain models (frozen dataclasses, the nouns)
- ORM models (persistence, ``to_dto`` / ``from_dto``)
- Configuration (validated defaults)
- Services (operations with transaction boundaries)

Modules:
- Cash: Bank accounts, statements, reconciliation, bank adjustments
- AR: Customer payments (ledger candidates for deposits)
- AP: Vendor payments (ledger candidates for disbursements)
"""

from finance_modules import ap, ar, cash

__all__ = ["ap", "ar", "cash"]
