"""Read-only selectors over kernel models."""

from finance_kernel.selectors.base import BaseSelector
from finance_kernel.selectors.ledger_selector import LedgerLineRow, LedgerSelector

__all__ = ["BaseSelector", "LedgerLineRow", "LedgerSelector"]
