"""Domain models for the finance kernel."""

from finance_kernel.models.account import Account, AccountType, NormalBalance
from finance_kernel.models.activity_log import ActivityAction, ActivityLog
from finance_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    LineSide,
)

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "ActivityAction",
    "ActivityLog",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LineSide",
]
