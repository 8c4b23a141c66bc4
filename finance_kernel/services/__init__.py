"""Services for the finance kernel (write side)."""

from finance_kernel.services.activity_logger import ActivityLogger
from finance_kernel.services.journal_writer import DraftLine, JournalDraft, JournalWriter
from finance_kernel.services.sequence_service import SequenceService

__all__ = [
    "ActivityLogger",
    "DraftLine",
    "JournalDraft",
    "JournalWriter",
    "SequenceService",
]
