"""
finance_modules.cash
====================

Responsibility:
    Bank reconciliation -- bank accounts, statements, statement lines,
    matching against ledger activity, bank fee / interest adjustments, and
    the draft -> finalized workflow.  Matching and balance arithmetic are
    delegated to shared engines; journal posting to the kernel.

Architecture:
    Module layer (finance_modules).  May import from finance_kernel,
    finance_engines, and finance_services.  MUST NOT be imported by
    finance_kernel or finance_engines.

Invariants enforced:
    - Adjustment entries are balanced (JournalWriter rejects otherwise).
    - ReconciliationService owns commit/rollback; collaborators only flush.
    - A finalized reconciliation accepts reads only.

Failure modes:
    - Every ReconciliationService method returns an OperationResult; typed
      kernel errors become failures with code and category.

Audit relevance:
    Every mutating operation writes an ActivityLog row and structured log
    events carrying actor, organization and reconciliation.
"""

from finance_modules.cash.config import CashConfig
from finance_modules.cash.models import (
    AdjustmentType,
    BalanceSnapshot,
    BankAccount,
    BankStatement,
    BankStatementLine,
    MatchAction,
    Reconciliation,
    ReconciliationDetail,
    ReconciliationFilter,
    ReconciliationList,
    ReconciliationMatch,
    ReconciliationStatus,
    StatementLineInput,
)
from finance_modules.cash.service import ReconciliationService
from finance_modules.cash.workflows import RECONCILIATION_WORKFLOW

__all__ = [
    "AdjustmentType",
    "BalanceSnapshot",
    "BankAccount",
    "BankStatement",
    "BankStatementLine",
    "CashConfig",
    "MatchAction",
    "RECONCILIATION_WORKFLOW",
    "Reconciliation",
    "ReconciliationDetail",
    "ReconciliationFilter",
    "ReconciliationList",
    "ReconciliationMatch",
    "ReconciliationService",
    "ReconciliationStatus",
    "StatementLineInput",
]
