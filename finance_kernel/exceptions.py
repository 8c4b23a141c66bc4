"""
Typed exception hierarchy for the reconciliation kernel.

===============================================================================
CONVENTIONS
===============================================================================

  1. Every error has its own class; callers catch by type, never by message.
  2. Every class has a ``code`` class attribute (machine-readable, API-safe).
  3. Every class has a ``category`` class attribute naming the family the
     operation result exposes to callers.
  4. Context is stored as structured attributes, set in ``__init__``.

    try:
        service.finalize_reconciliation(actor, reconciliation_id)
    except DifferenceNotZeroError as e:
        log.warning("still off by %s", e.difference)
        api_response(code=e.code, difference=e.difference)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FinanceKernelError (base)
    |
    +-- AuthorizationError                     category=not_allowed
    |
    +-- EntityNotFoundError                    category=not_found
    |   +-- ReconciliationNotFoundError
    |   +-- StatementNotFoundError
    |   +-- StatementLineNotFoundError
    |   +-- BankAccountNotFoundError
    |   +-- AccountNotFoundError
    |   +-- MatchNotFoundError
    |
    +-- StateConflictError                     category=conflict
    |   +-- ReconciliationLockedError
    |   +-- ReconciliationExistsError
    |   +-- StatementLineAlreadyMatchedError
    |   +-- CandidateAlreadyMatchedError
    |
    +-- ValidationError                        category=invalid
    |
    +-- BusinessRuleError                      category=rule_violation
    |   +-- DifferenceNotZeroError
    |   +-- UnbalancedEntryError
    |   +-- AccountInactiveError
    |
    +-- ConfigurationError                     category=configuration
    |   +-- AdjustmentAccountsMissingError
    |
    +-- AdjustmentCashLineMissingError         category=internal

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                          | When Raised
------------------------------|----------------------------------------------
NOT_AUTHORIZED                | Actor role is not admin/finance
RECONCILIATION_NOT_FOUND      | Reconciliation ID doesn't exist (in the org)
STATEMENT_NOT_FOUND           | Bank statement ID doesn't exist
STATEMENT_LINE_NOT_FOUND      | Line doesn't exist or is on another statement
BANK_ACCOUNT_NOT_FOUND        | Bank account ID doesn't exist
ACCOUNT_NOT_FOUND             | GL account ID/code doesn't exist
MATCH_NOT_FOUND               | Unmatch names a ledger entry the line is not matched to
RECONCILIATION_LOCKED         | Mutation attempted on a finalized reconciliation
RECONCILIATION_EXISTS         | Second reconciliation for the same statement
STATEMENT_LINE_ALREADY_MATCHED| Manual match on a line that already has one
CANDIDATE_ALREADY_MATCHED     | Ledger item already claimed in this reconciliation
VALIDATION_ERROR              | Malformed input (amount <= 0, bad type, ...)
DIFFERENCE_NOT_ZERO           | Finalize with |difference| above tolerance
UNBALANCED_ENTRY              | Journal entry debits != credits
ACCOUNT_INACTIVE              | Posting to a deactivated account
CONFIGURATION_ERROR           | Fee / interest accounts not configured
ADJUSTMENT_CASH_LINE_MISSING  | Posted adjustment entry has no line on the cash account
"""

from decimal import Decimal


class FinanceKernelError(Exception):
    """
    Base exception for all reconciliation errors.

    All subclasses carry ``code`` and ``category`` class attributes.
    """

    code: str = "FINANCE_KERNEL_ERROR"
    category: str = "internal"


# Authorization


class AuthorizationError(FinanceKernelError):
    """The acting user may not perform reconciliation operations."""

    code: str = "NOT_AUTHORIZED"
    category: str = "not_allowed"

    def __init__(self, role: str | None, message: str = "Admins only"):
        self.role = role
        super().__init__(message)


# Not found


class EntityNotFoundError(FinanceKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"
    category: str = "not_found"
    entity: str = "Entity"

    def __init__(self, entity_id):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity} not found: {entity_id}")


class ReconciliationNotFoundError(EntityNotFoundError):
    code: str = "RECONCILIATION_NOT_FOUND"
    entity: str = "Reconciliation"


class StatementNotFoundError(EntityNotFoundError):
    code: str = "STATEMENT_NOT_FOUND"
    entity: str = "Statement"


class StatementLineNotFoundError(EntityNotFoundError):
    code: str = "STATEMENT_LINE_NOT_FOUND"
    entity: str = "Statement line"


class BankAccountNotFoundError(EntityNotFoundError):
    code: str = "BANK_ACCOUNT_NOT_FOUND"
    entity: str = "Bank account"


class AccountNotFoundError(EntityNotFoundError):
    """GL account lookup by id or code failed."""

    code: str = "ACCOUNT_NOT_FOUND"
    entity: str = "Account"


class MatchNotFoundError(EntityNotFoundError):
    """No match links the statement line to the given ledger entry."""

    code: str = "MATCH_NOT_FOUND"
    entity: str = "Match"

    def __init__(self, statement_line_id, ledger_entry: str):
        self.statement_line_id = str(statement_line_id)
        self.ledger_entry = ledger_entry
        super().__init__(f"{ledger_entry} on statement line {statement_line_id}")


# State conflicts


class StateConflictError(FinanceKernelError):
    """The entity's current state does not allow the operation."""

    code: str = "STATE_CONFLICT"
    category: str = "conflict"


class ReconciliationLockedError(StateConflictError):
    """Mutation attempted on a reconciliation that is no longer draft."""

    code: str = "RECONCILIATION_LOCKED"

    def __init__(self, reconciliation_id, status: str):
        self.reconciliation_id = str(reconciliation_id)
        self.status = status
        super().__init__("Reconciliation is locked")


class ReconciliationExistsError(StateConflictError):
    """A reconciliation already exists for the statement."""

    code: str = "RECONCILIATION_EXISTS"

    def __init__(self, statement_id, reconciliation_id):
        self.statement_id = str(statement_id)
        self.reconciliation_id = str(reconciliation_id)
        super().__init__(
            f"Reconciliation {reconciliation_id} already exists for statement {statement_id}"
        )


class StatementLineAlreadyMatchedError(StateConflictError):
    code: str = "STATEMENT_LINE_ALREADY_MATCHED"

    def __init__(self, statement_line_id):
        self.statement_line_id = str(statement_line_id)
        super().__init__("Statement line already matched")


class CandidateAlreadyMatchedError(StateConflictError):
    """The ledger item is already the target of a match in this reconciliation."""

    code: str = "CANDIDATE_ALREADY_MATCHED"

    def __init__(self, ledger_entry_type: str, ledger_entry_id):
        self.ledger_entry_type = ledger_entry_type
        self.ledger_entry_id = str(ledger_entry_id)
        super().__init__(
            f"Ledger entry already matched: {ledger_entry_type}:{ledger_entry_id}"
        )


# Validation


class ValidationError(FinanceKernelError):
    """Malformed operation input, rejected before any write."""

    code: str = "VALIDATION_ERROR"
    category: str = "invalid"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Business rules


class BusinessRuleError(FinanceKernelError):
    """A named business rule was violated."""

    code: str = "BUSINESS_RULE_VIOLATION"
    category: str = "rule_violation"


class DifferenceNotZeroError(BusinessRuleError):
    """Finalize attempted while the difference exceeds the tolerance."""

    code: str = "DIFFERENCE_NOT_ZERO"

    def __init__(self, difference: Decimal, tolerance: Decimal):
        self.difference = str(difference)
        self.tolerance = str(tolerance)
        super().__init__("Difference must be zero before finalizing")


class UnbalancedEntryError(BusinessRuleError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, currency: str):
        self.debits = debits
        self.credits = credits
        self.currency = currency
        super().__init__(
            f"Unbalanced entry in {currency}: debits={debits}, credits={credits}"
        )


class AccountInactiveError(BusinessRuleError):
    """Account is not active for posting."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id):
        self.account_id = str(account_id)
        super().__init__(f"Account is inactive: {account_id}")


# Configuration


class ConfigurationError(FinanceKernelError):
    """Environment or chart-of-accounts setup is incomplete."""

    code: str = "CONFIGURATION_ERROR"
    category: str = "configuration"


class AdjustmentAccountsMissingError(ConfigurationError):
    """Fee-expense or interest-income account is missing from the chart."""

    def __init__(self, missing_codes: list[str]):
        self.missing_codes = list(missing_codes)
        super().__init__(
            "Configure bank fee and interest accounts in chart of accounts"
        )


# Internal


class AdjustmentCashLineMissingError(FinanceKernelError):
    """A posted adjustment entry carries no line on the bank's cash account."""

    code: str = "ADJUSTMENT_CASH_LINE_MISSING"

    def __init__(self, journal_number: str, cash_account_id):
        self.journal_number = journal_number
        self.cash_account_id = str(cash_account_id)
        super().__init__(f"Adjustment entry {journal_number} has no cash line")
