"""
finance_services -- Package init and public API.

Responsibility:
    Cross-module service plumbing: the explicit actor context with its role
    check, and the discriminated result type every reconciliation operation
    returns.

Architecture position:
    Services -- between the kernel/engines and the business modules.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        finance_services/ -> finance_kernel/   (allowed)
        finance_kernel/   -> finance_services/ (FORBIDDEN)
        finance_engines/  -> finance_services/ (FORBIDDEN)
"""

from finance_services.access import FINANCE_ROLES, ActorContext, authorize, check_role
from finance_services.results import INTERNAL_ERROR_CODE, OperationResult

__all__ = [
    "FINANCE_ROLES",
    "INTERNAL_ERROR_CODE",
    "ActorContext",
    "OperationResult",
    "authorize",
    "check_role",
]
