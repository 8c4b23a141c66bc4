"""
finance_services.access -- Actor context and role checks for reconciliation.

Responsibility:
    Carry the caller's identity (actor, tenant, role) explicitly into every
    operation and decide whether that role may reconcile bank accounts.

Architecture position:
    Services layer.  Does not resolve identity itself; the web/auth
    collaborator builds the ``ActorContext`` and passes it in.

Invariants:
    - The role check runs before any read or write.
    - Only roles in the allowed set pass (default: admin, finance).  A
      missing role is denied, never fail-open.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from finance_kernel.exceptions import AuthorizationError, ValidationError
from finance_kernel.logging_config import get_logger

logger = get_logger("services.access")

FINANCE_ROLES: frozenset[str] = frozenset({"admin", "finance"})


@dataclass(frozen=True)
class ActorContext:
    """Who is calling, for which organization, in which role."""

    actor_id: UUID
    organization_id: UUID
    role: str | None

    def __post_init__(self) -> None:
        if not isinstance(self.actor_id, UUID):
            raise ValidationError("actor_id must be a UUID", field="actor_id")
        if not isinstance(self.organization_id, UUID):
            raise ValidationError(
                "organization_id must be a UUID", field="organization_id"
            )


def check_role(
    actor: ActorContext,
    allowed_roles: Iterable[str] = FINANCE_ROLES,
) -> tuple[bool, str]:
    """Return (allowed, reason); reason is empty when allowed."""
    allowed = frozenset(allowed_roles)
    if actor.role is None or not actor.role.strip():
        return (False, "Admins only")
    if actor.role.strip().lower() not in allowed:
        return (False, "Admins only")
    return (True, "")


def authorize(
    actor: ActorContext,
    action: str,
    allowed_roles: Iterable[str] = FINANCE_ROLES,
) -> None:
    """
    Raise ``AuthorizationError`` unless the actor's role is allowed.

    Args:
        actor: Caller identity.
        action: Operation name, for the denial log record.
        allowed_roles: Roles permitted to reconcile.
    """
    allowed, reason = check_role(actor, allowed_roles)
    if not allowed:
        logger.warning(
            "access_denied",
            extra={
                "action": action,
                "actor_id": str(actor.actor_id),
                "role": actor.role,
            },
        )
        raise AuthorizationError(actor.role, reason)
