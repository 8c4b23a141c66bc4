"""
finance_modules.cash.workflows
================================

Responsibility:
    Declarative state machine for bank reconciliation and the lookup the
    service uses to check a requested action against it.

Architecture:
    Module layer (finance_modules).  Pure data declarations plus one lookup
    helper -- no I/O, no imports from services.

Invariants enforced:
    - Workflow transitions are immutable (frozen dataclasses).
    - ``draft -> finalized`` is the only transition.  Nothing leaves
      ``finalized``; there is no reopen.
    - Every mutating action other than ``finalize`` is only valid in a
      state listed in ``EDITABLE_STATES``.

Failure modes:
    - ``find_transition`` returns None for an action not allowed from the
      current state; the service turns that into ``ReconciliationLockedError``.

Audit relevance:
    The ``finalize`` transition is the control point that locks a
    reconciliation.  Its guard is the difference tolerance.
"""

from dataclasses import dataclass

from finance_kernel.logging_config import get_logger

logger = get_logger("modules.cash.workflows")


@dataclass(frozen=True)
class Guard:
    """
    A condition that must be true for a transition to be allowed.

    Contract:
        Immutable predicate declaration.  The service evaluates the named
        guard at transition time; this dataclass only stores metadata.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """
    A valid state transition in a workflow.

    Contract:
        Immutable edge in the workflow graph.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """
    A state machine definition.

    Contract:
        Frozen declaration of states and transitions.  ``initial_state``
        must be an element of ``states``.  All ``from_state`` / ``to_state``
        values in ``transitions`` must be elements of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

DIFFERENCE_WITHIN_TOLERANCE = Guard(
    name="difference_within_tolerance",
    description="|difference| is at most the configured finalize tolerance",
)


# -----------------------------------------------------------------------------
# Reconciliation Workflow
# -----------------------------------------------------------------------------

RECONCILIATION_WORKFLOW = Workflow(
    name="bank_reconciliation",
    description="Bank statement reconciliation",
    initial_state="draft",
    states=(
        "draft",
        "finalized",
    ),
    transitions=(
        Transition(
            from_state="draft",
            to_state="finalized",
            action="finalize",
            guard=DIFFERENCE_WITHIN_TOLERANCE,
        ),
    ),
)

# States in which matches, clear flags and adjustments may change.
EDITABLE_STATES: frozenset[str] = frozenset({"draft"})

logger.info(
    "cash_reconciliation_workflow_registered",
    extra={
        "workflow_name": RECONCILIATION_WORKFLOW.name,
        "state_count": len(RECONCILIATION_WORKFLOW.states),
        "transition_count": len(RECONCILIATION_WORKFLOW.transitions),
        "initial_state": RECONCILIATION_WORKFLOW.initial_state,
    },
)


def find_transition(
    workflow: Workflow,
    from_state: str,
    action: str,
) -> Transition | None:
    """The transition for ``action`` out of ``from_state``, if any."""
    for transition in workflow.transitions:
        if transition.from_state == from_state and transition.action == action:
            return transition
    return None


def is_editable(state: str) -> bool:
    return state in EDITABLE_STATES
