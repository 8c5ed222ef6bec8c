"""
Assembly lifecycle state machine
Flow: DRAFT → TESTING → APPROVED → DEPLOYED, with rollback and revert edges

    DRAFT ──test──▶ TESTING
    DRAFT/TESTING ──approve──▶ APPROVED ──deploy──▶ DEPLOYED
    DEPLOYED ──rollback──▶ APPROVED
    DRAFT/TESTING/APPROVED ──revert──▶ DRAFT

Only target_status() decides whether an action is legal; the services
call it before writing anything.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple

from assembly_factory.core.exceptions import AssemblyLockedError, InvalidTransitionError
from assembly_factory.models.assembly import AssemblyStatus


class LifecycleAction(str, Enum):
    START_TESTING = "start_testing"
    APPROVE = "approve"
    DEPLOY = "deploy"
    ROLLBACK = "rollback"
    REVERT = "revert"


TRANSITIONS: Dict[LifecycleAction, Tuple[FrozenSet[AssemblyStatus], AssemblyStatus]] = {
    LifecycleAction.START_TESTING: (frozenset({AssemblyStatus.DRAFT}), AssemblyStatus.TESTING),
    LifecycleAction.APPROVE: (
        frozenset({AssemblyStatus.DRAFT, AssemblyStatus.TESTING}),
        AssemblyStatus.APPROVED,
    ),
    LifecycleAction.DEPLOY: (frozenset({AssemblyStatus.APPROVED}), AssemblyStatus.DEPLOYED),
    LifecycleAction.ROLLBACK: (frozenset({AssemblyStatus.DEPLOYED}), AssemblyStatus.APPROVED),
    LifecycleAction.REVERT: (
        frozenset({AssemblyStatus.DRAFT, AssemblyStatus.TESTING, AssemblyStatus.APPROVED}),
        AssemblyStatus.DRAFT,
    ),
}


def can_transition(action: LifecycleAction, current: AssemblyStatus) -> bool:
    sources, _ = TRANSITIONS[action]
    return current in sources


def target_status(action: LifecycleAction, current: AssemblyStatus, assembly_id: str | None = None) -> AssemblyStatus:
    """Resolve the status an action leads to, or raise InvalidTransitionError."""
    sources, target = TRANSITIONS[action]
    if current not in sources:
        raise InvalidTransitionError(action.value, AssemblyStatus(current).value, assembly_id=assembly_id)
    return target


def available_actions(current: AssemblyStatus) -> list[LifecycleAction]:
    """Actions a UI may offer for an assembly in the given status."""
    return [action for action, (sources, _) in TRANSITIONS.items() if current in sources]


def is_membership_locked(status: AssemblyStatus) -> bool:
    return status == AssemblyStatus.DEPLOYED


def ensure_membership_editable(assembly_id: str, status: AssemblyStatus, operation: str) -> None:
    """Membership and config edits are frozen while deployed."""
    if is_membership_locked(status):
        raise AssemblyLockedError(assembly_id, operation)
