"""
State transition validation for discovered items.

Lifecycle: DETECTED -> WAITING -> READING_METADATA -> IMPORTING -> COMPLETED
with DUPLICATE reachable from READING_METADATA (index hit) and IMPORTING
(destination already on disk), and FAILED reachable from any non-terminal
state.

INVARIANT: Terminal states are immutable. A reimport does not transition a
terminal item; it replaces the item with a fresh pass.
"""

from typing import FrozenSet, Set, Tuple

from .errors import InvalidStateTransitionError
from .models import DiscoveredItem, ImportStatus

TERMINAL_STATES: FrozenSet[ImportStatus] = frozenset({
    ImportStatus.COMPLETED,
    ImportStatus.DUPLICATE,
    ImportStatus.FAILED,
})

_TRANSITIONS: Set[Tuple[ImportStatus, ImportStatus]] = {
    (ImportStatus.DETECTED, ImportStatus.WAITING),
    (ImportStatus.WAITING, ImportStatus.READING_METADATA),
    (ImportStatus.READING_METADATA, ImportStatus.IMPORTING),
    (ImportStatus.READING_METADATA, ImportStatus.DUPLICATE),
    (ImportStatus.IMPORTING, ImportStatus.COMPLETED),
    (ImportStatus.IMPORTING, ImportStatus.DUPLICATE),
}


def is_terminal(status: ImportStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(from_status: ImportStatus, to_status: ImportStatus) -> bool:
    """
    Check if an item state transition is legal.

    Staying in the same non-terminal state is allowed (progress updates).
    """
    if is_terminal(from_status):
        return False
    if from_status == to_status:
        return True
    if to_status == ImportStatus.FAILED:
        return True
    return (from_status, to_status) in _TRANSITIONS


def validate_transition(from_status: ImportStatus, to_status: ImportStatus) -> None:
    """
    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition(from_status, to_status):
        raise InvalidStateTransitionError(from_status.value, to_status.value)


def validate_import_allowed(item: DiscoveredItem) -> None:
    """
    An item may only start importing after stability was confirmed and the
    duplicate index was consulted.
    """
    validate_transition(item.status, ImportStatus.IMPORTING)
    if not item.stability_confirmed:
        raise InvalidStateTransitionError(
            item.status.value, ImportStatus.IMPORTING.value, "stability not confirmed"
        )
    if not item.duplicate_checked:
        raise InvalidStateTransitionError(
            item.status.value, ImportStatus.IMPORTING.value, "duplicate index not checked"
        )
    if item.metadata is None or item.content_hash is None:
        raise InvalidStateTransitionError(
            item.status.value, ImportStatus.IMPORTING.value, "metadata not read"
        )
