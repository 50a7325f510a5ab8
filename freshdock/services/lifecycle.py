"""
Dispatch lifecycle rules.

Pure functions only: no session, no HTTP. The dispatch service consults these
before it mutates anything, so a refused transition never touches the database.
"""
from typing import Dict, FrozenSet, Iterable, Optional

from freshdock.db.schema import DispatchStatus, DisplayStatus


TRANSITIONS: Dict[DispatchStatus, FrozenSet[DispatchStatus]] = {
    DispatchStatus.PENDING: frozenset({DispatchStatus.IN_TRANSIT, DispatchStatus.ISSUE}),
    DispatchStatus.IN_TRANSIT: frozenset({DispatchStatus.ARRIVED, DispatchStatus.ISSUE}),
    DispatchStatus.ARRIVED: frozenset({DispatchStatus.RECEIVED, DispatchStatus.ISSUE}),
    DispatchStatus.RECEIVED: frozenset({DispatchStatus.ISSUE}),
    # No way back out of 'issue'; resolution happens outside the system
    DispatchStatus.ISSUE: frozenset(),
}

# Header fields may only be amended before the truck leaves
EDITABLE_STATUSES = frozenset({DispatchStatus.PENDING})
CON_NOTE_STATUSES = frozenset({DispatchStatus.PENDING, DispatchStatus.IN_TRANSIT})
ETA_STATUSES = frozenset({DispatchStatus.PENDING, DispatchStatus.IN_TRANSIT})


class TransitionError(Exception):
    """Raised when a requested change is not allowed from the current state."""

    def __init__(self, message: str, precondition: bool = False):
        super().__init__(message)
        self.message = message
        # True when the edge exists but a required input is missing
        self.precondition = precondition


def can_transition(current: DispatchStatus, target: DispatchStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: DispatchStatus, target: DispatchStatus) -> None:
    if not can_transition(current, target):
        raise TransitionError(
            f"Cannot move a dispatch from '{current.value}' to '{target.value}'."
        )


def display_status(status: DispatchStatus, internal_lot_number: Optional[str]) -> DisplayStatus:
    """
    Read-time status. An arrived dispatch without a lot number is shown as
    'received-pending-admin' so staff can tell it apart from stock already
    booked into inventory.
    """
    if status == DispatchStatus.ARRIVED and not (internal_lot_number or "").strip():
        return DisplayStatus.RECEIVED_PENDING_ADMIN
    return DisplayStatus(status.value)


def resolve_receive_status(issue_count: int) -> DispatchStatus:
    """Any flagged issue overrides a 'confirm received' action."""
    return DispatchStatus.ISSUE if issue_count > 0 else DispatchStatus.RECEIVED


def check_pickup(current: DispatchStatus, con_note_number: Optional[str]) -> str:
    """Returns the consignment note number to record, or raises."""
    ensure_transition(current, DispatchStatus.IN_TRANSIT)
    number = (con_note_number or "").strip()
    if not number:
        raise TransitionError(
            "Enter the carrier's con note number before marking as picked up.",
            precondition=True,
        )
    return number


def check_receive(current: DispatchStatus, issue_count: int = 0) -> None:
    """
    Receipt is confirmed from 'arrived', or from 'issue' once receiving
    issues have been flagged. The latter records the receipt without
    leaving 'issue'.
    """
    if current == DispatchStatus.ARRIVED:
        return
    if current == DispatchStatus.ISSUE and issue_count > 0:
        return
    raise TransitionError(
        f"Only arrived dispatches can be received (current status '{current.value}')."
    )


def check_edit(current: DispatchStatus) -> None:
    if current not in EDITABLE_STATUSES:
        raise TransitionError("Dispatches can only be edited while pending.")


def check_con_note(current: DispatchStatus) -> None:
    if current not in CON_NOTE_STATUSES:
        raise TransitionError(
            "Con notes can only be attached before the dispatch arrives.")


def check_eta(current: DispatchStatus) -> None:
    if current not in ETA_STATUSES:
        raise TransitionError("ETA can only be updated before arrival.")


def validate_new_dispatch(items: Iterable, grower_name: Optional[str]) -> None:
    """
    Creation guard: a non-empty grower identity and at least one line with a
    product and a positive quantity.
    """
    if not (grower_name or "").strip():
        raise TransitionError("A grower name is required.", precondition=True)

    valid = [
        item for item in items
        if (getattr(item, "product", "") or "").strip()
        and (getattr(item, "quantity", 0) or 0) > 0
    ]
    if not valid:
        raise TransitionError(
            "Add at least one item with a product and quantity.",
            precondition=True,
        )
