from types import SimpleNamespace

import pytest

from freshdock.db.schema import DispatchStatus, DisplayStatus
from freshdock.services import lifecycle
from freshdock.services.lifecycle import TransitionError


@pytest.mark.parametrize("current, target", [
    (DispatchStatus.PENDING, DispatchStatus.IN_TRANSIT),
    (DispatchStatus.IN_TRANSIT, DispatchStatus.ARRIVED),
    (DispatchStatus.ARRIVED, DispatchStatus.RECEIVED),
    (DispatchStatus.RECEIVED, DispatchStatus.ISSUE),
])
def test_forward_moves_are_allowed(current, target):
    assert lifecycle.can_transition(current, target)


@pytest.mark.parametrize("current, target", [
    (DispatchStatus.PENDING, DispatchStatus.ARRIVED),
    (DispatchStatus.IN_TRANSIT, DispatchStatus.PENDING),
    (DispatchStatus.RECEIVED, DispatchStatus.ARRIVED),
    (DispatchStatus.ISSUE, DispatchStatus.RECEIVED),
])
def test_skips_and_reversals_are_refused(current, target):
    assert not lifecycle.can_transition(current, target)
    with pytest.raises(TransitionError) as exc:
        lifecycle.ensure_transition(current, target)
    assert exc.value.precondition is False


def test_issue_is_terminal():
    for target in DispatchStatus:
        assert not lifecycle.can_transition(DispatchStatus.ISSUE, target)


def test_pickup_requires_con_note_number():
    with pytest.raises(TransitionError) as exc:
        lifecycle.check_pickup(DispatchStatus.PENDING, "   ")
    assert exc.value.precondition is True

    assert lifecycle.check_pickup(DispatchStatus.PENDING, " CN-7781 ") == "CN-7781"


def test_pickup_from_wrong_state_is_a_conflict_not_a_precondition():
    with pytest.raises(TransitionError) as exc:
        lifecycle.check_pickup(DispatchStatus.ARRIVED, "CN-1")
    assert exc.value.precondition is False


def test_receive_resolves_to_issue_when_anything_was_flagged():
    assert lifecycle.resolve_receive_status(0) == DispatchStatus.RECEIVED
    assert lifecycle.resolve_receive_status(2) == DispatchStatus.ISSUE


def test_receive_from_arrived_or_flagged_issue():
    lifecycle.check_receive(DispatchStatus.ARRIVED)
    lifecycle.check_receive(DispatchStatus.ISSUE, issue_count=1)
    with pytest.raises(TransitionError):
        lifecycle.check_receive(DispatchStatus.IN_TRANSIT)
    with pytest.raises(TransitionError):
        lifecycle.check_receive(DispatchStatus.ISSUE, issue_count=0)
    with pytest.raises(TransitionError):
        lifecycle.check_receive(DispatchStatus.RECEIVED, issue_count=1)


def test_display_status_flags_arrivals_without_lot_number():
    assert lifecycle.display_status(DispatchStatus.ARRIVED, None) == \
        DisplayStatus.RECEIVED_PENDING_ADMIN
    assert lifecycle.display_status(DispatchStatus.ARRIVED, "  ") == \
        DisplayStatus.RECEIVED_PENDING_ADMIN
    assert lifecycle.display_status(DispatchStatus.ARRIVED, "LOT-42") == DisplayStatus.ARRIVED
    assert lifecycle.display_status(DispatchStatus.RECEIVED, None) == DisplayStatus.RECEIVED


def test_edit_and_eta_windows():
    lifecycle.check_edit(DispatchStatus.PENDING)
    with pytest.raises(TransitionError):
        lifecycle.check_edit(DispatchStatus.IN_TRANSIT)

    lifecycle.check_eta(DispatchStatus.IN_TRANSIT)
    with pytest.raises(TransitionError):
        lifecycle.check_eta(DispatchStatus.ARRIVED)

    lifecycle.check_con_note(DispatchStatus.IN_TRANSIT)
    with pytest.raises(TransitionError):
        lifecycle.check_con_note(DispatchStatus.RECEIVED)


def test_new_dispatch_needs_grower_and_a_real_line():
    line = SimpleNamespace(product="Bananas", quantity=10)
    empty = SimpleNamespace(product=" ", quantity=10)
    zero = SimpleNamespace(product="Bananas", quantity=0)

    lifecycle.validate_new_dispatch([empty, line], "Sunny Ridge")

    with pytest.raises(TransitionError) as exc:
        lifecycle.validate_new_dispatch([line], "  ")
    assert exc.value.precondition is True

    with pytest.raises(TransitionError):
        lifecycle.validate_new_dispatch([empty, zero], "Sunny Ridge")

    with pytest.raises(TransitionError):
        lifecycle.validate_new_dispatch([], "Sunny Ridge")
