import pytest

from pizzeria.domain.errors import InvalidTransition, ValidationFailed
from pizzeria.domain.models import NotificationKind, OrderStatus
from pizzeria.domain.state_machine import (
    AdvanceTo,
    Cancel,
    Confirm,
    Decline,
    SendNotification,
    event_for_status,
    status_label,
    transition,
)

AWAITING = OrderStatus.AWAITING_CONFIRMATION
NOT_AWAITING = [s for s in OrderStatus if s != AWAITING]


def test_confirm_moves_to_pending_and_requests_email():
    step = transition(AWAITING, Confirm(35))

    assert step.status == OrderStatus.PENDING
    assert step.estimated_minutes == 35
    assert step.expected == frozenset({AWAITING})
    assert step.intents == (SendNotification(NotificationKind.CONFIRMATION),)


def test_decline_cancels_and_requests_email():
    step = transition(AWAITING, Decline())

    assert step.status == OrderStatus.CANCELLED
    assert step.intents == (SendNotification(NotificationKind.CANCELLATION),)


@pytest.mark.parametrize("current", NOT_AWAITING)
@pytest.mark.parametrize("event", [Confirm(30), Decline()])
def test_confirm_and_decline_only_from_awaiting(current, event):
    with pytest.raises(InvalidTransition) as excinfo:
        transition(current, event)

    assert excinfo.value.current_status == current
    assert excinfo.value.event == event.name


@pytest.mark.parametrize("minutes", [0, -5, None, "40"])
def test_confirm_needs_positive_minutes(minutes):
    with pytest.raises(ValidationFailed):
        transition(AWAITING, Confirm(minutes))


@pytest.mark.parametrize("current", [AWAITING, OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY])
@pytest.mark.parametrize("target", [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED])
def test_admin_can_advance_any_open_order(current, target):
    step = transition(current, AdvanceTo(target))

    assert step.status == target
    assert step.intents == ()
    assert step.expected == frozenset({current})


def test_admin_override_skips_confirmation_without_email():
    step = transition(AWAITING, AdvanceTo(OrderStatus.DELIVERED))

    assert step.status == OrderStatus.DELIVERED
    assert step.intents == ()


@pytest.mark.parametrize("target", [OrderStatus.CANCELLED, OrderStatus.AWAITING_CONFIRMATION, OrderStatus.PENDING])
def test_advance_cannot_target_cancelled_or_earlier_states(target):
    with pytest.raises(InvalidTransition):
        transition(OrderStatus.PREPARING, AdvanceTo(target))


@pytest.mark.parametrize("terminal", [OrderStatus.CANCELLED, OrderStatus.DELIVERED])
@pytest.mark.parametrize("event", [AdvanceTo(OrderStatus.READY), Cancel()])
def test_terminal_states_stay_terminal(terminal, event):
    with pytest.raises(InvalidTransition):
        transition(terminal, event)


@pytest.mark.parametrize("current", [AWAITING, OrderStatus.PENDING, OrderStatus.READY])
def test_admin_cancel_sends_nothing(current):
    step = transition(current, Cancel())

    assert step.status == OrderStatus.CANCELLED
    assert step.intents == ()


def test_transition_accepts_raw_status_strings():
    assert transition("awaiting_confirmation", Confirm(20)).status == OrderStatus.PENDING


def test_event_for_status():
    assert event_for_status("cancelled") == Cancel()
    assert event_for_status(OrderStatus.READY) == AdvanceTo(OrderStatus.READY)


def test_status_labels():
    assert status_label(OrderStatus.PREPARING) == "In Zubereitung"
    assert status_label("awaiting_confirmation") == "Wartet auf Bestätigung"
    assert status_label("archived") == "archived"
