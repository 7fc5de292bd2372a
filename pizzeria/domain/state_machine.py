"""
Order state machine.

`transition()` is pure: it decides the next status and which notifications
should go out, but never sends them. The orchestrator executes the intents
after the status write has been acknowledged.

    awaiting_confirmation --Confirm--> pending --AdvanceTo--> preparing / ready / delivered
    awaiting_confirmation --Decline--> cancelled
    any non-terminal      --Cancel---> cancelled   (admin, no email)

AdvanceTo is the admin dropdown override: it may skip Confirm entirely
(and with it the confirmation email), but it can neither enter nor leave
a terminal status.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple, Union

from pizzeria.domain.errors import InvalidTransition, ValidationFailed
from pizzeria.domain.models import NotificationKind, OrderStatus

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
ADVANCE_TARGETS: FrozenSet[OrderStatus] = frozenset({OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED})
NON_TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(OrderStatus) - TERMINAL_STATUSES

STATUS_LABELS = {
    OrderStatus.AWAITING_CONFIRMATION: "Wartet auf Bestätigung",
    OrderStatus.PENDING: "Wartend",
    OrderStatus.PREPARING: "In Zubereitung",
    OrderStatus.READY: "Bereit zur Lieferung",
    OrderStatus.DELIVERED: "Geliefert",
    OrderStatus.CANCELLED: "Storniert",
}


def status_label(status) -> str:
    try:
        return STATUS_LABELS[OrderStatus(status)]
    except ValueError:
        return str(status)


# --- Events ---

@dataclass(frozen=True)
class Confirm:
    estimated_minutes: int
    name = "Confirm"


@dataclass(frozen=True)
class Decline:
    name = "Decline"


@dataclass(frozen=True)
class AdvanceTo:
    target: OrderStatus
    name = "AdvanceTo"


@dataclass(frozen=True)
class Cancel:
    name = "Cancel"


OrderEvent = Union[Confirm, Decline, AdvanceTo, Cancel]


# --- Side-effect intents ---

@dataclass(frozen=True)
class SendNotification:
    kind: NotificationKind


@dataclass(frozen=True)
class Transition:
    previous: OrderStatus
    status: OrderStatus
    expected: FrozenSet[OrderStatus]  # statuses the conditional write must still see
    intents: Tuple[SendNotification, ...] = ()
    estimated_minutes: Optional[int] = None


def allowed_from(event: OrderEvent) -> FrozenSet[OrderStatus]:
    if isinstance(event, (Confirm, Decline)):
        return frozenset({OrderStatus.AWAITING_CONFIRMATION})
    if isinstance(event, (AdvanceTo, Cancel)):
        return NON_TERMINAL_STATUSES
    raise TypeError(f"Unknown order event: {event!r}")


def event_for_status(target) -> OrderEvent:
    """Maps an admin-selected status to the event that reaches it."""
    target = OrderStatus(target)
    if target == OrderStatus.CANCELLED:
        return Cancel()
    return AdvanceTo(target)


def transition(current: OrderStatus, event: OrderEvent) -> Transition:
    current = OrderStatus(current)

    if current not in allowed_from(event):
        raise InvalidTransition(current, event.name)

    if isinstance(event, Confirm):
        if not isinstance(event.estimated_minutes, int) or event.estimated_minutes <= 0:
            raise ValidationFailed(
                f"Invalid estimated time: {event.estimated_minutes!r}",
                {"estimated_minutes": "Geschätzte Zeit muss größer als 0 sein"},
            )
        return Transition(
            previous=current,
            status=OrderStatus.PENDING,
            expected=frozenset({current}),
            intents=(SendNotification(NotificationKind.CONFIRMATION),),
            estimated_minutes=event.estimated_minutes,
        )

    if isinstance(event, Decline):
        return Transition(
            previous=current,
            status=OrderStatus.CANCELLED,
            expected=frozenset({current}),
            intents=(SendNotification(NotificationKind.CANCELLATION),),
        )

    if isinstance(event, AdvanceTo):
        target = OrderStatus(event.target)
        if target not in ADVANCE_TARGETS:
            raise InvalidTransition(current, event.name, f"Cannot advance an order to '{target.value}'")
        return Transition(previous=current, status=target, expected=frozenset({current}))

    # Cancel
    return Transition(previous=current, status=OrderStatus.CANCELLED, expected=frozenset({current}))
