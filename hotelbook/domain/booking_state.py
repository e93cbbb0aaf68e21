"""Booking state machine.

States:
- Pending Approval: created, waiting for an admin
- On Hold: room held while the admin decides; expires at hold_until
- Approved - Payment Pending: approved, guest has not paid yet
- Approved - Payment Processing: payment submitted, waiting on gateway/admin
- Confirmed: paid or promised at the property
- Rejected, Cancelled, Completed: terminal
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple

from hotelbook.core.exceptions import InvalidTransition
from hotelbook.schemas.booking import Booking, BookingStatus


class BookingEvent(str, Enum):
    """Things that move a booking between statuses."""

    APPROVE = "approve"
    REJECT = "reject"
    HOLD = "hold"
    EXPIRE = "expire"
    SUBMIT_PAYMENT = "submit_payment"
    PAY_AT_PROPERTY = "pay_at_property"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_FAILED = "payment_failed"
    COMPLETE = "complete"
    CANCEL = "cancel"


S = BookingStatus
E = BookingEvent

TERMINAL_STATUSES = frozenset({S.REJECTED, S.CANCELLED, S.COMPLETED})

CANCELLABLE_STATUSES = (
    S.PENDING_APPROVAL,
    S.ON_HOLD,
    S.APPROVED_PAYMENT_PENDING,
    S.APPROVED_PAYMENT_PROCESSING,
    S.CONFIRMED,
)

# Statuses that keep the room held until hold_until
HOLDING_STATUSES = frozenset({S.ON_HOLD, S.APPROVED_PAYMENT_PENDING, S.APPROVED_PAYMENT_PROCESSING})

# Statuses in which the guest still owes a payment
PAYMENT_DUE_STATUSES = frozenset({S.APPROVED_PAYMENT_PENDING})

BOOKING_TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], frozenset[BookingStatus]] = {
    (S.PENDING_APPROVAL, E.APPROVE): frozenset({S.APPROVED_PAYMENT_PENDING, S.CONFIRMED}),
    (S.PENDING_APPROVAL, E.REJECT): frozenset({S.REJECTED}),
    (S.PENDING_APPROVAL, E.HOLD): frozenset({S.ON_HOLD}),
    (S.ON_HOLD, E.APPROVE): frozenset({S.APPROVED_PAYMENT_PENDING, S.CONFIRMED}),
    (S.ON_HOLD, E.EXPIRE): frozenset({S.CANCELLED}),
    (S.APPROVED_PAYMENT_PENDING, E.SUBMIT_PAYMENT): frozenset({S.APPROVED_PAYMENT_PROCESSING}),
    (S.APPROVED_PAYMENT_PENDING, E.PAY_AT_PROPERTY): frozenset({S.CONFIRMED}),
    (S.APPROVED_PAYMENT_PROCESSING, E.PAYMENT_CONFIRMED): frozenset({S.CONFIRMED}),
    (S.APPROVED_PAYMENT_PROCESSING, E.PAYMENT_FAILED): frozenset({S.APPROVED_PAYMENT_PENDING}),
    (S.CONFIRMED, E.COMPLETE): frozenset({S.COMPLETED}),
    **{(status, E.CANCEL): frozenset({S.CANCELLED}) for status in CANCELLABLE_STATUSES},
}


class Transition(NamedTuple):
    """A legal move the booking store should persist."""

    event: BookingEvent
    target: BookingStatus


def is_terminal(status: BookingStatus) -> bool:
    return BookingStatus(status) in TERMINAL_STATUSES


def allowed_targets(current: BookingStatus) -> set[BookingStatus]:
    """All statuses reachable from ``current`` in one step."""
    current = BookingStatus(current)
    targets: set[BookingStatus] = set()
    for (status, _event), reachable in BOOKING_TRANSITIONS.items():
        if status == current:
            targets |= reachable
    return targets


def can_apply(current: BookingStatus, event: BookingEvent, target: BookingStatus) -> bool:
    return BookingStatus(target) in BOOKING_TRANSITIONS.get(
        (BookingStatus(current), BookingEvent(event)), frozenset()
    )


def resolve_transition(current: BookingStatus, target: BookingStatus) -> BookingEvent:
    """Find the event that moves a booking from ``current`` to ``target``.

    Raises:
        InvalidTransition: If no listed transition connects the two
    """
    current = BookingStatus(current)
    target = BookingStatus(target)
    # EXPIRE is only ever chosen by plan_transition; a plain cancel covers
    # the same edge when requested directly.
    for (status, event), reachable in BOOKING_TRANSITIONS.items():
        if status == current and target in reachable and event != E.EXPIRE:
            return event
    raise InvalidTransition(current.value, target.value)


def assert_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    resolve_transition(current, target)


def assert_event(current: BookingStatus, event: BookingEvent, target: BookingStatus) -> None:
    """Check a specific event/target pair.

    Raises:
        InvalidTransition: If the table has no such edge
    """
    if not can_apply(current, event, target):
        raise InvalidTransition(BookingStatus(current).value, BookingStatus(target).value)


def is_hold_expired(booking: Booking, now: datetime) -> bool:
    """Whether an On Hold booking has run past its hold deadline."""
    return (
        booking.status == S.ON_HOLD
        and booking.hold_until is not None
        and booking.hold_until <= now
    )


def plan_transition(booking: Booking, target: BookingStatus, now: datetime) -> Transition:
    """Decide what actually happens when ``target`` is requested.

    An expired hold can only be cancelled, so any other request is
    re-routed to the expiry transition.
    """
    if is_hold_expired(booking, now):
        return Transition(E.EXPIRE, S.CANCELLED)
    target = BookingStatus(target)
    return Transition(resolve_transition(booking.status, target), target)


def hold_until_for(
    target: BookingStatus, now: datetime, hold_minutes: int
) -> datetime | None:
    """Hold deadline a booking carries after entering ``target``."""
    if BookingStatus(target) in HOLDING_STATUSES:
        return now + timedelta(minutes=hold_minutes)
    return None
