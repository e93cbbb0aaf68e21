"""Booking orchestration.

Sequences validation, pricing, availability and the state machine around
the booking store. Every status change re-reads the booking first and
hands the status it saw to the store, so a concurrent writer surfaces as a
ConflictError rather than a lost update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from hotelbook.config import Settings, settings as default_settings
from hotelbook.core.exceptions import (
    ConflictError,
    DatesNotAvailable,
    InvalidBookingStatus,
)
from hotelbook.core.idempotency import generate_idempotency_key
from hotelbook.domain.booking_state import (
    PAYMENT_DUE_STATUSES,
    TERMINAL_STATUSES,
    BookingEvent,
    hold_until_for,
    is_hold_expired,
    plan_transition,
)
from hotelbook.domain.pricing import compute_cost
from hotelbook.domain.refund_policy import calculate_refund_amount, calculate_refund_percentage
from hotelbook.domain.validation import validate_stay
from hotelbook.schemas.booking import (
    Booking,
    BookingDraft,
    BookingStatus,
    CostBreakdown,
    PaymentMethod,
    StayRequest,
)
from hotelbook.services.booking_store import BookingStore
from hotelbook.services.room_service import RoomDirectory

if TYPE_CHECKING:
    from hotelbook.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

REPRICEABLE_STATUSES = frozenset({BookingStatus.PENDING_APPROVAL, BookingStatus.ON_HOLD})

# A card or bank payment has been submitted or captured
PAID_STATUSES = frozenset(
    {BookingStatus.APPROVED_PAYMENT_PROCESSING, BookingStatus.CONFIRMED}
)

REFUNDABLE_TARGETS = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED})

HOLD_EXPIRED_REASON = "Booking hold period expired"


@dataclass
class TransitionContext:
    """Optional details that travel with a status change request."""

    reason: str | None = None
    payment_reference: str | None = None
    # Hand the booking to the payment coordinator once payment becomes due
    initiate_payment: bool = False
    transfer_reference: str | None = None
    guest_initiated: bool = False
    now: datetime | None = None


def has_payment(booking: Booking) -> bool:
    """Whether money may have moved for this booking."""
    return booking.payment_method != PaymentMethod.CASH and booking.status in PAID_STATUSES


class BookingService:
    """Service for creating bookings and moving them through their lifecycle."""

    def __init__(
        self,
        store: BookingStore,
        rooms: RoomDirectory,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.rooms = rooms
        self.settings = settings or default_settings
        self._payments: PaymentService | None = None

    def attach_payments(self, payments: PaymentService) -> None:
        self._payments = payments

    # ==================== PRICING ====================

    async def calculate(self, stay: StayRequest) -> CostBreakdown:
        """Price a stay against the room's current rate without booking it."""
        room = await self.rooms.get_room(stay.room_id)
        return compute_cost(stay, room.rate_per_night, settings=self.settings)

    # ==================== CREATION ====================

    def _idempotency_key(self, stay: StayRequest, guest_id: str, payment_method: PaymentMethod) -> str:
        return generate_idempotency_key(
            "booking_create",
            guest_id,
            {
                "stay": stay.model_dump(mode="json"),
                "payment_method": PaymentMethod(payment_method).value,
            },
        )

    async def create_booking(
        self,
        stay: StayRequest,
        guest_id: str,
        payment_method: PaymentMethod,
        *,
        idempotency_key: str | None = None,
        today: date | None = None,
    ) -> Booking:
        """Validate, price and persist a new booking.

        Raises:
            ValidationError: Every rule the stay violates
            NotFoundError: Unknown room
            DatesNotAvailable: Room already held for some of these nights
        """
        room = await self.rooms.get_room(stay.room_id)

        validate_stay(
            stay,
            max_capacity=room.max_capacity,
            today=today,
            max_nights=self.settings.max_nights,
            max_advance_days=self.settings.max_advance_booking_days,
        ).raise_for_errors()

        idempotency_key = idempotency_key or self._idempotency_key(stay, guest_id, payment_method)

        if await self.rooms.check_overlap(room.id, stay.check_in, stay.check_out):
            # A retried submission overlaps with the booking it already created
            existing = await self._find_by_key(room.id, stay, idempotency_key)
            if existing is not None:
                return existing
            raise DatesNotAvailable()

        cost_breakdown = compute_cost(stay, room.rate_per_night, settings=self.settings)

        draft = BookingDraft(
            room_id=room.id,
            guest_id=guest_id,
            stay=stay,
            cost_breakdown=cost_breakdown,
            payment_method=payment_method,
        )
        booking = await self.store.create(draft, idempotency_key)

        logger.info(
            "Created booking %s for room %s (%s nights, total %s %s)",
            booking.booking_number,
            room.id,
            cost_breakdown.nights,
            cost_breakdown.total,
            cost_breakdown.currency,
        )
        return booking

    async def _find_by_key(self, room_id: str, stay: StayRequest, idempotency_key: str) -> Booking | None:
        overlapping = await self.store.list_overlapping(room_id, stay.check_in, stay.check_out)
        for booking in overlapping:
            if booking.idempotency_key == idempotency_key:
                return booking
        return None

    # ==================== READS ====================

    async def get_booking(self, booking_id: str) -> Booking:
        return await self.store.get(booking_id)

    # ==================== STATUS CHANGES ====================

    def refund_due(self, booking: Booking, now: datetime, *, guest_initiated: bool = False) -> Decimal:
        """What a paid booking owes the guest if it is cancelled or rejected now."""
        percentage = calculate_refund_percentage(
            booking.stay.check_in,
            now,
            guest_initiated=guest_initiated,
            policy=self.settings.refund_policy,
        )
        return calculate_refund_amount(
            booking.cost_breakdown.total, percentage, self.settings.refund_processing_fee
        )

    def _transition_fields(
        self,
        booking: Booking,
        event: BookingEvent,
        target: BookingStatus,
        now: datetime,
        context: TransitionContext,
    ) -> dict[str, Any]:
        extra: dict[str, Any] = {
            "hold_until": hold_until_for(target, now, self.settings.hold_duration_minutes),
        }
        if target in TERMINAL_STATUSES:
            extra["idempotency_key"] = None
        if target in REFUNDABLE_TARGETS and has_payment(booking) and booking.stay.check_in:
            extra["refund_amount"] = self.refund_due(
                booking, now, guest_initiated=context.guest_initiated
            )
        if context.payment_reference is not None:
            extra["payment_reference"] = context.payment_reference
        if context.reason is not None:
            extra["status_reason"] = context.reason

        if target == BookingStatus.CONFIRMED:
            extra["confirmed_at"] = now
        elif target == BookingStatus.REJECTED:
            extra["rejected_at"] = now
        elif target == BookingStatus.CANCELLED:
            extra["cancelled_at"] = now
            if event == BookingEvent.EXPIRE:
                extra["auto_cancelled"] = True
                extra["status_reason"] = HOLD_EXPIRED_REASON
        elif target == BookingStatus.COMPLETED:
            extra["completed_at"] = now
        return extra

    async def update_booking_status(
        self,
        booking_id: str,
        target: BookingStatus,
        context: TransitionContext | None = None,
    ) -> Booking:
        """Apply a status change through the state machine.

        The booking is re-read before the check. An On Hold booking whose
        hold has run out is cancelled instead of moving to ``target``; the
        cancelled booking is returned.

        Raises:
            NotFoundError: Unknown booking
            InvalidTransition: ``target`` is not reachable from the stored status
            ConflictError: Another writer changed the booking in between
        """
        context = context or TransitionContext()
        now = context.now or datetime.now(UTC)

        booking = await self.store.get(booking_id)
        transition = plan_transition(booking, target, now)

        extra = self._transition_fields(booking, transition.event, transition.target, now, context)
        try:
            updated = await self.store.update_status(
                booking.id, booking.status, transition.target, extra
            )
        except ConflictError as exc:
            exc.current = await self.store.get(booking.id)
            logger.warning(
                "Conflict moving booking %s %s → %s (now %s)",
                booking.booking_number,
                booking.status.value,
                transition.target.value,
                exc.current.status.value,
            )
            raise

        if transition.event == BookingEvent.EXPIRE:
            logger.warning(
                "Booking %s hold expired at %s, auto-cancelled instead of %s",
                updated.booking_number,
                booking.hold_until,
                BookingStatus(target).value,
            )
        else:
            logger.info(
                "Booking %s: %s → %s (%s)",
                updated.booking_number,
                booking.status.value,
                updated.status.value,
                transition.event.value,
            )

        if "refund_amount" in extra:
            logger.info(
                "Refund of %s %s due for booking %s",
                extra["refund_amount"],
                updated.cost_breakdown.currency,
                updated.booking_number,
            )

        if (
            updated.status in PAYMENT_DUE_STATUSES
            and context.initiate_payment
            and self._payments is not None
            and self._can_hand_off(updated, context)
        ):
            outcome = await self._payments.initiate_payment(
                updated.id,
                updated.payment_method,
                transfer_reference=context.transfer_reference,
            )
            return outcome.booking

        return updated

    @staticmethod
    def _can_hand_off(booking: Booking, context: TransitionContext) -> bool:
        # Card payments need the guest at the gateway form
        if booking.payment_method == PaymentMethod.CASH:
            return True
        if booking.payment_method == PaymentMethod.BANK:
            return bool(context.transfer_reference)
        return False

    def approval_target(self, booking: Booking, *, payment_captured: bool = False) -> BookingStatus:
        """Where an admin approval lands a booking.

        Cash bookings that the policy does not hold for approval are
        confirmed outright, as are bookings whose payment was already captured.
        """
        if payment_captured:
            return BookingStatus.CONFIRMED
        if booking.payment_method == PaymentMethod.CASH and not self.settings.require_approval_for_cash:
            return BookingStatus.CONFIRMED
        return BookingStatus.APPROVED_PAYMENT_PENDING

    async def approve_booking(
        self,
        booking_id: str,
        *,
        payment_captured: bool = False,
        context: TransitionContext | None = None,
    ) -> Booking:
        booking = await self.store.get(booking_id)
        target = self.approval_target(booking, payment_captured=payment_captured)
        return await self.update_booking_status(booking_id, target, context)

    async def reject_booking(self, booking_id: str, reason: str | None = None) -> Booking:
        return await self.update_booking_status(
            booking_id, BookingStatus.REJECTED, TransitionContext(reason=reason)
        )

    async def hold_booking(self, booking_id: str) -> Booking:
        return await self.update_booking_status(booking_id, BookingStatus.ON_HOLD)

    async def cancel_booking(
        self,
        booking_id: str,
        reason: str | None = None,
        *,
        guest_initiated: bool = False,
    ) -> Booking:
        """Cancel a booking, recording any refund a paid booking is owed."""
        return await self.update_booking_status(
            booking_id,
            BookingStatus.CANCELLED,
            TransitionContext(reason=reason, guest_initiated=guest_initiated),
        )

    async def complete_booking(self, booking_id: str) -> Booking:
        return await self.update_booking_status(booking_id, BookingStatus.COMPLETED)

    # ==================== RE-PRICING ====================

    async def update_stay(
        self,
        booking_id: str,
        stay: StayRequest,
        *,
        today: date | None = None,
    ) -> Booking:
        """Change dates, guests or food on a booking and re-price it.

        Raises:
            InvalidBookingStatus: Booking is past Pending Approval / On Hold
            ValidationError: The new stay is invalid
            DatesNotAvailable: The new dates collide with another booking
        """
        booking = await self.store.get(booking_id)
        if booking.status not in REPRICEABLE_STATUSES:
            raise InvalidBookingStatus(
                f"Booking {booking.booking_number} can no longer be changed ({booking.status.value})"
            )
        if is_hold_expired(booking, datetime.now(UTC)):
            raise InvalidBookingStatus(f"Booking {booking.booking_number} hold has expired")

        if stay.room_id != booking.room_id:
            raise InvalidBookingStatus("Changing rooms requires a new booking")

        room = await self.rooms.get_room(booking.room_id)
        validate_stay(
            stay,
            max_capacity=room.max_capacity,
            today=today,
            max_nights=self.settings.max_nights,
            max_advance_days=self.settings.max_advance_booking_days,
        ).raise_for_errors()

        if await self.rooms.check_overlap(
            room.id, stay.check_in, stay.check_out, exclude_booking_id=booking.id
        ):
            raise DatesNotAvailable()

        cost_breakdown = compute_cost(stay, room.rate_per_night, settings=self.settings)
        updated = await self.store.update_stay(booking.id, booking.status, stay, cost_breakdown)

        logger.info(
            "Re-priced booking %s: %s → %s",
            updated.booking_number,
            booking.cost_breakdown.total,
            cost_breakdown.total,
        )
        return updated

    # ==================== SWEEPS ====================

    async def expire_holds(self, now: datetime | None = None) -> int:
        """Cancel every On Hold booking whose hold has run out."""
        now = now or datetime.now(UTC)
        expired = 0
        for booking in await self.store.list_by_status(BookingStatus.ON_HOLD):
            if not is_hold_expired(booking, now):
                continue
            try:
                await self.update_booking_status(
                    booking.id, BookingStatus.CANCELLED, TransitionContext(now=now)
                )
            except ConflictError:
                # Someone acted on it first; their change stands
                continue
            expired += 1
        return expired

    async def complete_due_bookings(self, today: date | None = None) -> int:
        """Complete Confirmed bookings whose check-out day has passed."""
        today = today or datetime.now(UTC).date()
        completed = 0
        for booking in await self.store.list_by_status(BookingStatus.CONFIRMED):
            if booking.stay.check_out is None or booking.stay.check_out >= today:
                continue
            try:
                await self.complete_booking(booking.id)
            except ConflictError:
                continue
            completed += 1
        return completed
