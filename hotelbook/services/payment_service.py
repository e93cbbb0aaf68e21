"""Payment coordination.

Bridges bookings to the payment gateways:
- cash: nothing is captured, the guest promises to pay at the property
- bank: guest quotes a transfer reference, an admin confirms receipt
- card: guest is handed a signed gateway session; the gateway's callback
  decides between Confirmed and another attempt

Gateway failures leave the booking where it was so the guest can retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from hotelbook.core.exceptions import (
    InvalidBookingStatus,
    NotFoundError,
    PaymentError,
    ValidationError,
)
from hotelbook.domain.booking_state import is_hold_expired
from hotelbook.gateways.base import GatewayType, PaymentSession
from hotelbook.gateways.payhere import STATUS_PENDING
from hotelbook.schemas.booking import Booking, BookingStatus, PaymentMethod
from hotelbook.services.booking_service import BookingService, TransitionContext
from hotelbook.services.gateway_service import GatewayService, gateway_service as default_gateway_service

logger = logging.getLogger(__name__)

AWAITING_APPROVAL = frozenset({BookingStatus.PENDING_APPROVAL, BookingStatus.ON_HOLD})


@dataclass
class PaymentOutcome:
    """What initiate_payment leaves behind."""

    booking: Booking
    session: PaymentSession | None = None
    awaiting_approval: bool = False


class PaymentService:
    """Service for taking bookings through payment."""

    def __init__(
        self,
        bookings: BookingService,
        gateways: GatewayService | None = None,
    ) -> None:
        self.bookings = bookings
        self.gateways = gateways or default_gateway_service
        self.settings = bookings.settings
        bookings.attach_payments(self)

    def _approval_required(self, method: PaymentMethod) -> bool:
        return self.settings.requires_approval(PaymentMethod(method).value)

    async def _approve_for_payment(self, booking: Booking) -> Booking:
        """Auto-approve a booking the policy lets through without an admin."""
        return await self.bookings.update_booking_status(
            booking.id, BookingStatus.APPROVED_PAYMENT_PENDING
        )

    async def initiate_payment(
        self,
        booking_id: str,
        method: PaymentMethod,
        *,
        transfer_reference: str | None = None,
    ) -> PaymentOutcome:
        """Start paying for a booking.

        Raises:
            NotFoundError: Unknown booking
            InvalidBookingStatus: Booking is not in a payable status, or
                still needs admin approval for this method
            ValidationError: Bank transfer without a reference
            PaymentError: Gateway could not create a session
        """
        method = PaymentMethod(method)
        booking = await self.bookings.get_booking(booking_id)

        if is_hold_expired(booking, datetime.now(UTC)):
            cancelled = await self.bookings.update_booking_status(
                booking.id, BookingStatus.CANCELLED
            )
            return PaymentOutcome(booking=cancelled)

        if booking.status not in AWAITING_APPROVAL and booking.status != BookingStatus.APPROVED_PAYMENT_PENDING:
            raise InvalidBookingStatus(
                f"Booking {booking.booking_number} cannot take a payment ({booking.status.value})"
            )

        if method != booking.payment_method:
            message = f"Booking {booking.booking_number} is set up for {booking.payment_method.value} payment"
            raise ValidationError(message, errors=[message])

        if method == PaymentMethod.CASH:
            return await self._pay_cash(booking)
        if method == PaymentMethod.BANK:
            return await self._pay_bank(booking, transfer_reference)
        return await self._pay_card(booking)

    async def _pay_cash(self, booking: Booking) -> PaymentOutcome:
        if booking.status in AWAITING_APPROVAL and self._approval_required(PaymentMethod.CASH):
            # The promise to pay is recorded on the booking already
            return PaymentOutcome(booking=booking, awaiting_approval=True)

        confirmed = await self.bookings.update_booking_status(
            booking.id, BookingStatus.CONFIRMED
        )
        return PaymentOutcome(booking=confirmed)

    async def _pay_bank(self, booking: Booking, transfer_reference: str | None) -> PaymentOutcome:
        reference = (transfer_reference or "").strip()
        if not reference:
            raise ValidationError(
                "Bank transfer reference is required",
                errors=["Bank transfer reference is required"],
            )

        if booking.status in AWAITING_APPROVAL:
            if self._approval_required(PaymentMethod.BANK):
                raise InvalidBookingStatus(
                    f"Booking {booking.booking_number} is awaiting admin approval"
                )
            booking = await self._approve_for_payment(booking)
            if booking.status != BookingStatus.APPROVED_PAYMENT_PENDING:
                return PaymentOutcome(booking=booking)

        result = await self.gateways.create_session(
            GatewayType.MANUAL,
            amount=booking.cost_breakdown.total,
            currency=booking.cost_breakdown.currency,
            order_reference=booking.booking_number,
            description=f"Booking {booking.booking_number}",
        )
        logger.info(
            "Bank transfer %s recorded for booking %s (%s)",
            reference,
            booking.booking_number,
            result.raw_response.get("status"),
        )

        processing = await self.bookings.update_booking_status(
            booking.id,
            BookingStatus.APPROVED_PAYMENT_PROCESSING,
            TransitionContext(payment_reference=reference),
        )
        return PaymentOutcome(booking=processing)

    async def _pay_card(self, booking: Booking) -> PaymentOutcome:
        if booking.status in AWAITING_APPROVAL and self._approval_required(PaymentMethod.CARD):
            raise InvalidBookingStatus(
                f"Booking {booking.booking_number} is awaiting admin approval"
            )

        if booking.cost_breakdown.total <= 0:
            return await self._confirm_free_booking(booking)

        order_reference = f"{booking.booking_number}-{booking.version}"
        gateway = self.gateways.gateway_for(PaymentMethod.CARD)
        result = await self.gateways.create_session(
            gateway,
            amount=booking.cost_breakdown.total,
            currency=booking.cost_breakdown.currency,
            order_reference=order_reference,
            description=f"Hotel booking {booking.booking_number}",
            metadata={"booking_id": booking.id},
        )
        if not result.success or result.session is None:
            logger.error(
                "Payment session failed for booking %s: %s",
                booking.booking_number,
                result.error_message,
            )
            raise PaymentError(result.error_message or "Payment gateway unavailable")

        if booking.status in AWAITING_APPROVAL:
            booking = await self._approve_for_payment(booking)
            if booking.status != BookingStatus.APPROVED_PAYMENT_PENDING:
                return PaymentOutcome(booking=booking)

        processing = await self.bookings.update_booking_status(
            booking.id,
            BookingStatus.APPROVED_PAYMENT_PROCESSING,
            TransitionContext(payment_reference=order_reference),
        )
        logger.info(
            "Payment session %s opened for booking %s (%s %s)",
            order_reference,
            booking.booking_number,
            result.session.amount,
            result.session.currency,
        )
        return PaymentOutcome(booking=processing, session=result.session)

    async def _confirm_free_booking(self, booking: Booking) -> PaymentOutcome:
        """Nothing to charge, so no gateway session is opened."""
        if booking.status in AWAITING_APPROVAL:
            booking = await self._approve_for_payment(booking)
            if booking.status != BookingStatus.APPROVED_PAYMENT_PENDING:
                return PaymentOutcome(booking=booking)

        logger.info("Booking %s has nothing to charge, confirming", booking.booking_number)
        confirmed = await self.bookings.update_booking_status(
            booking.id,
            BookingStatus.CONFIRMED,
            TransitionContext(reason="No payment due"),
        )
        return PaymentOutcome(booking=confirmed)

    # ==================== RESOLUTION ====================

    async def abandon_payment(self, booking_id: str) -> Booking:
        """Guest walked away from the gateway; make the booking payable again."""
        booking = await self.bookings.get_booking(booking_id)
        if (
            booking.status != BookingStatus.APPROVED_PAYMENT_PROCESSING
            or booking.payment_method != PaymentMethod.CARD
        ):
            return booking
        return await self.bookings.update_booking_status(
            booking.id,
            BookingStatus.APPROVED_PAYMENT_PENDING,
            TransitionContext(reason="Payment abandoned"),
        )

    async def handle_gateway_callback(
        self,
        payload: dict[str, str],
        gateway_type: GatewayType = GatewayType.PAYHERE,
    ) -> Booking:
        """Apply a gateway notification to its booking.

        Raises:
            PaymentError: Signature did not verify
            NotFoundError: No booking carries this order reference
        """
        result = self.gateways.verify_callback(gateway_type, payload)
        if result is None:
            logger.warning("Rejected %s callback with invalid signature", gateway_type.value)
            raise PaymentError("Invalid payment notification")

        booking = await self.bookings.store.get_by_reference(result.order_reference)
        if booking is None:
            raise NotFoundError("Booking for order", result.order_reference)

        if (
            booking.status != BookingStatus.APPROVED_PAYMENT_PROCESSING
            or booking.payment_reference != result.order_reference
        ):
            logger.info(
                "Ignoring callback for %s: booking %s is %s",
                result.order_reference,
                booking.booking_number,
                booking.status.value,
            )
            return booking

        if result.success:
            logger.info("Payment %s confirmed for booking %s", result.transaction_id, booking.booking_number)
            return await self.bookings.update_booking_status(booking.id, BookingStatus.CONFIRMED)

        if result.status_code == STATUS_PENDING:
            return booking

        logger.warning(
            "Payment failed for booking %s (status %s)", booking.booking_number, result.status_code
        )
        return await self.bookings.update_booking_status(
            booking.id,
            BookingStatus.APPROVED_PAYMENT_PENDING,
            TransitionContext(reason=f"Gateway status {result.status_code}"),
        )

    async def reconcile_payment(self, booking_id: str) -> Booking:
        """Ask the gateway about a card payment whose callback never came."""
        booking = await self.bookings.get_booking(booking_id)
        if (
            booking.status != BookingStatus.APPROVED_PAYMENT_PROCESSING
            or booking.payment_method != PaymentMethod.CARD
            or not booking.payment_reference
        ):
            return booking

        result = await self.gateways.retrieve_payment(
            self.gateways.gateway_for(PaymentMethod.CARD), booking.payment_reference
        )
        if result.success:
            logger.info("Reconciled payment for booking %s", booking.booking_number)
            return await self.bookings.update_booking_status(booking.id, BookingStatus.CONFIRMED)
        return booking

    async def confirm_bank_transfer(self, booking_id: str) -> Booking:
        """Admin saw the money arrive."""
        booking = await self._bank_booking(booking_id)
        return await self.bookings.update_booking_status(booking.id, BookingStatus.CONFIRMED)

    async def reject_bank_transfer(self, booking_id: str, reason: str | None = None) -> Booking:
        """Admin could not match the transfer; the guest may try again."""
        booking = await self._bank_booking(booking_id)
        return await self.bookings.update_booking_status(
            booking.id,
            BookingStatus.APPROVED_PAYMENT_PENDING,
            TransitionContext(reason=reason),
        )

    async def _bank_booking(self, booking_id: str) -> Booking:
        booking = await self.bookings.get_booking(booking_id)
        if (
            booking.status != BookingStatus.APPROVED_PAYMENT_PROCESSING
            or booking.payment_method != PaymentMethod.BANK
        ):
            raise InvalidBookingStatus(
                f"Booking {booking.booking_number} has no bank transfer awaiting verification"
            )
        return booking
