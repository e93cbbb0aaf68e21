import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from hotelbook.core.exceptions import (
    InvalidBookingStatus,
    NotFoundError,
    PaymentError,
    ValidationError,
)
from hotelbook.gateways.base import GatewayType
from hotelbook.gateways.payhere import PayHereGateway
from hotelbook.schemas.booking import BookingStatus, FlatPlan, PaymentMethod
from hotelbook.services.booking_service import BookingService, TransitionContext
from hotelbook.services.gateway_service import GatewayService
from hotelbook.services.payment_service import PaymentService
from hotelbook.services.room_service import Room

from tests.conftest import TODAY, make_settings, make_stay


def _create(service: BookingService, method: PaymentMethod):
    return service.create_booking(make_stay(), "guest-1", method, today=TODAY)


def _notify_payload(gateway: PayHereGateway, order_id: str, amount: str, status_code: str) -> dict:
    return {
        "merchant_id": gateway.merchant_id,
        "order_id": order_id,
        "payment_id": "320025071278",
        "payhere_amount": amount,
        "payhere_currency": "LKR",
        "status_code": status_code,
        "md5sig": gateway.generate_notify_signature(order_id, amount, "LKR", status_code),
    }


# ==================== CASH ====================


def test_cash_waits_for_approval_without_calling_a_gateway(booking_service):
    gateways = MagicMock(spec=GatewayService)
    payments = PaymentService(booking_service, gateways)

    async def _run():
        booking = await _create(booking_service, PaymentMethod.CASH)
        return await payments.initiate_payment(booking.id, PaymentMethod.CASH)

    outcome = asyncio.run(_run())

    assert outcome.awaiting_approval is True
    assert outcome.session is None
    assert outcome.booking.status == BookingStatus.PENDING_APPROVAL
    gateways.create_session.assert_not_called()


def test_cash_after_approval_confirms(booking_service):
    gateways = MagicMock(spec=GatewayService)
    payments = PaymentService(booking_service, gateways)

    async def _run():
        booking = await _create(booking_service, PaymentMethod.CASH)
        await booking_service.approve_booking(booking.id)
        return await payments.initiate_payment(booking.id, PaymentMethod.CASH)

    outcome = asyncio.run(_run())

    assert outcome.session is None
    assert outcome.booking.status == BookingStatus.CONFIRMED
    gateways.create_session.assert_not_called()


def test_cash_without_approval_policy_confirms_immediately(store, rooms):
    service = BookingService(store, rooms, make_settings(require_approval_for_cash=False))
    gateways = MagicMock(spec=GatewayService)
    payments = PaymentService(service, gateways)

    async def _run():
        booking = await _create(service, PaymentMethod.CASH)
        return await payments.initiate_payment(booking.id, PaymentMethod.CASH)

    outcome = asyncio.run(_run())

    assert outcome.booking.status == BookingStatus.CONFIRMED
    gateways.create_session.assert_not_called()


def test_approval_can_hand_off_to_payment(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.CASH)
        return await booking_service.approve_booking(
            booking.id, context=TransitionContext(initiate_payment=True)
        )

    booking = asyncio.run(_run())

    assert booking.status == BookingStatus.CONFIRMED


def test_approval_hands_bank_transfer_to_verification(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.BANK)
        return await booking_service.approve_booking(
            booking.id,
            context=TransitionContext(initiate_payment=True, transfer_reference="TRX-9"),
        )

    booking = asyncio.run(_run())

    assert booking.status == BookingStatus.APPROVED_PAYMENT_PROCESSING
    assert booking.payment_reference == "TRX-9"


def test_approval_leaves_card_payment_to_the_guest(store, rooms):
    service = BookingService(store, rooms, make_settings(require_approval_for_card=True))
    gateways = MagicMock(spec=GatewayService)
    PaymentService(service, gateways)

    async def _run():
        booking = await _create(service, PaymentMethod.CARD)
        return await service.approve_booking(
            booking.id, context=TransitionContext(initiate_payment=True)
        )

    booking = asyncio.run(_run())

    assert booking.status == BookingStatus.APPROVED_PAYMENT_PENDING
    gateways.create_session.assert_not_called()


# ==================== CARD ====================


def test_zero_total_card_booking_is_confirmed_without_gateway(booking_service, rooms):
    rooms.add_room(Room(id="room-free", name="Staff Room", rate_per_night=Decimal("0")))
    gateways = MagicMock(spec=GatewayService)
    payments = PaymentService(booking_service, gateways)

    async def _run():
        stay = make_stay(room_id="room-free", food=FlatPlan())
        booking = await booking_service.create_booking(
            stay, "guest-1", PaymentMethod.CARD, today=TODAY
        )
        return await payments.initiate_payment(booking.id, PaymentMethod.CARD)

    outcome = asyncio.run(_run())

    assert outcome.booking.cost_breakdown.total == 0
    assert outcome.booking.status == BookingStatus.CONFIRMED
    assert outcome.session is None
    gateways.create_session.assert_not_called()


def test_card_payment_opens_session_then_processes(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        return booking, await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)

    booking, outcome = asyncio.run(_run())

    assert outcome.booking.status == BookingStatus.APPROVED_PAYMENT_PROCESSING
    assert outcome.session is not None
    assert outcome.session.order_reference == f"{booking.booking_number}-1"
    assert outcome.session.amount == Decimal("102480.00")
    assert outcome.session.params["amount"] == "102480.00"
    assert outcome.session.action_url == "https://sandbox.payhere.lk/pay/checkout"
    assert outcome.booking.payment_reference == outcome.session.order_reference


def test_gateway_failure_leaves_booking_untouched(store, rooms):
    service = BookingService(store, rooms, make_settings())
    gateways = GatewayService({GatewayType.PAYHERE: PayHereGateway(make_settings(payhere_merchant_id=None))})
    payments = PaymentService(service, gateways)

    async def _run():
        booking = await _create(service, PaymentMethod.CARD)
        with pytest.raises(PaymentError):
            await payments.initiate_payment(booking.id, PaymentMethod.CARD)
        return await service.get_booking(booking.id)

    stored = asyncio.run(_run())

    assert stored.status == BookingStatus.PENDING_APPROVAL
    assert stored.version == 1


def test_card_needs_approval_when_policy_says_so(store, rooms):
    service = BookingService(store, rooms, make_settings(require_approval_for_card=True))
    payments = PaymentService(service, MagicMock(spec=GatewayService))

    async def _run():
        booking = await _create(service, PaymentMethod.CARD)
        await payments.initiate_payment(booking.id, PaymentMethod.CARD)

    with pytest.raises(InvalidBookingStatus):
        asyncio.run(_run())


def test_successful_callback_confirms(booking_service, payment_service, gateways):
    gateway = gateways._get_gateway(GatewayType.PAYHERE)

    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        outcome = await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)
        payload = _notify_payload(gateway, outcome.session.order_reference, "102480.00", "2")
        confirmed = await payment_service.handle_gateway_callback(payload)
        duplicate = await payment_service.handle_gateway_callback(payload)
        return confirmed, duplicate

    confirmed, duplicate = asyncio.run(_run())

    assert confirmed.status == BookingStatus.CONFIRMED
    assert duplicate.status == BookingStatus.CONFIRMED
    assert duplicate.version == confirmed.version


def test_failed_callback_returns_to_payment_pending(booking_service, payment_service, gateways):
    gateway = gateways._get_gateway(GatewayType.PAYHERE)

    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        outcome = await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)
        payload = _notify_payload(gateway, outcome.session.order_reference, "102480.00", "-2")
        return await payment_service.handle_gateway_callback(payload)

    booking = asyncio.run(_run())

    assert booking.status == BookingStatus.APPROVED_PAYMENT_PENDING


def test_pending_callback_changes_nothing(booking_service, payment_service, gateways):
    gateway = gateways._get_gateway(GatewayType.PAYHERE)

    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        outcome = await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)
        payload = _notify_payload(gateway, outcome.session.order_reference, "102480.00", "0")
        return await payment_service.handle_gateway_callback(payload)

    booking = asyncio.run(_run())

    assert booking.status == BookingStatus.APPROVED_PAYMENT_PROCESSING


def test_callback_with_bad_signature_is_rejected(booking_service, payment_service, gateways):
    gateway = gateways._get_gateway(GatewayType.PAYHERE)

    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        outcome = await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)
        payload = _notify_payload(gateway, outcome.session.order_reference, "102480.00", "2")
        payload["payhere_amount"] = "1.00"
        with pytest.raises(PaymentError):
            await payment_service.handle_gateway_callback(payload)
        return await booking_service.get_booking(booking.id)

    stored = asyncio.run(_run())

    assert stored.status == BookingStatus.APPROVED_PAYMENT_PROCESSING


def test_callback_for_unknown_order(payment_service, gateways):
    gateway = gateways._get_gateway(GatewayType.PAYHERE)
    payload = _notify_payload(gateway, "HB-NOPE00-1", "10.00", "2")

    with pytest.raises(NotFoundError):
        asyncio.run(payment_service.handle_gateway_callback(payload))


def test_abandoned_card_payment_can_be_retried(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)
        abandoned = await payment_service.abandon_payment(booking.id)
        retry = await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)
        return abandoned, retry

    abandoned, retry = asyncio.run(_run())

    assert abandoned.status == BookingStatus.APPROVED_PAYMENT_PENDING
    assert retry.booking.status == BookingStatus.APPROVED_PAYMENT_PROCESSING
    assert retry.session.order_reference == f"{abandoned.booking_number}-{abandoned.version}"


# ==================== BANK ====================


def test_bank_transfer_requires_reference(store, rooms):
    service = BookingService(store, rooms, make_settings(require_approval_for_bank=False))
    payments = PaymentService(service, MagicMock(spec=GatewayService))

    async def _run():
        booking = await _create(service, PaymentMethod.BANK)
        await payments.initiate_payment(booking.id, PaymentMethod.BANK, transfer_reference="  ")

    with pytest.raises(ValidationError):
        asyncio.run(_run())


def test_bank_transfer_waits_for_admin_approval(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.BANK)
        await payment_service.initiate_payment(
            booking.id, PaymentMethod.BANK, transfer_reference="TRX-1"
        )

    with pytest.raises(InvalidBookingStatus):
        asyncio.run(_run())


def test_bank_transfer_confirmed_by_admin(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.BANK)
        await booking_service.approve_booking(booking.id)
        outcome = await payment_service.initiate_payment(
            booking.id, PaymentMethod.BANK, transfer_reference="TRX-1"
        )
        confirmed = await payment_service.confirm_bank_transfer(booking.id)
        return outcome, confirmed

    outcome, confirmed = asyncio.run(_run())

    assert outcome.session is None
    assert outcome.booking.status == BookingStatus.APPROVED_PAYMENT_PROCESSING
    assert outcome.booking.payment_reference == "TRX-1"
    assert confirmed.status == BookingStatus.CONFIRMED


def test_bank_transfer_rejected_by_admin(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.BANK)
        await booking_service.approve_booking(booking.id)
        await payment_service.initiate_payment(
            booking.id, PaymentMethod.BANK, transfer_reference="TRX-1"
        )
        rejected = await payment_service.reject_bank_transfer(booking.id, "No matching transfer")
        with pytest.raises(InvalidBookingStatus):
            await payment_service.confirm_bank_transfer(booking.id)
        return rejected

    rejected = asyncio.run(_run())

    assert rejected.status == BookingStatus.APPROVED_PAYMENT_PENDING
    assert rejected.status_reason == "No matching transfer"


# ==================== GUARDS ====================


def test_method_must_match_booking(booking_service, payment_service):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.CASH)
        await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)

    with pytest.raises(ValidationError):
        asyncio.run(_run())


def test_confirmed_booking_cannot_be_paid_again(store, rooms):
    service = BookingService(store, rooms, make_settings(require_approval_for_cash=False))
    payments = PaymentService(service, MagicMock(spec=GatewayService))

    async def _run():
        booking = await _create(service, PaymentMethod.CASH)
        await payments.initiate_payment(booking.id, PaymentMethod.CASH)
        await payments.initiate_payment(booking.id, PaymentMethod.CASH)

    with pytest.raises(InvalidBookingStatus):
        asyncio.run(_run())


def test_expired_hold_is_cancelled_on_payment(booking_service, payment_service, store):
    async def _run():
        booking = await _create(booking_service, PaymentMethod.CARD)
        await booking_service.hold_booking(booking.id)
        past = datetime.now(UTC) - timedelta(minutes=5)
        async with store._lock:
            store._bookings[booking.id] = store._bookings[booking.id].model_copy(
                update={"hold_until": past}
            )
        return await payment_service.initiate_payment(booking.id, PaymentMethod.CARD)

    outcome = asyncio.run(_run())

    assert outcome.session is None
    assert outcome.booking.status == BookingStatus.CANCELLED
    assert outcome.booking.auto_cancelled is True
