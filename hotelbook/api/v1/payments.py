"""Payment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from hotelbook.api.deps import get_payment_service
from hotelbook.schemas.booking import Booking, BookingActionRequest
from hotelbook.schemas.payment import (
    PaymentInitiateRequest,
    PaymentOutcomeResponse,
    PaymentSessionResponse,
)
from hotelbook.services.payment_service import PaymentService

router = APIRouter()

PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


@router.post("/{booking_id}/initiate", response_model=PaymentOutcomeResponse)
async def initiate_payment(
    booking_id: str,
    request: PaymentInitiateRequest,
    service: PaymentServiceDep,
) -> PaymentOutcomeResponse:
    """Start paying for a booking."""
    outcome = await service.initiate_payment(
        booking_id,
        request.method,
        transfer_reference=request.transfer_reference,
    )
    session = None
    if outcome.session is not None:
        session = PaymentSessionResponse(
            action_url=outcome.session.action_url,
            params=outcome.session.params,
            order_reference=outcome.session.order_reference,
            amount=outcome.session.amount,
            currency=outcome.session.currency,
        )
    return PaymentOutcomeResponse(
        booking=outcome.booking,
        session=session,
        awaiting_approval=outcome.awaiting_approval,
    )


@router.post("/{booking_id}/abandon", response_model=Booking)
async def abandon_payment(booking_id: str, service: PaymentServiceDep) -> Booking:
    """Guest closed the payment screen without paying."""
    return await service.abandon_payment(booking_id)


@router.post("/{booking_id}/reconcile", response_model=Booking)
async def reconcile_payment(booking_id: str, service: PaymentServiceDep) -> Booking:
    """Check the gateway for a card payment still marked as processing."""
    return await service.reconcile_payment(booking_id)


@router.post("/{booking_id}/bank/confirm", response_model=Booking)
async def confirm_bank_transfer(booking_id: str, service: PaymentServiceDep) -> Booking:
    """Confirm a bank transfer has been received (admin)."""
    return await service.confirm_bank_transfer(booking_id)


@router.post("/{booking_id}/bank/reject", response_model=Booking)
async def reject_bank_transfer(
    booking_id: str,
    request: BookingActionRequest,
    service: PaymentServiceDep,
) -> Booking:
    """Reject an unmatched bank transfer (admin)."""
    return await service.reject_bank_transfer(booking_id, request.reason)
