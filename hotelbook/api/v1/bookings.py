"""Booking endpoints."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Header, status

from hotelbook.api.deps import get_booking_service
from hotelbook.schemas.booking import (
    Booking,
    BookingActionRequest,
    BookingApproveRequest,
    BookingCalculateRequest,
    BookingCancelRequest,
    BookingCreate,
    BookingStatusUpdate,
    BookingStayUpdate,
    CostBreakdown,
)
from hotelbook.services.booking_service import BookingService, TransitionContext

router = APIRouter()

BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]


@router.post("/calculate", response_model=CostBreakdown)
async def calculate_booking_price(
    request: BookingCalculateRequest,
    service: BookingServiceDep,
) -> CostBreakdown:
    """Calculate booking price without creating a booking."""
    return await service.calculate(request.stay)


@router.post("/", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    service: BookingServiceDep,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key", max_length=64)] = None,
) -> Booking:
    """Create a new booking."""
    return await service.create_booking(
        booking_data.stay,
        booking_data.guest_id,
        booking_data.payment_method,
        idempotency_key=idempotency_key,
    )


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(booking_id: str, service: BookingServiceDep) -> Booking:
    """Get a booking by ID."""
    return await service.get_booking(booking_id)


@router.patch("/{booking_id}/stay", response_model=Booking)
async def update_booking_stay(
    booking_id: str,
    request: BookingStayUpdate,
    service: BookingServiceDep,
) -> Booking:
    """Change dates, guests or food of a pending booking and re-price it."""
    return await service.update_stay(booking_id, request.stay)


@router.post("/{booking_id}/status", response_model=Booking)
async def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdate,
    service: BookingServiceDep,
) -> Booking:
    """Request a specific status change."""
    return await service.update_booking_status(
        booking_id, request.status, TransitionContext(reason=request.reason)
    )


@router.post("/{booking_id}/approve", response_model=Booking)
async def approve_booking(
    booking_id: str,
    service: BookingServiceDep,
    request: Annotated[BookingApproveRequest | None, Body()] = None,
) -> Booking:
    """Approve a pending or held booking (admin)."""
    request = request or BookingApproveRequest()
    return await service.approve_booking(
        booking_id,
        payment_captured=request.payment_captured,
        context=TransitionContext(
            initiate_payment=request.initiate_payment,
            transfer_reference=request.transfer_reference,
        ),
    )


@router.post("/{booking_id}/reject", response_model=Booking)
async def reject_booking(
    booking_id: str,
    request: BookingActionRequest,
    service: BookingServiceDep,
) -> Booking:
    """Reject a pending booking (admin)."""
    return await service.reject_booking(booking_id, request.reason)


@router.post("/{booking_id}/hold", response_model=Booking)
async def hold_booking(booking_id: str, service: BookingServiceDep) -> Booking:
    """Put a pending booking on hold (admin)."""
    return await service.hold_booking(booking_id)


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: str,
    request: BookingCancelRequest,
    service: BookingServiceDep,
) -> Booking:
    """Cancel a booking."""
    return await service.cancel_booking(
        booking_id, request.reason, guest_initiated=request.guest_initiated
    )


@router.post("/{booking_id}/complete", response_model=Booking)
async def complete_booking(booking_id: str, service: BookingServiceDep) -> Booking:
    """Mark a confirmed booking as completed (admin)."""
    return await service.complete_booking(booking_id)
