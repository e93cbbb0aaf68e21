"""Webhook endpoints for payment gateways."""

from typing import Annotated
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, Request, status

from hotelbook.api.deps import get_payment_service
from hotelbook.gateways.base import GatewayType
from hotelbook.services.payment_service import PaymentService

router = APIRouter()


@router.post("/payhere", status_code=status.HTTP_200_OK)
async def payhere_notify(
    request: Request,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> dict:
    """Handle PayHere payment notifications (form encoded)."""
    body = await request.body()
    payload = {k: v[0] for k, v in parse_qs(body.decode()).items()}

    booking = await service.handle_gateway_callback(payload, GatewayType.PAYHERE)
    return {"received": True, "booking_number": booking.booking_number, "status": booking.status.value}
