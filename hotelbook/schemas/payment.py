"""Payment-related Pydantic schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field

from hotelbook.schemas.booking import Booking, PaymentMethod


class PaymentInitiateRequest(BaseModel):
    """Schema for starting a payment."""

    method: PaymentMethod
    transfer_reference: str | None = Field(None, max_length=120)


class PaymentSessionResponse(BaseModel):
    """Gateway form the client must post to."""

    action_url: str
    params: dict[str, str]
    order_reference: str
    amount: Decimal
    currency: str


class PaymentOutcomeResponse(BaseModel):
    """Booking after payment initiation, plus the gateway session if any."""

    booking: Booking
    session: PaymentSessionResponse | None = None
    awaiting_approval: bool = False
