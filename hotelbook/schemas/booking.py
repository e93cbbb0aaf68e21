"""Booking-related Pydantic schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class FoodPlan(str, Enum):
    """Flat per-person-per-night meal packages."""

    NONE = "None"
    BREAKFAST = "Breakfast"
    HALF_BOARD = "Half Board"
    FULL_BOARD = "Full Board"
    A_LA_CARTE = "À la carte"


class PaymentMethod(str, Enum):
    """How the guest settles the booking."""

    CARD = "card"
    BANK = "bank"
    CASH = "cash"


class BookingStatus(str, Enum):
    """Canonical booking statuses."""

    PENDING_APPROVAL = "Pending Approval"
    ON_HOLD = "On Hold"
    APPROVED_PAYMENT_PENDING = "Approved - Payment Pending"
    APPROVED_PAYMENT_PROCESSING = "Approved - Payment Processing"
    CONFIRMED = "Confirmed"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class MealLine(BaseModel):
    """One itemized menu selection."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    name: str | None = None
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class FlatPlan(BaseModel):
    """Food priced from the per-plan rate table."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["flat"] = "flat"
    plan: FoodPlan = FoodPlan.NONE


class Itemized(BaseModel):
    """Food priced from individually selected meals."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["itemized"] = "itemized"
    lines: tuple[MealLine, ...] = ()


FoodSelection = Annotated[Union[FlatPlan, Itemized], Field(discriminator="kind")]


class StayRequest(BaseModel):
    """What the guest asked for. Snapshotted onto the booking."""

    model_config = ConfigDict(frozen=True)

    room_id: str
    check_in: date | None = None
    check_out: date | None = None
    guests: int = 1
    food: FoodSelection = Field(default_factory=FlatPlan)
    special_requests: str | None = Field(None, max_length=1000)


class LineItem(BaseModel):
    """One row of the price breakdown shown to the guest."""

    model_config = ConfigDict(frozen=True)

    label: str
    amount: Decimal
    type: Literal["room", "food", "tax", "service"]


class CostBreakdown(BaseModel):
    """Priced stay. Reproducible from the same stay and room rate."""

    model_config = ConfigDict(frozen=True)

    nights: int = 0
    room_cost: Decimal = Decimal("0.00")
    food_cost: Decimal = Decimal("0.00")
    subtotal: Decimal = Decimal("0.00")
    taxes: Decimal = Decimal("0.00")
    service_charge: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    line_items: tuple[LineItem, ...] = ()
    currency: str = "LKR"


class ValidationResult(BaseModel):
    """Outcome of validating a stay request."""

    valid: bool
    errors: list[str] = Field(default_factory=list)

    def raise_for_errors(self) -> None:
        from hotelbook.core.exceptions import ValidationError

        if not self.valid:
            raise ValidationError("Booking validation failed", errors=self.errors)


class Booking(BaseModel):
    """The booking aggregate as held by the booking store."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_number: str
    room_id: str
    guest_id: str
    stay: StayRequest
    cost_breakdown: CostBreakdown
    payment_method: PaymentMethod
    status: BookingStatus = BookingStatus.PENDING_APPROVAL
    hold_until: datetime | None = None
    payment_reference: str | None = None
    idempotency_key: str | None = None
    version: int = 1
    # Owed back to the guest after a paid booking was cancelled or rejected
    refund_amount: Decimal | None = None

    # Audit trail
    status_reason: str | None = None
    auto_cancelled: bool = False
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class BookingDraft(BaseModel):
    """A validated, priced booking that has not been persisted yet."""

    room_id: str
    guest_id: str
    stay: StayRequest
    cost_breakdown: CostBreakdown
    payment_method: PaymentMethod
    status: BookingStatus = BookingStatus.PENDING_APPROVAL


# ==================== API SCHEMAS ====================


class BookingCalculateRequest(BaseModel):
    """Schema for calculating booking price without creating."""

    stay: StayRequest


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    guest_id: str
    stay: StayRequest
    payment_method: PaymentMethod = PaymentMethod.CASH


class BookingStayUpdate(BaseModel):
    """Schema for changing dates, guests or food while still pending."""

    stay: StayRequest


class BookingStatusUpdate(BaseModel):
    """Schema for a raw status change request."""

    status: BookingStatus
    reason: str | None = Field(None, max_length=1000)


class BookingActionRequest(BaseModel):
    """Optional note attached to an admin/guest action."""

    reason: str | None = Field(None, max_length=1000)


class BookingCancelRequest(BookingActionRequest):
    """Schema for cancelling a booking."""

    guest_initiated: bool = False


class BookingApproveRequest(BaseModel):
    """Schema for an admin approval.

    With ``initiate_payment`` set, cash bookings are confirmed straight
    away and bank bookings with a ``transfer_reference`` move on to
    verification. Card bookings always wait for the guest.
    """

    initiate_payment: bool = False
    transfer_reference: str | None = Field(None, max_length=120)
    payment_captured: bool = False
