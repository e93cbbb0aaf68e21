"""Pydantic schemas for the booking engine and its API."""

from hotelbook.schemas.booking import (
    Booking,
    BookingActionRequest,
    BookingApproveRequest,
    BookingCalculateRequest,
    BookingCancelRequest,
    BookingCreate,
    BookingStatus,
    BookingStatusUpdate,
    BookingStayUpdate,
    CostBreakdown,
    FlatPlan,
    FoodPlan,
    Itemized,
    LineItem,
    MealLine,
    PaymentMethod,
    StayRequest,
    ValidationResult,
)
from hotelbook.schemas.payment import (
    PaymentInitiateRequest,
    PaymentOutcomeResponse,
    PaymentSessionResponse,
)

__all__ = [
    # Stay and cost
    "StayRequest",
    "FoodPlan",
    "FlatPlan",
    "Itemized",
    "MealLine",
    "CostBreakdown",
    "LineItem",
    "ValidationResult",
    # Booking
    "Booking",
    "BookingStatus",
    "PaymentMethod",
    "BookingCalculateRequest",
    "BookingCreate",
    "BookingStayUpdate",
    "BookingStatusUpdate",
    "BookingActionRequest",
    "BookingApproveRequest",
    "BookingCancelRequest",
    # Payment
    "PaymentInitiateRequest",
    "PaymentSessionResponse",
    "PaymentOutcomeResponse",
]
