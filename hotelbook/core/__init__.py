"""Core utilities: exceptions, idempotency and middleware."""

from hotelbook.core.exceptions import (
    AppException,
    ConflictError,
    DatesNotAvailable,
    InvalidBookingStatus,
    InvalidTransition,
    NotFoundError,
    PaymentError,
    ValidationError,
)
from hotelbook.core.idempotency import IdempotencyStore, generate_idempotency_key

__all__ = [
    "AppException",
    "ConflictError",
    "DatesNotAvailable",
    "InvalidBookingStatus",
    "InvalidTransition",
    "NotFoundError",
    "PaymentError",
    "ValidationError",
    "IdempotencyStore",
    "generate_idempotency_key",
]
