"""Database models."""

from hotelbook.models.booking import BookingRecord

__all__ = [
    "BookingRecord",
]
