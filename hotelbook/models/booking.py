"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from hotelbook.database import Base


class BookingRecord(Base):
    """Booking row.

    The stay and price breakdown are stored as snapshots so later room
    rate changes never alter an existing booking.
    """

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    booking_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # HB-XXXXXX
    room_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    guest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Dates are duplicated out of the snapshot for overlap queries
    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    stay: Mapped[dict] = mapped_column(JSONB, nullable=False)
    cost_breakdown: Mapped[dict] = mapped_column(JSONB, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment_method: Mapped[str] = mapped_column(String(10), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(120), index=True)

    status: Mapped[str] = mapped_column(
        String(40), default="Pending Approval", index=True
    )
    hold_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Cleared on terminal statuses so the same stay can be booked again
    idempotency_key: Mapped[str | None] = mapped_column(String(64), unique=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    # Audit trail
    status_reason: Mapped[str | None] = mapped_column(Text)
    auto_cancelled: Mapped[bool] = mapped_column(Boolean, default=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
