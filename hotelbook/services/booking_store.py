"""Booking persistence boundary.

The store is the single owner of booking records. Writers pass the status
they last read; a mismatch means someone else got there first and is
reported as a ConflictError instead of being overwritten.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotelbook.core.exceptions import ConflictError, NotFoundError
from hotelbook.core.idempotency import IdempotencyStore
from hotelbook.domain.booking_state import TERMINAL_STATUSES
from hotelbook.models.booking import BookingRecord
from hotelbook.schemas.booking import (
    Booking,
    BookingDraft,
    BookingStatus,
    CostBreakdown,
    StayRequest,
)
from hotelbook.utils.booking_number import generate_booking_number

logger = logging.getLogger(__name__)

# Fields update_status may write besides status
STATUS_EXTRA_FIELDS = frozenset(
    {
        "hold_until",
        "payment_reference",
        "idempotency_key",
        "refund_amount",
        "status_reason",
        "auto_cancelled",
        "confirmed_at",
        "rejected_at",
        "cancelled_at",
        "completed_at",
    }
)


def _check_extra(extra: dict[str, Any] | None) -> dict[str, Any]:
    extra = dict(extra or {})
    unknown = set(extra) - STATUS_EXTRA_FIELDS
    if unknown:
        raise ValueError(f"Cannot update booking fields: {', '.join(sorted(unknown))}")
    return extra


def _dates_overlap(booking: Booking, check_in: date, check_out: date) -> bool:
    stay = booking.stay
    return stay.check_in < check_out and stay.check_out > check_in


class BookingStore(ABC):
    """Abstract booking persistence."""

    @abstractmethod
    async def create(self, draft: BookingDraft, idempotency_key: str) -> Booking:
        """Persist a new booking.

        A second call with the same idempotency key returns the booking the
        first call created instead of creating another one. Keys are
        released once their booking reaches a terminal status.
        """

    @abstractmethod
    async def get(self, booking_id: str) -> Booking:
        """Fetch a booking or raise NotFoundError."""

    @abstractmethod
    async def get_by_reference(self, reference: str) -> Booking | None:
        """Find a booking by payment reference or booking number."""

    @abstractmethod
    async def list_by_status(self, status: BookingStatus) -> list[Booking]:
        """All bookings currently in ``status``."""

    @abstractmethod
    async def list_overlapping(
        self,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        """Non-terminal bookings of a room whose dates overlap the range."""

    @abstractmethod
    async def update_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        extra: dict[str, Any] | None = None,
    ) -> Booking:
        """Move a booking to ``new_status`` if it is still in ``expected_status``.

        Raises:
            NotFoundError: Unknown booking
            ConflictError: The stored status is no longer ``expected_status``
        """

    @abstractmethod
    async def update_stay(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        stay: StayRequest,
        cost_breakdown: CostBreakdown,
    ) -> Booking:
        """Replace the stay snapshot and its price."""


class InMemoryBookingStore(BookingStore):
    """Booking store kept in process memory."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._idempotency = IdempotencyStore()
        self._lock = asyncio.Lock()

    async def _number_taken(self, booking_number: str) -> bool:
        return any(b.booking_number == booking_number for b in self._bookings.values())

    async def create(self, draft: BookingDraft, idempotency_key: str) -> Booking:
        async with self._lock:
            existing_id = self._idempotency.get(idempotency_key)
            if existing_id and existing_id in self._bookings:
                logger.info("Duplicate booking submission %s, returning original", idempotency_key[:12])
                return self._bookings[existing_id]

            now = datetime.now(UTC)
            booking = Booking(
                id=str(uuid.uuid4()),
                booking_number=await generate_booking_number(self._number_taken),
                idempotency_key=idempotency_key,
                created_at=now,
                updated_at=now,
                **dict(draft),
            )
            self._bookings[booking.id] = booking
            self._idempotency.set(idempotency_key, booking.id)
            return booking

    async def get(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def get_by_reference(self, reference: str) -> Booking | None:
        for booking in self._bookings.values():
            if reference in (booking.payment_reference, booking.booking_number):
                return booking
        return None

    async def list_by_status(self, status: BookingStatus) -> list[Booking]:
        return [b for b in self._bookings.values() if b.status == status]

    async def list_overlapping(
        self,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        return [
            b
            for b in self._bookings.values()
            if b.room_id == room_id
            and b.id != exclude_booking_id
            and b.status not in TERMINAL_STATUSES
            and _dates_overlap(b, check_in, check_out)
        ]

    async def _replace(
        self, booking_id: str, expected_status: BookingStatus, changes: dict[str, Any]
    ) -> Booking:
        async with self._lock:
            current = await self.get(booking_id)
            if current.status != expected_status:
                raise ConflictError(
                    f"Booking {current.booking_number} is {current.status.value}, "
                    f"expected {BookingStatus(expected_status).value}"
                )
            updated = current.model_copy(
                update={
                    **changes,
                    "version": current.version + 1,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._bookings[booking_id] = updated
            if current.idempotency_key and updated.idempotency_key is None:
                self._idempotency.delete(current.idempotency_key)
            return updated

    async def update_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        extra: dict[str, Any] | None = None,
    ) -> Booking:
        changes = _check_extra(extra)
        changes["status"] = BookingStatus(new_status)
        return await self._replace(booking_id, expected_status, changes)

    async def update_stay(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        stay: StayRequest,
        cost_breakdown: CostBreakdown,
    ) -> Booking:
        return await self._replace(
            booking_id,
            expected_status,
            {"stay": stay, "cost_breakdown": cost_breakdown},
        )


def _to_booking(record: BookingRecord) -> Booking:
    return Booking(
        id=str(record.id),
        booking_number=record.booking_number,
        room_id=record.room_id,
        guest_id=record.guest_id,
        stay=StayRequest.model_validate(record.stay),
        cost_breakdown=CostBreakdown.model_validate(record.cost_breakdown),
        payment_method=record.payment_method,
        status=record.status,
        hold_until=record.hold_until,
        payment_reference=record.payment_reference,
        idempotency_key=record.idempotency_key,
        version=record.version,
        refund_amount=record.refund_amount,
        status_reason=record.status_reason,
        auto_cancelled=record.auto_cancelled,
        confirmed_at=record.confirmed_at,
        rejected_at=record.rejected_at,
        cancelled_at=record.cancelled_at,
        completed_at=record.completed_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _parse_id(booking_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(booking_id))
    except ValueError:
        raise NotFoundError("Booking", str(booking_id))


class SqlBookingStore(BookingStore):
    """Booking store backed by PostgreSQL through SQLAlchemy."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def _find_by_key(self, db: AsyncSession, idempotency_key: str) -> BookingRecord | None:
        result = await db.execute(
            select(BookingRecord).where(BookingRecord.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def create(self, draft: BookingDraft, idempotency_key: str) -> Booking:
        async with self._session_maker() as db:
            existing = await self._find_by_key(db, idempotency_key)
            if existing:
                logger.info("Duplicate booking submission %s, returning original", idempotency_key[:12])
                return _to_booking(existing)

            async def number_taken(booking_number: str) -> bool:
                result = await db.execute(
                    select(BookingRecord.id).where(BookingRecord.booking_number == booking_number)
                )
                return result.scalar_one_or_none() is not None

            record = BookingRecord(
                booking_number=await generate_booking_number(number_taken),
                room_id=draft.room_id,
                guest_id=draft.guest_id,
                check_in=draft.stay.check_in,
                check_out=draft.stay.check_out,
                stay=draft.stay.model_dump(mode="json"),
                cost_breakdown=draft.cost_breakdown.model_dump(mode="json"),
                total_price=draft.cost_breakdown.total,
                payment_method=draft.payment_method.value,
                status=draft.status.value,
                idempotency_key=idempotency_key,
            )
            db.add(record)
            try:
                await db.commit()
            except IntegrityError:
                # A concurrent retry with the same key won the insert
                await db.rollback()
                existing = await self._find_by_key(db, idempotency_key)
                if existing is None:
                    raise
                return _to_booking(existing)
            await db.refresh(record)
            return _to_booking(record)

    async def get(self, booking_id: str) -> Booking:
        async with self._session_maker() as db:
            record = await db.get(BookingRecord, _parse_id(booking_id))
            if record is None:
                raise NotFoundError("Booking", str(booking_id))
            return _to_booking(record)

    async def get_by_reference(self, reference: str) -> Booking | None:
        async with self._session_maker() as db:
            result = await db.execute(
                select(BookingRecord).where(
                    (BookingRecord.payment_reference == reference)
                    | (BookingRecord.booking_number == reference)
                )
            )
            record = result.scalars().first()
            return _to_booking(record) if record else None

    async def list_by_status(self, status: BookingStatus) -> list[Booking]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(BookingRecord)
                .where(BookingRecord.status == BookingStatus(status).value)
                .order_by(BookingRecord.created_at)
            )
            return [_to_booking(r) for r in result.scalars().all()]

    async def list_overlapping(
        self,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        query = select(BookingRecord).where(
            BookingRecord.room_id == room_id,
            BookingRecord.status.notin_([s.value for s in TERMINAL_STATUSES]),
            BookingRecord.check_in < check_out,
            BookingRecord.check_out > check_in,
        )
        if exclude_booking_id:
            query = query.where(BookingRecord.id != _parse_id(exclude_booking_id))
        async with self._session_maker() as db:
            result = await db.execute(query)
            return [_to_booking(r) for r in result.scalars().all()]

    async def _conditional_update(
        self, booking_id: str, expected_status: BookingStatus, values: dict[str, Any]
    ) -> Booking:
        pk = _parse_id(booking_id)
        async with self._session_maker() as db:
            record = await db.get(BookingRecord, pk)
            if record is None:
                raise NotFoundError("Booking", str(booking_id))

            result = await db.execute(
                update(BookingRecord)
                .where(
                    BookingRecord.id == pk,
                    BookingRecord.status == BookingStatus(expected_status).value,
                    BookingRecord.version == record.version,
                )
                .values(**values, version=record.version + 1, updated_at=datetime.now(UTC))
            )
            if result.rowcount != 1:
                await db.rollback()
                raise ConflictError(
                    f"Booking {record.booking_number} changed while it was being updated"
                )
            await db.commit()

            await db.refresh(record)
            return _to_booking(record)

    async def update_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        extra: dict[str, Any] | None = None,
    ) -> Booking:
        values = _check_extra(extra)
        values["status"] = BookingStatus(new_status).value
        return await self._conditional_update(booking_id, expected_status, values)

    async def update_stay(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        stay: StayRequest,
        cost_breakdown: CostBreakdown,
    ) -> Booking:
        return await self._conditional_update(
            booking_id,
            expected_status,
            {
                "stay": stay.model_dump(mode="json"),
                "cost_breakdown": cost_breakdown.model_dump(mode="json"),
                "total_price": cost_breakdown.total,
                "check_in": stay.check_in,
                "check_out": stay.check_out,
            },
        )
