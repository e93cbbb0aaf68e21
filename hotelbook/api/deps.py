"""API dependencies wiring the booking services."""

from functools import lru_cache

from hotelbook.config import settings
from hotelbook.services.booking_service import BookingService
from hotelbook.services.booking_store import BookingStore, InMemoryBookingStore, SqlBookingStore
from hotelbook.services.payment_service import PaymentService
from hotelbook.services.room_service import InMemoryRoomDirectory, RoomDirectory


def build_booking_store() -> BookingStore:
    """PostgreSQL when a database is configured, process memory otherwise."""
    if settings.database_url:
        from hotelbook.database import get_session_maker

        return SqlBookingStore(get_session_maker())
    return InMemoryBookingStore()


def build_room_directory(store: BookingStore) -> RoomDirectory:
    if settings.rooms_file:
        return InMemoryRoomDirectory.from_file(store, settings.rooms_file)
    return InMemoryRoomDirectory(store)


def build_booking_service(store: BookingStore | None = None) -> BookingService:
    """A booking service on its own store, for callers outside the API process.

    Background tasks build one per run so the store never outlives the
    engine it was created on.
    """
    store = store or build_booking_store()
    return BookingService(store, build_room_directory(store), settings)


@lru_cache
def get_booking_store() -> BookingStore:
    return build_booking_store()


@lru_cache
def get_room_directory() -> RoomDirectory:
    return build_room_directory(get_booking_store())


@lru_cache
def get_booking_service() -> BookingService:
    return BookingService(get_booking_store(), get_room_directory(), settings)


@lru_cache
def get_payment_service() -> PaymentService:
    return PaymentService(get_booking_service())
