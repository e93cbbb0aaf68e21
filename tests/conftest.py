from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from hotelbook.config import Settings
from hotelbook.gateways.base import GatewayType
from hotelbook.gateways.manual import ManualGateway
from hotelbook.gateways.payhere import PayHereGateway
from hotelbook.schemas.booking import FlatPlan, FoodPlan, StayRequest
from hotelbook.services.booking_service import BookingService
from hotelbook.services.booking_store import InMemoryBookingStore
from hotelbook.services.gateway_service import GatewayService
from hotelbook.services.payment_service import PaymentService
from hotelbook.services.room_service import InMemoryRoomDirectory, Room

TODAY = date(2025, 2, 1)


def make_settings(**overrides) -> Settings:
    values = {
        "payhere_merchant_id": "1221149",
        "payhere_merchant_secret": "merchant-secret",
        "payhere_app_id": "app-id",
        "payhere_app_secret": "app-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_stay(**overrides) -> StayRequest:
    values = {
        "room_id": "room-101",
        "check_in": date(2025, 3, 1),
        "check_out": date(2025, 3, 4),
        "guests": 2,
        "food": FlatPlan(plan=FoodPlan.BREAKFAST),
    }
    values.update(overrides)
    return StayRequest(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def rooms(store) -> InMemoryRoomDirectory:
    return InMemoryRoomDirectory(
        store,
        [
            Room(id="room-101", name="Deluxe Double", rate_per_night=Decimal("25000"), max_capacity=2),
            Room(id="room-201", name="Family Suite", rate_per_night=Decimal("40000"), max_capacity=4),
        ],
    )


@pytest.fixture
def booking_service(store, rooms, settings) -> BookingService:
    return BookingService(store, rooms, settings)


@pytest.fixture
def gateways(settings) -> GatewayService:
    return GatewayService(
        {
            GatewayType.PAYHERE: PayHereGateway(settings),
            GatewayType.MANUAL: ManualGateway(),
        }
    )


@pytest.fixture
def payment_service(booking_service, gateways) -> PaymentService:
    return PaymentService(booking_service, gateways)
