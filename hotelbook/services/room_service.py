"""Room directory: rates, capacity and availability."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, Field

from hotelbook.core.exceptions import NotFoundError
from hotelbook.services.booking_store import BookingStore


class Room(BaseModel):
    """The slice of room data the booking engine needs."""

    id: str
    name: str = ""
    rate_per_night: Decimal = Field(ge=0)
    max_capacity: int = Field(default=2, ge=1)


class RoomDirectory(ABC):
    """Abstract room lookup."""

    @abstractmethod
    async def get_room(self, room_id: str) -> Room:
        """Fetch a room or raise NotFoundError."""

    @abstractmethod
    async def check_overlap(
        self,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: str | None = None,
    ) -> bool:
        """True if a live booking already holds any of these nights."""


class InMemoryRoomDirectory(RoomDirectory):
    """Rooms held in memory; availability comes from the booking store."""

    def __init__(self, store: BookingStore, rooms: list[Room] | None = None) -> None:
        self._store = store
        self._rooms: dict[str, Room] = {room.id: room for room in rooms or []}

    @classmethod
    def from_file(cls, store: BookingStore, path: str | Path) -> InMemoryRoomDirectory:
        """Load rooms from a JSON list of room objects."""
        with open(path, encoding="utf-8") as f:
            rooms = [Room.model_validate(item) for item in json.load(f)]
        return cls(store, rooms)

    def add_room(self, room: Room) -> None:
        self._rooms[room.id] = room

    async def get_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise NotFoundError("Room", room_id)
        return room

    async def check_overlap(
        self,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: str | None = None,
    ) -> bool:
        overlapping = await self._store.list_overlapping(
            room_id, check_in, check_out, exclude_booking_id=exclude_booking_id
        )
        return bool(overlapping)
