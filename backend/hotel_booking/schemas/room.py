"""Pydantic v2 request/response schemas for room inventory endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import Field

from hotel_booking.models.room import RoomStatus
from hotel_booking.schemas.common import CamelModel

_ROOM_STATUS_PATTERN = "^(" + "|".join(status.value for status in RoomStatus) + ")$"

# ---------------------------------------------------------------------------
# Room types
# ---------------------------------------------------------------------------


class RoomTypeCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    base_price: Decimal = Field(..., ge=0)
    capacity: int = Field(..., ge=1)
    standard_occupancy: int = Field(2, ge=1)
    additional_guest_charge: Decimal = Field(Decimal("0"), ge=0)
    amenities: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)


class RoomTypeUpdate(CamelModel):
    """Partial update. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    base_price: Decimal | None = Field(None, ge=0)
    capacity: int | None = Field(None, ge=1)
    standard_occupancy: int | None = Field(None, ge=1)
    additional_guest_charge: Decimal | None = Field(None, ge=0)
    amenities: list[str] | None = None
    images: list[str] | None = None


class RoomTypeResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    base_price: Decimal
    capacity: int
    standard_occupancy: int
    additional_guest_charge: Decimal
    amenities: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


class RoomCreate(CamelModel):
    number: str = Field(..., min_length=1, max_length=20)
    floor: str = Field(..., min_length=1, max_length=20)
    room_type_id: uuid.UUID
    status: str = Field(RoomStatus.AVAILABLE.value, pattern=_ROOM_STATUS_PATTERN)
    notes: str | None = None


class RoomStatusUpdate(CamelModel):
    status: str = Field(..., pattern=_ROOM_STATUS_PATTERN)


class RoomResponse(CamelModel):
    id: uuid.UUID
    number: str
    floor: str
    room_type_id: uuid.UUID
    status: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
