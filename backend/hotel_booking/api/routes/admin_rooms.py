"""Staff room inventory management."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_db, get_event_dispatcher, require_staff
from hotel_booking.api.errors import http_error
from hotel_booking.errors import HotelBookingError
from hotel_booking.models.user import User
from hotel_booking.schemas.common import MessageResponse
from hotel_booking.schemas.room import (
    RoomCreate,
    RoomResponse,
    RoomStatusUpdate,
    RoomTypeCreate,
    RoomTypeResponse,
    RoomTypeUpdate,
)
from hotel_booking.services import room_service
from hotel_booking.services.events import EventDispatcher

logger = logging.getLogger(__name__)

room_types_router = APIRouter(prefix="/api/admin/room-types", tags=["admin"])
rooms_router = APIRouter(prefix="/api/admin/rooms", tags=["admin"])


# ---------------------------------------------------------------------------
# Room types
# ---------------------------------------------------------------------------


@room_types_router.get("", response_model=list[RoomTypeResponse])
async def list_room_types(
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
) -> list:
    return await room_service.list_room_types(db)


@room_types_router.post("", response_model=RoomTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_room_type(
    body: RoomTypeCreate,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    try:
        room_type = await room_service.create_room_type(db, **body.model_dump())
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    await dispatcher.invalidate_reservation_caches()
    return room_type


@room_types_router.put("/{room_type_id}", response_model=RoomTypeResponse)
async def update_room_type(
    room_type_id: uuid.UUID,
    body: RoomTypeUpdate,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    try:
        room_type = await room_service.update_room_type(db, room_type_id, body.model_dump(exclude_unset=True))
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    await dispatcher.invalidate_reservation_caches()
    return room_type


@room_types_router.delete("/{room_type_id}", response_model=MessageResponse)
async def delete_room_type(
    room_type_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> MessageResponse:
    try:
        await room_service.delete_room_type(db, room_type_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    await dispatcher.invalidate_reservation_caches()
    return MessageResponse(message="Room type deleted")


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


@rooms_router.get("", response_model=list[RoomResponse])
async def list_rooms(
    room_type_id: uuid.UUID | None = Query(None, alias="roomTypeId"),
    status_filter: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
) -> list:
    return await room_service.list_rooms(db, room_type_id=room_type_id, status=status_filter)


@rooms_router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    body: RoomCreate,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    try:
        room = await room_service.create_room(db, **body.model_dump())
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    await dispatcher.invalidate_reservation_caches()
    return room


@rooms_router.patch("/{room_id}/status", response_model=RoomResponse)
async def update_room_status(
    room_id: uuid.UUID,
    body: RoomStatusUpdate,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """Manual status override (housekeeping, maintenance)."""
    try:
        room = await room_service.update_room_status(db, room_id, body.status)
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    logger.info("Staff %s set room %s to %s", staff.id, room.number, room.status)
    await dispatcher.invalidate_reservation_caches()
    return room


@rooms_router.delete("/{room_id}", response_model=MessageResponse)
async def delete_room(
    room_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> MessageResponse:
    try:
        await room_service.delete_room(db, room_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    await dispatcher.invalidate_reservation_caches()
    return MessageResponse(message="Room deleted")
