"""Room inventory service: room types and physical rooms."""

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from hotel_booking.models.reservation import Reservation
from hotel_booking.models.room import Room, RoomStatus
from hotel_booking.models.room_type import RoomType

logger = logging.getLogger(__name__)

_ROOM_STATUS_VALUES = {status.value for status in RoomStatus}


# ---------------------------------------------------------------------------
# Room types
# ---------------------------------------------------------------------------


async def list_room_types(db: AsyncSession) -> list[RoomType]:
    result = await db.execute(select(RoomType).order_by(RoomType.base_price, RoomType.name))
    return list(result.scalars().all())


async def get_room_type(db: AsyncSession, room_type_id: uuid.UUID) -> RoomType:
    room_type = await db.get(RoomType, room_type_id)
    if room_type is None:
        raise NotFoundError("Room type not found", {"roomTypeId": str(room_type_id)})
    return room_type


async def create_room_type(db: AsyncSession, **fields: Any) -> RoomType:
    existing = await db.execute(select(RoomType).where(RoomType.name == fields["name"]))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Room type '{fields['name']}' already exists")

    room_type = RoomType(**fields)
    db.add(room_type)
    await db.flush()
    logger.info("Created room type %s (%s)", room_type.name, room_type.id)
    return room_type


async def update_room_type(db: AsyncSession, room_type_id: uuid.UUID, fields: dict[str, Any]) -> RoomType:
    room_type = await get_room_type(db, room_type_id)

    new_name = fields.get("name")
    if new_name and new_name != room_type.name:
        clash = await db.execute(select(RoomType).where(RoomType.name == new_name))
        if clash.scalar_one_or_none() is not None:
            raise ConflictError(f"Room type '{new_name}' already exists")

    for field_name, value in fields.items():
        setattr(room_type, field_name, value)
    await db.flush()
    return room_type


async def delete_room_type(db: AsyncSession, room_type_id: uuid.UUID) -> None:
    room_type = await get_room_type(db, room_type_id)
    room_count = await db.execute(
        select(func.count()).select_from(Room).where(Room.room_type_id == room_type_id)
    )
    if room_count.scalar_one() > 0:
        raise InvalidStateError("Cannot delete a room type that still has rooms")
    await db.delete(room_type)
    await db.flush()
    logger.info("Deleted room type %s", room_type_id)


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


async def list_rooms(
    db: AsyncSession,
    room_type_id: uuid.UUID | None = None,
    status: str | None = None,
) -> list[Room]:
    query = select(Room)
    if room_type_id is not None:
        query = query.where(Room.room_type_id == room_type_id)
    if status is not None:
        query = query.where(Room.status == status)
    result = await db.execute(query.order_by(Room.number))
    return list(result.scalars().all())


async def get_room(db: AsyncSession, room_id: uuid.UUID) -> Room:
    room = await db.get(Room, room_id)
    if room is None:
        raise NotFoundError("Room not found", {"roomId": str(room_id)})
    return room


async def create_room(
    db: AsyncSession,
    *,
    number: str,
    floor: str,
    room_type_id: uuid.UUID,
    status: str = RoomStatus.AVAILABLE.value,
    notes: str | None = None,
) -> Room:
    await get_room_type(db, room_type_id)
    _require_room_status(status)

    clash = await db.execute(select(Room).where(Room.number == number))
    if clash.scalar_one_or_none() is not None:
        raise ConflictError(f"Room number {number} already exists")

    room = Room(number=number, floor=floor, room_type_id=room_type_id, status=status, notes=notes)
    db.add(room)
    await db.flush()
    logger.info("Created room %s (%s)", room.number, room.id)
    return room


async def set_room_status(db: AsyncSession, room_id: uuid.UUID | None, status: RoomStatus) -> None:
    """Move a room to ``status``; no-op when the room is unset or already there."""
    if room_id is None:
        return
    room = await db.get(Room, room_id)
    if room is None:
        logger.warning("Cannot set status %s on missing room %s", status.value, room_id)
        return
    if room.status != status.value:
        room.status = status.value
        await db.flush()


async def update_room_status(db: AsyncSession, room_id: uuid.UUID, status: str) -> Room:
    room = await get_room(db, room_id)
    _require_room_status(status)
    room.status = status
    await db.flush()
    return room


async def delete_room(db: AsyncSession, room_id: uuid.UUID) -> None:
    room = await get_room(db, room_id)
    reservation_count = await db.execute(
        select(func.count()).select_from(Reservation).where(Reservation.room_id == room_id)
    )
    if reservation_count.scalar_one() > 0:
        raise InvalidStateError("Cannot delete a room that has reservations")
    await db.delete(room)
    await db.flush()
    logger.info("Deleted room %s", room_id)


def _require_room_status(status: str) -> None:
    if status not in _ROOM_STATUS_VALUES:
        raise InvalidInputError(f"Invalid room status: {status}", {"allowed": sorted(_ROOM_STATUS_VALUES)})
