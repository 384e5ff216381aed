"""Room availability: whether a room type has a free unit for a date range.

Intervals are half-open ``[check_in, check_out)``: two stays overlap when
``existing.check_in < new.check_out and existing.check_out > new.check_in``,
so back-to-back stays sharing a changeover day never conflict.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.database import utcnow
from hotel_booking.errors import InvalidInputError
from hotel_booking.models.reservation import ACTIVE_RESERVATION_STATUSES, Reservation
from hotel_booking.models.room import Room, RoomStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityResult:
    room_type_id: uuid.UUID
    total_rooms: int
    occupied_room_ids: frozenset[uuid.UUID]
    temporary_count: int
    # Unoccupied, allocatable rooms in allocation order
    free_room_ids: tuple[uuid.UUID, ...]

    @property
    def available(self) -> bool:
        return self.total_rooms > len(self.occupied_room_ids) + self.temporary_count

    @property
    def available_count(self) -> int:
        return max(0, self.total_rooms - len(self.occupied_room_ids) - self.temporary_count)


def validate_stay_dates(check_in: date, check_out: date) -> None:
    if check_in >= check_out:
        raise InvalidInputError(
            "Check-out date must be after check-in date",
            {"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()},
        )


async def list_rooms_of_type(db: AsyncSession, room_type_id: uuid.UUID) -> list[Room]:
    """Rooms of a type in stable allocation order (number, then id)."""
    result = await db.execute(
        select(Room).where(Room.room_type_id == room_type_id).order_by(Room.number, Room.id)
    )
    return list(result.scalars().all())


async def occupied_room_ids(
    db: AsyncSession,
    room_ids: list[uuid.UUID],
    check_in: date,
    check_out: date,
    exclude_reservation_id: uuid.UUID | None = None,
) -> set[uuid.UUID]:
    """Ids of rooms among ``room_ids`` held by an active reservation overlapping the range."""
    if not room_ids:
        return set()
    query = select(Reservation.room_id).where(
        Reservation.room_id.in_(room_ids),
        Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        Reservation.check_in_date < check_out,
        Reservation.check_out_date > check_in,
    )
    if exclude_reservation_id is not None:
        query = query.where(Reservation.id != exclude_reservation_id)
    result = await db.execute(query.distinct())
    return {room_id for room_id in result.scalars().all() if room_id is not None}


async def count_live_temporary_reservations(
    db: AsyncSession,
    room_type_id: uuid.UUID,
    check_in: date,
    check_out: date,
    now: datetime | None = None,
) -> int:
    """Unexpired holds on the room type overlapping the range.

    Expiry is evaluated here against ``now``; no sweep is needed for a
    lapsed hold to stop counting.
    """
    now = now or utcnow()
    result = await db.execute(
        select(func.count())
        .select_from(TemporaryReservation)
        .where(
            TemporaryReservation.room_type_id == room_type_id,
            TemporaryReservation.status == "Pending",
            TemporaryReservation.expires_at > now,
            TemporaryReservation.check_in_date < check_out,
            TemporaryReservation.check_out_date > check_in,
        )
    )
    return result.scalar_one()


async def check_availability(
    db: AsyncSession,
    room_type_id: uuid.UUID,
    check_in: date,
    check_out: date,
    now: datetime | None = None,
) -> AvailabilityResult:
    """Compute availability of ``room_type_id`` for ``[check_in, check_out)``."""
    validate_stay_dates(check_in, check_out)

    rooms = await list_rooms_of_type(db, room_type_id)
    occupied = await occupied_room_ids(db, [room.id for room in rooms], check_in, check_out)
    temporary_count = await count_live_temporary_reservations(db, room_type_id, check_in, check_out, now)

    free = tuple(
        room.id for room in rooms if room.id not in occupied and room.status != RoomStatus.MAINTENANCE.value
    )
    result = AvailabilityResult(
        room_type_id=room_type_id,
        total_rooms=len(rooms),
        occupied_room_ids=frozenset(occupied),
        temporary_count=temporary_count,
        free_room_ids=free,
    )
    logger.debug(
        "Availability for room type %s %s..%s: total=%d occupied=%d holds=%d",
        room_type_id,
        check_in,
        check_out,
        result.total_rooms,
        len(occupied),
        temporary_count,
    )
    return result


async def find_free_room(
    db: AsyncSession,
    room_type_id: uuid.UUID,
    check_in: date,
    check_out: date,
) -> Room | None:
    """First allocatable room of the type not held by an active reservation, or None."""
    rooms = await list_rooms_of_type(db, room_type_id)
    occupied = await occupied_room_ids(db, [room.id for room in rooms], check_in, check_out)
    for room in rooms:
        if room.id not in occupied and room.status != RoomStatus.MAINTENANCE.value:
            return room
    return None


@dataclass(frozen=True)
class StayQuote:
    nights: int
    base_price: Decimal
    additional_guest_charge: Decimal

    @property
    def total_price(self) -> Decimal:
        return self.base_price + self.additional_guest_charge


def quote_stay(room_type: RoomType, check_in: date, check_out: date, adults: int, children: int) -> StayQuote:
    """Price a stay: nightly rate plus a per-night surcharge for guests beyond standard occupancy."""
    validate_stay_dates(check_in, check_out)
    nights = (check_out - check_in).days
    extra_guests = max(0, adults + children - (room_type.standard_occupancy or 2))
    return StayQuote(
        nights=nights,
        base_price=Decimal(room_type.base_price) * nights,
        additional_guest_charge=Decimal(room_type.additional_guest_charge or 0) * extra_guests * nights,
    )
