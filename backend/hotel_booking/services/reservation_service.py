"""Reservation store for permanent reservations and temporary holds.

Every mutation performs its own read-check-write; callers own the
transaction and commit once the whole unit of work succeeded.
"""

import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.database import utcnow
from hotel_booking.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from hotel_booking.models.reservation import (
    ACTIVE_RESERVATION_STATUSES,
    Reservation,
    ReservationPaymentStatus,
    ReservationStatus,
)
from hotel_booking.models.room import BOOKABLE_ROOM_STATUSES, Room, RoomStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation
from hotel_booking.models.user import User
from hotel_booking.services.availability import occupied_room_ids, validate_stay_dates
from hotel_booking.services.events import ReservationSnapshot
from hotel_booking.services.room_service import set_room_status

logger = logging.getLogger(__name__)

CONFIRMATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
CONFIRMATION_CODE_LENGTH = 8

_RESERVATION_STATUS_VALUES = {status.value for status in ReservationStatus}
_RELEASABLE_STATUSES = (ReservationStatus.PENDING.value, ReservationStatus.CANCELLED.value)


def generate_confirmation_code() -> str:
    """Random 8-character ``[A-Z0-9]`` code. Uniqueness is not checked."""
    return "".join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH))


@dataclass(frozen=True)
class GuestContact:
    first_name: str
    last_name: str
    email: str
    phone: str | None = None


@dataclass
class ReservationDetails:
    """A reservation joined with the records needed to display it."""

    reservation: Reservation
    room: Room | None
    room_type: RoomType | None
    user: User | None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> Reservation:
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found", {"reservationId": str(reservation_id)})
    return reservation


async def get_reservation_by_code(db: AsyncSession, confirmation_code: str) -> Reservation | None:
    """Most recent reservation carrying the code (codes are not guaranteed unique)."""
    result = await db.execute(
        select(Reservation)
        .where(Reservation.confirmation_code == confirmation_code.upper())
        .order_by(Reservation.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_reservation_by_original_temp_id(db: AsyncSession, original_temp_id: str) -> Reservation | None:
    result = await db.execute(select(Reservation).where(Reservation.original_temp_id == original_temp_id))
    return result.scalar_one_or_none()


async def find_temporary_reservation(db: AsyncSession, key: str) -> TemporaryReservation | None:
    """Find a hold by its primary key or by the client ``temp-`` token it was created from."""
    conditions = [TemporaryReservation.original_id == key]
    try:
        conditions.append(TemporaryReservation.id == uuid.UUID(key))
    except ValueError:
        pass
    result = await db.execute(
        select(TemporaryReservation).where(or_(*conditions)).order_by(TemporaryReservation.created_at.desc())
    )
    return result.scalars().first()


async def list_reservations(
    db: AsyncSession,
    *,
    user_id: uuid.UUID | None = None,
    email: str | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Reservation]:
    """Filter reservations. ``user_id`` and ``email`` together match either one.

    The date range selects stays overlapping ``[date_from, date_to)``.
    """
    query = select(Reservation)
    if user_id is not None and email:
        query = query.where(or_(Reservation.user_id == user_id, Reservation.guest_email == email))
    elif user_id is not None:
        query = query.where(Reservation.user_id == user_id)
    elif email:
        query = query.where(Reservation.guest_email == email)
    if status:
        query = query.where(Reservation.status == status)
    if date_from is not None:
        query = query.where(Reservation.check_out_date > date_from)
    if date_to is not None:
        query = query.where(Reservation.check_in_date < date_to)
    result = await db.execute(query.order_by(Reservation.check_in_date.desc(), Reservation.created_at.desc()))
    return list(result.scalars().all())


async def list_reservations_by_user(db: AsyncSession, user_id: uuid.UUID) -> list[Reservation]:
    return await list_reservations(db, user_id=user_id)


async def list_reservations_by_email(db: AsyncSession, email: str) -> list[Reservation]:
    return await list_reservations(db, email=email)


async def list_reservations_by_status(db: AsyncSession, status: str) -> list[Reservation]:
    return await list_reservations(db, status=status)


async def list_reservations_by_date_range(db: AsyncSession, date_from: date, date_to: date) -> list[Reservation]:
    return await list_reservations(db, date_from=date_from, date_to=date_to)


def reservation_room_type_id(reservation: Reservation) -> uuid.UUID | None:
    raw = (reservation.meta or {}).get("roomTypeId")
    return uuid.UUID(raw) if raw else None


async def with_details(db: AsyncSession, reservations: list[Reservation]) -> list[ReservationDetails]:
    """Attach room, room type and user to each reservation using batched lookups."""
    room_ids = {r.room_id for r in reservations if r.room_id is not None}
    user_ids = {r.user_id for r in reservations if r.user_id is not None}

    rooms: dict[uuid.UUID, Room] = {}
    if room_ids:
        result = await db.execute(select(Room).where(Room.id.in_(room_ids)))
        rooms = {room.id: room for room in result.scalars().all()}

    room_type_ids = {room.room_type_id for room in rooms.values()}
    room_type_ids.update(rt_id for r in reservations if (rt_id := reservation_room_type_id(r)) is not None)
    room_types: dict[uuid.UUID, RoomType] = {}
    if room_type_ids:
        result = await db.execute(select(RoomType).where(RoomType.id.in_(room_type_ids)))
        room_types = {rt.id: rt for rt in result.scalars().all()}

    users: dict[uuid.UUID, User] = {}
    if user_ids:
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {user.id: user for user in result.scalars().all()}

    details = []
    for reservation in reservations:
        room = rooms.get(reservation.room_id) if reservation.room_id else None
        room_type_id = room.room_type_id if room else reservation_room_type_id(reservation)
        details.append(
            ReservationDetails(
                reservation=reservation,
                room=room,
                room_type=room_types.get(room_type_id) if room_type_id else None,
                user=users.get(reservation.user_id) if reservation.user_id else None,
            )
        )
    return details


# ---------------------------------------------------------------------------
# Snapshots for post-commit events
# ---------------------------------------------------------------------------


async def snapshot_reservation(db: AsyncSession, reservation: Reservation) -> ReservationSnapshot:
    [details] = await with_details(db, [reservation])
    return ReservationSnapshot(
        id=str(reservation.id),
        confirmation_code=reservation.confirmation_code,
        guest_first_name=reservation.guest_first_name,
        guest_last_name=reservation.guest_last_name,
        guest_email=reservation.guest_email,
        check_in_date=reservation.check_in_date,
        check_out_date=reservation.check_out_date,
        adults=reservation.adults,
        children=reservation.children,
        total_price=reservation.total_price,
        status=reservation.status,
        payment_status=reservation.payment_status,
        room_type_name=details.room_type.name if details.room_type else None,
        room_number=details.room.number if details.room else None,
    )


async def snapshot_temporary_reservation(db: AsyncSession, temp: TemporaryReservation) -> ReservationSnapshot:
    room_type = await db.get(RoomType, temp.room_type_id)
    return ReservationSnapshot(
        id=str(temp.id),
        confirmation_code=temp.confirmation_code,
        guest_first_name=temp.guest_first_name,
        guest_last_name=temp.guest_last_name,
        guest_email=temp.guest_email,
        check_in_date=temp.check_in_date,
        check_out_date=temp.check_out_date,
        adults=temp.adults,
        children=temp.children,
        total_price=temp.total_price,
        status=temp.status,
        payment_status=ReservationPaymentStatus.PENDING.value,
        room_type_name=room_type.name if room_type else None,
        is_temporary=True,
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def _ensure_room_free(
    db: AsyncSession,
    room_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_reservation_id: uuid.UUID | None = None,
) -> Room:
    room = await db.get(Room, room_id)
    if room is None:
        raise NotFoundError("Room not found", {"roomId": str(room_id)})
    if room.status not in BOOKABLE_ROOM_STATUSES:
        raise ConflictError(f"Room {room.number} is not available (status: {room.status})")

    overlapping = await occupied_room_ids(db, [room_id], check_in, check_out, exclude_reservation_id)
    if overlapping:
        raise ConflictError(
            f"Room {room.number} is already booked for the selected dates",
            {"roomId": str(room_id), "checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()},
        )
    return room


async def create_reservation(
    db: AsyncSession,
    *,
    room_id: uuid.UUID,
    guest: GuestContact,
    check_in: date,
    check_out: date,
    adults: int,
    children: int,
    total_price: Decimal,
    user_id: uuid.UUID | None = None,
    status: str = ReservationStatus.PENDING.value,
    payment_status: str = ReservationPaymentStatus.PENDING.value,
    payment_method: str | None = None,
    special_requests: str | None = None,
    confirmation_code: str | None = None,
    meta: dict[str, Any] | None = None,
) -> Reservation:
    """Insert a permanent reservation for a concrete room and mark the room Reserved."""
    validate_stay_dates(check_in, check_out)
    if user_id is not None and await db.get(User, user_id) is None:
        raise NotFoundError("User not found", {"userId": str(user_id)})
    room = await _ensure_room_free(db, room_id, check_in, check_out)

    reservation = Reservation(
        room_id=room.id,
        user_id=user_id,
        guest_first_name=guest.first_name,
        guest_last_name=guest.last_name,
        guest_email=guest.email,
        guest_phone=guest.phone,
        check_in_date=check_in,
        check_out_date=check_out,
        adults=adults,
        children=children,
        total_price=total_price,
        status=status,
        payment_status=payment_status,
        payment_method=payment_method,
        confirmation_code=confirmation_code or generate_confirmation_code(),
        special_requests=special_requests,
        meta={"roomTypeId": str(room.room_type_id), **(meta or {})},
    )
    db.add(reservation)
    room.status = RoomStatus.RESERVED.value
    await db.flush()

    logger.info(
        "Created reservation %s (%s) for room %s, %s..%s",
        reservation.id,
        reservation.confirmation_code,
        room.number,
        check_in,
        check_out,
    )
    return reservation


async def create_temporary_reservation(
    db: AsyncSession,
    *,
    room_type_id: uuid.UUID,
    guest: GuestContact,
    check_in: date,
    check_out: date,
    adults: int,
    children: int,
    total_price: Decimal,
    ttl_minutes: int,
    special_requests: str | None = None,
    pay_on_arrival: bool = False,
    original_id: str | None = None,
    now: datetime | None = None,
) -> TemporaryReservation:
    """Insert a hold on one unit of ``room_type_id``. Room statuses are untouched."""
    validate_stay_dates(check_in, check_out)
    if not guest.email or not guest.first_name:
        raise InvalidInputError("Guest contact details are required for a temporary reservation")

    now = now or utcnow()
    temp = TemporaryReservation(
        room_type_id=room_type_id,
        guest_first_name=guest.first_name,
        guest_last_name=guest.last_name,
        guest_email=guest.email,
        guest_phone=guest.phone,
        check_in_date=check_in,
        check_out_date=check_out,
        adults=adults,
        children=children,
        total_price=total_price,
        status="Pending",
        confirmation_code=generate_confirmation_code(),
        special_requests=special_requests,
        pay_on_arrival=pay_on_arrival,
        original_id=original_id,
        expires_at=now + timedelta(minutes=ttl_minutes),
    )
    db.add(temp)
    await db.flush()
    logger.info("Created temporary reservation %s expiring at %s", temp.id, temp.expires_at.isoformat())
    return temp


async def update_reservation(
    db: AsyncSession,
    reservation_id: uuid.UUID,
    fields: dict[str, Any],
) -> Reservation:
    """Apply ``fields`` to a reservation, keeping room statuses in step.

    Moving to another room re-validates the target and frees the old room
    (unless the guest is checked in). Status changes drive the room:
    Checked-in occupies it; Checked-out or Cancelled sends it to Cleaning.
    """
    reservation = await get_reservation(db, reservation_id)
    old_status = reservation.status
    old_room_id = reservation.room_id

    new_status = fields.get("status", old_status)
    if new_status not in _RESERVATION_STATUS_VALUES:
        raise InvalidInputError(f"Invalid reservation status: {new_status}")

    new_room_id = fields.get("room_id", old_room_id)
    check_in = fields.get("check_in_date", reservation.check_in_date)
    check_out = fields.get("check_out_date", reservation.check_out_date)
    validate_stay_dates(check_in, check_out)

    room_changed = new_room_id != old_room_id
    dates_changed = (check_in, check_out) != (reservation.check_in_date, reservation.check_out_date)
    reactivated = (
        old_status not in ACTIVE_RESERVATION_STATUSES and new_status in ACTIVE_RESERVATION_STATUSES
    )

    if new_room_id is not None and new_status in ACTIVE_RESERVATION_STATUSES:
        if room_changed:
            new_room = await _ensure_room_free(db, new_room_id, check_in, check_out, reservation.id)
        elif dates_changed or reactivated:
            overlapping = await occupied_room_ids(db, [new_room_id], check_in, check_out, reservation.id)
            if overlapping:
                raise ConflictError("The room is already booked for the selected dates")

    if room_changed:
        if old_room_id is not None and old_status != ReservationStatus.CHECKED_IN.value:
            await set_room_status(db, old_room_id, RoomStatus.AVAILABLE)
        if new_room_id is not None and new_status in ACTIVE_RESERVATION_STATUSES:
            new_room.status = RoomStatus.RESERVED.value
            meta = dict(reservation.meta or {})
            meta["roomTypeId"] = str(new_room.room_type_id)
            meta.pop("needsRoomAssignment", None)
            reservation.meta = meta

    for field_name, value in fields.items():
        setattr(reservation, field_name, value)

    if new_status != old_status:
        if new_status == ReservationStatus.CHECKED_IN.value:
            await set_room_status(db, reservation.room_id, RoomStatus.OCCUPIED)
        elif new_status in (ReservationStatus.CHECKED_OUT.value, ReservationStatus.CANCELLED.value):
            await set_room_status(db, reservation.room_id, RoomStatus.CLEANING)
        elif reactivated and not room_changed:
            await set_room_status(db, reservation.room_id, RoomStatus.RESERVED)
        logger.info("Reservation %s status %s -> %s", reservation.id, old_status, new_status)

    await db.flush()
    return reservation


async def check_in_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> Reservation:
    reservation = await get_reservation(db, reservation_id)
    if reservation.status not in (ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value):
        raise InvalidStateError(f"Cannot check in a reservation with status {reservation.status}")
    if reservation.room_id is None:
        raise InvalidStateError("Reservation has no room assigned")
    return await update_reservation(db, reservation_id, {"status": ReservationStatus.CHECKED_IN.value})


async def check_out_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> Reservation:
    reservation = await get_reservation(db, reservation_id)
    if reservation.status != ReservationStatus.CHECKED_IN.value:
        raise InvalidStateError(f"Cannot check out a reservation with status {reservation.status}")
    return await update_reservation(db, reservation_id, {"status": ReservationStatus.CHECKED_OUT.value})


async def assign_room(db: AsyncSession, reservation_id: uuid.UUID, room_id: uuid.UUID) -> Reservation:
    """Bind a reservation awaiting assignment to a free room and confirm it."""
    reservation = await get_reservation(db, reservation_id)
    if reservation.room_id is not None and reservation.status != ReservationStatus.CONFLICT.value:
        raise InvalidStateError("Reservation already has a room assigned")

    room = await _ensure_room_free(db, room_id, reservation.check_in_date, reservation.check_out_date, reservation.id)
    expected_type = reservation_room_type_id(reservation)
    if expected_type is not None and room.room_type_id != expected_type:
        raise InvalidInputError("Room does not belong to the reserved room type")

    reservation.room_id = room.id
    reservation.status = ReservationStatus.CONFIRMED.value
    meta = dict(reservation.meta or {})
    meta["needsRoomAssignment"] = False
    meta["roomTypeId"] = str(room.room_type_id)
    reservation.meta = meta
    room.status = RoomStatus.RESERVED.value
    await db.flush()

    logger.info("Assigned room %s to reservation %s", room.number, reservation.id)
    return reservation


async def delete_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> None:
    """Delete a Pending or Cancelled reservation and release its room."""
    reservation = await get_reservation(db, reservation_id)
    if reservation.status not in _RELEASABLE_STATUSES:
        raise InvalidStateError(
            f"Only pending or cancelled reservations can be deleted (status: {reservation.status})"
        )
    await set_room_status(db, reservation.room_id, RoomStatus.AVAILABLE)
    await db.delete(reservation)
    await db.flush()
    logger.info("Deleted reservation %s", reservation_id)


async def purge_expired_temporary_reservations(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete holds whose ``expires_at`` has passed. Returns the number removed."""
    now = now or utcnow()
    result = await db.execute(delete(TemporaryReservation).where(TemporaryReservation.expires_at <= now))
    await db.flush()
    purged = result.rowcount or 0
    if purged:
        logger.info("Purged %d expired temporary reservations", purged)
    return purged
