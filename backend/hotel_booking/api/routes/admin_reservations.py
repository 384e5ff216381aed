"""Staff reservation management: listing, edits, check-in/out and conflict resolution."""

import logging
import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_db, get_event_dispatcher, require_staff
from hotel_booking.api.errors import http_error
from hotel_booking.errors import HotelBookingError
from hotel_booking.models.user import User
from hotel_booking.schemas.common import MessageResponse
from hotel_booking.schemas.reservation import (
    AssignRoomRequest,
    PurgeResponse,
    ReservationDetailResponse,
    ReservationListResponse,
    ReservationUpdateRequest,
)
from hotel_booking.services.events import EventDispatcher, ReservationUpdated
from hotel_booking.services.reservation_service import (
    assign_room,
    check_in_reservation,
    check_out_reservation,
    delete_reservation,
    list_reservations,
    purge_expired_temporary_reservations,
    update_reservation,
    with_details,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/reservations", tags=["admin"])


async def _detail(db: AsyncSession, reservation) -> ReservationDetailResponse:
    [details] = await with_details(db, [reservation])
    return ReservationDetailResponse.from_details(details)


@router.get("", response_model=ReservationListResponse)
async def list_all_reservations(
    status_filter: str | None = Query(None, alias="status"),
    email: str | None = Query(None),
    user_id: uuid.UUID | None = Query(None, alias="userId"),
    date_from: date | None = Query(None, alias="from", description="Stays ending after this date"),
    date_to: date | None = Query(None, alias="to", description="Stays starting before this date"),
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
) -> ReservationListResponse:
    """List reservations with room, room type and user details."""
    reservations = await list_reservations(
        db,
        user_id=user_id,
        email=email,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
    )
    details = await with_details(db, reservations)
    return ReservationListResponse(
        items=[ReservationDetailResponse.from_details(d) for d in details],
        total=len(details),
    )


@router.post("/purge-expired", response_model=PurgeResponse)
async def purge_expired_holds(
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> PurgeResponse:
    """Delete temporary reservations whose hold has lapsed."""
    purged = await purge_expired_temporary_reservations(db)
    await db.commit()
    if purged:
        await dispatcher.invalidate_reservation_caches()
    return PurgeResponse(purged=purged)


@router.put("/{reservation_id}", response_model=ReservationDetailResponse)
async def edit_reservation(
    reservation_id: uuid.UUID,
    body: ReservationUpdateRequest,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ReservationDetailResponse:
    """Update a reservation. Room and status changes keep room states consistent."""
    try:
        reservation = await update_reservation(db, reservation_id, body.to_fields())
    except HotelBookingError as e:
        raise http_error(e) from e
    response = await _detail(db, reservation)
    await db.commit()
    await dispatcher.dispatch([ReservationUpdated(str(reservation_id))])
    return response


@router.delete("/{reservation_id}", response_model=MessageResponse)
async def remove_reservation(
    reservation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> MessageResponse:
    """Delete a pending or cancelled reservation."""
    try:
        await delete_reservation(db, reservation_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    await db.commit()
    await dispatcher.dispatch([ReservationUpdated(str(reservation_id))])
    return MessageResponse(message="Reservation deleted")


@router.post("/{reservation_id}/check-in", response_model=ReservationDetailResponse)
async def check_in(
    reservation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ReservationDetailResponse:
    try:
        reservation = await check_in_reservation(db, reservation_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    response = await _detail(db, reservation)
    await db.commit()
    await dispatcher.dispatch([ReservationUpdated(str(reservation_id))])
    return response


@router.post("/{reservation_id}/check-out", response_model=ReservationDetailResponse)
async def check_out(
    reservation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ReservationDetailResponse:
    try:
        reservation = await check_out_reservation(db, reservation_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    response = await _detail(db, reservation)
    await db.commit()
    await dispatcher.dispatch([ReservationUpdated(str(reservation_id))])
    return response


@router.post(
    "/{reservation_id}/assign-room",
    response_model=ReservationDetailResponse,
    status_code=status.HTTP_200_OK,
)
async def resolve_room_conflict(
    reservation_id: uuid.UUID,
    body: AssignRoomRequest,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ReservationDetailResponse:
    """Give a paid reservation flagged for manual assignment its room."""
    try:
        reservation = await assign_room(db, reservation_id, body.room_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    response = await _detail(db, reservation)
    await db.commit()
    logger.info("Staff %s assigned room to reservation %s", staff.id, reservation_id)
    await dispatcher.dispatch([ReservationUpdated(str(reservation_id))])
    return response
