"""Reservation endpoints for guest booking and lookups."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_current_user, get_db, get_event_dispatcher, get_optional_user
from hotel_booking.api.errors import http_error
from hotel_booking.config import settings
from hotel_booking.errors import ConflictError, HotelBookingError, InvalidInputError, NotFoundError
from hotel_booking.models.reservation import ReservationPaymentStatus, ReservationStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.user import User
from hotel_booking.schemas.reservation import (
    ReservationCreateRequest,
    ReservationCreateResponse,
    ReservationDetailResponse,
    ReservationListResponse,
)
from hotel_booking.services.availability import check_availability
from hotel_booking.services.events import EventDispatcher, ReservationCreated
from hotel_booking.services.reservation_service import (
    create_reservation,
    create_temporary_reservation,
    get_reservation,
    get_reservation_by_code,
    list_reservations,
    snapshot_reservation,
    snapshot_temporary_reservation,
    with_details,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reservations", tags=["reservations"])
user_router = APIRouter(prefix="/api/user", tags=["reservations"])


@router.post("/create", response_model=ReservationCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: ReservationCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ReservationCreateResponse:
    """Book a room type.

    Guests without an account (or asking for it) get a temporary hold that
    a payment later promotes. Signed-in guests get a room straight away.
    """
    room_type = await db.get(RoomType, body.room_type_id)
    if room_type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Room type not found",
        )

    try:
        availability = await check_availability(db, room_type.id, body.check_in_date, body.check_out_date)
    except InvalidInputError as e:
        raise http_error(e) from e

    if not availability.available:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No rooms available for the selected dates",
        )

    guest = body.guest.to_contact()

    if body.is_temporary or user is None:
        temp = await create_temporary_reservation(
            db,
            room_type_id=room_type.id,
            guest=guest,
            check_in=body.check_in_date,
            check_out=body.check_out_date,
            adults=body.adults,
            children=body.children,
            total_price=body.total_price,
            ttl_minutes=settings.temporary_reservation_ttl_minutes,
            special_requests=body.special_requests,
            pay_on_arrival=body.pay_on_arrival,
        )
        snapshot = await snapshot_temporary_reservation(db, temp)
        await db.commit()
        await dispatcher.dispatch([ReservationCreated(snapshot, pay_on_arrival=body.pay_on_arrival)])
        return ReservationCreateResponse(
            reservation_id=str(temp.id),
            confirmation_code=temp.confirmation_code,
            is_temporary=True,
        )

    if not availability.free_room_ids:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No rooms available for the selected dates",
        )

    try:
        reservation = await create_reservation(
            db,
            room_id=availability.free_room_ids[0],
            user_id=user.id,
            guest=guest,
            check_in=body.check_in_date,
            check_out=body.check_out_date,
            adults=body.adults,
            children=body.children,
            total_price=body.total_price,
            status=ReservationStatus.PENDING.value if body.pay_on_arrival else ReservationStatus.CONFIRMED.value,
            payment_status=ReservationPaymentStatus.PENDING.value,
            payment_method="Cash" if body.pay_on_arrival else "PayU",
            special_requests=body.special_requests,
        )
    except (ConflictError, NotFoundError) as e:
        raise http_error(e) from e

    snapshot = await snapshot_reservation(db, reservation)
    await db.commit()
    await dispatcher.dispatch([ReservationCreated(snapshot, pay_on_arrival=body.pay_on_arrival)])

    return ReservationCreateResponse(
        reservation_id=str(reservation.id),
        confirmation_code=reservation.confirmation_code,
        is_temporary=False,
    )


@router.get("/code/{confirmation_code}", response_model=ReservationDetailResponse)
async def get_booking_by_code(
    confirmation_code: str,
    db: AsyncSession = Depends(get_db),
) -> ReservationDetailResponse:
    """Look up a reservation by its confirmation code."""
    reservation = await get_reservation_by_code(db, confirmation_code)
    if reservation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reservation not found",
        )
    [details] = await with_details(db, [reservation])
    return ReservationDetailResponse.from_details(details)


@router.get("/{reservation_id}", response_model=ReservationDetailResponse)
async def get_booking(
    reservation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> ReservationDetailResponse:
    """Get a reservation with its room and room type."""
    try:
        reservation = await get_reservation(db, reservation_id)
    except HotelBookingError as e:
        raise http_error(e) from e
    [details] = await with_details(db, [reservation])
    return ReservationDetailResponse.from_details(details)


@user_router.get("/reservations", response_model=ReservationListResponse)
async def list_my_bookings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReservationListResponse:
    """Reservations made by the signed-in user or under their email address."""
    reservations = await list_reservations(db, user_id=current_user.id, email=current_user.email)
    details = await with_details(db, reservations)
    return ReservationListResponse(
        items=[ReservationDetailResponse.from_details(d) for d in details],
        total=len(details),
    )
