"""Pydantic v2 request/response schemas for reservation endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import EmailStr, Field, model_validator

from hotel_booking.models.reservation import PENDING_ASSIGNMENT, Reservation, ReservationStatus
from hotel_booking.schemas.common import CamelModel
from hotel_booking.schemas.room import RoomResponse, RoomTypeResponse
from hotel_booking.services.reservation_service import GuestContact, ReservationDetails

_RESERVATION_STATUS_PATTERN = "^(" + "|".join(status.value for status in ReservationStatus) + ")$"
_PAYMENT_STATUS_PATTERN = "^(Pending|Partial|Paid)$"

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class GuestInfo(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field("", max_length=255)
    email: EmailStr
    phone: str | None = Field(None, max_length=50)

    def to_contact(self) -> GuestContact:
        return GuestContact(
            first_name=self.first_name,
            last_name=self.last_name,
            email=str(self.email),
            phone=self.phone,
        )


class StayRequest(CamelModel):
    """Fields shared by a booking request and the reservation data sent with a payment."""

    room_type_id: uuid.UUID
    check_in_date: date
    check_out_date: date
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    total_price: Decimal = Field(..., ge=0)
    guest: GuestInfo
    special_requests: str | None = None
    pay_on_arrival: bool = False

    @model_validator(mode="after")
    def check_dates(self) -> "StayRequest":
        if self.check_out_date <= self.check_in_date:
            raise ValueError("checkOutDate must be after checkInDate")
        return self


class ReservationCreateRequest(StayRequest):
    is_temporary: bool = False


class ReservationUpdateRequest(CamelModel):
    """Staff partial update. All fields optional."""

    room_id: uuid.UUID | None = None
    status: str | None = Field(None, pattern=_RESERVATION_STATUS_PATTERN)
    check_in_date: date | None = None
    check_out_date: date | None = None
    adults: int | None = Field(None, ge=1)
    children: int | None = Field(None, ge=0)
    total_price: Decimal | None = Field(None, ge=0)
    payment_status: str | None = Field(None, pattern=_PAYMENT_STATUS_PATTERN)
    payment_method: str | None = None
    special_requests: str | None = None
    guest: GuestInfo | None = None

    def to_fields(self) -> dict[str, Any]:
        """Model attribute updates for the fields the client actually sent."""
        data = self.model_dump(exclude_unset=True, exclude={"guest"})
        if self.guest is not None:
            data.update(
                guest_first_name=self.guest.first_name,
                guest_last_name=self.guest.last_name,
                guest_email=str(self.guest.email),
                guest_phone=self.guest.phone,
            )
        return data


class AssignRoomRequest(CamelModel):
    room_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ReservationCreateResponse(CamelModel):
    success: bool = True
    reservation_id: str
    confirmation_code: str
    is_temporary: bool


class GuestResponse(CamelModel):
    first_name: str
    last_name: str
    email: str
    phone: str | None = None


class UserSummary(CamelModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str


class ReservationResponse(CamelModel):
    id: uuid.UUID
    room_id: str
    user_id: uuid.UUID | None = None
    guest: GuestResponse
    check_in_date: date
    check_out_date: date
    adults: int
    children: int
    total_price: Decimal
    status: str
    payment_status: str
    payment_method: str | None = None
    confirmation_code: str
    special_requests: str | None = None
    original_temp_id: str | None = None
    needs_room_assignment: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            id=reservation.id,
            room_id=str(reservation.room_id) if reservation.room_id else PENDING_ASSIGNMENT,
            user_id=reservation.user_id,
            guest=GuestResponse(
                first_name=reservation.guest_first_name,
                last_name=reservation.guest_last_name,
                email=reservation.guest_email,
                phone=reservation.guest_phone,
            ),
            check_in_date=reservation.check_in_date,
            check_out_date=reservation.check_out_date,
            adults=reservation.adults,
            children=reservation.children,
            total_price=reservation.total_price,
            status=reservation.status,
            payment_status=reservation.payment_status,
            payment_method=reservation.payment_method,
            confirmation_code=reservation.confirmation_code,
            special_requests=reservation.special_requests,
            original_temp_id=reservation.original_temp_id,
            needs_room_assignment=reservation.needs_room_assignment,
            metadata=dict(reservation.meta or {}),
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )


class ReservationDetailResponse(ReservationResponse):
    """Reservation with its room, room type and account holder."""

    room: RoomResponse | None = None
    room_type: RoomTypeResponse | None = None
    user: UserSummary | None = None

    @classmethod
    def from_details(cls, details: ReservationDetails) -> "ReservationDetailResponse":
        base = ReservationResponse.from_model(details.reservation)
        return cls(
            **base.model_dump(),
            room=RoomResponse.model_validate(details.room) if details.room else None,
            room_type=RoomTypeResponse.model_validate(details.room_type) if details.room_type else None,
            user=UserSummary.model_validate(details.user) if details.user else None,
        )


class ReservationListResponse(CamelModel):
    items: list[ReservationDetailResponse]
    total: int


class PurgeResponse(CamelModel):
    success: bool = True
    purged: int
