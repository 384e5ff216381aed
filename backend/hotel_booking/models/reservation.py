"""Reservation model — a permanent booking bound to a concrete room."""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ReservationStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CHECKED_IN = "Checked-in"
    CHECKED_OUT = "Checked-out"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-show"
    CONFLICT = "Conflict"


class ReservationPaymentStatus(str, Enum):
    """Reservation-level payment summary. Distinct from ``PaymentStatus``."""

    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"


# Reservations in these states hold their room.
ACTIVE_RESERVATION_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.CHECKED_IN.value,
)

# Wire value for a paid reservation that still has no room.
PENDING_ASSIGNMENT = "pending-assignment"


class Reservation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A guest's stay in a specific room for [check_in_date, check_out_date)."""

    __tablename__ = "reservations"

    # NULL only for Conflict reservations awaiting manual room assignment
    room_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    guest_first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    guest_phone: Mapped[str | None] = mapped_column(String(50), default=None)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    adults: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    children: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ReservationStatus.PENDING.value,
        index=True,
    )
    payment_status: Mapped[str] = mapped_column(String(20), default=ReservationPaymentStatus.PENDING.value)
    payment_method: Mapped[str | None] = mapped_column(String(50), default=None)
    confirmation_code: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    special_requests: Mapped[str | None] = mapped_column(Text, default=None)
    # Set only on reservations promoted from a temporary hold; unique so a
    # hold can never be promoted twice.
    original_temp_id: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    __table_args__ = (Index("ix_reservations_room_dates", "room_id", "check_in_date", "check_out_date"),)

    @property
    def needs_room_assignment(self) -> bool:
        return bool((self.meta or {}).get("needsRoomAssignment"))

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, room_id={self.room_id}, code={self.confirmation_code!r}, "
            f"status={self.status!r})>"
        )
