"""TemporaryReservation model — a time-boxed hold on a room type for a guest without an account."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class TemporaryReservation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Holds one unit of a room type's capacity while ``expires_at`` is in the future.

    No concrete room is assigned until the hold is promoted.
    """

    __tablename__ = "temporary_reservations"

    room_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    guest_first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(50), default=None)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    adults: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    children: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Pending")
    confirmation_code: Mapped[str] = mapped_column(String(8), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, default=None)
    pay_on_arrival: Mapped[bool] = mapped_column(Boolean, default=False)
    # Client-generated ``temp-...`` token used before the hold was persisted
    original_id: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    @property
    def promotion_key(self) -> str:
        """Identifier carried as ``originalTempId`` on the permanent reservation."""
        return self.original_id or str(self.id)

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now

    def __repr__(self) -> str:
        return (
            f"<TemporaryReservation(id={self.id}, room_type_id={self.room_type_id}, "
            f"expires_at={self.expires_at.isoformat()})>"
        )
