"""Room model — a physical, bookable unit of a room type."""

import uuid
from enum import Enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RoomStatus(str, Enum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    MAINTENANCE = "Maintenance"
    CLEANING = "Cleaning"
    RESERVED = "Reserved"


# Rooms in these states can take a new reservation.
BOOKABLE_ROOM_STATUSES = (RoomStatus.AVAILABLE.value, RoomStatus.RESERVED.value)


class Room(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A concrete room; status changes only through the reservation lifecycle or staff overrides."""

    __tablename__ = "rooms"

    number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    floor: Mapped[str] = mapped_column(String(20), nullable=False)
    room_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), default=RoomStatus.AVAILABLE.value, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, number={self.number!r}, status={self.status!r})>"
