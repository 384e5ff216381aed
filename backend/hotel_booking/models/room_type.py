"""RoomType model — static metadata shared by every room of a category."""

from decimal import Decimal

from sqlalchemy import JSON, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RoomType(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A sellable room category (Standard, Deluxe, Suite, ...)."""

    __tablename__ = "room_types"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    standard_occupancy: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    additional_guest_charge: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    images: Mapped[list] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:
        return f"<RoomType(id={self.id}, name={self.name!r}, base_price={self.base_price})>"
