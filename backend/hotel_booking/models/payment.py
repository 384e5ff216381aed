"""Payment model — one row per checkout attempt, mutated in place as the gateway reports."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PARTIAL = "Partial"


class PaymentType(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"
    ON_ARRIVAL = "OnArrival"


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A payment attempt against a permanent or temporary reservation.

    ``reservation_id`` points at a permanent reservation, or at a temporary
    one when ``meta["isTemporary"]`` is true. Once a temporary reservation is
    promoted, ``permanent_reservation_id`` records the resulting reservation.
    """

    __tablename__ = "payments"

    reservation_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    permanent_reservation_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    transaction_id: Mapped[str | None] = mapped_column(String(255), default=None)
    reference_code: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="PEN")
    status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value, index=True)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    @property
    def is_temporary(self) -> bool:
        return (self.meta or {}).get("isTemporary") is True

    @property
    def original_temp_id(self) -> str | None:
        return (self.meta or {}).get("originalTempId")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, reference={self.reference_code!r}, status={self.status!r})>"
