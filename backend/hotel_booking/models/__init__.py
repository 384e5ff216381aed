"""SQLAlchemy models for the hotel booking service.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from hotel_booking.models.payment import Payment, PaymentStatus, PaymentType
from hotel_booking.models.reservation import Reservation, ReservationPaymentStatus, ReservationStatus
from hotel_booking.models.room import Room, RoomStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation
from hotel_booking.models.user import User

__all__ = [
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "Reservation",
    "ReservationPaymentStatus",
    "ReservationStatus",
    "Room",
    "RoomStatus",
    "RoomType",
    "TemporaryReservation",
    "User",
]
