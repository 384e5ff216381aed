"""Seed the database with a sample hotel inventory.

Creates four room types (Standard, Deluxe, Family, Suite), their rooms
across three floors and a front-desk administrator account.

Run from the backend directory:
    python -m scripts.seed_data
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from hotel_booking.database import Base, async_session_factory, engine
from hotel_booking.models.payment import Payment
from hotel_booking.models.reservation import Reservation
from hotel_booking.models.room import Room, RoomStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation
from hotel_booking.models.user import User

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

ADMIN_USER = {
    "email": "admin@example.com",
    "first_name": "Admin",
    "last_name": "User",
    "role": "admin",
}

ROOM_TYPES = [
    {
        "name": "Standard",
        "description": "Comfortable room with a queen bed, work desk and city view.",
        "base_price": Decimal("80.00"),
        "capacity": 2,
        "standard_occupancy": 2,
        "additional_guest_charge": Decimal("0.00"),
        "amenities": ["wifi", "tv", "ac", "private_bathroom"],
    },
    {
        "name": "Deluxe",
        "description": "Spacious room with a king bed, minibar and a sofa bed for a third guest.",
        "base_price": Decimal("120.00"),
        "capacity": 3,
        "standard_occupancy": 2,
        "additional_guest_charge": Decimal("25.00"),
        "amenities": ["wifi", "tv", "ac", "minibar", "bathtub"],
    },
    {
        "name": "Family",
        "description": "Two double beds and a bunk bed, ideal for families travelling with children.",
        "base_price": Decimal("160.00"),
        "capacity": 5,
        "standard_occupancy": 4,
        "additional_guest_charge": Decimal("20.00"),
        "amenities": ["wifi", "tv", "ac", "minibar", "kitchenette"],
    },
    {
        "name": "Suite",
        "description": "Separate living area, king bed, panoramic windows and a private terrace.",
        "base_price": Decimal("250.00"),
        "capacity": 4,
        "standard_occupancy": 2,
        "additional_guest_charge": Decimal("40.00"),
        "amenities": ["wifi", "tv", "ac", "minibar", "bathtub", "terrace", "room_service"],
    },
]

# (number, floor, room type name, status)
ROOMS = [
    ("101", "1", "Standard", RoomStatus.AVAILABLE),
    ("102", "1", "Standard", RoomStatus.AVAILABLE),
    ("103", "1", "Standard", RoomStatus.AVAILABLE),
    ("104", "1", "Standard", RoomStatus.MAINTENANCE),
    ("105", "1", "Deluxe", RoomStatus.AVAILABLE),
    ("106", "1", "Deluxe", RoomStatus.AVAILABLE),
    ("201", "2", "Family", RoomStatus.AVAILABLE),
    ("202", "2", "Family", RoomStatus.AVAILABLE),
    ("203", "2", "Family", RoomStatus.CLEANING),
    ("204", "2", "Suite", RoomStatus.AVAILABLE),
    ("205", "2", "Suite", RoomStatus.AVAILABLE),
    ("301", "3", "Suite", RoomStatus.AVAILABLE),
    ("302", "3", "Suite", RoomStatus.AVAILABLE),
    ("303", "3", "Suite", RoomStatus.AVAILABLE),
]


# ---------------------------------------------------------------------------
# Main seed function
# ---------------------------------------------------------------------------


async def seed() -> None:
    """Populate the database with the sample inventory.

    Idempotent: existing reservations, holds, payments, rooms and room types
    are removed and re-created so every run starts from the same state.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        # Dependents first; rooms and room types are RESTRICT-protected
        await session.execute(delete(Payment))
        await session.execute(delete(Reservation))
        await session.execute(delete(TemporaryReservation))
        await session.execute(delete(Room))
        await session.execute(delete(RoomType))
        await session.flush()

        # ------------------------------------------------------------------
        # 1. Administrator
        # ------------------------------------------------------------------
        result = await session.execute(select(User).where(User.email == ADMIN_USER["email"]))
        admin = result.scalar_one_or_none()
        if admin is None:
            admin = User(is_active=True, **ADMIN_USER)
            session.add(admin)
        else:
            admin.role = ADMIN_USER["role"]
            admin.is_active = True
        await session.flush()
        print(f"✅ Administrator: {admin.email} (id={admin.id})")

        # ------------------------------------------------------------------
        # 2. Room types
        # ------------------------------------------------------------------
        room_types: dict[str, RoomType] = {}
        for type_data in ROOM_TYPES:
            room_type = RoomType(images=[], **type_data)
            session.add(room_type)
            await session.flush()
            room_types[room_type.name] = room_type
            print(f"   🛏️  {room_type.name} (capacity {room_type.capacity}, {room_type.base_price}/night)")

        # ------------------------------------------------------------------
        # 3. Rooms
        # ------------------------------------------------------------------
        for number, floor, type_name, status in ROOMS:
            session.add(
                Room(
                    number=number,
                    floor=floor,
                    room_type_id=room_types[type_name].id,
                    status=status.value,
                )
            )

        await session.flush()
        await session.commit()

        print()
        print("=" * 60)
        print("📊 Seed Summary")
        print("=" * 60)
        print(f"   Users:      1 ({ADMIN_USER['email']})")
        print(f"   Room types: {len(room_types)}")
        print(f"   Rooms:      {len(ROOMS)}")
        print("=" * 60)
        print("🎉 Done!")


if __name__ == "__main__":
    asyncio.run(seed())
