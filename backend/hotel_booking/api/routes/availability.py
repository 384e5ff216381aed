"""Public availability quote for a room type and date range."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_cache, get_db
from hotel_booking.models.room_type import RoomType
from hotel_booking.schemas.availability import AvailabilityCheckRequest, AvailabilityCheckResponse
from hotel_booking.services.availability import check_availability, quote_stay
from hotel_booking.services.cache import CacheService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/availability", tags=["availability"])

AVAILABILITY_CACHE_TTL_SECONDS = 300


@router.post("/check", response_model=AvailabilityCheckResponse)
async def check_room_availability(
    body: AvailabilityCheckRequest,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> dict:
    """Report whether the room type is free for the stay and quote its price."""
    room_type = await db.get(RoomType, body.room_type_id)
    if room_type is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Room type not found",
        )

    quote = quote_stay(room_type, body.check_in_date, body.check_out_date, body.adults, body.children)
    guests = body.adults + body.children
    if guests > room_type.capacity:
        return AvailabilityCheckResponse(
            available=False,
            available_rooms=0,
            nights=quote.nights,
            base_price=quote.base_price,
            additional_guest_charge=quote.additional_guest_charge,
            total_price=quote.total_price,
            message=f"This room type holds at most {room_type.capacity} guests",
        ).model_dump(mode="json", by_alias=True)

    async def compute() -> dict:
        result = await check_availability(db, room_type.id, body.check_in_date, body.check_out_date)
        return AvailabilityCheckResponse(
            available=result.available,
            available_rooms=result.available_count,
            nights=quote.nights,
            base_price=quote.base_price,
            additional_guest_charge=quote.additional_guest_charge,
            total_price=quote.total_price,
            message=(
                "Room available"
                if result.available
                else "No rooms available for the selected dates"
            ),
        ).model_dump(mode="json", by_alias=True)

    key = (
        f"availability:{room_type.id}:{body.check_in_date.isoformat()}:"
        f"{body.check_out_date.isoformat()}:{body.adults}:{body.children}"
    )
    return await cache.get_or_compute(key, AVAILABILITY_CACHE_TTL_SECONDS, compute)
