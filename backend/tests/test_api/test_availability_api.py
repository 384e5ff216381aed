"""Tests for the availability check endpoint."""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from hotel_booking.models.room import Room
from hotel_booking.models.room_type import RoomType

pytestmark = pytest.mark.asyncio

URL = "/api/availability/check"


def _future_dates(offset_start: int = 30, nights: int = 3) -> tuple[str, str]:
    check_in = date.today() + timedelta(days=offset_start)
    return check_in.isoformat(), (check_in + timedelta(days=nights)).isoformat()


class TestCheckAvailability:
    async def test_available_with_quote(self, client: AsyncClient, room_type: RoomType, rooms: list[Room]):
        ci, co = _future_dates(nights=3)
        response = await client.post(
            URL,
            json={"roomTypeId": str(room_type.id), "checkInDate": ci, "checkOutDate": co, "adults": 3},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["available"] is True
        assert data["availableRooms"] == 2
        assert data["nights"] == 3
        assert Decimal(str(data["basePrice"])) == Decimal("300")
        assert Decimal(str(data["additionalGuestCharge"])) == Decimal("75")
        assert Decimal(str(data["totalPrice"])) == Decimal("375")

    async def test_result_is_cached(self, client: AsyncClient, room_type: RoomType, rooms: list[Room], fake_cache):
        ci, co = _future_dates()
        body = {"roomTypeId": str(room_type.id), "checkInDate": ci, "checkOutDate": co}
        await client.post(URL, json=body)
        await client.post(URL, json=body)
        assert fake_cache.computed == [f"availability:{room_type.id}:{ci}:{co}:1:0"]

    async def test_over_capacity(self, client: AsyncClient, room_type: RoomType, rooms: list[Room]):
        ci, co = _future_dates()
        response = await client.post(
            URL,
            json={"roomTypeId": str(room_type.id), "checkInDate": ci, "checkOutDate": co, "adults": 3, "children": 1},
        )
        assert response.status_code == 200
        assert response.json()["available"] is False

    async def test_unknown_room_type(self, client: AsyncClient):
        ci, co = _future_dates()
        response = await client.post(URL, json={"roomTypeId": str(uuid.uuid4()), "checkInDate": ci, "checkOutDate": co})
        assert response.status_code == 404

    async def test_inverted_dates(self, client: AsyncClient, room_type: RoomType):
        ci, co = _future_dates()
        response = await client.post(URL, json={"roomTypeId": str(room_type.id), "checkInDate": co, "checkOutDate": ci})
        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post(URL, json={})
        assert response.status_code == 400
        assert response.json()["errors"]
