"""Tests for checkout, payment status and gateway configuration endpoints."""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.models.payment import Payment
from hotel_booking.models.reservation import Reservation
from hotel_booking.models.room import Room
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation

pytestmark = pytest.mark.asyncio

CREATE_URL = "/api/payments/create"
TEMP_TOKEN = "temp-1700000000000"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stay(room_type: RoomType) -> dict:
    check_in = date.today() + timedelta(days=30)
    return {
        "roomTypeId": str(room_type.id),
        "checkInDate": check_in.isoformat(),
        "checkOutDate": (check_in + timedelta(days=3)).isoformat(),
        "adults": 2,
        "children": 0,
        "totalPrice": 300.0,
        "guest": {"firstName": "Ana", "lastName": "Quispe", "email": "ana@example.com", "phone": "+51 999 888 777"},
    }


def _card() -> dict:
    return {"number": "4097440000000004", "cvc": "321", "expiryMonth": "12", "expiryYear": "2030", "name": "APPROVED"}


def _checkout(reservation_id: str, **overrides) -> dict:
    body = {
        "reservationId": reservation_id,
        "amount": 300.0,
        "paymentType": "Full",
        "paymentMethod": "VISA",
        "returnUrl": "https://hotel.test/payment/return",
        "cancelUrl": "https://hotel.test/payment/cancel",
        "cardData": _card(),
    }
    body.update(overrides)
    return body


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _permanent_reservation(db: AsyncSession, room: Room, total: str = "300.00") -> Reservation:
    check_in = date.today() + timedelta(days=30)
    reservation = Reservation(
        room_id=room.id,
        guest_first_name="Ana",
        guest_last_name="Quispe",
        guest_email="ana@example.com",
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=3),
        adults=2,
        children=0,
        total_price=Decimal(total),
        status="Pending",
        payment_status="Pending",
        payment_method="PayU",
        confirmation_code="PERM0001",
        meta={"roomTypeId": str(room.room_type_id)},
    )
    db.add(reservation)
    await db.flush()
    return reservation


# ---------------------------------------------------------------------------
# POST /api/payments/create: temporary token
# ---------------------------------------------------------------------------


class TestCheckoutWithTemporaryToken:
    async def test_approved_payment_promotes_hold(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
        notifier,
    ) -> None:
        response = await client.post(
            CREATE_URL,
            json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)),
            headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "A" * 300},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["paymentStatus"] == "Completed"
        assert data["isTemporary"] is True
        assert data["originalTempId"] == TEMP_TOKEN

        reservation = await db_session.get(Reservation, uuid.UUID(data["actualReservationId"]))
        assert reservation is not None
        assert reservation.original_temp_id == TEMP_TOKEN
        assert reservation.room_id == rooms[0].id
        assert reservation.status == "Confirmed"
        assert reservation.payment_status == "Paid"
        assert await _count(db_session, TemporaryReservation) == 0

        payment = await db_session.get(Payment, uuid.UUID(data["paymentId"]))
        assert payment.permanent_reservation_id == reservation.id
        assert payment.transaction_id == "tx-123"
        assert payment.meta["returnUrl"] == f"https://hotel.test/payment/return?paymentId={payment.id}"

        [sent] = fake_payu.requests
        transaction = sent["transaction"]
        assert transaction["order"]["referenceCode"] == payment.reference_code
        assert transaction["ipAddress"] == "203.0.113.7"
        assert len(transaction["userAgent"]) == 255
        assert transaction["creditCard"]["number"] == "4097440000000004"

        assert [email.subject for email in notifier.sent] == ["Reservation Confirmation"]

    async def test_pending_payment_keeps_hold(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        fake_payu.answer_with("PENDING")
        response = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))
        assert response.status_code == 200
        data = response.json()
        assert data["paymentStatus"] == "Pending"
        assert await _count(db_session, Reservation) == 0

        temp = await db_session.get(TemporaryReservation, uuid.UUID(data["actualReservationId"]))
        assert temp.original_id == TEMP_TOKEN

    async def test_declined_card(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        fake_payu.answer_with("DECLINED")
        response = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))
        assert response.status_code == 400
        data = response.json()
        assert data["paymentStatus"] == "Failed"
        payment = await db_session.get(Payment, uuid.UUID(data["paymentId"]))
        assert payment.status == "Failed"
        assert await _count(db_session, Reservation) == 0

    async def test_sold_out_room_type_rejected_before_charging(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        for room in rooms:
            await _permanent_reservation(db_session, room)

        response = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))
        assert response.status_code == 409
        assert fake_payu.requests == []
        assert await _count(db_session, Payment) == 0
        assert await _count(db_session, TemporaryReservation) == 0

    async def test_retry_with_same_token_reuses_hold(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        # One unit left: a second hold for the same guest would not fit
        await _permanent_reservation(db_session, rooms[0])
        fake_payu.answer_with("PENDING")

        first = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))
        second = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["actualReservationId"] == second.json()["actualReservationId"]
        assert await _count(db_session, TemporaryReservation) == 1
        assert await _count(db_session, Payment) == 2

    async def test_token_requires_reservation_data(self, client: AsyncClient) -> None:
        response = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN))
        assert response.status_code == 400

    async def test_token_with_unknown_room_type(self, client: AsyncClient, room_type: RoomType) -> None:
        stay = _stay(room_type)
        stay["roomTypeId"] = str(uuid.uuid4())
        response = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=stay))
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# POST /api/payments/create: existing reservations and gateway failures
# ---------------------------------------------------------------------------


class TestCheckoutExistingReservation:
    async def test_partial_payment_on_permanent_reservation(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        rooms: list[Room],
        notifier,
    ) -> None:
        reservation = await _permanent_reservation(db_session, rooms[0])
        response = await client.post(
            CREATE_URL,
            json=_checkout(str(reservation.id), amount=100.0, paymentType="Partial", paymentMethod="YAPE",
                           cardData=None, otpCode="123456"),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["isTemporary"] is False
        assert data["actualReservationId"] == str(reservation.id)
        assert reservation.payment_status == "Partial"
        assert reservation.status == "Confirmed"
        assert [email.subject for email in notifier.sent] == ["Payment Confirmation"]

    async def test_stored_hold_id_is_accepted(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
    ) -> None:
        created = await client.post(
            "/api/reservations/create",
            json={**_stay(room_type), "isTemporary": True},
        )
        hold_id = created.json()["reservationId"]

        response = await client.post(CREATE_URL, json=_checkout(hold_id))
        assert response.status_code == 200
        data = response.json()
        assert data["isTemporary"] is True
        assert data["originalTempId"] == hold_id
        reservation = await db_session.get(Reservation, uuid.UUID(data["actualReservationId"]))
        assert reservation.original_temp_id == hold_id

    async def test_unknown_reservation(self, client: AsyncClient) -> None:
        response = await client.post(CREATE_URL, json=_checkout(str(uuid.uuid4())))
        assert response.status_code == 404

    async def test_malformed_reservation_id(self, client: AsyncClient) -> None:
        response = await client.post(CREATE_URL, json=_checkout("not-a-uuid"))
        assert response.status_code == 400

    async def test_card_payment_needs_card_data(self, client: AsyncClient, db_session: AsyncSession, rooms) -> None:
        reservation = await _permanent_reservation(db_session, rooms[0])
        response = await client.post(CREATE_URL, json=_checkout(str(reservation.id), cardData=None))
        assert response.status_code == 400
        assert await _count(db_session, Payment) == 0

    async def test_gateway_timeout_leaves_payment_pending(
        self, client: AsyncClient, db_session: AsyncSession, rooms: list[Room], fake_payu
    ) -> None:
        fake_payu.error = httpx.ReadTimeout("timed out")
        reservation = await _permanent_reservation(db_session, rooms[0])
        response = await client.post(CREATE_URL, json=_checkout(str(reservation.id)))
        assert response.status_code == 202
        data = response.json()
        assert data["paymentStatus"] == "Pending"
        payment = await db_session.get(Payment, uuid.UUID(data["paymentId"]))
        assert payment.status == "Pending"

    async def test_gateway_unreachable_fails_payment(
        self, client: AsyncClient, db_session: AsyncSession, rooms: list[Room], fake_payu
    ) -> None:
        fake_payu.error = httpx.ConnectError("connection refused")
        reservation = await _permanent_reservation(db_session, rooms[0])
        response = await client.post(CREATE_URL, json=_checkout(str(reservation.id)))
        assert response.status_code == 500
        payment = await db_session.get(Payment, uuid.UUID(response.json()["paymentId"]))
        assert payment.status == "Failed"

    async def test_gateway_refusal(
        self, client: AsyncClient, db_session: AsyncSession, rooms: list[Room], fake_payu
    ) -> None:
        fake_payu.response = {"code": "ERROR", "error": "Invalid signature", "transactionResponse": None}
        reservation = await _permanent_reservation(db_session, rooms[0])
        response = await client.post(CREATE_URL, json=_checkout(str(reservation.id)))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid signature"


# ---------------------------------------------------------------------------
# GET /api/payments/status/{id} and /check-config
# ---------------------------------------------------------------------------


class TestPaymentStatus:
    async def test_status_after_promotion(
        self,
        client: AsyncClient,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        created = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))
        payment_id = created.json()["paymentId"]
        fake_payu.response = {"code": "SUCCESS", "result": {"payload": {"status": "CAPTURED"}}}

        response = await client.get(f"/api/payments/status/{payment_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["isTemporary"] is False
        assert data["reservationId"] == created.json()["actualReservationId"]
        assert data["payment"]["status"] == "Completed"
        assert data["summary"]["paymentStatus"] == "Paid"
        assert Decimal(str(data["summary"]["remaining"])) == Decimal("0")
        assert data["gatewayStatus"]["result"]["payload"]["status"] == "CAPTURED"
        assert fake_payu.requests[-1]["command"] == "ORDER_DETAIL"

    async def test_status_of_pending_hold_payment(
        self, client: AsyncClient, room_type: RoomType, rooms: list[Room], fake_payu
    ) -> None:
        fake_payu.answer_with("PENDING")
        created = await client.post(CREATE_URL, json=_checkout(TEMP_TOKEN, reservationData=_stay(room_type)))
        fake_payu.error = httpx.ConnectError("reports api down")

        response = await client.get(f"/api/payments/status/{created.json()['paymentId']}")
        assert response.status_code == 200
        data = response.json()
        assert data["isTemporary"] is True
        assert data["summary"]["paymentStatus"] == "Pending"
        assert data["gatewayStatus"] is None

    async def test_unknown_payment(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/payments/status/{uuid.uuid4()}")
        assert response.status_code == 404


class TestCheckConfig:
    async def test_configured(self, client: AsyncClient) -> None:
        response = await client.get("/api/payments/check-config")
        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is True
        assert "VISA" in data["availablePaymentMethods"]
        assert data["missingCredentials"] == []
