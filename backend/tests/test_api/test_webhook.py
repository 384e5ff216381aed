"""Tests for the PayU confirmation webhook."""

import uuid
from datetime import date, timedelta
from urllib.parse import urlencode

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.models.payment import Payment
from hotel_booking.models.reservation import Reservation
from hotel_booking.models.room import Room, RoomStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation
from hotel_booking.payments.payu import GatewayConfig, generate_notification_signature

pytestmark = pytest.mark.asyncio

WEBHOOK_URL = "/api/payments/webhook"
TEMP_TOKEN = "temp-1700000000123"
OPERATOR_EMAIL = "frontdesk@hotel.test"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stay(room_type: RoomType) -> dict:
    check_in = date.today() + timedelta(days=45)
    return {
        "roomTypeId": str(room_type.id),
        "checkInDate": check_in.isoformat(),
        "checkOutDate": (check_in + timedelta(days=2)).isoformat(),
        "adults": 2,
        "children": 0,
        "totalPrice": 200.0,
        "guest": {"firstName": "Luis", "lastName": "Mamani", "email": "luis@example.com"},
    }


async def _pending_payment(client: AsyncClient, db: AsyncSession, room_type: RoomType, fake_payu) -> Payment:
    """Check out a hold with a PENDING gateway answer and return the stored payment."""
    fake_payu.answer_with("PENDING")
    response = await client.post(
        "/api/payments/create",
        json={
            "reservationId": TEMP_TOKEN,
            "amount": 200.0,
            "paymentType": "Full",
            "paymentMethod": "PAGOEFECTIVO",
            "returnUrl": "https://hotel.test/payment/return",
            "cancelUrl": "https://hotel.test/payment/cancel",
            "reservationData": _stay(room_type),
        },
    )
    assert response.status_code == 200
    assert response.json()["paymentStatus"] == "Pending"
    return await db.get(Payment, uuid.UUID(response.json()["paymentId"]))


def _new_format(reference: str, state: str = "APPROVED") -> dict:
    return {
        "transaction": {
            "id": "tx-webhook",
            "state": state,
            "order": {
                "referenceCode": reference,
                "additionalValues": {"TX_VALUE": {"value": 200.0, "currency": "PEN"}},
            },
        }
    }


def _legacy_form(config: GatewayConfig, reference: str, state_pol: str = "4", sign: str | None = None) -> str:
    data = {
        "reference_sale": reference,
        "value": "200.00",
        "currency": "PEN",
        "state_pol": state_pol,
        "merchant_id": config.merchant_id,
        "transaction_id": "tx-legacy",
    }
    data["sign"] = sign or generate_notification_signature(
        config.api_key, config.merchant_id, reference, "200.00", "PEN", state_pol
    )
    return urlencode(data)


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ---------------------------------------------------------------------------
# Successful notifications
# ---------------------------------------------------------------------------


class TestWebhookPromotion:
    async def test_new_format_promotes_hold(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
        notifier,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)

        response = await client.post(WEBHOOK_URL, json=_new_format(payment.reference_code))
        assert response.status_code == 200
        assert response.json() == {"success": True}

        assert payment.status == "Completed"
        assert payment.transaction_id == "tx-webhook"
        reservation = await db_session.get(Reservation, payment.permanent_reservation_id)
        assert reservation.original_temp_id == TEMP_TOKEN
        assert reservation.status == "Confirmed"
        assert reservation.payment_status == "Paid"
        assert rooms[0].status == RoomStatus.RESERVED.value
        assert await _count(db_session, TemporaryReservation) == 0
        assert [email.to for email in notifier.sent] == ["luis@example.com"]

    async def test_direct_api_format(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)

        response = await client.post(
            WEBHOOK_URL,
            json={
                "referenceCode": payment.reference_code,
                "transactionResponse": {"transactionId": "tx-direct", "state": "APPROVED"},
            },
        )
        assert response.status_code == 200
        assert payment.status == "Completed"
        assert payment.permanent_reservation_id is not None

    async def test_legacy_form_with_signature(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
        gateway_config: GatewayConfig,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)

        response = await client.post(
            WEBHOOK_URL,
            content=_legacy_form(gateway_config, payment.reference_code),
            headers={"content-type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 200
        assert payment.status == "Completed"
        assert payment.transaction_id == "tx-legacy"
        assert await _count(db_session, Reservation) == 1

    async def test_duplicate_delivery_promotes_once(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)
        body = _new_format(payment.reference_code)

        first = await client.post(WEBHOOK_URL, json=body)
        second = await client.post(WEBHOOK_URL, json=body)
        assert first.status_code == 200
        assert second.status_code == 200

        assert await _count(db_session, Reservation) == 1
        assert rooms[1].status == RoomStatus.AVAILABLE.value

    async def test_no_free_room_flags_conflict(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
        notifier,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)
        for room in rooms:
            room.status = RoomStatus.MAINTENANCE.value
        await db_session.flush()

        response = await client.post(WEBHOOK_URL, json=_new_format(payment.reference_code))
        assert response.status_code == 200

        reservation = await db_session.get(Reservation, payment.permanent_reservation_id)
        assert reservation.status == "Conflict"
        assert reservation.room_id is None
        assert reservation.meta["needsRoomAssignment"] is True
        recipients = {email.to for email in notifier.sent}
        assert recipients == {"luis@example.com", OPERATOR_EMAIL}


# ---------------------------------------------------------------------------
# Non-completing and late notifications
# ---------------------------------------------------------------------------


class TestWebhookStatusChanges:
    async def test_declined_marks_failed_and_keeps_hold(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)

        response = await client.post(WEBHOOK_URL, json=_new_format(payment.reference_code, state="DECLINED"))
        assert response.status_code == 200
        assert payment.status == "Failed"
        assert await _count(db_session, Reservation) == 0
        assert await _count(db_session, TemporaryReservation) == 1

    async def test_late_notifications_do_not_regress(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)
        await client.post(WEBHOOK_URL, json=_new_format(payment.reference_code))

        for state in ("PENDING", "DECLINED"):
            response = await client.post(WEBHOOK_URL, json=_new_format(payment.reference_code, state=state))
            assert response.status_code == 200
            assert payment.status == "Completed"
        assert await _count(db_session, Reservation) == 1


# ---------------------------------------------------------------------------
# Rejected notifications
# ---------------------------------------------------------------------------


class TestWebhookRejections:
    async def test_unknown_reference(self, client: AsyncClient) -> None:
        response = await client.post(WEBHOOK_URL, json=_new_format("HOTEL_missing_1"))
        assert response.status_code == 404

    async def test_unrecognized_body(self, client: AsyncClient) -> None:
        response = await client.post(WEBHOOK_URL, json={"hello": "world"})
        assert response.status_code == 400

    async def test_malformed_json(self, client: AsyncClient) -> None:
        response = await client.post(
            WEBHOOK_URL, content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400

    async def test_bad_legacy_signature(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        room_type: RoomType,
        rooms: list[Room],
        fake_payu,
        gateway_config: GatewayConfig,
    ) -> None:
        payment = await _pending_payment(client, db_session, room_type, fake_payu)

        response = await client.post(
            WEBHOOK_URL,
            content=_legacy_form(gateway_config, payment.reference_code, sign="0" * 32),
            headers={"content-type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 400
        assert payment.status == "Pending"
