"""Promotion of paid temporary reservations into permanent ones.

Both the synchronous payment response and the gateway webhook settle a
completed payment through ``settle_completed_payment``. Promotion happens
at most once per hold: calls are serialized per hold key, and the unique
``original_temp_id`` column rejects any second insert that slips past.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.models.payment import Payment, PaymentType
from hotel_booking.models.reservation import Reservation, ReservationPaymentStatus, ReservationStatus
from hotel_booking.models.room import RoomStatus
from hotel_booking.models.temporary_reservation import TemporaryReservation
from hotel_booking.services.availability import find_free_room
from hotel_booking.services.events import (
    ConflictDetected,
    DomainEvent,
    PaymentReconciled,
    ReservationPromoted,
    ReservationUpdated,
)
from hotel_booking.services.payment_service import (
    PaymentSummary,
    calculate_reservation_payment_status,
    merge_payment_meta,
)
from hotel_booking.services.reservation_service import (
    get_reservation_by_original_temp_id,
    snapshot_reservation,
)

logger = logging.getLogger(__name__)


class PromotionOutcome(str, Enum):
    PROMOTED = "promoted"
    CONFLICT_FLAGGED = "conflict_flagged"
    ALREADY_PROMOTED = "already_promoted"
    TEMPORARY_NOT_FOUND = "temporary_not_found"
    RECONCILED = "reconciled"


@dataclass
class PromotionResult:
    outcome: PromotionOutcome
    reservation: Reservation | None = None
    summary: PaymentSummary | None = None
    events: list[DomainEvent] = field(default_factory=list)


class KeyedLock:
    """One ``asyncio.Lock`` per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __contains__(self, key: str) -> bool:
        return key in self._locks


_promotion_locks = KeyedLock()


def promotion_key(payment: Payment) -> str:
    return payment.original_temp_id or str(payment.reservation_id)


async def settle_completed_payment(db: AsyncSession, payment: Payment) -> PromotionResult:
    """Apply the consequences of a payment that has reached Completed."""
    if payment.is_temporary:
        return await promote_temporary_reservation(db, payment)
    return await reconcile_permanent_payment(db, payment)


async def settle_and_commit(db: AsyncSession, payment: Payment) -> PromotionResult:
    """Settle a completed payment in its own commit.

    If settling fails the partial work is rolled back, the payment (which
    stays Completed) is flagged for manual review, and the error re-raised.
    """
    try:
        result = await settle_completed_payment(db, payment)
        await db.commit()
    except Exception as e:
        logger.exception("Settling payment %s failed", payment.id)
        await db.rollback()
        await db.refresh(payment)
        merge_payment_meta(payment, promotionError=str(e), needsManualReview=True)
        await db.commit()
        raise
    return result


async def reconcile_permanent_payment(db: AsyncSession, payment: Payment) -> PromotionResult:
    reservation_id = payment.permanent_reservation_id or payment.reservation_id
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        logger.warning("Payment %s references missing reservation %s", payment.id, reservation_id)
        return PromotionResult(PromotionOutcome.TEMPORARY_NOT_FOUND)

    summary = await calculate_reservation_payment_status(db, reservation.id)
    snapshot = await snapshot_reservation(db, reservation)
    return PromotionResult(
        PromotionOutcome.RECONCILED,
        reservation=reservation,
        summary=summary,
        events=[PaymentReconciled(snapshot, str(payment.id), payment.amount, payment.currency)],
    )


async def promote_temporary_reservation(db: AsyncSession, payment: Payment) -> PromotionResult:
    """Turn the hold paid for by ``payment`` into a permanent reservation, once."""
    key = promotion_key(payment)
    async with _promotion_locks.hold(key):
        return await _promote(db, payment, key)


async def _already_promoted(db: AsyncSession, payment: Payment, existing: Reservation) -> PromotionResult:
    logger.info("Hold %s already promoted to reservation %s", existing.original_temp_id, existing.id)
    if payment.permanent_reservation_id is None:
        payment.permanent_reservation_id = existing.id
    summary = await calculate_reservation_payment_status(db, existing.id)
    return PromotionResult(
        PromotionOutcome.ALREADY_PROMOTED,
        reservation=existing,
        summary=summary,
        events=[ReservationUpdated(str(existing.id))],
    )


async def _promote(db: AsyncSession, payment: Payment, key: str) -> PromotionResult:
    existing = await get_reservation_by_original_temp_id(db, key)
    if existing is not None:
        return await _already_promoted(db, payment, existing)

    temp = await db.get(TemporaryReservation, payment.reservation_id)
    if temp is None:
        logger.warning(
            "Temporary reservation %s for payment %s not found; nothing to promote",
            payment.reservation_id,
            payment.id,
        )
        return PromotionResult(PromotionOutcome.TEMPORARY_NOT_FOUND)

    room = await find_free_room(db, temp.room_type_id, temp.check_in_date, temp.check_out_date)

    meta = {
        "originalTempId": key,
        "paymentId": str(payment.id),
        "roomTypeId": str(temp.room_type_id),
    }
    if room is None:
        meta["needsRoomAssignment"] = True
        logger.warning(
            "No free room of type %s for %s..%s; flagging paid hold %s as a conflict",
            temp.room_type_id,
            temp.check_in_date,
            temp.check_out_date,
            key,
        )

    reservation = Reservation(
        room_id=room.id if room else None,
        user_id=None,
        guest_first_name=temp.guest_first_name,
        guest_last_name=temp.guest_last_name,
        guest_email=temp.guest_email,
        guest_phone=temp.guest_phone,
        check_in_date=temp.check_in_date,
        check_out_date=temp.check_out_date,
        adults=temp.adults,
        children=temp.children,
        total_price=temp.total_price,
        status=ReservationStatus.CONFIRMED.value if room else ReservationStatus.CONFLICT.value,
        payment_status=(
            ReservationPaymentStatus.PAID.value
            if payment.type == PaymentType.FULL.value
            else ReservationPaymentStatus.PARTIAL.value
        ),
        payment_method=payment.method,
        confirmation_code=temp.confirmation_code,
        special_requests=temp.special_requests,
        original_temp_id=key,
        meta=meta,
    )

    try:
        async with db.begin_nested():
            db.add(reservation)
            await db.flush()
    except IntegrityError:
        existing = await get_reservation_by_original_temp_id(db, key)
        if existing is None:
            raise
        return await _already_promoted(db, payment, existing)

    if room is not None:
        room.status = RoomStatus.RESERVED.value
    await db.delete(temp)
    payment.permanent_reservation_id = reservation.id
    await db.flush()

    summary = await calculate_reservation_payment_status(db, reservation.id)
    snapshot = await snapshot_reservation(db, reservation)

    events: list[DomainEvent] = [ReservationPromoted(snapshot, str(payment.id), key)]
    if room is None:
        events.append(ConflictDetected(snapshot, str(payment.id)))
        outcome = PromotionOutcome.CONFLICT_FLAGGED
    else:
        outcome = PromotionOutcome.PROMOTED

    logger.info(
        "Promoted hold %s to reservation %s (room %s)",
        key,
        reservation.id,
        room.number if room else "pending-assignment",
    )
    return PromotionResult(outcome, reservation=reservation, summary=summary, events=events)
