"""Payment record store and reservation-level payment aggregation."""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.errors import NotFoundError
from hotel_booking.models.payment import Payment, PaymentStatus
from hotel_booking.models.reservation import Reservation, ReservationPaymentStatus, ReservationStatus
from hotel_booking.payments.payu import generate_reference_code

logger = logging.getLogger(__name__)

# Transitions a stored payment status may take. Anything else from a late or
# duplicate notification is ignored.
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(PaymentStatus),
    PaymentStatus.FAILED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.PARTIAL: frozenset({PaymentStatus.COMPLETED, PaymentStatus.REFUNDED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIAL}),
    PaymentStatus.REFUNDED: frozenset(),
}

_RESERVATION_PAYMENT_STATUS = {
    PaymentStatus.COMPLETED: ReservationPaymentStatus.PAID,
    PaymentStatus.PARTIAL: ReservationPaymentStatus.PARTIAL,
    PaymentStatus.PENDING: ReservationPaymentStatus.PENDING,
    PaymentStatus.FAILED: ReservationPaymentStatus.PENDING,
    PaymentStatus.REFUNDED: ReservationPaymentStatus.PENDING,
}


def to_reservation_payment_status(status: PaymentStatus) -> ReservationPaymentStatus:
    """Map the payment vocabulary onto the reservation's three-state summary."""
    return _RESERVATION_PAYMENT_STATUS[status]


def aggregate_payment_status(total_paid: Decimal, total_price: Decimal) -> PaymentStatus:
    if total_paid <= 0:
        return PaymentStatus.PENDING
    if total_paid >= total_price:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PARTIAL


@dataclass
class PaymentSummary:
    total_price: Decimal
    total_paid: Decimal
    remaining: Decimal
    payment_status: ReservationPaymentStatus
    payment_method: str | None
    payment_metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPrice": float(self.total_price),
            "totalPaid": float(self.total_paid),
            "remaining": float(self.remaining),
            "paymentStatus": self.payment_status.value,
            "paymentMethod": self.payment_method,
            "paymentMetadata": self.payment_metadata,
        }


async def create_payment(
    db: AsyncSession,
    *,
    reservation_id: uuid.UUID,
    amount: Decimal,
    method: str,
    payment_type: str,
    currency: str,
    meta: dict[str, Any] | None = None,
) -> Payment:
    """Insert a Pending payment with a fresh gateway reference code."""
    payment = Payment(
        reservation_id=reservation_id,
        reference_code=generate_reference_code(reservation_id),
        amount=amount,
        currency=currency,
        status=PaymentStatus.PENDING.value,
        method=method,
        type=payment_type,
        meta=dict(meta or {}),
    )
    db.add(payment)
    await db.flush()
    logger.info("Created payment %s (%s) for reservation %s", payment.id, payment.reference_code, reservation_id)
    return payment


async def get_payment(db: AsyncSession, payment_id: uuid.UUID) -> Payment:
    payment = await db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found", {"paymentId": str(payment_id)})
    return payment


async def get_payment_by_reference(db: AsyncSession, reference_code: str) -> Payment | None:
    result = await db.execute(select(Payment).where(Payment.reference_code == reference_code))
    return result.scalar_one_or_none()


def apply_payment_status(
    payment: Payment,
    new_status: PaymentStatus,
    transaction_id: str | None = None,
) -> bool:
    """Move ``payment`` to ``new_status`` if the transition is allowed.

    The transaction id is recorded whenever one is supplied. Returns True
    when the status changed.
    """
    if transaction_id:
        payment.transaction_id = transaction_id

    current = PaymentStatus(payment.status)
    if new_status == current:
        return False
    if new_status not in ALLOWED_TRANSITIONS[current]:
        logger.warning(
            "Ignoring payment %s transition %s -> %s",
            payment.id,
            current.value,
            new_status.value,
        )
        return False

    payment.status = new_status.value
    logger.info("Payment %s status %s -> %s", payment.id, current.value, new_status.value)
    return True


def merge_payment_meta(payment: Payment, **values: Any) -> None:
    meta = dict(payment.meta or {})
    meta.update(values)
    payment.meta = meta


async def list_completed_payments(db: AsyncSession, reservation_id: uuid.UUID) -> list[Payment]:
    """Completed payments made against the reservation or against the hold it was promoted from."""
    result = await db.execute(
        select(Payment)
        .where(
            or_(Payment.reservation_id == reservation_id, Payment.permanent_reservation_id == reservation_id),
            Payment.status == PaymentStatus.COMPLETED.value,
        )
        .order_by(Payment.payment_date.desc())
    )
    return list(result.scalars().all())


async def calculate_reservation_payment_status(db: AsyncSession, reservation_id: uuid.UUID) -> PaymentSummary:
    """Recompute and store the reservation's aggregate payment status.

    A still-Pending reservation is confirmed once any payment has completed.
    """
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found", {"reservationId": str(reservation_id)})

    payments = await list_completed_payments(db, reservation_id)
    total_paid = sum((Decimal(p.amount) for p in payments), Decimal("0"))
    total_price = Decimal(reservation.total_price)
    remaining = max(Decimal("0"), total_price - total_paid)

    status = to_reservation_payment_status(aggregate_payment_status(total_paid, total_price))
    reservation.payment_status = status.value
    if reservation.status == ReservationStatus.PENDING.value and total_paid > 0:
        reservation.status = ReservationStatus.CONFIRMED.value

    latest = payments[0] if payments else None
    payment_method = latest.method if latest else reservation.payment_method
    await db.flush()

    return PaymentSummary(
        total_price=total_price,
        total_paid=total_paid,
        remaining=remaining,
        payment_status=status,
        payment_method=payment_method,
        payment_metadata=dict(latest.meta or {}) if latest else {},
    )
