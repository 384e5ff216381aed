"""Post-commit domain events and the dispatcher that turns them into side effects.

Services collect events while they mutate state; routers hand them to
``EventDispatcher.dispatch`` only after the transaction has committed.
Each handler runs in isolation: a failing email or cache call is logged
and never affects the committed data or the HTTP response.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union

from fastapi import Depends

from hotel_booking.config import settings
from hotel_booking.services.cache import RESERVATION_CACHE_PATTERNS, CacheService, get_cache
from hotel_booking.services.notifications import (
    EmailNotifier,
    booking_confirmation_email,
    get_notifier,
    payment_confirmation_email,
    room_conflict_alert_email,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationSnapshot:
    """Immutable copy of the fields notifications need, taken before commit."""

    id: str
    confirmation_code: str
    guest_first_name: str
    guest_last_name: str
    guest_email: str
    check_in_date: date
    check_out_date: date
    adults: int
    children: int
    total_price: Decimal
    status: str
    payment_status: str
    room_type_name: str | None = None
    room_number: str | None = None
    is_temporary: bool = False

    @property
    def guest_name(self) -> str:
        return f"{self.guest_first_name} {self.guest_last_name}".strip()


@dataclass(frozen=True)
class ReservationCreated:
    reservation: ReservationSnapshot
    pay_on_arrival: bool = False


@dataclass(frozen=True)
class ReservationUpdated:
    reservation_id: str


@dataclass(frozen=True)
class ReservationPromoted:
    reservation: ReservationSnapshot
    payment_id: str
    original_temp_id: str


@dataclass(frozen=True)
class ConflictDetected:
    reservation: ReservationSnapshot
    payment_id: str


@dataclass(frozen=True)
class PaymentReconciled:
    reservation: ReservationSnapshot
    payment_id: str
    amount: Decimal
    currency: str


DomainEvent = Union[
    ReservationCreated,
    ReservationUpdated,
    ReservationPromoted,
    ConflictDetected,
    PaymentReconciled,
]


class EventDispatcher:
    """Runs the side effects for committed domain events."""

    def __init__(self, notifier: EmailNotifier, cache: CacheService, operator_email: str = "") -> None:
        self.notifier = notifier
        self.cache = cache
        self.operator_email = operator_email
        self._handlers = {
            ReservationCreated: self._on_reservation_created,
            ReservationUpdated: self._on_reservation_updated,
            ReservationPromoted: self._on_reservation_promoted,
            ConflictDetected: self._on_conflict_detected,
            PaymentReconciled: self._on_payment_reconciled,
        }

    async def dispatch(self, events: list[DomainEvent]) -> None:
        for event in events:
            handler = self._handlers.get(type(event))
            if handler is None:
                logger.debug("No handler for event %s", type(event).__name__)
                continue
            try:
                await handler(event)
            except Exception:
                logger.exception("Side effect for %s failed", type(event).__name__)

    async def invalidate_reservation_caches(self) -> None:
        for pattern in RESERVATION_CACHE_PATTERNS:
            await self.cache.invalidate_pattern(pattern)

    async def _on_reservation_created(self, event: ReservationCreated) -> None:
        await self.invalidate_reservation_caches()
        snapshot = event.reservation
        if snapshot.is_temporary:
            return
        await self.notifier.send(
            booking_confirmation_email(
                to=snapshot.guest_email,
                guest_name=snapshot.guest_name,
                confirmation_code=snapshot.confirmation_code,
                room_type_name=snapshot.room_type_name,
                room_number=snapshot.room_number,
                check_in=snapshot.check_in_date.isoformat(),
                check_out=snapshot.check_out_date.isoformat(),
                adults=snapshot.adults,
                children=snapshot.children,
                payment_label="Pending (pay on arrival)" if event.pay_on_arrival else "Online",
            )
        )

    async def _on_reservation_updated(self, event: ReservationUpdated) -> None:
        await self.invalidate_reservation_caches()

    async def _on_reservation_promoted(self, event: ReservationPromoted) -> None:
        await self.invalidate_reservation_caches()
        snapshot = event.reservation
        await self.notifier.send(
            booking_confirmation_email(
                to=snapshot.guest_email,
                guest_name=snapshot.guest_name,
                confirmation_code=snapshot.confirmation_code,
                room_type_name=snapshot.room_type_name,
                room_number=snapshot.room_number,
                check_in=snapshot.check_in_date.isoformat(),
                check_out=snapshot.check_out_date.isoformat(),
                adults=snapshot.adults,
                children=snapshot.children,
                payment_label=snapshot.payment_status,
            )
        )

    async def _on_conflict_detected(self, event: ConflictDetected) -> None:
        if not self.operator_email:
            logger.warning(
                "Reservation %s needs a room assignment but no operator email is configured",
                event.reservation.id,
            )
            return
        snapshot = event.reservation
        await self.notifier.send(
            room_conflict_alert_email(
                to=self.operator_email,
                reservation_id=snapshot.id,
                confirmation_code=snapshot.confirmation_code,
                room_type_name=snapshot.room_type_name,
                check_in=snapshot.check_in_date.isoformat(),
                check_out=snapshot.check_out_date.isoformat(),
                guest_email=snapshot.guest_email,
                payment_id=event.payment_id,
            )
        )

    async def _on_payment_reconciled(self, event: PaymentReconciled) -> None:
        await self.invalidate_reservation_caches()
        snapshot = event.reservation
        await self.notifier.send(
            payment_confirmation_email(
                to=snapshot.guest_email,
                guest_name=snapshot.guest_name,
                confirmation_code=snapshot.confirmation_code,
                amount=f"{event.amount:.2f}",
                currency=event.currency,
            )
        )


def get_event_dispatcher(
    notifier: EmailNotifier = Depends(get_notifier),
    cache: CacheService = Depends(get_cache),
) -> EventDispatcher:
    """FastAPI dependency wiring the dispatcher to its collaborators."""
    return EventDispatcher(notifier, cache, operator_email=settings.operator_email)
