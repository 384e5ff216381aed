"""PayU confirmation webhook."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_db, get_event_dispatcher, get_gateway_config
from hotel_booking.errors import WebhookFormatError
from hotel_booking.models.payment import PaymentStatus
from hotel_booking.payments.payu import GatewayConfig
from hotel_booking.payments.webhooks import decode_webhook_body, normalize_notification, parse_notification
from hotel_booking.schemas.payment import WebhookResponse
from hotel_booking.services.events import EventDispatcher
from hotel_booking.services.payment_service import apply_payment_status, get_payment_by_reference
from hotel_booking.services.promotion import settle_and_commit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["webhooks"])


@router.post("/webhook", response_model=WebhookResponse)
async def payu_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    config: GatewayConfig = Depends(get_gateway_config),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> WebhookResponse:
    """Receive a PayU notification.

    Safe to deliver more than once: status changes are monotonic and a
    hold is promoted at most once.
    """
    # 1. Decode and normalize
    raw = await request.body()
    try:
        data = decode_webhook_body(request.headers.get("content-type", ""), raw)
        notification = normalize_notification(parse_notification(data), config)
    except WebhookFormatError as e:
        logger.warning("Rejected PayU notification (%s): %r", e.message, raw[:2000])
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        ) from e

    logger.info(
        "PayU notification for %s: status=%s transaction=%s",
        notification.reference_code,
        notification.status.value,
        notification.transaction_id,
    )

    # 2. Match the stored payment
    payment = await get_payment_by_reference(db, notification.reference_code)
    if payment is None:
        logger.error("No payment found for reference code %s", notification.reference_code)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        )

    # 3. Record the new status
    apply_payment_status(payment, notification.status, notification.transaction_id or None)
    await db.commit()

    # 4. Settle a completed payment; a failure leaves it flagged and lets PayU retry
    if payment.status == PaymentStatus.COMPLETED.value and notification.status == PaymentStatus.COMPLETED:
        try:
            result = await settle_and_commit(db, payment)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            ) from e
        await dispatcher.dispatch(result.events)

    return WebhookResponse()
