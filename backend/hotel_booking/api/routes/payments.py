"""Payment endpoints: PayU checkout, status polling and gateway configuration."""

import logging
import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_db, get_event_dispatcher, get_payu_client
from hotel_booking.config import settings
from hotel_booking.database import utcnow
from hotel_booking.errors import (
    GatewayCommunicationError,
    GatewayConfigurationError,
    GatewayTimeoutError,
    HotelBookingError,
)
from hotel_booking.models.payment import Payment, PaymentStatus
from hotel_booking.models.reservation import Reservation
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.temporary_reservation import TemporaryReservation
from hotel_booking.payments.payu import (
    AVAILABLE_PAYMENT_METHODS,
    CARD_DATA_REQUIRED_METHODS,
    Address,
    BuyerInfo,
    CreditCardInfo,
    PayUClient,
    build_payment_request,
    map_transaction_status,
    sanitize_client_info,
)
from hotel_booking.schemas.payment import (
    GatewayConfigResponse,
    PaymentCreateRequest,
    PaymentCreateResponse,
    PaymentResponse,
    PaymentStatusResponse,
    PaymentSummaryResponse,
)
from hotel_booking.services.availability import check_availability
from hotel_booking.services.events import EventDispatcher
from hotel_booking.services.payment_service import (
    aggregate_payment_status,
    apply_payment_status,
    calculate_reservation_payment_status,
    create_payment,
    get_payment,
    merge_payment_meta,
    to_reservation_payment_status,
)
from hotel_booking.services.promotion import settle_and_commit
from hotel_booking.services.reservation_service import create_temporary_reservation, find_temporary_reservation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _with_payment_id(url: str, payment_id: uuid.UUID) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}paymentId={payment_id}"


def _buyer_from(first_name: str, last_name: str, email: str, phone: str | None) -> BuyerInfo:
    return BuyerInfo(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone or "",
        address=Address(street1="Hotel address", phone=phone or ""),
    )


async def _live_hold_for_token(db: AsyncSession, token: str) -> TemporaryReservation | None:
    """The unexpired hold an earlier checkout attempt created for ``token``, if any."""
    temp = await find_temporary_reservation(db, token)
    if temp is not None and temp.is_live(utcnow()):
        logger.info("Reusing temporary reservation %s for %s", temp.id, token)
        return temp
    return None


async def _hold_from_checkout(db: AsyncSession, body: PaymentCreateRequest) -> TemporaryReservation:
    """Create the hold described by ``reservationData`` once the room type has capacity left."""
    data = body.reservation_data
    if await db.get(RoomType, data.room_type_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Room type not found",
        )
    try:
        availability = await check_availability(db, data.room_type_id, data.check_in_date, data.check_out_date)
        if not availability.available:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No rooms available for the selected dates",
            )
        return await create_temporary_reservation(
            db,
            room_type_id=data.room_type_id,
            guest=data.guest.to_contact(),
            check_in=data.check_in_date,
            check_out=data.check_out_date,
            adults=data.adults,
            children=data.children,
            total_price=data.total_price,
            ttl_minutes=settings.temporary_reservation_ttl_minutes,
            special_requests=data.special_requests,
            pay_on_arrival=data.pay_on_arrival,
            original_id=body.reservation_id,
        )
    except HotelBookingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e


@router.post("/create", response_model=PaymentCreateResponse)
async def create_checkout(
    body: PaymentCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    payu: PayUClient = Depends(get_payu_client),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """Create a payment and submit it to PayU.

    A ``temp-`` reservation id first materializes the temporary hold from
    ``reservationData``, or reuses the live hold of an earlier attempt with
    the same token. An approved transaction settles immediately; the
    webhook settles everything else.
    """
    if body.payment_method in CARD_DATA_REQUIRED_METHODS and body.card_data is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Card data is required for card payments",
        )

    temp: TemporaryReservation | None = None
    reservation: Reservation | None = None

    if body.is_temporary_token:
        temp = await _live_hold_for_token(db, body.reservation_id)
        if temp is None:
            temp = await _hold_from_checkout(db, body)
    else:
        try:
            reservation_id = uuid.UUID(body.reservation_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid reservation id",
            ) from None
        reservation = await db.get(Reservation, reservation_id)
        if reservation is None:
            temp = await db.get(TemporaryReservation, reservation_id)
        if reservation is None and temp is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Reservation not found",
            )

    is_temporary = temp is not None
    if temp is not None:
        target_id = temp.id
        original_temp_id = temp.promotion_key
        buyer = _buyer_from(temp.guest_first_name, temp.guest_last_name, temp.guest_email, temp.guest_phone)
    else:
        target_id = reservation.id
        original_temp_id = None
        buyer = _buyer_from(
            reservation.guest_first_name,
            reservation.guest_last_name,
            reservation.guest_email,
            reservation.guest_phone,
        )

    payment = await create_payment(
        db,
        reservation_id=target_id,
        amount=body.amount,
        method=body.payment_method,
        payment_type=body.payment_type,
        currency=payu.config.currency,
        meta={
            "isTemporary": is_temporary,
            "originalTempId": original_temp_id,
            "paymentMethod": body.payment_method,
        },
    )
    return_url = _with_payment_id(body.return_url, payment.id)
    merge_payment_meta(
        payment,
        referenceCode=payment.reference_code,
        returnUrl=return_url,
        cancelUrl=_with_payment_id(body.cancel_url, payment.id),
    )
    await db.commit()

    actual_reservation_id = str(target_id)
    client = sanitize_client_info(
        request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip"),
        request.headers.get("user-agent"),
        body.device_session_id,
        body.cookie,
    )
    card = (
        CreditCardInfo.from_card_data(
            body.card_data.number,
            body.card_data.cvc,
            body.card_data.expiry_year,
            body.card_data.expiry_month,
            body.card_data.name,
        )
        if body.card_data
        else None
    )

    try:
        payu_request = build_payment_request(
            payu.config,
            reference_code=payment.reference_code,
            amount=payment.amount,
            reservation_id=actual_reservation_id,
            buyer=buyer,
            description=f"Hotel reservation {'full payment' if body.payment_type == 'Full' else 'partial payment'}",
            payment_method=body.payment_method,
            return_url=return_url,
            client=client,
            otp_code=body.otp_code,
            credit_card=card,
        )
        payu_response = await payu.submit_transaction(payu_request)
    except GatewayConfigurationError as e:
        logger.error("Payment %s not submitted: gateway is not configured", payment.id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Payment gateway is not configured",
                "paymentId": str(payment.id),
                "missingCredentials": e.details.get("missingCredentials", []),
            },
        )
    except GatewayTimeoutError:
        logger.warning("Payment %s outcome unknown after gateway timeout; awaiting notification", payment.id)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "success": True,
                "message": "Payment is being processed",
                "paymentId": str(payment.id),
                "paymentStatus": PaymentStatus.PENDING.value,
                "isTemporary": is_temporary,
                "originalTempId": original_temp_id,
                "actualReservationId": actual_reservation_id,
                "payuResponse": None,
            },
        )
    except GatewayCommunicationError as e:
        apply_payment_status(payment, PaymentStatus.FAILED)
        await db.commit()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Payment system is temporarily unavailable",
                "error": e.message,
                "paymentId": str(payment.id),
            },
        )

    if payu_response.get("code") != "SUCCESS":
        logger.error("PayU refused payment %s: %s", payment.id, payu_response.get("error"))
        apply_payment_status(payment, PaymentStatus.FAILED)
        await db.commit()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Error processing payment with PayU",
                "error": payu_response.get("error") or "Unknown PayU error",
                "paymentId": str(payment.id),
            },
        )

    transaction = payu_response.get("transactionResponse") or {}
    new_status = map_transaction_status(transaction.get("state"))
    apply_payment_status(payment, new_status, transaction.get("transactionId"))
    merge_payment_meta(
        payment,
        gatewayState=transaction.get("state"),
        gatewayResponseCode=transaction.get("responseCode"),
        orderId=transaction.get("orderId"),
    )
    await db.commit()

    if new_status == PaymentStatus.FAILED:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Your card was declined",
                "paymentId": str(payment.id),
                "paymentStatus": new_status.value,
                "responseCode": transaction.get("responseCode"),
            },
        )

    if new_status == PaymentStatus.COMPLETED:
        try:
            result = await settle_and_commit(db, payment)
        except Exception:
            # Flagged for review; the webhook retries settlement
            result = None
        if result is not None:
            await dispatcher.dispatch(result.events)
            if result.reservation is not None:
                actual_reservation_id = str(result.reservation.id)

    return PaymentCreateResponse(
        payment_id=payment.id,
        payment_status=payment.status,
        is_temporary=is_temporary,
        original_temp_id=original_temp_id,
        actual_reservation_id=actual_reservation_id,
        payu_response=payu_response,
    )


@router.get("/check-config", response_model=GatewayConfigResponse)
async def check_gateway_config(
    payu: PayUClient = Depends(get_payu_client),
) -> GatewayConfigResponse:
    """Report whether PayU credentials are present."""
    config = payu.config
    return GatewayConfigResponse(
        configured=config.is_configured,
        available_payment_methods=list(AVAILABLE_PAYMENT_METHODS) if config.is_configured else [],
        missing_credentials=config.missing_credentials(),
        debug_info=config.debug_info() if settings.environment == "development" else None,
    )


@router.get("/status/{payment_id}", response_model=PaymentStatusResponse)
async def get_payment_status(
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    payu: PayUClient = Depends(get_payu_client),
) -> PaymentStatusResponse:
    """Payment state, the reservation's payment summary and, when known, the gateway's view."""
    try:
        payment = await get_payment(db, payment_id)
    except HotelBookingError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e

    summary = await _summary_for(db, payment)
    reservation_id = payment.permanent_reservation_id or payment.reservation_id

    gateway_status = None
    order_id = (payment.meta or {}).get("orderId") or payment.transaction_id
    if order_id and payu.config.is_configured:
        try:
            gateway_status = await payu.order_detail(str(order_id))
        except HotelBookingError as e:
            logger.warning("Could not fetch gateway status for payment %s: %s", payment.id, e.message)

    return PaymentStatusResponse(
        payment=PaymentResponse.model_validate(payment),
        reservation_id=str(reservation_id),
        is_temporary=payment.is_temporary and payment.permanent_reservation_id is None,
        summary=summary,
        gateway_status=gateway_status,
    )


async def _summary_for(db: AsyncSession, payment: Payment) -> PaymentSummaryResponse | None:
    if payment.permanent_reservation_id is not None or not payment.is_temporary:
        reservation_id = payment.permanent_reservation_id or payment.reservation_id
        if await db.get(Reservation, reservation_id) is None:
            return None
        summary = await calculate_reservation_payment_status(db, reservation_id)
        return PaymentSummaryResponse(**summary.to_dict())

    temp = await db.get(TemporaryReservation, payment.reservation_id)
    total_price = Decimal(temp.total_price) if temp else Decimal(payment.amount)
    total_paid = Decimal(payment.amount) if payment.status == PaymentStatus.COMPLETED.value else Decimal("0")
    return PaymentSummaryResponse(
        total_price=total_price,
        total_paid=total_paid,
        remaining=max(Decimal("0"), total_price - total_paid),
        payment_status=to_reservation_payment_status(aggregate_payment_status(total_paid, total_price)).value,
        payment_method=payment.method,
        payment_metadata=dict(payment.meta or {}),
    )
