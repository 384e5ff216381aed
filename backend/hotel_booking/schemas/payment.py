"""Pydantic v2 request/response schemas for payment endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field, model_validator

from hotel_booking.models.payment import PaymentType
from hotel_booking.schemas.common import CamelModel
from hotel_booking.schemas.reservation import StayRequest

TEMPORARY_ID_PREFIX = "temp-"

_PAYMENT_TYPE_PATTERN = "^(" + "|".join(t.value for t in PaymentType) + ")$"


class CardData(CamelModel):
    number: str = Field(..., min_length=12, max_length=23)
    cvc: str = Field(..., min_length=3, max_length=4)
    expiry_month: str = Field(..., min_length=1, max_length=2)
    expiry_year: str = Field(..., min_length=4, max_length=4)
    name: str = Field(..., min_length=1)


class PaymentCreateRequest(CamelModel):
    """Checkout request.

    ``reservation_id`` is a reservation or hold UUID, or a client-side
    ``temp-`` token; the token form requires ``reservation_data``.
    """

    reservation_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    payment_type: str = Field(PaymentType.FULL.value, pattern=_PAYMENT_TYPE_PATTERN)
    payment_method: str = Field(..., min_length=1, max_length=50)
    return_url: str = Field(..., min_length=1)
    cancel_url: str = Field(..., min_length=1)
    reservation_data: StayRequest | None = None
    card_data: CardData | None = None
    otp_code: str | None = None
    device_session_id: str | None = None
    cookie: str | None = None

    @property
    def is_temporary_token(self) -> bool:
        return self.reservation_id.startswith(TEMPORARY_ID_PREFIX)

    @model_validator(mode="after")
    def check_reservation_data(self) -> "PaymentCreateRequest":
        if self.is_temporary_token and self.reservation_data is None:
            raise ValueError("reservationData is required for a temporary reservation")
        return self


class PaymentCreateResponse(CamelModel):
    success: bool = True
    payment_id: uuid.UUID
    payment_status: str
    is_temporary: bool
    original_temp_id: str | None = None
    actual_reservation_id: str | None = None
    payu_response: dict[str, Any] | None = None


class PaymentResponse(CamelModel):
    id: uuid.UUID
    reservation_id: uuid.UUID
    permanent_reservation_id: uuid.UUID | None = None
    transaction_id: str | None = None
    reference_code: str
    amount: Decimal
    currency: str
    status: str
    method: str
    type: str
    payment_date: datetime
    is_temporary: bool = False
    created_at: datetime
    updated_at: datetime


class PaymentSummaryResponse(CamelModel):
    total_price: Decimal
    total_paid: Decimal
    remaining: Decimal
    payment_status: str
    payment_method: str | None = None
    payment_metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentStatusResponse(CamelModel):
    success: bool = True
    payment: PaymentResponse
    reservation_id: str | None = None
    is_temporary: bool
    summary: PaymentSummaryResponse | None = None
    gateway_status: dict[str, Any] | None = None


class GatewayConfigResponse(CamelModel):
    configured: bool
    available_payment_methods: list[str]
    missing_credentials: list[str] = Field(default_factory=list)
    debug_info: dict[str, Any] | None = None


class WebhookResponse(CamelModel):
    success: bool = True
