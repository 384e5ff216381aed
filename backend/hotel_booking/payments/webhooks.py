"""PayU confirmation notifications: decoding, shape detection and normalization.

Notifications arrive in one of three shapes. ``parse_notification`` tells
them apart once and ``normalize_notification`` reduces any of them to a
``PaymentNotification`` the rest of the system works with.
"""

import hmac
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Union
from urllib.parse import parse_qsl

from hotel_booking.errors import InvalidSignatureError, WebhookFormatError
from hotel_booking.models.payment import PaymentStatus
from hotel_booking.payments.payu import GatewayConfig, generate_notification_signature, map_transaction_status

logger = logging.getLogger(__name__)

# Legacy ``state_pol`` codes and the transaction state each stands for
LEGACY_STATE_POL = {
    "4": "APPROVED",
    "5": "EXPIRED",
    "6": "DECLINED",
    "7": "PENDING",
}


@dataclass(frozen=True)
class PaymentNotification:
    """Canonical notification record."""

    transaction_id: str
    reference_code: str
    amount: Decimal | None
    currency: str | None
    status: PaymentStatus


@dataclass(frozen=True)
class NewFormat:
    """JSON body nested under ``transaction.order``."""

    transaction: dict[str, Any]


@dataclass(frozen=True)
class DirectApiFormat:
    """Echo of a synchronous API response with ``transactionResponse`` at the top level."""

    reference_code: str
    transaction_response: dict[str, Any]


@dataclass(frozen=True)
class LegacyFormFormat:
    """Flat form-encoded confirmation page fields."""

    reference_sale: str
    value: str
    currency: str
    state_pol: str
    sign: str | None
    merchant_id: str | None
    transaction_id: str


WebhookPayload = Union[NewFormat, DirectApiFormat, LegacyFormFormat]


def decode_webhook_body(content_type: str, raw: bytes) -> dict[str, Any]:
    """Decode a notification body into a flat or nested dict.

    JSON and form-encoded bodies are decoded by content type; anything else
    is tried as JSON first, then as a query string.
    """
    text = raw.decode("utf-8", errors="replace")
    content_type = (content_type or "").lower()

    if "application/json" in content_type:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise WebhookFormatError("Notification body is not valid JSON", {"raw": text[:2000]}) from e
    elif "application/x-www-form-urlencoded" in content_type:
        data = dict(parse_qsl(text, keep_blank_values=True))
    else:
        logger.info("Webhook body with content type %r, guessing format", content_type)
        try:
            data = json.loads(text)
        except ValueError:
            data = dict(parse_qsl(text, keep_blank_values=True))

    if not isinstance(data, dict):
        raise WebhookFormatError("Notification body is not an object", {"raw": text[:2000]})
    return data


def parse_notification(data: dict[str, Any]) -> WebhookPayload:
    """Identify which of the three notification shapes ``data`` is."""
    transaction = data.get("transaction")
    if isinstance(transaction, dict):
        order = transaction.get("order")
        if isinstance(order, dict) and order.get("referenceCode"):
            return NewFormat(transaction=transaction)

    transaction_response = data.get("transactionResponse")
    if isinstance(transaction_response, dict):
        reference = data.get("referenceCode") or transaction_response.get("referenceCode")
        if reference:
            return DirectApiFormat(reference_code=str(reference), transaction_response=transaction_response)

    if data.get("reference_sale"):
        missing = [name for name in ("value", "currency", "state_pol") if not data.get(name)]
        if missing:
            raise WebhookFormatError("Legacy notification is missing fields", {"missing": missing})
        return LegacyFormFormat(
            reference_sale=str(data["reference_sale"]),
            value=str(data["value"]),
            currency=str(data["currency"]),
            state_pol=str(data["state_pol"]),
            sign=data.get("sign") or None,
            merchant_id=data.get("merchant_id") or None,
            transaction_id=str(data.get("transaction_id") or data.get("reference_pol") or ""),
        )

    raise WebhookFormatError("Unrecognized notification format", {"keys": sorted(data)})


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def verify_legacy_signature(payload: LegacyFormFormat, config: GatewayConfig) -> None:
    """Reject a signed legacy notification whose ``sign`` does not match.

    A notification without ``merchant_id`` is checked against the
    configured merchant.
    """
    if not payload.sign:
        return
    merchant_id = payload.merchant_id or config.merchant_id
    if not config.api_key or not merchant_id:
        logger.warning("Cannot verify signature for %s: API key or merchant id missing", payload.reference_sale)
        return
    expected = generate_notification_signature(
        config.api_key,
        merchant_id,
        payload.reference_sale,
        payload.value,
        payload.currency,
        payload.state_pol,
    )
    if not hmac.compare_digest(expected, payload.sign.lower()):
        logger.error("Invalid signature on notification for %s", payload.reference_sale)
        raise InvalidSignatureError("Invalid notification signature", {"referenceCode": payload.reference_sale})


def normalize_notification(payload: WebhookPayload, config: GatewayConfig) -> PaymentNotification:
    if isinstance(payload, NewFormat):
        order = payload.transaction["order"]
        tx_value = (order.get("additionalValues") or {}).get("TX_VALUE") or {}
        return PaymentNotification(
            transaction_id=str(payload.transaction.get("id") or ""),
            reference_code=str(order["referenceCode"]),
            amount=_to_decimal(tx_value.get("value")),
            currency=tx_value.get("currency") or config.currency,
            status=map_transaction_status(payload.transaction.get("state")),
        )

    if isinstance(payload, DirectApiFormat):
        response = payload.transaction_response
        return PaymentNotification(
            transaction_id=str(response.get("transactionId") or ""),
            reference_code=payload.reference_code,
            amount=None,
            currency=None,
            status=map_transaction_status(response.get("state")),
        )

    verify_legacy_signature(payload, config)
    return PaymentNotification(
        transaction_id=payload.transaction_id,
        reference_code=payload.reference_sale,
        amount=_to_decimal(payload.value),
        currency=payload.currency,
        status=map_transaction_status(LEGACY_STATE_POL.get(payload.state_pol, "")),
    )
