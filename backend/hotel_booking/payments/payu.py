"""PayU Latam gateway adapter.

Builds signed ``SUBMIT_TRANSACTION`` requests, talks to the payments and
reports APIs over httpx, and owns the single mapping from gateway
transaction states to ``PaymentStatus``.
"""

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from functools import lru_cache
from typing import Any

import httpx

from hotel_booking.config import Settings, settings
from hotel_booking.errors import (
    GatewayCommunicationError,
    GatewayConfigurationError,
    GatewayTimeoutError,
)
from hotel_booking.models.payment import PaymentStatus

logger = logging.getLogger(__name__)

CARD_PAYMENT_METHODS = ("VISA", "MASTERCARD", "AMEX", "DINERS")
# Card brands for which the checkout must collect card data up front
CARD_DATA_REQUIRED_METHODS = ("VISA", "MASTERCARD")
AVAILABLE_PAYMENT_METHODS = ("VISA", "MASTERCARD", "AMEX", "DINERS", "YAPE", "PAGOEFECTIVO")

MAX_IP_ADDRESS_LENGTH = 39
MAX_CLIENT_FIELD_LENGTH = 255
DEFAULT_IP_ADDRESS = "127.0.0.1"
DEFAULT_USER_AGENT = "Unknown Browser"

_FAILED_STATES = frozenset({"DECLINED", "EXPIRED", "REJECTED", "ENTITY_DECLINED"})


@dataclass(frozen=True)
class GatewayConfig:
    """PayU credentials and endpoints, built once from settings."""

    api_url: str
    reports_url: str
    merchant_id: str
    api_key: str
    api_login: str
    account_id: str
    currency: str = "PEN"
    language: str = "es"
    country: str = "PE"
    notify_url: str = ""
    timeout_seconds: float = 30.0
    test_mode: bool = True

    @classmethod
    def from_settings(cls, config: Settings) -> "GatewayConfig":
        return cls(
            api_url=config.payu_api_url,
            reports_url=config.payu_reports_url,
            merchant_id=config.payu_merchant_id,
            api_key=config.payu_api_key,
            api_login=config.payu_api_login,
            account_id=config.payu_account_id,
            currency=config.payu_currency,
            language=config.payu_language,
            country=config.payu_country,
            notify_url=config.payu_notify_url,
            timeout_seconds=config.payu_timeout_seconds,
            test_mode=config.payu_test_mode,
        )

    def missing_credentials(self) -> list[str]:
        required = {
            "PAYU_API_URL": self.api_url,
            "PAYU_MERCHANT_ID": self.merchant_id,
            "PAYU_API_KEY": self.api_key,
            "PAYU_API_LOGIN": self.api_login,
            "PAYU_ACCOUNT_ID": self.account_id,
        }
        return [name for name, value in required.items() if not value]

    @property
    def is_configured(self) -> bool:
        return not self.missing_credentials()

    @property
    def is_sandbox(self) -> bool:
        return "sandbox" in self.api_url

    def debug_info(self) -> dict[str, Any]:
        """Configuration summary with secrets reduced to a 3-character prefix."""

        def redact(value: str) -> str:
            return f"{value[:3]}..." if value else "not configured"

        return {
            "PAYU_API_URL": "configured" if self.api_url else "not configured",
            "PAYU_MERCHANT_ID": redact(self.merchant_id),
            "PAYU_API_KEY": redact(self.api_key),
            "PAYU_API_LOGIN": redact(self.api_login),
            "PAYU_ACCOUNT_ID": redact(self.account_id),
            "IS_SANDBOX": self.is_sandbox,
            "TEST_MODE": self.test_mode,
        }


@lru_cache
def get_gateway_config() -> GatewayConfig:
    """Process-wide gateway configuration (FastAPI dependency)."""
    return GatewayConfig.from_settings(settings)


# ---------------------------------------------------------------------------
# Signatures, references and status mapping
# ---------------------------------------------------------------------------


def format_amount(amount: Decimal | float | int | str) -> str:
    """Render an amount the way it is signed: no exponent, no trailing zeros."""
    value = Decimal(str(amount)).normalize()
    return format(value, "f")


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def generate_signature(config: GatewayConfig, reference_code: str, amount: Decimal, currency: str) -> str:
    """MD5 of ``apiKey~merchantId~referenceCode~amount~currency``."""
    if not config.api_key or not config.merchant_id:
        raise GatewayConfigurationError(
            "PayU API key or merchant id is not configured",
            {"missingCredentials": config.missing_credentials()},
        )
    return _md5(f"{config.api_key}~{config.merchant_id}~{reference_code}~{format_amount(amount)}~{currency}")


def generate_notification_signature(
    api_key: str,
    merchant_id: str,
    reference_sale: str,
    value: str,
    currency: str,
    state_pol: str,
) -> str:
    """MD5 of ``apiKey~merchant_id~reference_sale~value~currency~state_pol`` as sent by the gateway."""
    return _md5(f"{api_key}~{merchant_id}~{reference_sale}~{value}~{currency}~{state_pol}")


_last_reference_millis = 0


def _next_reference_millis() -> int:
    """Millisecond timestamp, strictly increasing within the process."""
    global _last_reference_millis
    _last_reference_millis = max(int(time.time() * 1000), _last_reference_millis + 1)
    return _last_reference_millis


def generate_reference_code(reservation_id: uuid.UUID | str) -> str:
    return f"HOTEL_{reservation_id}_{_next_reference_millis()}"


def map_transaction_status(state: str | None) -> PaymentStatus:
    """Map a gateway transaction state to a payment status.

    Case-insensitive. Unknown or empty states are treated as still pending.
    """
    normalized = (state or "").strip().upper()
    if normalized == "APPROVED":
        return PaymentStatus.COMPLETED
    if normalized in _FAILED_STATES:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


# ---------------------------------------------------------------------------
# Request payload
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientInfo:
    """Browser/device fingerprint fields the gateway requires for anti-fraud."""

    ip_address: str
    user_agent: str
    device_session_id: str
    cookie: str


def sanitize_client_info(
    ip_address: str | None,
    user_agent: str | None,
    device_session_id: str | None = None,
    cookie: str | None = None,
) -> ClientInfo:
    """Clamp client fields to the gateway's limits.

    A forwarded-for chain keeps only its first address, cut to 39 characters.
    The user agent is cut to 255 characters. Missing session/cookie tokens get
    a random identifier.
    """
    ip = (ip_address or "").split(",")[0].strip() or DEFAULT_IP_ADDRESS
    return ClientInfo(
        ip_address=ip[:MAX_IP_ADDRESS_LENGTH],
        user_agent=(user_agent or DEFAULT_USER_AGENT)[:MAX_CLIENT_FIELD_LENGTH],
        device_session_id=(device_session_id or uuid.uuid4().hex)[:MAX_CLIENT_FIELD_LENGTH],
        cookie=(cookie or uuid.uuid4().hex)[:MAX_CLIENT_FIELD_LENGTH],
    )


@dataclass(frozen=True)
class Address:
    street1: str = "Hotel billing address"
    street2: str = ""
    city: str = "Lima"
    state: str = "Lima"
    country: str = "PE"
    postal_code: str = "15000"
    phone: str = ""

    def to_payload(self) -> dict[str, str]:
        return {
            "street1": self.street1,
            "street2": self.street2,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "postalCode": self.postal_code,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class BuyerInfo:
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    dni_number: str = "00000000"
    address: Address = field(default_factory=Address)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def contact_phone(self) -> str:
        return "".join(self.phone.split())


@dataclass(frozen=True)
class CreditCardInfo:
    number: str
    security_code: str
    expiration_date: str  # YYYY/MM
    name: str

    @classmethod
    def from_card_data(cls, number: str, cvc: str, expiry_year: str, expiry_month: str, name: str) -> "CreditCardInfo":
        return cls(
            number="".join(number.split()),
            security_code=cvc,
            expiration_date=f"{expiry_year}/{expiry_month}",
            name=name,
        )

    def to_payload(self) -> dict[str, str]:
        return {
            "number": self.number,
            "securityCode": self.security_code,
            "expirationDate": self.expiration_date,
            "name": self.name,
        }


def build_payment_request(
    config: GatewayConfig,
    *,
    reference_code: str,
    amount: Decimal,
    reservation_id: str,
    buyer: BuyerInfo,
    description: str,
    payment_method: str,
    return_url: str,
    client: ClientInfo,
    otp_code: str | None = None,
    credit_card: CreditCardInfo | None = None,
    installments: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Assemble a signed ``SUBMIT_TRANSACTION`` body for ``reference_code``."""
    missing = config.missing_credentials()
    if missing:
        logger.error("PayU credentials missing: %s", ", ".join(missing))
        raise GatewayConfigurationError("PayU credentials are not configured", {"missingCredentials": missing})

    signature = generate_signature(config, reference_code, amount, config.currency)
    now = now or datetime.now(timezone.utc)

    extra_parameters = {"RESPONSE_URL": return_url, "CONFIRMATION_URL": config.notify_url}
    if payment_method == "YAPE" and otp_code:
        extra_parameters["OTP"] = otp_code
    if installments and payment_method in CARD_PAYMENT_METHODS:
        extra_parameters["INSTALLMENTS_NUMBER"] = str(installments)

    address = {**buyer.address.to_payload(), "phone": buyer.contact_phone}
    transaction: dict[str, Any] = {
        "order": {
            "accountId": config.account_id,
            "referenceCode": reference_code,
            "description": description,
            "language": config.language,
            "signature": signature,
            "notifyUrl": config.notify_url,
            "additionalValues": {
                "TX_VALUE": {"value": float(amount), "currency": config.currency},
            },
            "buyer": {
                "merchantBuyerId": f"buyer_{reservation_id}",
                "fullName": buyer.full_name,
                "emailAddress": buyer.email,
                "contactPhone": buyer.contact_phone,
                "dniNumber": buyer.dni_number,
                "shippingAddress": address,
            },
            "shippingAddress": address,
        },
        "payer": {
            "merchantPayerId": f"payer_{reservation_id}",
            "fullName": buyer.full_name,
            "emailAddress": buyer.email,
            "contactPhone": buyer.contact_phone,
            "dniNumber": buyer.dni_number,
            "billingAddress": address,
        },
        "extraParameters": extra_parameters,
        "type": "AUTHORIZATION_AND_CAPTURE",
        "paymentMethod": payment_method,
        "expirationDate": (now + timedelta(minutes=30)).strftime("%Y-%m-%dT%H:%M:%S"),
        "paymentCountry": config.country,
        "deviceSessionId": client.device_session_id,
        "ipAddress": client.ip_address,
        "cookie": client.cookie,
        "userAgent": client.user_agent,
    }
    if credit_card is not None:
        transaction["creditCard"] = credit_card.to_payload()

    logger.info(
        "Built PayU request %s for %s %s via %s",
        reference_code,
        format_amount(amount),
        config.currency,
        payment_method,
    )
    return {
        "language": config.language,
        "command": "SUBMIT_TRANSACTION",
        "merchant": {"apiKey": config.api_key, "apiLogin": config.api_login},
        "transaction": transaction,
        "test": config.test_mode,
    }


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class PayUClient:
    """Async client for the PayU payments and reports APIs."""

    def __init__(self, config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    async def _post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.config.is_configured:
            raise GatewayConfigurationError(
                "PayU credentials are not configured",
                {"missingCredentials": self.config.missing_credentials()},
            )
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as client:
                response = await client.post(url, json=body)
        except httpx.TimeoutException as e:
            logger.warning("PayU %s timed out after %.1fs", body.get("command"), self.config.timeout_seconds)
            raise GatewayTimeoutError("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            logger.error("PayU %s request failed: %s", body.get("command"), e)
            raise GatewayCommunicationError(f"Payment gateway request failed: {e}") from e

        if response.is_error:
            logger.error("PayU %s returned HTTP %d: %s", body.get("command"), response.status_code, response.text)
            raise GatewayCommunicationError(
                f"Payment gateway error: {response.status_code} - {response.text}",
                {"statusCode": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayCommunicationError("Payment gateway returned a non-JSON response") from e

    async def submit_transaction(self, request: dict[str, Any]) -> dict[str, Any]:
        reference = request.get("transaction", {}).get("order", {}).get("referenceCode")
        logger.info("Submitting PayU transaction %s", reference)
        data = await self._post(self.config.api_url, request)
        logger.info(
            "PayU answered %s for %s (state=%s)",
            data.get("code"),
            reference,
            (data.get("transactionResponse") or {}).get("state"),
        )
        return data

    async def order_detail(self, order_id: str) -> dict[str, Any]:
        body = {
            "language": self.config.language,
            "command": "ORDER_DETAIL",
            "merchant": {"apiKey": self.config.api_key, "apiLogin": self.config.api_login},
            "details": {"orderId": order_id},
            "test": self.config.test_mode,
        }
        return await self._post(self.config.reports_url, body)


def get_payu_client() -> PayUClient:
    """FastAPI dependency returning a client bound to the process-wide config."""
    return PayUClient(get_gateway_config())
