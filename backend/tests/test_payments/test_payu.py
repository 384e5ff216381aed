"""Tests for the PayU adapter: signing, status mapping, request building and HTTP client."""

import hashlib
import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from hotel_booking.errors import GatewayCommunicationError, GatewayConfigurationError, GatewayTimeoutError
from hotel_booking.models.payment import PaymentStatus
from hotel_booking.payments.payu import (
    BuyerInfo,
    CreditCardInfo,
    GatewayConfig,
    PayUClient,
    build_payment_request,
    format_amount,
    generate_reference_code,
    generate_signature,
    map_transaction_status,
    sanitize_client_info,
)


def _buyer() -> BuyerInfo:
    return BuyerInfo(first_name="Ana", last_name="Quispe", email="ana@example.com", phone="+51 999 888 777")


def _unconfigured(config: GatewayConfig) -> GatewayConfig:
    return GatewayConfig(
        api_url=config.api_url,
        reports_url=config.reports_url,
        merchant_id="",
        api_key="",
        api_login=config.api_login,
        account_id=config.account_id,
    )


# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------


class TestMapTransactionStatus:
    @pytest.mark.parametrize(
        ("state", "expected"),
        [
            ("APPROVED", PaymentStatus.COMPLETED),
            ("approved", PaymentStatus.COMPLETED),
            ("DECLINED", PaymentStatus.FAILED),
            ("EXPIRED", PaymentStatus.FAILED),
            ("REJECTED", PaymentStatus.FAILED),
            ("ENTITY_DECLINED", PaymentStatus.FAILED),
            ("PENDING", PaymentStatus.PENDING),
            ("SOMETHING_NEW", PaymentStatus.PENDING),
            ("", PaymentStatus.PENDING),
            (None, PaymentStatus.PENDING),
        ],
    )
    def test_mapping(self, state, expected):
        assert map_transaction_status(state) == expected


# ---------------------------------------------------------------------------
# Signatures and references
# ---------------------------------------------------------------------------


class TestSignature:
    @pytest.mark.parametrize(
        ("amount", "expected"),
        [
            (Decimal("150.00"), "150"),
            (Decimal("150.50"), "150.5"),
            (Decimal("0.10"), "0.1"),
            (300, "300"),
            ("1E+2", "100"),
        ],
    )
    def test_format_amount(self, amount, expected):
        assert format_amount(amount) == expected

    def test_md5_of_tilde_joined_fields(self, gateway_config: GatewayConfig):
        signature = generate_signature(gateway_config, "HOTEL_abc_1", Decimal("150.00"), "PEN")
        raw = f"{gateway_config.api_key}~{gateway_config.merchant_id}~HOTEL_abc_1~150~PEN"
        assert signature == hashlib.md5(raw.encode()).hexdigest()

    def test_missing_key_raises(self, gateway_config: GatewayConfig):
        with pytest.raises(GatewayConfigurationError):
            generate_signature(_unconfigured(gateway_config), "HOTEL_abc_1", Decimal("1"), "PEN")

    def test_reference_codes_are_unique(self):
        codes = {generate_reference_code("res-1") for _ in range(20)}
        assert len(codes) == 20
        assert all(code.startswith("HOTEL_res-1_") for code in codes)


# ---------------------------------------------------------------------------
# Client info
# ---------------------------------------------------------------------------


class TestSanitizeClientInfo:
    def test_forwarded_chain_keeps_first_address(self):
        info = sanitize_client_info("203.0.113.7, 10.0.0.1", "Mozilla/5.0")
        assert info.ip_address == "203.0.113.7"

    def test_long_values_truncated(self):
        info = sanitize_client_info("2001:0db8:85a3:0000:0000:8a2e:0370:7334:ffff", "A" * 300, "d" * 400, "c" * 400)
        assert len(info.ip_address) == 39
        assert len(info.user_agent) == 255
        assert len(info.device_session_id) == 255
        assert len(info.cookie) == 255

    def test_defaults(self):
        info = sanitize_client_info(None, None)
        assert info.ip_address == "127.0.0.1"
        assert info.user_agent == "Unknown Browser"
        assert info.device_session_id
        assert info.cookie
        assert info.device_session_id != info.cookie


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


class TestBuildPaymentRequest:
    def _build(self, config: GatewayConfig, **kwargs):
        return build_payment_request(
            config,
            reference_code="HOTEL_res_1",
            amount=Decimal("300.00"),
            reservation_id="res",
            buyer=_buyer(),
            description="Hotel reservation full payment",
            payment_method=kwargs.pop("payment_method", "VISA"),
            return_url="https://hotel.test/return?paymentId=1",
            client=sanitize_client_info("1.2.3.4", "UA", "dev", "cookie"),
            now=datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc),
            **kwargs,
        )

    def test_signed_submit_transaction(self, gateway_config: GatewayConfig):
        body = self._build(gateway_config)
        order = body["transaction"]["order"]
        assert body["command"] == "SUBMIT_TRANSACTION"
        assert body["merchant"] == {"apiKey": gateway_config.api_key, "apiLogin": gateway_config.api_login}
        assert order["referenceCode"] == "HOTEL_res_1"
        assert order["signature"] == generate_signature(gateway_config, "HOTEL_res_1", Decimal("300"), "PEN")
        assert order["additionalValues"]["TX_VALUE"] == {"value": 300.0, "currency": "PEN"}
        assert order["buyer"]["contactPhone"] == "+51999888777"
        assert body["transaction"]["expirationDate"] == "2030-01-01T12:30:00"
        assert body["transaction"]["extraParameters"]["CONFIRMATION_URL"] == gateway_config.notify_url
        assert "creditCard" not in body["transaction"]

    def test_card_and_yape_extras(self, gateway_config: GatewayConfig):
        card = CreditCardInfo.from_card_data("4097 4400 0000 0004", "321", "2030", "12", "APPROVED")
        body = self._build(gateway_config, credit_card=card)
        assert body["transaction"]["creditCard"] == {
            "number": "4097440000000004",
            "securityCode": "321",
            "expirationDate": "2030/12",
            "name": "APPROVED",
        }

        yape = self._build(gateway_config, payment_method="YAPE", otp_code="123456")
        assert yape["transaction"]["extraParameters"]["OTP"] == "123456"

    def test_missing_credentials(self, gateway_config: GatewayConfig):
        with pytest.raises(GatewayConfigurationError) as exc_info:
            self._build(_unconfigured(gateway_config))
        assert exc_info.value.details["missingCredentials"] == ["PAYU_MERCHANT_ID", "PAYU_API_KEY"]


class TestGatewayConfig:
    def test_debug_info_redacts_secrets(self, gateway_config: GatewayConfig):
        info = gateway_config.debug_info()
        assert info["PAYU_API_KEY"] == "4Vj..."
        assert info["IS_SANDBOX"] is False
        assert gateway_config.api_key not in json.dumps(info)

    def test_unconfigured(self, gateway_config: GatewayConfig):
        config = _unconfigured(gateway_config)
        assert config.is_configured is False
        assert config.debug_info()["PAYU_API_KEY"] == "not configured"


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class TestPayUClient:
    async def test_submit_posts_json(self, gateway_config: GatewayConfig):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"code": "SUCCESS", "transactionResponse": {"state": "APPROVED"}})

        client = PayUClient(gateway_config, transport=httpx.MockTransport(handler))
        data = await client.submit_transaction({"command": "SUBMIT_TRANSACTION"})
        assert data["code"] == "SUCCESS"
        assert str(seen[0].url) == gateway_config.api_url

    async def test_order_detail_uses_reports_api(self, gateway_config: GatewayConfig):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200, json={"code": "SUCCESS", "result": {"payload": {"status": "CAPTURED"}}})

        client = PayUClient(gateway_config, transport=httpx.MockTransport(handler))
        await client.order_detail("844000001")
        url, body = bodies[0]
        assert url == gateway_config.reports_url
        assert body["command"] == "ORDER_DETAIL"
        assert body["details"] == {"orderId": "844000001"}

    async def test_timeout(self, gateway_config: GatewayConfig):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = PayUClient(gateway_config, transport=httpx.MockTransport(handler))
        with pytest.raises(GatewayTimeoutError):
            await client.submit_transaction({"command": "SUBMIT_TRANSACTION"})

    async def test_http_error_status(self, gateway_config: GatewayConfig):
        client = PayUClient(
            gateway_config,
            transport=httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway")),
        )
        with pytest.raises(GatewayCommunicationError) as exc_info:
            await client.submit_transaction({"command": "SUBMIT_TRANSACTION"})
        assert not isinstance(exc_info.value, GatewayTimeoutError)
        assert exc_info.value.details["statusCode"] == 502

    async def test_non_json_body(self, gateway_config: GatewayConfig):
        client = PayUClient(
            gateway_config,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(GatewayCommunicationError):
            await client.submit_transaction({"command": "SUBMIT_TRANSACTION"})

    async def test_unconfigured_client_never_calls_out(self, gateway_config: GatewayConfig):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = PayUClient(_unconfigured(gateway_config), transport=httpx.MockTransport(handler))
        with pytest.raises(GatewayConfigurationError):
            await client.submit_transaction({})
