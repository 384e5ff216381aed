"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own connection-level transaction that rolls back after the test.
- Code under test may commit freely; commits only release a SAVEPOINT.
- ``TEST_DATABASE_URL`` selects the database (in-memory SQLite by default).
"""

import fnmatch
import json
import os
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from hotel_booking.api.deps import get_cache, get_event_dispatcher, get_gateway_config, get_payu_client
from hotel_booking.auth.jwt import create_access_token
from hotel_booking.database import Base, get_db
from hotel_booking.main import app
from hotel_booking.models.room import Room, RoomStatus
from hotel_booking.models.room_type import RoomType
from hotel_booking.models.user import User
from hotel_booking.payments.payu import GatewayConfig, PayUClient
from hotel_booking.services.events import EventDispatcher
from hotel_booking.services.notifications import OutgoingEmail

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")
OPERATOR_EMAIL = "frontdesk@hotel.test"


def _make_engine():
    if not TEST_DATABASE_URL.startswith("sqlite"):
        return create_async_engine(TEST_DATABASE_URL, echo=False, pool_pre_ping=True)

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """Engine with the schema created."""
    engine = _make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeCache:
    """In-memory stand-in for the Redis cache."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.invalidated_patterns: list[str] = []
        self.computed: list[str] = []

    async def get_or_compute(self, key: str, ttl_seconds: int | None, fn: Callable[[], Awaitable[Any]]) -> Any:
        if key in self.store:
            return self.store[key]
        self.computed.append(key)
        value = await fn()
        self.store[key] = json.loads(json.dumps(value, default=str))
        return value

    async def invalidate(self, key: str) -> None:
        self.store.pop(key, None)

    async def invalidate_pattern(self, pattern: str) -> int:
        self.invalidated_patterns.append(pattern)
        keys = [key for key in self.store if fnmatch.fnmatch(key, pattern)]
        for key in keys:
            del self.store[key]
        return len(keys)


class RecordingNotifier:
    """Collects outgoing email instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[OutgoingEmail] = []

    async def send(self, message: OutgoingEmail) -> bool:
        self.sent.append(message)
        return True


class FakePayU:
    """Scripted PayU endpoint behind an ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.status_code = 200
        self.response: dict[str, Any] = {}
        self.error: Exception | None = None
        self.answer_with("APPROVED")

    def answer_with(self, state: str, transaction_id: str = "tx-123") -> None:
        """Answer the next submissions with a SUCCESS envelope carrying ``state``."""
        self.response = {
            "code": "SUCCESS",
            "error": None,
            "transactionResponse": {
                "orderId": 844000001,
                "transactionId": transaction_id,
                "state": state,
                "responseCode": "APPROVED" if state == "APPROVED" else f"{state}_TRANSACTION",
            },
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.response)


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        api_url="https://payu.test/payments-api/4.0/service.cgi",
        reports_url="https://payu.test/reports-api/4.0/service.cgi",
        merchant_id="508029",
        api_key="4Vj8eK4rloUd272L48hsrarnUA",
        api_login="pRRXKOl8ikMmt9u",
        account_id="512323",
        notify_url="http://testserver/api/payments/webhook",
        timeout_seconds=5.0,
    )


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def fake_payu() -> FakePayU:
    return FakePayU()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier, fake_cache: FakeCache) -> EventDispatcher:
    return EventDispatcher(notifier, fake_cache, operator_email=OPERATOR_EMAIL)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    gateway_config: GatewayConfig,
    fake_cache: FakeCache,
    fake_payu: FakePayU,
    dispatcher: EventDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB session and fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: fake_cache
    app.dependency_overrides[get_event_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_gateway_config] = lambda: gateway_config
    app.dependency_overrides[get_payu_client] = lambda: PayUClient(
        gateway_config, transport=httpx.MockTransport(fake_payu.handler)
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users
# ---------------------------------------------------------------------------


async def _create_user(db_session: AsyncSession, role: str, first_name: str) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"{role}-{unique}@test.com",
        first_name=first_name,
        last_name="Tester",
        is_active=True,
        role=role,
    )
    db_session.add(user)
    await db_session.flush()
    return user


def _bearer(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def guest_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "guest", "Grace")


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "staff", "Sam")


@pytest_asyncio.fixture
async def auth_headers(guest_user: User) -> dict[str, str]:
    """Authorization headers for a registered guest."""
    return _bearer(guest_user)


@pytest_asyncio.fixture
async def staff_headers(staff_user: User) -> dict[str, str]:
    """Authorization headers for a staff member."""
    return _bearer(staff_user)


# ---------------------------------------------------------------------------
# Convenience fixtures: inventory
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def room_type(db_session: AsyncSession) -> RoomType:
    room_type = RoomType(
        name="Deluxe",
        description="Deluxe double",
        base_price=Decimal("100.00"),
        capacity=3,
        standard_occupancy=2,
        additional_guest_charge=Decimal("25.00"),
        amenities=["wifi", "minibar"],
        images=[],
    )
    db_session.add(room_type)
    await db_session.flush()
    return room_type


@pytest_asyncio.fixture
async def rooms(db_session: AsyncSession, room_type: RoomType) -> list[Room]:
    """Two bookable rooms of ``room_type``: 201 and 202."""
    created = [
        Room(number="201", floor="2", room_type_id=room_type.id, status=RoomStatus.AVAILABLE.value),
        Room(number="202", floor="2", room_type_id=room_type.id, status=RoomStatus.AVAILABLE.value),
    ]
    db_session.add_all(created)
    await db_session.flush()
    return created
