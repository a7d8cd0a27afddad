"""
Shared test fixtures.

Every test gets its own in-memory SQLite entity store, a fresh
subscription registry and a recording payment gateway, so nothing
leaks between tests and nothing needs Docker.
"""

import random
import uuid
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ridehail.api.app import create_app
from ridehail.api.middleware import limiter
from ridehail.config import Settings
from ridehail.domain.entities import Location
from ridehail.domain.enums import UserRole
from ridehail.domain.payments import PaymentReceipt, SimulatedPaymentGateway
from ridehail.infrastructure.models import UserModel
from ridehail.infrastructure.repositories import UserRepository
from ridehail.services.container import RideServices, build_services

TEST_SETTINGS = Settings(
    database_url="sqlite+aiosqlite:///:memory:",
    seed_demo_data=False,
    _env_file=None,
)

PICKUP = Location(37.7749, -122.4194, "Point A")
DROPOFF = Location(37.8049, -122.4194, "Point B")


# ── Test doubles ──────────────────────────────────────────────────────


class FakeConnection:
    """Stands in for a WebSocket: records every JSON message sent to it."""

    def __init__(self, name: str = "conn", fail: bool = False):
        self.name = name
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError(f"{self.name} is gone")
        self.sent.append(data)

    def statuses(self) -> list[str]:
        return [m["data"]["status"] for m in self.sent if m["type"] == "ride_status"]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name!r})"


class RecordingPaymentGateway(SimulatedPaymentGateway):
    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, str, float]] = []

    async def _settle(self, operation, ride_id, amount, address) -> PaymentReceipt:
        self.calls.append((operation, ride_id, amount))
        return await super()._settle(operation, ride_id, amount, address)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def payments() -> RecordingPaymentGateway:
    return RecordingPaymentGateway()


@pytest_asyncio.fixture
async def services(payments) -> AsyncGenerator[RideServices, None]:
    """Open a fresh store, yield the wired services, then close it."""
    svc = build_services(TEST_SETTINGS, payments=payments, rng=random.Random(7))
    await svc.start()
    yield svc
    await svc.stop()


@pytest_asyncio.fixture
async def client(services) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app, wired to the ``services`` fixture."""
    limiter.reset()
    app = create_app(TEST_SETTINGS)
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(services):
    """Insert a user directly; defaults give avgRating 4.0 over 10 rides."""

    async def _make(role: UserRole = UserRole.CUSTOMER, **overrides) -> UserModel:
        fields = dict(
            wallet_address=f"0x{uuid.uuid4().hex[:16]}",
            role=role,
            name=f"Test {role.value}",
            reputation=60,
            completed_rides=10,
            avg_rating=4.0,
            balance=100.0,
        )
        fields.update(overrides)
        async with services.store.lock:
            async with services.store.session() as session:
                return await UserRepository(session).create(UserModel(**fields))

    return _make


@pytest.fixture
def make_ride(services):
    """Request a ride from PICKUP to DROPOFF (fare 20, stake 23)."""

    async def _make(customer_id: str, fare: float = 20.0, stake: float = 23.0):
        return await services.lifecycle.request_ride(
            customer_id, PICKUP, DROPOFF, estimated_fare=fare, staked_amount=stake
        )

    return _make


@pytest_asyncio.fixture
async def ride_id(make_user, make_ride) -> str:
    """Id of a freshly requested ride; live locations are only kept for real rides."""
    customer = await make_user(UserRole.CUSTOMER)
    return (await make_ride(customer.id)).id
