"""
Integration tests for the REST API endpoints.

Runs the app in-process over httpx's ASGI transport against the
in-memory entity store from ``conftest``.
"""

from __future__ import annotations

import random

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ridehail.api.app import create_app
from ridehail.api.middleware import limiter
from ridehail.domain.payments import UnavailablePaymentGateway
from ridehail.services.container import build_services
from tests.conftest import TEST_SETTINGS

PICKUP = {"lat": 37.7749, "lng": -122.4194, "address": "Point A"}
DROPOFF = {"lat": 37.8749, "lng": -122.4194, "address": "Point B"}


async def _connect(client, wallet, role):
    resp = await client.post(
        "/api/auth/connect", json={"walletAddress": wallet, "role": role}
    )
    assert resp.status_code == 200
    return resp.json()["user"]


async def _request(client, customer_id, fare=20, stake=23):
    return await client.post("/api/rides/request", json={
        "pickup": PICKUP,
        "dropoff": DROPOFF,
        "estimatedFare": fare,
        "stakedAmount": stake,
        "customerId": customer_id,
    })


# ── Health / accounts ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/admin/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_connect_creates_user_once(client):
    first = await client.post(
        "/api/auth/connect", json={"walletAddress": "0xabc", "role": "customer"}
    )
    body = first.json()
    assert first.status_code == 200
    assert body["token"].startswith(f"token_{body['user']['id']}_")
    user = body["user"]
    assert user["walletAddress"] == "0xabc"
    assert user["role"] == "customer"
    assert user["completedRides"] == 0
    assert 50 <= user["reputation"] < 80
    assert 4.0 <= user["avgRating"] <= 4.8

    # Same wallet, other role: the existing account comes back unchanged
    again = await _connect(client, "0xabc", "driver")
    assert again["id"] == user["id"]
    assert again["role"] == "customer"


@pytest.mark.asyncio
async def test_profile(client):
    user = await _connect(client, "0xprofile", "driver")
    resp = await client.get(f"/api/user/{user['id']}/profile")
    assert resp.status_code == 200
    assert resp.json()["walletAddress"] == "0xprofile"

    missing = await client.get("/api/user/nobody/profile")
    assert missing.status_code == 404
    assert missing.json() == {"message": "User not found"}


@pytest.mark.asyncio
async def test_invalid_body_is_400(client):
    resp = await client.post("/api/auth/connect", json={"role": "pilot"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid request"


# ── Ride lifecycle ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_request_and_list_available(client):
    customer = await _connect(client, "0xcust", "customer")

    resp = await _request(client, customer["id"])
    assert resp.status_code == 200
    ride = resp.json()
    assert ride["status"] == "waiting"
    assert ride["driverId"] is None
    assert ride["pickup"] == PICKUP
    assert ride["stakeTxHash"].startswith("0x")

    available = (await client.get("/api/rides/available")).json()
    assert available == [{
        "rideId": ride["id"],
        "pickup": PICKUP,
        "dropoff": DROPOFF,
        "fare": 20.0,
        "customerRating": customer["avgRating"],
        "customerName": customer["name"],
        "distance": 11.1,
    }]


@pytest.mark.asyncio
async def test_full_ride_over_rest(client):
    customer = await _connect(client, "0xc1", "customer")
    driver = await _connect(client, "0xd1", "driver")
    ride_id = (await _request(client, customer["id"])).json()["id"]

    accepted = await client.post(
        f"/api/rides/{ride_id}/accept", json={"driverId": driver["id"]}
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert accepted.json()["currentLocation"] is not None
    assert (await client.get("/api/rides/available")).json() == []

    active = await client.get(f"/api/rides/active/{driver['id']}")
    assert active.status_code == 200
    assert active.json()["customer"]["address"] == "0xc1"
    assert active.json()["driver"]["reputation"] == driver["reputation"]

    started = await client.post(
        f"/api/rides/{ride_id}/start", json={"driverId": driver["id"]}
    )
    assert started.json()["status"] == "in_progress"
    assert started.json()["startedAt"] is not None

    completed = await client.post(
        f"/api/rides/{ride_id}/complete",
        json={"completedBy": "driver", "rating": 5, "feedback": "Great rider"},
    )
    body = completed.json()
    assert completed.status_code == 200
    assert body["status"] == "completed"
    assert body["actualFare"] == 20.0
    assert body["customerRating"] == 5
    assert body["driverFeedback"] == "Great rider"

    assert (await client.get(f"/api/rides/active/{customer['id']}")).status_code == 404
    history = (await client.get(f"/api/rides/history/{customer['id']}")).json()
    assert [r["id"] for r in history] == [ride_id]

    profile = (await client.get(f"/api/user/{customer['id']}/profile")).json()
    assert profile["completedRides"] == 1
    assert profile["avgRating"] == 5.0


@pytest.mark.asyncio
async def test_guard_errors_map_to_status_codes(client):
    customer = await _connect(client, "0xc2", "customer")
    driver = await _connect(client, "0xd2", "driver")
    ride_id = (await _request(client, customer["id"])).json()["id"]

    early = await client.post(f"/api/rides/{ride_id}/start", json={"driverId": driver["id"]})
    assert early.status_code == 400
    assert early.json() == {"message": "Ride cannot be started"}

    as_customer = await client.post(
        f"/api/rides/{ride_id}/accept", json={"driverId": customer["id"]}
    )
    assert as_customer.status_code == 403

    await client.post(f"/api/rides/{ride_id}/accept", json={"driverId": driver["id"]})
    twice = await client.post(f"/api/rides/{ride_id}/accept", json={"driverId": driver["id"]})
    assert twice.status_code == 400
    assert twice.json() == {"message": "Ride is no longer available"}

    stranger = await client.post(f"/api/rides/{ride_id}/cancel", json={"userId": "someone"})
    assert stranger.status_code == 403
    assert stranger.json() == {"message": "Not authorized"}

    missing = await client.get("/api/rides/does-not-exist")
    assert missing.status_code == 404
    assert missing.json() == {"message": "Ride not found"}


@pytest.mark.asyncio
async def test_rating_out_of_range_is_rejected(client):
    customer = await _connect(client, "0xc3", "customer")
    ride_id = (await _request(client, customer["id"])).json()["id"]
    resp = await client.post(
        f"/api/rides/{ride_id}/complete", json={"completedBy": "customer", "rating": 6}
    )
    assert resp.status_code == 400
    assert (await client.get(f"/api/rides/{ride_id}")).json()["status"] == "waiting"


@pytest.mark.asyncio
async def test_cancel_then_history(client):
    customer = await _connect(client, "0xc4", "customer")
    ride_id = (await _request(client, customer["id"])).json()["id"]

    cancelled = await client.post(f"/api/rides/{ride_id}/cancel", json={"userId": customer["id"]})
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["driverId"] is None

    again = await client.post(f"/api/rides/{ride_id}/cancel", json={"userId": customer["id"]})
    assert again.status_code == 400
    history = (await client.get(f"/api/rides/history/{customer['id']}")).json()
    assert history[0]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_history_is_newest_first_and_capped(client):
    customer = await _connect(client, "0xc5", "customer")
    ids = []
    for _ in range(11):
        ride_id = (await _request(client, customer["id"])).json()["id"]
        await client.post(f"/api/rides/{ride_id}/cancel", json={"userId": customer["id"]})
        ids.append(ride_id)

    history = (await client.get(f"/api/rides/history/{customer['id']}")).json()
    assert len(history) == 10
    assert [r["id"] for r in history] == ids[::-1][:10]

    assert (await client.get("/api/rides/history/unknown-user")).json() == []


@pytest.mark.asyncio
async def test_subscriptions_endpoint_starts_empty(client):
    resp = await client.get("/api/admin/subscriptions")
    assert resp.status_code == 200
    assert resp.json() == {}


# ── Payments switched off ─────────────────────────────────────────────


@pytest_asyncio.fixture
async def offline_client():
    settings = TEST_SETTINGS.model_copy(update={"seed_demo_data": True})
    svc = build_services(
        settings, payments=UnavailablePaymentGateway(), rng=random.Random(3)
    )
    await svc.start()
    limiter.reset()
    app = create_app(settings)
    app.state.services = svc
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await svc.stop()


@pytest.mark.asyncio
async def test_payment_outage_is_503(offline_client):
    customer = await _connect(offline_client, "0xc6", "customer")
    resp = await _request(offline_client, customer["id"])
    assert resp.status_code == 503
    assert resp.json() == {"message": "Payment service unavailable"}

    # Seeded rides still browse
    available = (await offline_client.get("/api/rides/available")).json()
    assert {r["rideId"] for r in available} == {"demo-ride-1", "demo-ride-2", "demo-ride-3"}

    await offline_client.post("/api/rides/demo-ride-3/accept", json={"driverId": "demo-driver-2"})
    await offline_client.post("/api/rides/demo-ride-3/start", json={"driverId": "demo-driver-2"})
    delivery = await offline_client.post(
        "/api/rides/demo-ride-3/confirm-delivery",
        json={"driverId": "demo-driver-2", "customerLat": 0, "customerLng": 0},
    )
    assert delivery.status_code == 503
