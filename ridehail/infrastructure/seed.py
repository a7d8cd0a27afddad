"""
Demo data -- gives a fresh process something to look at.

Creates:
  - 2 drivers with a ride record behind them
  - 3 customers
  - 3 waiting rides around San Francisco, one per customer
"""

from __future__ import annotations

import logging

from .database import RideStore
from .models import RideModel, UserModel
from .repositories import ActiveRideRepository, RideRepository, UserRepository
from ridehail.domain.enums import RideStatus, UserRole

logger = logging.getLogger(__name__)


DRIVERS = [
    {"id": "demo-driver-1", "wallet_address": "0xdriver1...abc", "name": "Marcus Chen",
     "reputation": 78, "completed_rides": 45, "avg_rating": 4.7, "balance": 245.50},
    {"id": "demo-driver-2", "wallet_address": "0xdriver2...def", "name": "Sarah Johnson",
     "reputation": 92, "completed_rides": 120, "avg_rating": 4.9, "balance": 890.25},
]

CUSTOMERS = [
    {"id": "demo-customer-1", "wallet_address": "0xcustomer1...xyz", "name": "Emma Thompson",
     "reputation": 65, "completed_rides": 12, "avg_rating": 4.5, "balance": 150.00},
    {"id": "demo-customer-2", "wallet_address": "0xcustomer2...uvw", "name": "David Park",
     "reputation": 88, "completed_rides": 34, "avg_rating": 4.8, "balance": 75.50},
    {"id": "demo-customer-3", "wallet_address": "0xcustomer3...rst", "name": "Lisa Wang",
     "reputation": 72, "completed_rides": 8, "avg_rating": 4.3, "balance": 200.00},
]

RIDES = [
    {"id": "demo-ride-1", "customer_id": "demo-customer-1",
     "pickup": (37.7849, -122.4094, "Market Street, Downtown"),
     "dropoff": (37.6213, -122.3790, "Airport Terminal 1, SFO"),
     "estimated_fare": 28.50, "staked_amount": 32.78},
    {"id": "demo-ride-2", "customer_id": "demo-customer-2",
     "pickup": (37.8080, -122.4177, "Fisherman's Wharf, SF"),
     "dropoff": (37.7879, -122.4074, "Union Square, Downtown"),
     "estimated_fare": 12.75, "staked_amount": 14.66},
    {"id": "demo-ride-3", "customer_id": "demo-customer-3",
     "pickup": (37.7609, -122.4350, "Castro District, SF"),
     "dropoff": (37.8199, -122.4783, "Golden Gate Bridge"),
     "estimated_fare": 18.25, "staked_amount": 20.99},
]


async def seed_demo_data(store: RideStore) -> int:
    """Insert the demo users and rides.  Returns the number of rides added."""
    async with store.lock:
        async with store.session() as session:
            users = UserRepository(session)
            rides = RideRepository(session)
            index = ActiveRideRepository(session)

            if await users.get_by_id(DRIVERS[0]["id"]):
                logger.info("Demo data already present – skipping")
                return 0

            for d in DRIVERS:
                await users.create(UserModel(role=UserRole.DRIVER, **d))
            for c in CUSTOMERS:
                await users.create(UserModel(role=UserRole.CUSTOMER, **c))

            for r in RIDES:
                p_lat, p_lng, p_addr = r["pickup"]
                d_lat, d_lng, d_addr = r["dropoff"]
                await rides.create(
                    RideModel(
                        id=r["id"],
                        customer_id=r["customer_id"],
                        pickup_lat=p_lat,
                        pickup_lng=p_lng,
                        pickup_address=p_addr,
                        dropoff_lat=d_lat,
                        dropoff_lng=d_lng,
                        dropoff_address=d_addr,
                        estimated_fare=r["estimated_fare"],
                        staked_amount=r["staked_amount"],
                        status=RideStatus.WAITING,
                    )
                )
                await index.claim(r["customer_id"], UserRole.CUSTOMER, r["id"])

    logger.info(
        "Seeded %d drivers, %d customers, %d rides",
        len(DRIVERS), len(CUSTOMERS), len(RIDES),
    )
    return len(RIDES)
