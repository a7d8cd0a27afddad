"""
Ride Lifecycle Engine
=====================

waiting -> accepted -> in_progress -> completed
   \\__________\\___________________-> cancelled

Atomicity
---------
Every operation runs under ``RideStore.lock``: guards are checked, the
ride row, the active-ride index and any rated user are updated in one
unit of work, and only after the commit is the status queued for the
ride's watchers -- still under the lock, so watchers of one ride see
events in the order they were applied.  Delivery itself happens outside
the lock.  A failed guard raises before anything is written.

Guards
------
* ``accept``   -- ride must be waiting; driver must exist, be a driver and
  hold no active ride.
* ``start``    -- ride must be accepted; only the assigned driver.
* ``complete`` -- status half only from in_progress (once); the rating
  half is also accepted on an already completed ride.
* ``cancel``   -- ride must be waiting or accepted; only its customer or
  assigned driver.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.distance import planar_km
from ridehail.domain.entities import (
    Location,
    LocationSample,
    apply_rating,
    check_transition,
)
from ridehail.domain.enums import RideStatus, UserRole
from ridehail.domain.errors import Conflict, Forbidden, NotFound, ServiceUnavailable
from ridehail.domain.payments import PaymentGateway
from ridehail.infrastructure.database import RideStore
from ridehail.infrastructure.models import RideModel, UserModel
from ridehail.infrastructure.repositories import (
    ActiveRideRepository,
    RideRepository,
    UserRepository,
)
from ridehail.realtime.messages import status_message
from ridehail.realtime.registry import SubscriptionRegistry
from ridehail.realtime.relay import LocationRelay

logger = logging.getLogger(__name__)


def driver_summary(driver: UserModel) -> dict[str, Any]:
    return {
        "name": driver.name or "Driver",
        "address": driver.wallet_address,
        "rating": driver.avg_rating,
        "reputation": driver.reputation,
    }


class RideLifecycleEngine:
    def __init__(
        self,
        store: RideStore,
        registry: SubscriptionRegistry,
        relay: LocationRelay,
        payments: PaymentGateway,
        *,
        rng: Optional[random.Random] = None,
        location_jitter: float = 0.02,
        geofence_km: float = 0.05,
    ):
        self.store = store
        self.registry = registry
        self.relay = relay
        self.payments = payments
        self.rng = rng or random.Random()
        self.location_jitter = location_jitter
        self.geofence_km = geofence_km

    # ── Request ───────────────────────────────────────────────────────

    async def request_ride(
        self,
        customer_id: str,
        pickup: Location,
        dropoff: Location,
        estimated_fare: float,
        staked_amount: float,
    ) -> RideModel:
        async with self.store.lock:
            async with self.store.session() as session:
                customer = await UserRepository(session).get_by_id(customer_id)
                if customer is None:
                    raise NotFound("Customer not found")
                if customer.role is not UserRole.CUSTOMER:
                    raise Forbidden("Only customers can request rides")
                index = ActiveRideRepository(session)
                if await index.get_ride_id(customer_id, UserRole.CUSTOMER):
                    raise Conflict("You already have an active ride")

                ride_id = str(uuid.uuid4())
                receipt = await self.payments.stake(
                    ride_id, staked_amount, customer.wallet_address
                )
                ride = await RideRepository(session).create(
                    RideModel(
                        id=ride_id,
                        customer_id=customer_id,
                        pickup_lat=pickup.lat,
                        pickup_lng=pickup.lng,
                        pickup_address=pickup.address,
                        dropoff_lat=dropoff.lat,
                        dropoff_lng=dropoff.lng,
                        dropoff_address=dropoff.address,
                        estimated_fare=estimated_fare,
                        staked_amount=staked_amount,
                        status=RideStatus.WAITING,
                        stake_tx_hash=receipt.transaction_hash,
                    )
                )
                await index.claim(customer_id, UserRole.CUSTOMER, ride_id)
        logger.info("Ride %s requested by customer %s", ride.id, customer_id)
        return ride

    # ── Transitions ───────────────────────────────────────────────────

    async def accept(self, ride_id: str, driver_id: str) -> RideModel:
        async with self.store.lock:
            async with self.store.session() as session:
                ride = await self._get_ride(session, ride_id)
                if ride.status is not RideStatus.WAITING:
                    raise Conflict("Ride is no longer available")
                driver = await UserRepository(session).get_by_id(driver_id)
                if driver is None:
                    raise NotFound("Driver not found")
                if driver.role is not UserRole.DRIVER:
                    raise Forbidden("Only drivers can accept rides")
                index = ActiveRideRepository(session)
                if await index.get_ride_id(driver_id, UserRole.DRIVER):
                    raise Conflict("You already have an active ride")

                half = self.location_jitter / 2
                initial = LocationSample(
                    lat=ride.pickup_lat + self.rng.uniform(-half, half),
                    lng=ride.pickup_lng + self.rng.uniform(-half, half),
                )
                ride.driver_id = driver_id
                ride.status = RideStatus.ACCEPTED
                ride.current_lat = initial.lat
                ride.current_lng = initial.lng
                await index.claim(driver_id, UserRole.DRIVER, ride_id)
                summary = driver_summary(driver)

            self.relay.remember(ride_id, initial)
            logger.info("Ride %s accepted by driver %s", ride_id, driver_id)
            self._announce(ride_id, {
                "status": RideStatus.ACCEPTED.value,
                "driverId": driver_id,
                "currentLocation": {"lat": initial.lat, "lng": initial.lng},
                "driver": summary,
            })
        return ride

    async def start(self, ride_id: str, driver_id: str) -> RideModel:
        async with self.store.lock:
            async with self.store.session() as session:
                ride = await self._get_ride(session, ride_id)
                if ride.status is not RideStatus.ACCEPTED:
                    raise Conflict("Ride cannot be started")
                if ride.driver_id != driver_id:
                    raise Forbidden("Not authorized")
                check_transition(ride.status, RideStatus.IN_PROGRESS)

                ride.status = RideStatus.IN_PROGRESS
                ride.started_at = datetime.now(timezone.utc)
                ride.current_lat = ride.pickup_lat
                ride.current_lng = ride.pickup_lng

            self.relay.remember(ride_id, LocationSample(ride.pickup_lat, ride.pickup_lng))
            logger.info("Ride %s started", ride_id)
            self._announce(ride_id, {
                "status": RideStatus.IN_PROGRESS.value,
                "startedAt": ride.started_at.isoformat(),
            })
        return ride

    async def complete(
        self,
        ride_id: str,
        completed_by: UserRole,
        rating: Optional[float] = None,
        feedback: Optional[str] = None,
    ) -> RideModel:
        """Finish the ride and/or record one party's rating of the other.

        Calling again after completion only touches ratings; the status
        is never transitioned twice.
        """
        async with self.store.lock:
            async with self.store.session() as session:
                ride = await self._get_ride(session, ride_id)
                finishing = (
                    ride.status is RideStatus.IN_PROGRESS and ride.completed_at is None
                )
                if not finishing and ride.status is not RideStatus.COMPLETED:
                    raise Conflict("Ride cannot be completed")

                if finishing:
                    await self._finish(session, ride)
                if rating is not None:
                    await self._record_rating(session, ride, completed_by, rating, feedback)

            if finishing:
                self._announce_end(ride_id, RideStatus.COMPLETED)
        return ride

    async def confirm_delivery(
        self,
        ride_id: str,
        driver_id: str,
        customer_lat: float,
        customer_lng: float,
    ) -> RideModel:
        """Complete an in-progress ride once the customer is at the dropoff."""
        if not self.payments.available:
            raise ServiceUnavailable("Payment service unavailable")
        async with self.store.lock:
            async with self.store.session() as session:
                ride = await self._get_ride(session, ride_id)
                if ride.status is not RideStatus.IN_PROGRESS:
                    raise Conflict("Ride cannot be completed")
                if ride.driver_id != driver_id:
                    raise Forbidden("Not authorized")
                gap = planar_km(customer_lat, customer_lng,
                                ride.dropoff_lat, ride.dropoff_lng)
                if gap > self.geofence_km:
                    raise Conflict("Not at destination yet")
                await self._finish(session, ride)

            self._announce_end(ride_id, RideStatus.COMPLETED)
        return ride

    async def cancel(self, ride_id: str, user_id: str) -> RideModel:
        async with self.store.lock:
            async with self.store.session() as session:
                ride = await self._get_ride(session, ride_id)
                if ride.status not in (RideStatus.WAITING, RideStatus.ACCEPTED):
                    raise Conflict("Ride cannot be cancelled")
                if user_id not in (ride.customer_id, ride.driver_id):
                    raise Forbidden("Not authorized")
                check_transition(ride.status, RideStatus.CANCELLED)

                if ride.stake_tx_hash:
                    customer = await UserRepository(session).get_by_id(ride.customer_id)
                    if customer is None:
                        raise NotFound("Customer not found")
                    await self.payments.refund(
                        ride_id, ride.staked_amount, customer.wallet_address
                    )
                ride.status = RideStatus.CANCELLED
                ride.completed_at = datetime.now(timezone.utc)
                await ActiveRideRepository(session).release_ride(ride_id)

            logger.info("Ride %s cancelled by %s", ride_id, user_id)
            self._announce_end(ride_id, RideStatus.CANCELLED)
        return ride

    # ── Internals ─────────────────────────────────────────────────────

    async def _get_ride(self, session: AsyncSession, ride_id: str) -> RideModel:
        ride = await RideRepository(session).get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        return ride

    async def _finish(self, session: AsyncSession, ride: RideModel) -> None:
        check_transition(ride.status, RideStatus.COMPLETED)
        if ride.stake_tx_hash and ride.driver_id:
            driver = await UserRepository(session).get_by_id(ride.driver_id)
            if driver is None:
                raise NotFound("Driver not found")
            receipt = await self.payments.release(
                ride.id, ride.estimated_fare, driver.wallet_address
            )
            ride.release_tx_hash = receipt.transaction_hash
        ride.status = RideStatus.COMPLETED
        ride.completed_at = datetime.now(timezone.utc)
        # Flat fare: no surge or distance recompute
        ride.actual_fare = ride.estimated_fare
        await ActiveRideRepository(session).release_ride(ride.id)
        logger.info("Ride %s completed (fare %.2f)", ride.id, ride.actual_fare)

    async def _record_rating(
        self,
        session: AsyncSession,
        ride: RideModel,
        completed_by: UserRole,
        rating: float,
        feedback: Optional[str],
    ) -> None:
        if completed_by is UserRole.CUSTOMER:
            first = ride.driver_rating is None
            ride.driver_rating = rating
            ride.customer_feedback = feedback
            ratee_id = ride.driver_id
        else:
            first = ride.customer_rating is None
            ride.customer_rating = rating
            ride.driver_feedback = feedback
            ratee_id = ride.customer_id

        # Aggregates count each side's rating once per ride
        if not first or ratee_id is None:
            return
        ratee = await UserRepository(session).get_by_id(ratee_id)
        if ratee is not None:
            apply_rating(ratee, rating)
            logger.info("User %s rated %.1f (avg now %.1f)",
                        ratee_id, rating, ratee.avg_rating)

    def _announce(self, ride_id: str, data: dict[str, Any]) -> None:
        self.registry.broadcast(ride_id, status_message(ride_id, data))

    def _announce_end(self, ride_id: str, status: RideStatus) -> None:
        self._announce(ride_id, {"status": status.value})
        self.relay.clear(ride_id)
