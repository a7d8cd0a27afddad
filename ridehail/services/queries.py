"""Read side: driver ride list, active ride, history, ride details."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ridehail.domain.distance import planar_km, round_km
from ridehail.domain.entities import AvailableRide
from ridehail.domain.errors import NotFound
from ridehail.infrastructure.database import RideStore
from ridehail.infrastructure.models import RideModel, UserModel
from ridehail.infrastructure.repositories import (
    ActiveRideRepository,
    RideRepository,
    UserRepository,
)


@dataclass
class RideDetails:
    ride: RideModel
    customer: Optional[UserModel] = None
    driver: Optional[UserModel] = None


class RideQueries:
    def __init__(self, store: RideStore):
        self.store = store

    async def available_rides(self) -> list[AvailableRide]:
        async with self.store.lock:
            async with self.store.session() as session:
                users = UserRepository(session)
                result: list[AvailableRide] = []
                for ride in await RideRepository(session).get_waiting_rides():
                    customer = await users.get_by_id(ride.customer_id)
                    distance = planar_km(ride.pickup_lat, ride.pickup_lng,
                                         ride.dropoff_lat, ride.dropoff_lng)
                    result.append(
                        AvailableRide(
                            ride_id=ride.id,
                            pickup=ride.pickup,
                            dropoff=ride.dropoff,
                            fare=ride.estimated_fare,
                            customer_rating=customer.avg_rating if customer else 4.0,
                            customer_name=(customer.name if customer else None) or "Customer",
                            distance=round_km(distance),
                        )
                    )
        return result

    async def ride_details(self, ride_id: str) -> RideDetails:
        async with self.store.lock:
            async with self.store.session() as session:
                details = await self._details(session, ride_id)
        if details is None:
            raise NotFound("Ride not found")
        return details

    async def active_ride(self, user_id: str) -> RideDetails:
        async with self.store.lock:
            async with self.store.session() as session:
                user = await UserRepository(session).get_by_id(user_id)
                ride_id = (
                    await ActiveRideRepository(session).get_ride_id(user_id, user.role)
                    if user
                    else None
                )
                details = await self._details(session, ride_id) if ride_id else None
        if details is None:
            raise NotFound("No active ride")
        return details

    async def history(self, user_id: str) -> list[RideModel]:
        """Up to ten finished rides; unknown users simply have none."""
        async with self.store.lock:
            async with self.store.session() as session:
                user = await UserRepository(session).get_by_id(user_id)
                if user is None:
                    return []
                return await RideRepository(session).get_history(user_id, user.role)

    async def _details(self, session, ride_id: str) -> Optional[RideDetails]:
        ride = await RideRepository(session).get_by_id(ride_id)
        if ride is None:
            return None
        users = UserRepository(session)
        return RideDetails(
            ride=ride,
            customer=await users.get_by_id(ride.customer_id),
            driver=await users.get_by_id(ride.driver_id) if ride.driver_id else None,
        )
