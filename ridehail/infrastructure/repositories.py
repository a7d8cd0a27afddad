"""
Repository Pattern -- abstracts DB access so the services stay DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ActiveRideModel, RideModel, UserModel
from ridehail.domain.enums import TERMINAL_STATUSES, RideStatus, UserRole

HISTORY_LIMIT = 10


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_wallet(self, wallet_address: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.wallet_address == wallet_address)
        )
        return result.scalar_one_or_none()


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: str) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_waiting_rides(self) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.status == RideStatus.WAITING)
            .order_by(RideModel.created_at)
        )
        return list(result.scalars().all())

    async def get_history(
        self, user_id: str, role: UserRole, limit: int = HISTORY_LIMIT
    ) -> list[RideModel]:
        """Finished rides for *user_id*, newest completion first."""
        party = (
            RideModel.customer_id
            if role is UserRole.CUSTOMER
            else RideModel.driver_id
        )
        result = await self.session.execute(
            select(RideModel)
            .where(party == user_id)
            .where(RideModel.status.in_(TERMINAL_STATUSES))
            .order_by(
                func.coalesce(RideModel.completed_at, RideModel.created_at).desc()
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def set_current_location(
        self, ride_id: str, lat: float, lng: float
    ) -> bool:
        """Record the position of a live ride; False if unknown or finished."""
        ride = await self.get_by_id(ride_id)
        if ride is None or ride.status in TERMINAL_STATUSES:
            return False
        ride.current_lat = lat
        ride.current_lng = lng
        return True


class ActiveRideRepository:
    """User -> active ride index, one row per (user, role)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_ride_id(self, user_id: str, role: UserRole) -> Optional[str]:
        entry = await self.session.get(ActiveRideModel, (user_id, role))
        return entry.ride_id if entry else None

    async def claim(self, user_id: str, role: UserRole, ride_id: str) -> None:
        self.session.add(ActiveRideModel(user_id=user_id, role=role, ride_id=ride_id))
        await self.session.flush()

    async def release_ride(self, ride_id: str) -> None:
        await self.session.execute(
            delete(ActiveRideModel).where(ActiveRideModel.ride_id == ride_id)
        )
