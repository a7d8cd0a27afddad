"""
SQLAlchemy ORM models.

Tables
------
* ``users``         -- customers and drivers, keyed by a UUID string
* ``rides``         -- one row per ride request, whole lifecycle
* ``active_rides``  -- index (user, role) -> ride for rides that are still
  waiting / accepted / in progress; rows are written and deleted in the
  same transaction as the ride they point at

Indexes
-------
* **B-Tree** on ``rides.status``, ``rides.customer_id``, ``rides.driver_id``
  and ``active_rides.ride_id`` for the available-ride list, history and
  index release.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)

from .database import Base
from ridehail.domain.entities import Location
from ridehail.domain.enums import RideStatus, UserRole


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    wallet_address = Column(String(255), unique=True, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False)
    name = Column(String(120), nullable=True)
    reputation = Column(Integer, default=50, nullable=False)
    completed_rides = Column(Integer, default=0, nullable=False)
    avg_rating = Column(Float, default=4.0, nullable=False)
    balance = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(64), primary_key=True, default=_new_id)
    customer_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    driver_id = Column(String(64), ForeignKey("users.id"), nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=True)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    dropoff_address = Column(String(255), nullable=True)

    estimated_fare = Column(Float, nullable=False)
    staked_amount = Column(Float, nullable=False)
    actual_fare = Column(Float, nullable=True)
    status = Column(
        Enum(RideStatus, name="ride_status"),
        default=RideStatus.WAITING,
        nullable=False,
    )

    # Last known position, overwritten by every location sample
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    customer_rating = Column(Float, nullable=True)
    driver_rating = Column(Float, nullable=True)
    customer_feedback = Column(String(1000), nullable=True)
    driver_feedback = Column(String(1000), nullable=True)

    stake_tx_hash = Column(String(80), nullable=True)
    release_tx_hash = Column(String(80), nullable=True)

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_customer", "customer_id"),
        Index("idx_rides_driver", "driver_id"),
    )

    @property
    def pickup(self) -> Location:
        return Location(self.pickup_lat, self.pickup_lng, self.pickup_address)

    @property
    def dropoff(self) -> Location:
        return Location(self.dropoff_lat, self.dropoff_lng, self.dropoff_address)

    @property
    def current_location(self) -> Location | None:
        if self.current_lat is None or self.current_lng is None:
            return None
        return Location(self.current_lat, self.current_lng)


class ActiveRideModel(Base):
    __tablename__ = "active_rides"

    user_id = Column(String(64), ForeignKey("users.id"), primary_key=True)
    role = Column(Enum(UserRole, name="user_role"), primary_key=True)
    ride_id = Column(String(64), ForeignKey("rides.id"), nullable=False)

    __table_args__ = (Index("idx_active_rides_ride", "ride_id"),)
