"""
Domain value objects and business rules.

Patterns used
-------------
- **State Pattern**: ``check_transition`` enforces valid ride lifecycle
  transitions (waiting -> accepted -> in_progress -> completed, or
  -> cancelled).
- ``apply_rating`` encapsulates the running-average / reputation update
  a party receives when the other side rates a ride.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .enums import RIDE_TRANSITIONS, RideStatus
from .errors import Conflict

MAX_REPUTATION = 100
REPUTATION_STEP = 2


def now_ms() -> int:
    return int(time.time() * 1000)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    address: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"lat": self.lat, "lng": self.lng}
        if self.address is not None:
            data["address"] = self.address
        return data


@dataclass(frozen=True)
class LocationSample:
    """One position report for a ride.  Only the latest is ever kept."""

    lat: float
    lng: float
    timestamp: int = field(default_factory=now_ms)
    speed: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "lat": self.lat,
            "lng": self.lng,
            "timestamp": self.timestamp,
        }
        if self.speed is not None:
            data["speed"] = self.speed
        return data


@dataclass(frozen=True)
class AvailableRide:
    ride_id: str
    pickup: Location
    dropoff: Location
    fare: float
    customer_rating: float
    customer_name: str
    distance: float


# ── Rules ─────────────────────────────────────────────────────────────


def check_transition(current: RideStatus, new_status: RideStatus) -> None:
    """Raise ``Conflict`` unless *current* -> *new_status* is legal."""
    allowed = RIDE_TRANSITIONS.get(RideStatus(current), set())
    if new_status not in allowed:
        raise Conflict(f"Cannot transition from {current.value} to {new_status.value}")


class Rated(Protocol):
    avg_rating: float
    completed_rides: int
    reputation: int


def running_average(avg: float, count: int, rating: float) -> float:
    """Fold *rating* into an average over *count* ratings, one decimal."""
    value = (avg * count + rating) / (count + 1)
    return math.floor(value * 10 + 0.5) / 10


def apply_rating(user: Rated, rating: float) -> None:
    user.avg_rating = running_average(user.avg_rating, user.completed_rides, rating)
    user.completed_rides += 1
    user.reputation = min(MAX_REPUTATION, user.reputation + REPUTATION_STEP)
