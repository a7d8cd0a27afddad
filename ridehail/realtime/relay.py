"""Location Relay: latest-known position per ride, fanned out to watchers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .messages import location_message
from .registry import Connection, SubscriptionRegistry
from ridehail.domain.entities import LocationSample
from ridehail.infrastructure.database import RideStore
from ridehail.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)


class LocationRelay:
    def __init__(self, store: RideStore, registry: SubscriptionRegistry):
        self.store = store
        self.registry = registry
        self._latest: dict[str, LocationSample] = {}

    def latest(self, ride_id: str) -> Optional[LocationSample]:
        return self._latest.get(ride_id)

    def snapshot(self, ride_id: str) -> Optional[dict[str, Any]]:
        """Message a new subscriber gets, or None if nothing is known yet."""
        sample = self._latest.get(ride_id)
        return location_message(ride_id, sample) if sample else None

    def remember(self, ride_id: str, sample: LocationSample) -> None:
        self._latest[ride_id] = sample

    def clear(self, ride_id: str) -> None:
        self._latest.pop(ride_id, None)

    async def ingest(
        self,
        ride_id: str,
        sample: LocationSample,
        origin: Optional[Connection] = None,
    ) -> int:
        """Store *sample* as the ride's position and push it to watchers.

        Samples for unknown or finished rides are dropped.  No plausibility
        check is made on the coordinates.
        """
        async with self.store.lock:
            async with self.store.session() as session:
                tracked = await RideRepository(session).set_current_location(
                    ride_id, sample.lat, sample.lng
                )
            if not tracked:
                logger.debug("Dropping location for unknown or finished ride %s", ride_id)
                return 0
            self._latest[ride_id] = sample
            return self.registry.broadcast(
                ride_id, location_message(ride_id, sample), exclude=origin
            )
