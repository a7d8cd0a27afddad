"""Wires the process-wide services together; one instance per app."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from ridehail.config import Settings
from ridehail.domain.payments import PaymentGateway, gateway_for
from ridehail.infrastructure.database import RideStore
from ridehail.infrastructure.seed import seed_demo_data
from ridehail.realtime.registry import SubscriptionRegistry
from ridehail.realtime.relay import LocationRelay
from ridehail.services.accounts import AccountService
from ridehail.services.lifecycle import RideLifecycleEngine
from ridehail.services.queries import RideQueries

logger = logging.getLogger(__name__)


@dataclass
class RideServices:
    settings: Settings
    store: RideStore
    registry: SubscriptionRegistry
    relay: LocationRelay
    lifecycle: RideLifecycleEngine
    accounts: AccountService
    queries: RideQueries

    async def start(self) -> None:
        await self.store.open()
        if self.settings.seed_demo_data:
            await seed_demo_data(self.store)

    async def stop(self) -> None:
        await self.registry.close()
        await self.store.close()
        logger.info("Entity store closed")


def build_services(
    settings: Settings,
    *,
    payments: Optional[PaymentGateway] = None,
    rng: Optional[random.Random] = None,
) -> RideServices:
    store = RideStore(settings.database_url, echo=settings.database_echo)
    registry = SubscriptionRegistry()
    relay = LocationRelay(store, registry)
    payments = payments or gateway_for(
        settings.payment_backend, settings.payment_latency_seconds
    )
    rng = rng or random.Random()
    return RideServices(
        settings=settings,
        store=store,
        registry=registry,
        relay=relay,
        lifecycle=RideLifecycleEngine(
            store,
            registry,
            relay,
            payments,
            rng=rng,
            location_jitter=settings.initial_location_jitter,
            geofence_km=settings.delivery_geofence_km,
        ),
        accounts=AccountService(store, rng=rng),
        queries=RideQueries(store),
    )
