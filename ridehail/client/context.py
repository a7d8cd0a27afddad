"""
Client Ride Context
===================

The signed-in user's view of the world: their active ride, the rides a
driver could take, their history and the last position heard over the
live channel.  Lifecycle commands go over REST; position and status
updates arrive over one ``LiveConnection``.

Live messages handled
---------------------
* ``location_update`` -- replaces ``current_location``
* ``ride_status``     -- shallow-merged into ``active_ride``; fields the
  message does not carry are kept

Frames that do not parse are logged and dropped; they never reach the
connection's reader.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import websockets
from pydantic import ValidationError

from ridehail.realtime.messages import LiveMessage, LocationUpdatePayload, MessageType

from .api import RideApiClient
from .live import DEFAULT_RECONNECT_DELAY, ChannelState, LiveConnection

logger = logging.getLogger(__name__)

TERMINAL = {"completed", "cancelled"}


class NoActiveRide(RuntimeError):
    """A ride command was issued with no ride in view."""


class RideContext:
    def __init__(
        self,
        api: RideApiClient,
        live_url: str,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connector: Callable[[str], Any] = websockets.connect,
    ):
        self.api = api
        self.user: Optional[dict[str, Any]] = None
        self.token: Optional[str] = None
        self.active_ride: Optional[dict[str, Any]] = None
        self.available_rides: list[dict[str, Any]] = []
        self.ride_history: list[dict[str, Any]] = []
        self.current_location: Optional[dict[str, float]] = None
        self.channel = LiveConnection(
            live_url,
            self.handle_message,
            reconnect_delay=reconnect_delay,
            connector=connector,
        )

    # ── Session ───────────────────────────────────────────────────────

    async def sign_in(self, wallet_address: str, role: str) -> dict[str, Any]:
        result = await self.api.connect(wallet_address, role)
        self.user, self.token = result["user"], result["token"]
        self.channel.open()
        await self.refresh_active_ride()
        await self.refresh_history()
        return self.user

    async def close(self) -> None:
        await self.channel.close()

    @property
    def connected(self) -> bool:
        return self.channel.state is ChannelState.CONNECTED

    # ── Live channel ──────────────────────────────────────────────────

    def handle_message(self, raw: str) -> None:
        try:
            message = LiveMessage.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping unreadable live message: %r", raw[:200])
            return
        if not message.data:
            return

        if message.type is MessageType.LOCATION_UPDATE:
            try:
                update = LocationUpdatePayload.model_validate(message.data)
            except ValidationError:
                logger.warning("Dropping malformed location update: %r", message.data)
                return
            self.current_location = {"lat": update.lat, "lng": update.lng}
        elif message.type is MessageType.RIDE_STATUS and self.active_ride is not None:
            if not isinstance(message.data, dict):
                logger.warning("Dropping malformed ride status: %r", message.data)
                return
            self.active_ride = {**self.active_ride, **message.data}

    async def subscribe_to_ride(self, ride_id: str) -> bool:
        return await self.channel.send({"type": "subscribe", "rideId": ride_id})

    async def unsubscribe_from_ride(self) -> bool:
        return await self.channel.send({"type": "unsubscribe"})

    async def send_location_update(
        self,
        lat: float,
        lng: float,
        timestamp: Optional[int] = None,
        speed: Optional[float] = None,
    ) -> bool:
        """Report this device's position for the active ride, if there is one."""
        if self.active_ride is None:
            return False
        data: dict[str, Any] = {"lat": lat, "lng": lng}
        if timestamp is not None:
            data["timestamp"] = timestamp
        if speed is not None:
            data["speed"] = speed
        return await self.channel.send({
            "type": "location_update",
            "rideId": self.active_ride["id"],
            "data": data,
        })

    # ── Refresh ───────────────────────────────────────────────────────

    async def refresh_active_ride(self) -> Optional[dict[str, Any]]:
        if self.user is None:
            return None
        self.active_ride = await self.api.get_active_ride(self.user["id"])
        if self.active_ride is not None:
            await self.subscribe_to_ride(self.active_ride["id"])
        return self.active_ride

    async def refresh_available_rides(self) -> list[dict[str, Any]]:
        if self.user is None:
            return []
        self.available_rides = await self.api.get_available_rides()
        return self.available_rides

    async def refresh_history(self) -> list[dict[str, Any]]:
        if self.user is None:
            return []
        self.ride_history = await self.api.get_ride_history(self.user["id"])
        return self.ride_history

    # ── Commands ──────────────────────────────────────────────────────

    async def request_ride(
        self,
        pickup: dict[str, Any],
        dropoff: dict[str, Any],
        estimated_fare: float,
        staked_amount: float,
    ) -> dict[str, Any]:
        ride = await self.api.request_ride(
            pickup, dropoff, estimated_fare, staked_amount, self._user_id()
        )
        await self._adopt(ride)
        return ride

    async def accept_ride(self, ride_id: str) -> dict[str, Any]:
        ride = await self.api.accept_ride(ride_id, self._user_id())
        self.available_rides = [
            r for r in self.available_rides if r.get("rideId") != ride_id
        ]
        await self._adopt(ride)
        return ride

    async def start_ride(self) -> dict[str, Any]:
        ride = await self.api.start_ride(self._active_id(), self._user_id())
        self.active_ride = {**(self.active_ride or {}), **ride}
        return ride

    async def complete_ride(
        self,
        rating: Optional[float] = None,
        feedback: Optional[str] = None,
        ride_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Complete the active ride, or rate *ride_id* after the fact."""
        ride = await self.api.complete_ride(
            ride_id or self._active_id(), self.user["role"] if self.user else "",
            rating=rating, feedback=feedback,
        )
        await self._settle(ride)
        return ride

    async def cancel_ride(self) -> dict[str, Any]:
        ride = await self.api.cancel_ride(self._active_id(), self._user_id())
        await self._settle(ride)
        return ride

    # ── Internals ─────────────────────────────────────────────────────

    def _user_id(self) -> str:
        if self.user is None:
            raise RuntimeError("Not signed in")
        return self.user["id"]

    def _active_id(self) -> str:
        if self.active_ride is None:
            raise NoActiveRide("No active ride")
        return self.active_ride["id"]

    async def _adopt(self, ride: dict[str, Any]) -> None:
        self.active_ride = ride
        await self.subscribe_to_ride(ride["id"])

    async def _settle(self, ride: dict[str, Any]) -> None:
        """Drop a finished ride from view and pull it into history."""
        if ride.get("status") not in TERMINAL:
            self.active_ride = ride
            return
        if self.active_ride is not None and self.active_ride.get("id") == ride["id"]:
            self.active_ride = None
            self.current_location = None
            await self.unsubscribe_from_ride()
        await self.refresh_history()
