"""Live-channel wire format: ``{type, rideId?, data?}`` JSON text frames."""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ridehail.domain.entities import LocationSample, now_ms


class MessageType(str, enum.Enum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    LOCATION_UPDATE = "location_update"
    RIDE_STATUS = "ride_status"


class LiveMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: MessageType
    ride_id: Optional[str] = None
    data: Optional[Any] = None


class LocationUpdatePayload(BaseModel):
    lat: float
    lng: float
    timestamp: int = Field(default_factory=now_ms)
    speed: Optional[float] = None

    def to_sample(self) -> LocationSample:
        return LocationSample(
            lat=self.lat, lng=self.lng, timestamp=self.timestamp, speed=self.speed
        )


def location_message(ride_id: str, sample: LocationSample) -> dict[str, Any]:
    return {
        "type": MessageType.LOCATION_UPDATE.value,
        "rideId": ride_id,
        "data": sample.to_dict(),
    }


def status_message(ride_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": MessageType.RIDE_STATUS.value,
        "rideId": ride_id,
        "data": data,
    }
