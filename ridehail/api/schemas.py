"""Pydantic request / response schemas for the REST API.

Fields are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ridehail.domain.entities import AvailableRide, Location
from ridehail.domain.enums import RideStatus, UserRole
from ridehail.infrastructure.models import RideModel, UserModel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Shared ────────────────────────────────────────────────────────────


class LocationSchema(CamelModel):
    lat: float
    lng: float
    address: Optional[str] = None

    def to_domain(self) -> Location:
        return Location(self.lat, self.lng, self.address)

    @classmethod
    def from_domain(cls, location: Optional[Location]) -> Optional["LocationSchema"]:
        if location is None:
            return None
        return cls(lat=location.lat, lng=location.lng, address=location.address)


# ── Requests ──────────────────────────────────────────────────────────


class AuthConnectRequest(CamelModel):
    wallet_address: str = Field(..., min_length=1)
    role: UserRole


class RideCreateRequest(CamelModel):
    pickup: LocationSchema
    dropoff: LocationSchema
    estimated_fare: float = Field(..., ge=0)
    staked_amount: float = Field(..., ge=0)
    customer_id: str


class RideAcceptRequest(CamelModel):
    driver_id: str


class RideStartRequest(CamelModel):
    driver_id: str


class RideCompleteRequest(CamelModel):
    completed_by: UserRole
    rating: Optional[float] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)


class RideCancelRequest(CamelModel):
    user_id: str


class ConfirmDeliveryRequest(CamelModel):
    driver_id: str
    customer_lat: float
    customer_lng: float


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(CamelModel):
    id: str
    wallet_address: str
    role: UserRole
    reputation: int
    completed_rides: int
    avg_rating: float
    balance: float
    name: Optional[str] = None

    @classmethod
    def from_model(cls, user: UserModel) -> "UserResponse":
        return cls(
            id=user.id,
            wallet_address=user.wallet_address,
            role=user.role,
            reputation=user.reputation,
            completed_rides=user.completed_rides,
            avg_rating=user.avg_rating,
            balance=user.balance,
            name=user.name,
        )


class AuthConnectResponse(CamelModel):
    token: str
    user: UserResponse


class RideResponse(CamelModel):
    id: str
    customer_id: str
    driver_id: Optional[str] = None
    pickup: LocationSchema
    dropoff: LocationSchema
    estimated_fare: float
    staked_amount: float
    actual_fare: Optional[float] = None
    status: RideStatus
    current_location: Optional[LocationSchema] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    customer_rating: Optional[float] = None
    driver_rating: Optional[float] = None
    customer_feedback: Optional[str] = None
    driver_feedback: Optional[str] = None
    stake_tx_hash: Optional[str] = None
    release_tx_hash: Optional[str] = None

    @classmethod
    def fields_from(cls, ride: RideModel) -> dict:
        return dict(
            id=ride.id,
            customer_id=ride.customer_id,
            driver_id=ride.driver_id,
            pickup=LocationSchema.from_domain(ride.pickup),
            dropoff=LocationSchema.from_domain(ride.dropoff),
            estimated_fare=ride.estimated_fare,
            staked_amount=ride.staked_amount,
            actual_fare=ride.actual_fare,
            status=ride.status,
            current_location=LocationSchema.from_domain(ride.current_location),
            created_at=_utc(ride.created_at),
            started_at=_utc(ride.started_at),
            completed_at=_utc(ride.completed_at),
            customer_rating=ride.customer_rating,
            driver_rating=ride.driver_rating,
            customer_feedback=ride.customer_feedback,
            driver_feedback=ride.driver_feedback,
            stake_tx_hash=ride.stake_tx_hash,
            release_tx_hash=ride.release_tx_hash,
        )

    @classmethod
    def from_model(cls, ride: RideModel) -> "RideResponse":
        return cls(**cls.fields_from(ride))


class CustomerSummary(CamelModel):
    name: str
    address: str
    rating: float


class DriverSummary(CustomerSummary):
    reputation: int


class RideDetailsResponse(RideResponse):
    customer: Optional[CustomerSummary] = None
    driver: Optional[DriverSummary] = None

    @classmethod
    def from_parts(
        cls,
        ride: RideModel,
        customer: Optional[UserModel] = None,
        driver: Optional[UserModel] = None,
    ) -> "RideDetailsResponse":
        return cls(
            **RideResponse.fields_from(ride),
            customer=CustomerSummary(
                name=customer.name or "Customer",
                address=customer.wallet_address,
                rating=customer.avg_rating,
            ) if customer else None,
            driver=DriverSummary(
                name=driver.name or "Driver",
                address=driver.wallet_address,
                rating=driver.avg_rating,
                reputation=driver.reputation,
            ) if driver else None,
        )


class AvailableRideResponse(CamelModel):
    ride_id: str
    pickup: LocationSchema
    dropoff: LocationSchema
    fare: float
    customer_rating: float
    customer_name: str
    distance: float

    @classmethod
    def from_domain(cls, item: AvailableRide) -> "AvailableRideResponse":
        return cls(
            ride_id=item.ride_id,
            pickup=LocationSchema.from_domain(item.pickup),
            dropoff=LocationSchema.from_domain(item.dropoff),
            fare=item.fare,
            customer_rating=item.customer_rating,
            customer_name=item.customer_name,
            distance=item.distance,
        )


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    message: str
