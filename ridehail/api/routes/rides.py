"""
Ride endpoints
==============

POST /api/rides/request                  -- customer requests a ride
GET  /api/rides/available                -- waiting rides, for drivers
GET  /api/rides/active/{user_id}         -- the user's current ride (404 if none)
GET  /api/rides/history/{user_id}        -- last 10 finished rides
GET  /api/rides/{ride_id}                -- ride with customer / driver info
POST /api/rides/{ride_id}/accept         -- driver takes a waiting ride
POST /api/rides/{ride_id}/start          -- assigned driver picks up
POST /api/rides/{ride_id}/complete       -- finish and / or rate
POST /api/rides/{ride_id}/cancel         -- customer or driver cancels
POST /api/rides/{ride_id}/confirm-delivery -- driver completes at the dropoff

Guard violations come back as ``{"message": ...}`` with 400 / 403 / 404.
"""

from fastapi import APIRouter, Depends, Request

from ridehail.api.dependencies import get_services
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    AvailableRideResponse,
    ConfirmDeliveryRequest,
    ErrorResponse,
    RideAcceptRequest,
    RideCancelRequest,
    RideCompleteRequest,
    RideCreateRequest,
    RideDetailsResponse,
    RideResponse,
    RideStartRequest,
)
from ridehail.config import settings
from ridehail.services.container import RideServices

router = APIRouter(prefix="/rides", tags=["rides"])

GUARD_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request or ride state"},
    403: {"model": ErrorResponse, "description": "Not authorized for this ride"},
    404: {"model": ErrorResponse, "description": "Ride or user not found"},
}


@router.post(
    "/request",
    response_model=RideResponse,
    summary="Request a ride",
    responses=GUARD_RESPONSES,
)
@limiter.limit(settings.rate_limit)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    services: RideServices = Depends(get_services),
):
    ride = await services.lifecycle.request_ride(
        customer_id=body.customer_id,
        pickup=body.pickup.to_domain(),
        dropoff=body.dropoff.to_domain(),
        estimated_fare=body.estimated_fare,
        staked_amount=body.staked_amount,
    )
    return RideResponse.from_model(ride)


@router.get(
    "/available",
    response_model=list[AvailableRideResponse],
    summary="List rides waiting for a driver",
)
@limiter.limit(settings.rate_limit)
async def available_rides(
    request: Request,
    services: RideServices = Depends(get_services),
):
    rides = await services.queries.available_rides()
    return [AvailableRideResponse.from_domain(r) for r in rides]


@router.get(
    "/active/{user_id}",
    response_model=RideDetailsResponse,
    summary="Get the user's active ride",
    responses={404: {"model": ErrorResponse, "description": "No active ride"}},
)
@limiter.limit(settings.rate_limit)
async def active_ride(
    request: Request,
    user_id: str,
    services: RideServices = Depends(get_services),
):
    d = await services.queries.active_ride(user_id)
    return RideDetailsResponse.from_parts(d.ride, d.customer, d.driver)


@router.get(
    "/history/{user_id}",
    response_model=list[RideResponse],
    summary="Most recent completed / cancelled rides",
)
@limiter.limit(settings.rate_limit)
async def ride_history(
    request: Request,
    user_id: str,
    services: RideServices = Depends(get_services),
):
    rides = await services.queries.history(user_id)
    return [RideResponse.from_model(r) for r in rides]


@router.get(
    "/{ride_id}",
    response_model=RideDetailsResponse,
    summary="Get a ride with customer and driver details",
    responses={404: {"model": ErrorResponse, "description": "Ride not found"}},
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: str,
    services: RideServices = Depends(get_services),
):
    d = await services.queries.ride_details(ride_id)
    return RideDetailsResponse.from_parts(d.ride, d.customer, d.driver)


@router.post(
    "/{ride_id}/accept",
    response_model=RideResponse,
    summary="Accept a waiting ride",
    responses=GUARD_RESPONSES,
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: str,
    body: RideAcceptRequest,
    services: RideServices = Depends(get_services),
):
    ride = await services.lifecycle.accept(ride_id, body.driver_id)
    return RideResponse.from_model(ride)


@router.post(
    "/{ride_id}/start",
    response_model=RideResponse,
    summary="Start an accepted ride",
    responses=GUARD_RESPONSES,
)
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: str,
    body: RideStartRequest,
    services: RideServices = Depends(get_services),
):
    ride = await services.lifecycle.start(ride_id, body.driver_id)
    return RideResponse.from_model(ride)


@router.post(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete a ride and / or submit a rating",
    description=(
        "Transitions an in-progress ride to completed (once). A rating "
        "updates the other party's average; it may arrive with the "
        "completing call or later."
    ),
    responses=GUARD_RESPONSES,
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: str,
    body: RideCompleteRequest,
    services: RideServices = Depends(get_services),
):
    ride = await services.lifecycle.complete(
        ride_id, body.completed_by, rating=body.rating, feedback=body.feedback
    )
    return RideResponse.from_model(ride)


@router.post(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a waiting or accepted ride",
    responses=GUARD_RESPONSES,
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: str,
    body: RideCancelRequest,
    services: RideServices = Depends(get_services),
):
    ride = await services.lifecycle.cancel(ride_id, body.user_id)
    return RideResponse.from_model(ride)


@router.post(
    "/{ride_id}/confirm-delivery",
    response_model=RideResponse,
    summary="Complete the ride once the customer is at the dropoff",
    responses={
        **GUARD_RESPONSES,
        503: {"model": ErrorResponse, "description": "Payment service unavailable"},
    },
)
@limiter.limit(settings.rate_limit)
async def confirm_delivery(
    request: Request,
    ride_id: str,
    body: ConfirmDeliveryRequest,
    services: RideServices = Depends(get_services),
):
    ride = await services.lifecycle.confirm_delivery(
        ride_id, body.driver_id, body.customer_lat, body.customer_lng
    )
    return RideResponse.from_model(ride)
