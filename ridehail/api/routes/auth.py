"""
Account endpoints
=================

POST /api/auth/connect            -- mock wallet sign-in, creates the user once
GET  /api/user/{user_id}/profile  -- user record
"""

from fastapi import APIRouter, Depends, Request

from ridehail.api.dependencies import get_services
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    AuthConnectRequest,
    AuthConnectResponse,
    ErrorResponse,
    UserResponse,
)
from ridehail.config import settings
from ridehail.services.container import RideServices

router = APIRouter(tags=["auth"])


@router.post(
    "/auth/connect",
    response_model=AuthConnectResponse,
    summary="Connect a wallet",
)
@limiter.limit(settings.rate_limit)
async def connect(
    request: Request,
    body: AuthConnectRequest,
    services: RideServices = Depends(get_services),
):
    token, user = await services.accounts.connect(body.wallet_address, body.role)
    return AuthConnectResponse(token=token, user=UserResponse.from_model(user))


@router.get(
    "/user/{user_id}/profile",
    response_model=UserResponse,
    summary="Get a user profile",
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
@limiter.limit(settings.rate_limit)
async def profile(
    request: Request,
    user_id: str,
    services: RideServices = Depends(get_services),
):
    return UserResponse.from_model(await services.accounts.profile(user_id))
