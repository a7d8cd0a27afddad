"""
Admin / observability endpoints
===============================

GET /api/admin/subscriptions -- live watchers per ride
GET /api/admin/health        -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from ridehail.api.dependencies import get_services
from ridehail.api.middleware import limiter
from ridehail.api.schemas import HealthResponse
from ridehail.config import settings
from ridehail.services.container import RideServices

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/subscriptions",
    response_model=dict[str, int],
    summary="Number of live connections watching each ride",
)
@limiter.limit(settings.rate_limit)
async def subscriptions(
    request: Request,
    services: RideServices = Depends(get_services),
):
    return services.registry.stats()


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
