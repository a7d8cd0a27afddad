"""
FastAPI application factory.

* Builds the process-wide services (entity store, subscription registry,
  location relay, lifecycle engine) and opens / closes them via lifespan
  events.
* Registers the REST routers under ``/api`` and the live channel at ``/ws``.
* Maps domain errors to ``{"message": ...}`` responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridehail.api.middleware import limiter
from ridehail.api.routes import admin, auth, live, rides
from ridehail.config import Settings, settings as default_settings
from ridehail.domain.errors import (
    Conflict,
    Forbidden,
    NotFound,
    RideError,
    ServiceUnavailable,
)
from ridehail.services.container import build_services

logging.basicConfig(level=default_settings.log_level)

ERROR_STATUS: dict[type[RideError], int] = {
    NotFound: 404,
    Conflict: 400,
    Forbidden: 403,
    ServiceUnavailable: 503,
}


async def _ride_error_handler(request: Request, exc: RideError) -> JSONResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    return JSONResponse(status_code=status, content={"message": exc.message})


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the entity store on startup; close it on shutdown."""
        services = build_services(settings)
        await services.start()
        app.state.services = services
        yield
        await services.stop()

    app = FastAPI(
        title="Ride Hailing Live API",
        description=(
            "Matches customers with drivers, walks each ride through its "
            "lifecycle and streams live driver location and status "
            "updates to everyone watching the ride."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Errors
    app.add_exception_handler(RideError, _ride_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Routers
    app.include_router(auth.router, prefix="/api")
    app.include_router(rides.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")
    app.include_router(live.router)

    return app
