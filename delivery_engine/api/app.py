"""
FastAPI application factory.

* Registers routes for deliveries, drivers and admin.
* Maps the engine's typed errors onto HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from delivery_engine.api.middleware import limiter
from delivery_engine.api.routes import admin, deliveries, drivers
from delivery_engine.domain.errors import (
    ConflictError,
    DeliveryEngineError,
    InvalidTransitionError,
    NotFoundError,
    OutcomeUnknownError,
    ValidationError,
)
from delivery_engine.config import settings
from delivery_engine.infrastructure.database import engine
from delivery_engine.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[DeliveryEngineError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    InvalidTransitionError: 409,
    OutcomeUnknownError: 504,
}


async def engine_error_handler(request: Request, exc: DeliveryEngineError):
    status_code = next(
        (code for cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, cls)),
        400,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # The rejected input is not echoed back: NaN / Infinity cannot be rendered
    # as strict JSON.
    errors = [
        {key: value for key, value in error.items() if key not in ("input", "ctx")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release pooled DB and Redis connections on shutdown."""
    logger.info("Delivery engine API starting")
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Delivery engine API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Delivery Matching & Lifecycle API",
        description=(
            "Prices delivery requests, ranks nearby drivers and moves each "
            "request through its lifecycle with race-free driver assignment."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Engine errors
    app.add_exception_handler(DeliveryEngineError, engine_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Routers
    app.include_router(deliveries.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
