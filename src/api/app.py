"""
FastAPI application factory.

* Registers routes for checkout, geocoding and admin.
* Opens / closes the storefront API client and Redis pool via lifespan events.
* Maps checkout-flow exceptions to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, checkout, geocode
from src.infrastructure.locks import LockHeld
from src.infrastructure.redis_client import close_redis
from src.infrastructure.storefront_client import StorefrontClient, UpstreamError
from src.services.checkout import (
    PlacementInProgress,
    QuoteRequired,
    SessionNotFound,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the upstream client on startup; close connections on shutdown."""
    app.state.storefront = StorefrontClient()
    yield
    await app.state.storefront.aclose()
    await close_redis()


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


async def _session_not_found(request: Request, exc: SessionNotFound):
    return _error(404, "Checkout session not found or expired")


async def _quote_required(request: Request, exc: QuoteRequired):
    return _error(409, "Please save your delivery address")


async def _placement_conflict(request: Request, exc: Exception):
    return _error(409, "Order placement already in progress")


async def _upstream_error(request: Request, exc: UpstreamError):
    logger.warning("Upstream failure on %s: %s", request.url.path, exc)
    return _error(502, str(exc))


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Checkout API",
        description=(
            "Checkout backend for the storefront: pins delivery settings "
            "per session, picks the nearest store (or a two-store relay) "
            "and prices delivery by distance, then places the order."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Checkout flow errors
    app.add_exception_handler(SessionNotFound, _session_not_found)
    app.add_exception_handler(QuoteRequired, _quote_required)
    app.add_exception_handler(PlacementInProgress, _placement_conflict)
    app.add_exception_handler(LockHeld, _placement_conflict)
    app.add_exception_handler(UpstreamError, _upstream_error)

    # Routers
    app.include_router(checkout.router, prefix="/api/v1")
    app.include_router(geocode.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
