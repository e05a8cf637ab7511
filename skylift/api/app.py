"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import APIRouter

from skylift.config.settings import Settings, get_settings
from skylift.shared.errors import (
    BookingNotFound,
    InvalidTransition,
    NotAuthenticated,
    PersistenceError,
    SkyliftError,
    ValidationError,
)

_ERROR_STATUS: dict[type[SkyliftError], tuple[int, str]] = {
    ValidationError: (422, "validation_error"),
    NotAuthenticated: (401, "not_authenticated"),
    BookingNotFound: (404, "booking_not_found"),
    InvalidTransition: (409, "invalid_transition"),
    PersistenceError: (503, "persistence_error"),
}


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    Releases every running trip simulator on shutdown and closes the
    database pool when Postgres is in use.

    Args:
        app: FastAPI application instance.

    Yields:
        Control to the running application.
    """
    yield
    await app.state.orchestrator.shutdown()
    if app.state.settings.store_backend == "postgres":
        from skylift.db.session import dispose_engine

        await dispose_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (tests).

    Returns:
        Configured FastAPI instance.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="SkyLift",
        description="Air-taxi booking with live trip tracking",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _wire_services(app, settings)
    app.add_exception_handler(SkyliftError, _handle_domain_error)

    app.include_router(_health_router())

    from skylift.api.bookings import router as bookings_router
    from skylift.api.bookings import ws_router

    app.include_router(bookings_router)
    app.include_router(ws_router)

    return app


def _wire_services(app: FastAPI, settings: Settings) -> None:
    """Build the booking store, skyport catalog and orchestrator.

    Args:
        app: FastAPI application instance.
        settings: Application settings.

    Raises:
        ValueError: If store_backend is not memory or postgres.
    """
    from skylift.api.bookings import broadcast_arrival, broadcast_tick
    from skylift.pricing.engine import get_profile
    from skylift.services.booking_orchestrator import BookingOrchestrator, local_clock
    from skylift.simulation.trip_simulator import SimulatorConfig

    if settings.store_backend == "memory":
        from skylift.db.memory import InMemoryBookingStore
        from skylift.db.skyports import StaticSkyportCatalog

        store = InMemoryBookingStore()
        app.state.skyports = StaticSkyportCatalog()
    elif settings.store_backend == "postgres":
        from skylift.db.postgres import PostgresBookingStore
        from skylift.db.skyports import PostgresSkyportCatalog

        store = PostgresBookingStore()
        app.state.skyports = PostgresSkyportCatalog()
    else:
        raise ValueError(
            f"Unknown store_backend '{settings.store_backend}'. Must be memory or postgres"
        )

    app.state.orchestrator = BookingOrchestrator(
        store,
        clock=local_clock(settings.surge_timezone),
        profile=get_profile(settings.pricing_profile),
        simulator_config=SimulatorConfig.from_settings(settings),
        on_tick=broadcast_tick,
        on_arrival=broadcast_arrival,
    )


async def _handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    """Map a SkyliftError to an HTTP error response.

    Args:
        request: Incoming request.
        exc: Raised domain error.

    Returns:
        JSON body with error code and message.
    """
    status_code, code = 500, "internal_error"
    for error_type, mapping in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code, code = mapping
            break
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "detail": str(exc)},
    )


def _health_router() -> APIRouter:
    """Create health check router.

    Returns:
        Router with health endpoints.
    """
    from fastapi import APIRouter

    router = APIRouter(tags=["health"])

    @router.get("/health")
    async def health() -> dict[str, str]:
        """Return application health status.

        Returns:
            Dict with status key.
        """
        return {"status": "ok"}

    return router


app = create_app()
