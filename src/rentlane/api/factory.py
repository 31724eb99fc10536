"""FastAPI application factory.

Collaborators (clock, audit log, booking store) are built from settings unless
injected, and exposed to routes through ``app.state``.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, Response

from rentlane.domain.audit import SettlementAuditLog, build_audit_store
from rentlane.infra.repositories.bookings_repository import BookingStore, PostgresBookingStore
from rentlane.infra.server_clock import ServerClock
from rentlane.infra.settings import Settings, get_settings
from rentlane.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import availability, settlement


def create_app(
    settings: Settings | None = None,
    *,
    clock: ServerClock | None = None,
    audit_log: SettlementAuditLog | None = None,
    booking_store: BookingStore | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Explicit settings. If None, read from the environment.
        clock: Server clock override (tests inject one with a fake fetch).
        audit_log: Audit log override.
        booking_store: Booking record store override.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Rentlane",
        docs_url=None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.clock = clock or ServerClock(
        settings.clock_url,
        ttl_seconds=settings.clock_cache_ttl_seconds,
        timeout_seconds=settings.clock_timeout_seconds,
    )
    app.state.audit_log = audit_log or SettlementAuditLog(build_audit_store(settings))
    app.state.booking_store = booking_store or PostgresBookingStore()

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(settlement.router)
    app.include_router(availability.router)

    return app
