"""Public routes: health check and the clock source."""

from fastapi import APIRouter, Response

from rentlane.domain.settlement import to_audit_instant
from rentlane.infra.time import epoch_ms, utc_now

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/now")
def now(response: Response) -> dict:
    """Current UTC time of this server.

    Clients and ``ServerClock`` instances use this instead of their own
    clocks for anything settlement related.
    """
    response.headers["Cache-Control"] = "no-store"
    current = utc_now()
    return {"iso": to_audit_instant(current), "timestamp": epoch_ms(current)}
