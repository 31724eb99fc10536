"""Availability endpoints.

Provides:
- POST /availability: segments for a window and bookings supplied by the caller
  (optionally with an overlap check of a requested stay)
- GET /properties/{property_id}/availability: same, loaded from the booking store

``today`` always comes from the server clock in the platform timezone.
Malformed dates produce empty results ("no availability") rather than errors.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field

from rentlane.api.deps import get_app_settings, get_booking_store, get_server_clock
from rentlane.domain.availability import (
    available_segments_or_empty,
    checkout_options,
    is_range_booked,
)
from rentlane.domain.dates import CalendarDate, DateRange, HasDateBounds, InvalidDate, to_calendar_date
from rentlane.infra.repositories.bookings_repository import BookingStore
from rentlane.infra.server_clock import ClockUnavailable, ServerClock
from rentlane.infra.settings import Settings
from rentlane.observability.logging import get_logger

from .settlement import CLOCK_UNAVAILABLE_DETAIL

router = APIRouter(tags=["availability"])

logger = get_logger(__name__)


# ── Request schemas ──────────────────────────────────────


class DateRangeBody(BaseModel):
    start: str
    end: str


class BookedRangeBody(DateRangeBody):
    model_config = ConfigDict(populate_by_name=True)

    reservation_id: str | None = Field(None, alias="reservationId")


class AvailabilityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    window: DateRangeBody
    booked: list[BookedRangeBody] = Field(default_factory=list)
    minimum_stay_days: int | None = Field(None, alias="minimumStayDays", ge=0)
    check_in: str | None = Field(None, alias="checkIn")
    requested: DateRangeBody | None = None


# ── Helpers ──────────────────────────────────────────────


def _server_today(clock: ServerClock, settings: Settings) -> CalendarDate:
    try:
        return to_calendar_date(clock.now(), settings.tz)
    except ClockUnavailable:
        raise HTTPException(status_code=503, detail=CLOCK_UNAVAILABLE_DETAIL)


def _availability_payload(
    window: HasDateBounds,
    booked: list[HasDateBounds],
    today: CalendarDate,
    minimum_stay_days: int,
    check_in: str | None,
    settings: Settings,
) -> dict:
    available = available_segments_or_empty(window, booked, today, tz=settings.tz)
    bookable = available_segments_or_empty(
        window, booked, today, minimum_stay_days, tz=settings.tz
    )
    payload: dict = {
        "today": today,
        "minimumStayDays": minimum_stay_days,
        "availableSegments": [s.to_dict() for s in available],
        "bookableSegments": [s.to_dict() for s in bookable],
        "hasBookablePeriod": bool(bookable),
    }
    if check_in is not None:
        try:
            payload["checkoutOptions"] = checkout_options(check_in, bookable)
        except InvalidDate:
            payload["checkoutOptions"] = []
    return payload


# ── Endpoints ────────────────────────────────────────────


@router.post("/availability")
def compute_availability(
    body: AvailabilityRequest,
    settings: Settings = Depends(get_app_settings),
    clock: ServerClock = Depends(get_server_clock),
) -> dict:
    """Available and bookable segments of a caller-supplied window."""
    today = _server_today(clock, settings)
    minimum_stay = (
        body.minimum_stay_days
        if body.minimum_stay_days is not None
        else settings.min_stay_days
    )
    payload = _availability_payload(
        body.window, list(body.booked), today, minimum_stay, body.check_in, settings
    )
    if body.requested is not None:
        try:
            payload["requestedRangeBooked"] = is_range_booked(
                body.requested, body.booked, tz=settings.tz
            )
        except InvalidDate:
            # unreadable dates mean no availability, so the stay cannot be taken
            payload["requestedRangeBooked"] = True
    return payload


@router.get("/properties/{property_id}/availability")
def get_property_availability(
    property_id: str = Path(..., description="Property ID"),
    minimum_stay_days: int | None = Query(None, alias="minimumStayDays", ge=0),
    check_in: str | None = Query(None, alias="checkIn"),
    settings: Settings = Depends(get_app_settings),
    clock: ServerClock = Depends(get_server_clock),
    store: BookingStore = Depends(get_booking_store),
) -> dict:
    """Availability of a listing from its stored window and active bookings."""
    today = _server_today(clock, settings)

    try:
        window = store.get_rental_window(property_id)
        booked = store.list_booked_ranges(property_id) if window is not None else []
    except InvalidDate as exc:
        logger.warning(
            "stored booking data has malformed dates",
            extra={"extra_fields": {"property_id": property_id, "value": repr(exc.value)}},
        )
        window, booked = DateRange(today, today), []
    except Exception as exc:
        logger.error(
            "booking store query failed",
            extra={"extra_fields": {"property_id": property_id, "error": str(exc)}},
        )
        raise HTTPException(status_code=500, detail="Failed to load availability data")

    if window is None:
        raise HTTPException(status_code=404, detail="Property not found")

    minimum_stay = minimum_stay_days if minimum_stay_days is not None else settings.min_stay_days
    payload = _availability_payload(window, list(booked), today, minimum_stay, check_in, settings)
    payload["propertyId"] = property_id
    return payload
