"""Shared test helper functions for Rentlane tests.

Regular functions and small fakes (not fixtures), importable from both
conftest.py and individual test modules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import requests

from rentlane.domain.availability import BookedRange
from rentlane.domain.dates import DateRange
from rentlane.infra.server_clock import ServerClock
from rentlane.infra.time import epoch_ms

VN = ZoneInfo("Asia/Ho_Chi_Minh")

CLOCK_URL = "http://clock.test/now"


def vn(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware datetime in platform time (UTC+07:00)."""
    return datetime(year, month, day, hour, minute, tzinfo=VN)


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeClockSource:
    """Stand-in for the clock endpoint.

    Returns ``{"timestamp": ...}`` for the configured instant, or raises
    ``error`` when set. Records each fetch.
    """

    def __init__(self, instant: datetime | None = None) -> None:
        self.instant = instant
        self.payload: Any = None
        self.error: Exception | None = None
        self.calls: list[tuple[str, float]] = []

    def set_instant(self, instant: datetime) -> None:
        self.instant = instant
        self.payload = None

    def fail_with(self, error: Exception | None = None) -> None:
        self.error = error or requests.ConnectionError("clock unreachable")

    def __call__(self, url: str, timeout: float) -> Any:
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        if self.payload is not None:
            return self.payload
        assert self.instant is not None
        return {"iso": self.instant.isoformat(), "timestamp": epoch_ms(self.instant)}


def make_clock(
    source: FakeClockSource,
    *,
    ttl_seconds: float = 60.0,
    monotonic: FakeMonotonic | None = None,
) -> ServerClock:
    return ServerClock(
        CLOCK_URL,
        ttl_seconds=ttl_seconds,
        timeout_seconds=2.0,
        fetch=source,
        monotonic=monotonic or FakeMonotonic(),
    )


class FakeBookingStore:
    """In-memory booking record store keyed by property id."""

    def __init__(self) -> None:
        self.windows: dict[str, DateRange] = {}
        self.booked: dict[str, list[BookedRange]] = {}
        self.error: Exception | None = None

    def add_property(self, property_id: str, start: str, end: str) -> None:
        self.windows[property_id] = DateRange(start, end)
        self.booked.setdefault(property_id, [])

    def add_booking(self, property_id: str, start: str, end: str, reservation_id: str) -> None:
        self.booked.setdefault(property_id, []).append(BookedRange(start, end, reservation_id))

    def get_rental_window(self, property_id: str) -> DateRange | None:
        if self.error is not None:
            raise self.error
        return self.windows.get(property_id)

    def list_booked_ranges(self, property_id: str) -> list[BookedRange]:
        if self.error is not None:
            raise self.error
        return list(self.booked.get(property_id, []))
