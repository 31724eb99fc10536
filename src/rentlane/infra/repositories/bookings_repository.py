"""Booking record store - read-only access to listings and reservations.

The marketplace owns these tables; this service never writes to them.
Cancelled reservations do not occupy a property.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from psycopg2.extensions import cursor as PgCursor

from rentlane.domain.availability import BookedRange
from rentlane.domain.dates import DateRange, to_calendar_date
from rentlane.infra.db import fetchall, fetchone, txn

INACTIVE_BOOKING_STATUSES = ("cancelled",)


class BookingStore(Protocol):
    def get_rental_window(self, property_id: str) -> DateRange | None:
        """Rental window of a listing, or None if it does not exist."""
        ...

    def list_booked_ranges(self, property_id: str) -> list[BookedRange]:
        """Active reservations of a listing."""
        ...


def fetch_rental_window(cur: PgCursor, property_id: str) -> DateRange | None:
    row = fetchone(
        cur,
        "SELECT rental_start, rental_end FROM properties WHERE id = %s",
        (property_id,),
    )
    if row is None:
        return None
    start, end = row
    if start is None or end is None:
        # Listing without an advertised period: nothing is bookable
        return DateRange(date.min.isoformat(), date.min.isoformat())
    return DateRange(to_calendar_date(start), to_calendar_date(end))


def fetch_booked_ranges(cur: PgCursor, property_id: str) -> list[BookedRange]:
    rows = fetchall(
        cur,
        """
        SELECT id, check_in_date, check_out_date
        FROM bookings
        WHERE property_id = %s
          AND status <> ALL(%s)
        ORDER BY check_in_date
        """,
        (property_id, list(INACTIVE_BOOKING_STATUSES)),
    )
    return [
        BookedRange(
            start=to_calendar_date(row[1]),
            end=to_calendar_date(row[2]),
            reservation_id=str(row[0]),
        )
        for row in rows
    ]


class PostgresBookingStore:
    """BookingStore reading the marketplace's properties/bookings tables."""

    def get_rental_window(self, property_id: str) -> DateRange | None:
        with txn() as cur:
            return fetch_rental_window(cur, property_id)

    def list_booked_ranges(self, property_id: str) -> list[BookedRange]:
        with txn() as cur:
            return fetch_booked_ranges(cur, property_id)
