"""Availability engine: which parts of a rental window can still be booked.

Segments are computed by subtracting the property's active bookings from its
rental window, clamped so nothing before ``today`` is offered. ``today`` is
the server-anchored calendar date; it is never taken from the client.

Bookable segments additionally satisfy the minimum stay (7 nights on the
platform, configurable through MIN_STAY_DAYS).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Sequence

from rentlane.domain.dates import (
    CalendarDate,
    DateInput,
    DateRange,
    HasDateBounds,
    InvalidDate,
    add_days,
    subtract_intervals,
    to_calendar_date,
)
from rentlane.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_STAY_DAYS = 7

# Checkout may be chosen 7, 14, 21 or 28 nights after check-in
DEFAULT_STAY_UNIT_DAYS = 7
DEFAULT_MAX_STAY_UNITS = 4


@dataclass(frozen=True)
class BookedRange:
    """An active reservation occupying ``[start, end)``."""

    start: CalendarDate
    end: CalendarDate
    reservation_id: str | None = None

    @property
    def range(self) -> DateRange:
        return DateRange(self.start, self.end)


def _normalize_window(window: HasDateBounds, tz: tzinfo | None) -> DateRange:
    return DateRange.of(window.start, window.end, tz)


def _normalize_booked(booked: Iterable[HasDateBounds], tz: tzinfo | None) -> list[DateRange]:
    return [DateRange.of(b.start, b.end, tz) for b in booked]


def compute_available_segments(
    window: HasDateBounds,
    booked: Iterable[HasDateBounds],
    today: DateInput,
    *,
    tz: tzinfo | None = None,
) -> list[DateRange]:
    """Free segments of ``window`` from ``today`` onward.

    Args:
        window: The listing's rental window (half-open).
        booked: Active reservations of the property.
        today: Server-anchored current calendar date.
        tz: Reference timezone used when inputs are aware datetimes.

    Returns:
        Disjoint segments in ascending order, each inside
        ``[max(window.start, today), window.end)`` and disjoint from every
        booked range. An inverted window yields ``[]``.

    Raises:
        InvalidDate: If any date input is malformed.
    """
    rental = _normalize_window(window, tz)
    occupied = _normalize_booked(booked, tz)
    today_cd = to_calendar_date(today, tz)

    effective_start = max(rental.start, today_cd)
    if effective_start >= rental.end:
        return []

    segments = subtract_intervals(DateRange(effective_start, rental.end), occupied)
    return [s for s in segments if s.end > s.start]


def compute_bookable_segments(
    window: HasDateBounds,
    booked: Iterable[HasDateBounds],
    today: DateInput,
    minimum_stay_days: int = DEFAULT_MIN_STAY_DAYS,
    *,
    tz: tzinfo | None = None,
) -> list[DateRange]:
    """Available segments at least ``minimum_stay_days`` long.

    A minimum of zero or less disables the filter.
    """
    segments = compute_available_segments(window, booked, today, tz=tz)
    if minimum_stay_days <= 0:
        return segments
    return [s for s in segments if s.days >= minimum_stay_days]


def has_bookable_period(
    window: HasDateBounds,
    booked: Iterable[HasDateBounds],
    today: DateInput,
    minimum_stay_days: int = DEFAULT_MIN_STAY_DAYS,
    *,
    tz: tzinfo | None = None,
) -> bool:
    """Whether the listing still has at least one bookable segment.

    Listings without one are moved out of the advertised set.
    """
    return bool(compute_bookable_segments(window, booked, today, minimum_stay_days, tz=tz))


def is_range_booked(
    candidate: HasDateBounds,
    booked: Iterable[HasDateBounds],
    *,
    tz: tzinfo | None = None,
) -> bool:
    """Strict overlap check of a requested stay against active bookings.

    Overlap is ``candidate.start < b.end and candidate.end > b.start``, so a
    stay starting on an existing checkout day does not conflict.
    """
    requested = DateRange.of(candidate.start, candidate.end, tz)
    if requested.is_empty:
        return False
    for occupied in _normalize_booked(booked, tz):
        if occupied.is_empty:
            continue
        if requested.overlaps(occupied):
            return True
    return False


def checkout_options(
    check_in: DateInput,
    segments: Sequence[DateRange],
    *,
    stay_unit_days: int = DEFAULT_STAY_UNIT_DAYS,
    max_units: int = DEFAULT_MAX_STAY_UNITS,
) -> list[CalendarDate]:
    """Checkout dates selectable for ``check_in``.

    Stays are sold in whole units (7, 14, 21 or 28 nights by default) and must
    fit inside the segment that contains the check-in day. Returns ``[]`` when
    the check-in day is not inside any segment.
    """
    check_in_cd = to_calendar_date(check_in)
    containing = next(
        (s for s in segments if s.start <= check_in_cd < s.end),
        None,
    )
    if containing is None or stay_unit_days <= 0:
        return []

    options: list[CalendarDate] = []
    for units in range(1, max_units + 1):
        candidate = add_days(check_in_cd, stay_unit_days * units)
        if candidate > containing.end:
            break
        options.append(candidate)
    return options


def available_segments_or_empty(
    window: HasDateBounds,
    booked: Iterable[HasDateBounds],
    today: DateInput,
    minimum_stay_days: int | None = None,
    *,
    tz: tzinfo | None = None,
) -> list[DateRange]:
    """UI-facing variant: malformed input means "no availability".

    Computes bookable segments when ``minimum_stay_days`` is given, otherwise
    plain available segments. ``InvalidDate`` is logged and turned into ``[]``.
    """
    try:
        if minimum_stay_days is None:
            return compute_available_segments(window, booked, today, tz=tz)
        return compute_bookable_segments(window, booked, today, minimum_stay_days, tz=tz)
    except InvalidDate as exc:
        logger.warning(
            "availability input rejected",
            extra={"extra_fields": {"value": repr(exc.value), "reason": exc.reason}},
        )
        return []
