"""Calendar dates and half-open date ranges.

A calendar date is a ``YYYY-MM-DD`` string in the platform's reference
timezone. The string form sorts the same way the dates do, so ranges are
compared and clamped as plain strings.

Ranges are half-open ``[start, end)``: a checkout day is free for the next
check-in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Protocol, Union

CalendarDate = str

DateInput = Union[str, date, datetime]

_CANONICAL_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidDate(ValueError):
    """Raised for malformed, unparseable or impossible date/time input."""

    def __init__(self, value: object, reason: str = "invalid date") -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


class HasDateBounds(Protocol):
    start: CalendarDate
    end: CalendarDate


@dataclass(frozen=True)
class DateRange:
    """Half-open calendar range ``[start, end)``."""

    start: CalendarDate
    end: CalendarDate

    @classmethod
    def of(cls, start: DateInput, end: DateInput, tz: tzinfo | None = None) -> DateRange:
        """Build a range from any supported date inputs (raises InvalidDate)."""
        return cls(to_calendar_date(start, tz), to_calendar_date(end, tz))

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    @property
    def days(self) -> int:
        """Length in whole days (0 for empty or inverted ranges)."""
        if self.is_empty:
            return 0
        return days_between(self.start, self.end)

    def overlaps(self, other: HasDateBounds) -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, other: HasDateBounds) -> bool:
        return self.start <= other.start and other.end <= self.end

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


RentalWindow = DateRange


def to_calendar_date(value: DateInput | None, tz: tzinfo | None = None) -> CalendarDate:
    """Normalize a date-ish value to ``YYYY-MM-DD``.

    - A canonical string is validated and returned unchanged.
    - A ``date`` is formatted as-is.
    - A ``datetime`` contributes its local calendar fields. An aware value is
      first moved into ``tz`` when one is given. It is never converted to UTC,
      which would shift late-evening local instants to the previous day.
    - Any other string is parsed as ISO 8601 and handled as a ``datetime``.

    Raises:
        InvalidDate: On empty, unparseable or impossible input.
    """
    if value is None or value == "":
        raise InvalidDate(value, "missing date")

    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date().isoformat()

    if isinstance(value, date):
        return value.isoformat()

    if not isinstance(value, str):
        raise InvalidDate(value, "unsupported date type")

    text = value.strip()
    if _CANONICAL_RE.match(text):
        try:
            date.fromisoformat(text)
        except ValueError:
            raise InvalidDate(value, "impossible date")
        return text

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidDate(value)
    return to_calendar_date(parsed, tz)


def try_calendar_date(value: DateInput | None, tz: tzinfo | None = None) -> CalendarDate | None:
    """Soft variant of ``to_calendar_date``: None instead of raising."""
    try:
        return to_calendar_date(value, tz)
    except InvalidDate:
        return None


def parse_calendar_date(value: DateInput) -> date:
    return date.fromisoformat(to_calendar_date(value))


def add_days(value: DateInput, days: int) -> CalendarDate:
    return (parse_calendar_date(value) + timedelta(days=days)).isoformat()


def days_between(start: DateInput, end: DateInput) -> int:
    """Whole days from ``start`` to ``end`` (negative if inverted)."""
    return (parse_calendar_date(end) - parse_calendar_date(start)).days


def subtract_intervals(
    window: HasDateBounds,
    occupied: Iterable[HasDateBounds],
) -> list[DateRange]:
    """Return ``window`` minus the union of ``occupied``.

    Sweeps a cursor from ``window.start`` over the occupied ranges sorted by
    start. The cursor only moves forward, so overlapping, duplicated or
    unsorted occupied ranges are handled without pre-merging.

    Inverted or empty windows yield no segments. Occupied ranges outside the
    window are ignored, and touching ranges never produce a zero-length gap.
    """
    if window.start >= window.end:
        return []

    free: list[DateRange] = []
    cursor = window.start

    for occ in sorted(occupied, key=lambda r: (r.start, r.end)):
        if occ.start >= occ.end:
            continue
        if occ.end <= cursor or occ.start >= window.end:
            continue
        if occ.start > cursor:
            free.append(DateRange(cursor, occ.start))
        cursor = max(cursor, occ.end)
        if cursor >= window.end:
            break

    if cursor < window.end:
        free.append(DateRange(cursor, window.end))

    return free
