"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Return the host's current UTC timestamp (timezone-aware).

    Only for bookkeeping fields such as an audit entry's ``recorded_at`` and
    for serving the clock source itself. Settlement decisions take their
    ``now`` from ``ServerClock``.
    """
    return datetime.now(timezone.utc)


def epoch_ms(instant: datetime) -> int:
    """Whole milliseconds since the Unix epoch for an aware datetime."""
    return (instant - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: float) -> datetime:
    """Aware UTC datetime for a millisecond epoch timestamp."""
    return _EPOCH + timedelta(milliseconds=ms)
