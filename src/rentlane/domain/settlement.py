"""Settlement status engine.

Derives where a booking is in its financial lifecycle from its check-in and
check-out instants and a trusted current instant:

    pending    now < check-in
    confirmed  check-in <= now < payable-after
    paid       now >= payable-after   (payable-after = check-out + payout delay)

With the default zero payout delay, "paid" starts exactly at check-out.

Check-in/out instants combine a calendar date with an ``HH:mm`` time in the
platform's reference timezone (Asia/Ho_Chi_Minh, UTC+07:00). Status is never
stored as the only truth; it is recomputed on demand. ``now`` must come from
``ServerClock``, never from the calling device.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from rentlane.domain.dates import DateInput, InvalidDate, to_calendar_date
from rentlane.infra.settings import DEFAULT_TIMEZONE
from rentlane.infra.time import epoch_ms

DEFAULT_TZ = ZoneInfo(DEFAULT_TIMEZONE)

DEFAULT_CHECK_IN_TIME = "14:00"
DEFAULT_CHECK_OUT_TIME = "12:00"

NO_PAYOUT_DELAY = timedelta(0)

_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?(?::(\d{1,2}))?$")

INCOME_PAYMENT_STATUSES = ("paid",)
INCOME_BOOKING_STATUSES = ("confirmed", "completed")


class SettlementStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"


# ── Anchor instants ───────────────────────────────────────


def _parse_time_of_day(value: str | None, default: str) -> time:
    text = (value or default).strip()
    match = _TIME_RE.match(text)
    if match is None:
        raise InvalidDate(value, "invalid time of day")
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise InvalidDate(value, "invalid time of day")
    return time(hour, minute, second)


def _moment(day: DateInput, time_of_day: str | None, default_time: str, tz: tzinfo | None) -> datetime:
    zone = tz or DEFAULT_TZ
    calendar_date = date.fromisoformat(to_calendar_date(day, zone))
    return datetime.combine(calendar_date, _parse_time_of_day(time_of_day, default_time), tzinfo=zone)


def get_check_in_moment(
    check_in_date: DateInput,
    check_in_time: str | None = None,
    tz: tzinfo | None = None,
) -> datetime:
    """Check-in instant: ``check_in_date`` at ``check_in_time`` (default 14:00).

    Raises:
        InvalidDate: If the date or time is malformed.
    """
    return _moment(check_in_date, check_in_time, DEFAULT_CHECK_IN_TIME, tz)


def get_check_out_moment(
    check_out_date: DateInput,
    check_out_time: str | None = None,
    tz: tzinfo | None = None,
) -> datetime:
    """Check-out instant: ``check_out_date`` at ``check_out_time`` (default 12:00)."""
    return _moment(check_out_date, check_out_time, DEFAULT_CHECK_OUT_TIME, tz)


def get_payable_after_moment(
    check_out_date: DateInput,
    check_out_time: str | None = None,
    *,
    payout_delay: timedelta = NO_PAYOUT_DELAY,
    tz: tzinfo | None = None,
) -> datetime:
    """Instant from which the booking's income is payable.

    Raises:
        ValueError: If ``payout_delay`` is negative.
    """
    if payout_delay < NO_PAYOUT_DELAY:
        raise ValueError("payout_delay must not be negative")
    return get_check_out_moment(check_out_date, check_out_time, tz) + payout_delay


def to_audit_instant(instant: datetime) -> str:
    """Canonical audit form: UTC, millisecond precision, ``Z`` suffix.

    Raises:
        ValueError: For naive datetimes, whose instant is ambiguous.
    """
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("audit instants must be timezone-aware")
    utc = instant.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Status ────────────────────────────────────────────────


def _require_aware(now: datetime) -> None:
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be a timezone-aware server instant")


def _classify(
    now: datetime,
    check_in: datetime,
    payable_after: datetime,
) -> SettlementStatus:
    if now < check_in:
        return SettlementStatus.PENDING
    if now >= payable_after:
        return SettlementStatus.PAID
    return SettlementStatus.CONFIRMED


def get_status(
    check_in_date: DateInput | None,
    check_out_date: DateInput | None,
    check_in_time: str | None,
    check_out_time: str | None,
    now: datetime,
    *,
    payout_delay: timedelta = NO_PAYOUT_DELAY,
    tz: tzinfo | None = None,
) -> SettlementStatus | None:
    """Current settlement status, or None when it cannot be determined.

    Missing or malformed dates (or times) yield None, a no-op for callers.

    Raises:
        ValueError: If ``now`` is naive.
    """
    _require_aware(now)
    if not check_in_date or not check_out_date:
        return None
    try:
        check_in = get_check_in_moment(check_in_date, check_in_time, tz)
        payable_after = get_payable_after_moment(
            check_out_date, check_out_time, payout_delay=payout_delay, tz=tz
        )
    except InvalidDate:
        return None
    return _classify(now, check_in, payable_after)


@dataclass(frozen=True)
class SettlementDecision:
    """Authoritative status determination anchored to server time."""

    status: SettlementStatus
    server_time_iso: str
    server_time_ms: int
    check_in_iso: str
    check_out_iso: str
    payable_after_iso: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "serverTimeISO": self.server_time_iso,
            "serverTimeMs": self.server_time_ms,
            "checkInISO": self.check_in_iso,
            "checkOutISO": self.check_out_iso,
            "payableAfterISO": self.payable_after_iso,
        }


def determine_settlement(
    check_in_date: DateInput | None,
    check_out_date: DateInput | None,
    check_in_time: str | None = None,
    check_out_time: str | None = None,
    *,
    now: datetime,
    payout_delay: timedelta = NO_PAYOUT_DELAY,
    tz: tzinfo | None = None,
) -> SettlementDecision:
    """Strict settlement determination for financial decisions.

    Unlike ``get_status`` this never degrades to None: bad input raises, so a
    payout can not proceed on an indeterminate status.

    Raises:
        InvalidDate: If a date is missing or a date/time is malformed.
        ValueError: If ``now`` is naive or ``payout_delay`` is negative.
    """
    _require_aware(now)
    if not check_in_date:
        raise InvalidDate(check_in_date, "missing check-in date")
    if not check_out_date:
        raise InvalidDate(check_out_date, "missing check-out date")

    check_in = get_check_in_moment(check_in_date, check_in_time, tz)
    check_out = get_check_out_moment(check_out_date, check_out_time, tz)
    payable_after = get_payable_after_moment(
        check_out_date, check_out_time, payout_delay=payout_delay, tz=tz
    )

    return SettlementDecision(
        status=_classify(now, check_in, payable_after),
        server_time_iso=to_audit_instant(now),
        server_time_ms=epoch_ms(now),
        check_in_iso=to_audit_instant(check_in),
        check_out_iso=to_audit_instant(check_out),
        payable_after_iso=to_audit_instant(payable_after),
    )


# ── Rental income ─────────────────────────────────────────


@dataclass(frozen=True)
class IncomeItem:
    amount: int
    status: SettlementStatus


@dataclass(frozen=True)
class IncomeSummary:
    """Host income totals.

    Attributes:
        total_revenue: Sum over every counted booking.
        available_balance: Sum over paid bookings only.
    """

    total_revenue: int
    available_balance: int


def rental_income_amount(
    *,
    total_price: int,
    accommodation_total: int | None = None,
    pet_total: int | None = None,
    service_fee: int | None = None,
) -> int:
    """Host income for one booking: accommodation plus pet fees.

    Falls back to ``total_price - service_fee`` (floored at zero) when the
    breakdown is not recorded. Platform fees are never host income.
    """
    accommodation = accommodation_total or 0
    pet = pet_total or 0
    if accommodation > 0 or pet > 0:
        return accommodation + pet
    return max(0, total_price - (service_fee or 0))


def is_eligible_for_income(
    *,
    payment_status: str,
    booking_status: str,
    check_in_date: DateInput | None,
    check_out_date: DateInput | None,
    now: datetime,
    check_in_time: str | None = None,
    check_out_time: str | None = None,
    payout_delay: timedelta = NO_PAYOUT_DELAY,
    tz: tzinfo | None = None,
) -> bool:
    """Whether a booking counts toward host income.

    Requires a paid booking in confirmed/completed state whose check-in
    instant has been reached.
    """
    if payment_status not in INCOME_PAYMENT_STATUSES:
        return False
    if booking_status not in INCOME_BOOKING_STATUSES:
        return False
    status = get_status(
        check_in_date,
        check_out_date,
        check_in_time,
        check_out_time,
        now,
        payout_delay=payout_delay,
        tz=tz,
    )
    return status in (SettlementStatus.CONFIRMED, SettlementStatus.PAID)


def aggregate_income(items: Iterable[IncomeItem]) -> IncomeSummary:
    total_revenue = 0
    available_balance = 0
    for item in items:
        total_revenue += item.amount
        if item.status is SettlementStatus.PAID:
            available_balance += item.amount
    return IncomeSummary(total_revenue=total_revenue, available_balance=available_balance)
