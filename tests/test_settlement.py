"""Tests for the settlement status engine and rental income helpers."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from rentlane.domain.dates import InvalidDate
from rentlane.domain.settlement import (
    IncomeItem,
    SettlementStatus,
    aggregate_income,
    determine_settlement,
    get_check_in_moment,
    get_check_out_moment,
    get_payable_after_moment,
    get_status,
    is_eligible_for_income,
    rental_income_amount,
    to_audit_instant,
)
from rentlane.infra.time import epoch_ms

from .helpers import vn

CHECK_IN = "2025-05-01"
CHECK_OUT = "2025-05-08"


def status_at(now: datetime, **kwargs) -> SettlementStatus | None:
    return get_status(CHECK_IN, CHECK_OUT, "14:00", "12:00", now, **kwargs)


# ── Anchor instants ───────────────────────────────────────


class TestMoments:
    def test_check_in_default_time(self):
        assert get_check_in_moment(CHECK_IN) == vn(2025, 5, 1, 14, 0)

    def test_check_out_default_time(self):
        assert get_check_out_moment(CHECK_OUT) == vn(2025, 5, 8, 12, 0)

    def test_explicit_time(self):
        assert get_check_in_moment(CHECK_IN, "15:30") == vn(2025, 5, 1, 15, 30)

    def test_hour_only_time(self):
        assert get_check_out_moment(CHECK_OUT, "9") == vn(2025, 5, 8, 9, 0)

    def test_moment_is_in_platform_timezone(self):
        moment = get_check_in_moment(CHECK_IN)
        assert moment.utcoffset() == timedelta(hours=7)
        assert moment.astimezone(timezone.utc) == datetime(2025, 5, 1, 7, 0, tzinfo=timezone.utc)

    def test_accepts_date_objects(self):
        assert get_check_in_moment(date(2025, 5, 1)) == vn(2025, 5, 1, 14, 0)

    @pytest.mark.parametrize("bad_time", ["25:00", "12:60", "noon", "12-00"])
    def test_invalid_time_raises(self, bad_time):
        with pytest.raises(InvalidDate):
            get_check_in_moment(CHECK_IN, bad_time)

    def test_invalid_date_raises(self):
        with pytest.raises(InvalidDate):
            get_check_out_moment("2025-02-30")

    def test_payable_after_with_delay(self):
        moment = get_payable_after_moment(CHECK_OUT, payout_delay=timedelta(hours=24))
        assert moment == vn(2025, 5, 9, 12, 0)

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            get_payable_after_moment(CHECK_OUT, payout_delay=timedelta(hours=-1))


class TestAuditInstant:
    def test_utc_millisecond_z(self):
        assert to_audit_instant(vn(2025, 5, 8, 12, 0)) == "2025-05-08T05:00:00.000Z"

    def test_truncates_microseconds(self):
        instant = datetime(2025, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)
        assert to_audit_instant(instant) == "2025-01-01T00:00:00.123Z"

    def test_naive_rejected(self):
        with pytest.raises(ValueError):
            to_audit_instant(datetime(2025, 1, 1))


# ── Status ────────────────────────────────────────────────


class TestGetStatus:
    def test_before_check_in_is_pending(self):
        assert status_at(vn(2025, 5, 1, 13, 59)) is SettlementStatus.PENDING

    def test_check_in_instant_is_confirmed(self):
        assert status_at(vn(2025, 5, 1, 14, 0)) is SettlementStatus.CONFIRMED

    def test_mid_stay_is_confirmed(self):
        assert status_at(vn(2025, 5, 3, 0, 0)) is SettlementStatus.CONFIRMED

    def test_minute_before_check_out_is_confirmed(self):
        assert status_at(vn(2025, 5, 8, 11, 59)) is SettlementStatus.CONFIRMED

    def test_check_out_instant_is_paid(self):
        assert status_at(vn(2025, 5, 8, 12, 0)) is SettlementStatus.PAID

    def test_status_is_a_string(self):
        assert status_at(vn(2025, 5, 8, 12, 0)) == "paid"

    def test_defaults_match_explicit_times(self):
        now = vn(2025, 5, 1, 14, 0)
        assert get_status(CHECK_IN, CHECK_OUT, None, None, now) is SettlementStatus.CONFIRMED
        assert get_status(CHECK_IN, CHECK_OUT, None, None, vn(2025, 5, 1, 13, 0)) is SettlementStatus.PENDING

    def test_same_instant_in_utc_gives_same_status(self):
        local = vn(2025, 5, 8, 11, 59)
        as_utc = local.astimezone(timezone.utc)
        assert status_at(local) is status_at(as_utc) is SettlementStatus.CONFIRMED

    def test_payout_delay_extends_confirmed(self):
        delay = timedelta(hours=48)
        assert status_at(vn(2025, 5, 8, 12, 0), payout_delay=delay) is SettlementStatus.CONFIRMED
        assert status_at(vn(2025, 5, 10, 11, 59), payout_delay=delay) is SettlementStatus.CONFIRMED
        assert status_at(vn(2025, 5, 10, 12, 0), payout_delay=delay) is SettlementStatus.PAID

    @pytest.mark.parametrize(
        "check_in, check_out",
        [(None, CHECK_OUT), (CHECK_IN, None), ("", CHECK_OUT), ("bogus", CHECK_OUT), (CHECK_IN, "2025-13-01")],
    )
    def test_missing_or_malformed_dates_give_none(self, check_in, check_out):
        assert get_status(check_in, check_out, None, None, vn(2025, 5, 3)) is None

    def test_malformed_time_gives_none(self):
        assert get_status(CHECK_IN, CHECK_OUT, "99:99", None, vn(2025, 5, 3)) is None

    def test_naive_now_rejected(self):
        with pytest.raises(ValueError):
            get_status(CHECK_IN, CHECK_OUT, None, None, datetime(2025, 5, 3))

    def test_status_only_moves_forward(self):
        order = [SettlementStatus.PENDING, SettlementStatus.CONFIRMED, SettlementStatus.PAID]
        now = vn(2025, 4, 29, 0, 0)
        end = vn(2025, 5, 11, 0, 0)
        seen = []
        while now <= end:
            seen.append(order.index(status_at(now, payout_delay=timedelta(hours=6))))
            now += timedelta(minutes=30)
        assert seen == sorted(seen)
        assert seen[0] == 0 and seen[-1] == 2


class TestDetermineSettlement:
    def test_decision_fields(self):
        now = vn(2025, 5, 8, 12, 0)
        decision = determine_settlement(CHECK_IN, CHECK_OUT, "14:00", "12:00", now=now)

        assert decision.status is SettlementStatus.PAID
        assert decision.to_dict() == {
            "status": "paid",
            "serverTimeISO": "2025-05-08T05:00:00.000Z",
            "serverTimeMs": epoch_ms(now),
            "checkInISO": "2025-05-01T07:00:00.000Z",
            "checkOutISO": "2025-05-08T05:00:00.000Z",
            "payableAfterISO": "2025-05-08T05:00:00.000Z",
        }

    def test_server_time_ms_value(self):
        decision = determine_settlement(CHECK_IN, CHECK_OUT, now=vn(2025, 5, 8, 12, 0))
        assert decision.server_time_ms == 1746680400000

    def test_payout_delay_reflected(self):
        decision = determine_settlement(
            CHECK_IN, CHECK_OUT, now=vn(2025, 5, 8, 12, 0), payout_delay=timedelta(hours=1)
        )
        assert decision.status is SettlementStatus.CONFIRMED
        assert decision.payable_after_iso == "2025-05-08T06:00:00.000Z"

    def test_agrees_with_get_status(self):
        for now in (vn(2025, 4, 30), vn(2025, 5, 5), vn(2025, 5, 9)):
            decision = determine_settlement(CHECK_IN, CHECK_OUT, now=now)
            assert decision.status is get_status(CHECK_IN, CHECK_OUT, None, None, now)

    def test_missing_date_raises(self):
        with pytest.raises(InvalidDate):
            determine_settlement(None, CHECK_OUT, now=vn(2025, 5, 3))

    def test_malformed_date_raises(self):
        with pytest.raises(InvalidDate):
            determine_settlement(CHECK_IN, "08/05/2025", now=vn(2025, 5, 3))

    def test_custom_timezone(self):
        decision = determine_settlement(
            CHECK_IN, CHECK_OUT, now=datetime(2025, 5, 1, 14, 0, tzinfo=timezone.utc), tz=timezone.utc
        )
        assert decision.check_in_iso == "2025-05-01T14:00:00.000Z"
        assert decision.status is SettlementStatus.CONFIRMED


# ── Rental income ─────────────────────────────────────────


class TestRentalIncome:
    def test_breakdown_preferred(self):
        assert rental_income_amount(total_price=1_200_000, accommodation_total=900_000, pet_total=100_000) == 1_000_000

    def test_falls_back_to_total_minus_fee(self):
        assert rental_income_amount(total_price=1_200_000, service_fee=120_000) == 1_080_000

    def test_fallback_never_negative(self):
        assert rental_income_amount(total_price=100, service_fee=500) == 0

    def test_eligible_after_check_in(self):
        assert is_eligible_for_income(
            payment_status="paid",
            booking_status="confirmed",
            check_in_date=CHECK_IN,
            check_out_date=CHECK_OUT,
            now=vn(2025, 5, 2),
        )

    def test_not_eligible_before_check_in(self):
        assert not is_eligible_for_income(
            payment_status="paid",
            booking_status="confirmed",
            check_in_date=CHECK_IN,
            check_out_date=CHECK_OUT,
            now=vn(2025, 4, 30),
        )

    @pytest.mark.parametrize(
        "payment_status, booking_status",
        [("pending", "confirmed"), ("paid", "cancelled"), ("refunded", "completed")],
    )
    def test_not_eligible_without_payment_or_active_booking(self, payment_status, booking_status):
        assert not is_eligible_for_income(
            payment_status=payment_status,
            booking_status=booking_status,
            check_in_date=CHECK_IN,
            check_out_date=CHECK_OUT,
            now=vn(2025, 5, 9),
        )

    def test_not_eligible_with_missing_dates(self):
        assert not is_eligible_for_income(
            payment_status="paid",
            booking_status="completed",
            check_in_date=None,
            check_out_date=CHECK_OUT,
            now=vn(2025, 5, 9),
        )

    def test_aggregate(self):
        summary = aggregate_income(
            [
                IncomeItem(500, SettlementStatus.PAID),
                IncomeItem(300, SettlementStatus.CONFIRMED),
                IncomeItem(200, SettlementStatus.PAID),
            ]
        )
        assert summary.total_revenue == 1000
        assert summary.available_balance == 700

    def test_aggregate_empty(self):
        summary = aggregate_income([])
        assert (summary.total_revenue, summary.available_balance) == (0, 0)

