"""Settlement endpoints: server-side re-verification and audit trail.

Any status computed on a client is advisory. ``POST /settlement/verify``
recomputes it from server time and is what payout/confirmation logic must
re-check before moving money.

Provides:
- POST /settlement/verify
- POST /settlement/income
- GET /settlement/audit
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from rentlane.api.deps import get_app_settings, get_audit_log, get_server_clock
from rentlane.domain.audit import AuditEntryInput, SettlementAuditLog
from rentlane.domain.dates import InvalidDate
from rentlane.domain.settlement import (
    IncomeItem,
    aggregate_income,
    determine_settlement,
    get_status,
    is_eligible_for_income,
    rental_income_amount,
    to_audit_instant,
)
from rentlane.infra.server_clock import ClockUnavailable, ServerClock
from rentlane.infra.settings import Settings
from rentlane.observability.correlation import get_correlation_id
from rentlane.observability.logging import get_logger

router = APIRouter(prefix="/settlement", tags=["settlement"])

logger = get_logger(__name__)

CLOCK_UNAVAILABLE_DETAIL = "Unable to verify server time, try again"


# ── Request schemas ──────────────────────────────────────


class VerifySettlementRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    check_in_date: str | None = Field(None, alias="checkInDate")
    check_out_date: str | None = Field(None, alias="checkOutDate")
    check_in_time: str | None = Field(None, alias="checkInTime")
    check_out_time: str | None = Field(None, alias="checkOutTime")
    booking_id: str | None = Field(None, alias="bookingId")


class IncomeBookingBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str | None = Field(None, alias="bookingId")
    payment_status: str = Field(..., alias="paymentStatus")
    booking_status: str = Field(..., alias="bookingStatus")
    check_in_date: str | None = Field(None, alias="checkInDate")
    check_out_date: str | None = Field(None, alias="checkOutDate")
    check_in_time: str | None = Field(None, alias="checkInTime")
    check_out_time: str | None = Field(None, alias="checkOutTime")
    total_price: int = Field(0, alias="totalPrice", ge=0)
    accommodation_total: int | None = Field(None, alias="accommodationTotal", ge=0)
    pet_total: int | None = Field(None, alias="petTotal", ge=0)
    service_fee: int | None = Field(None, alias="serviceFee", ge=0)


class IncomeSummaryRequest(BaseModel):
    bookings: list[IncomeBookingBody] = Field(default_factory=list)


# ── Endpoints ────────────────────────────────────────────


@router.post("/verify")
def verify_settlement(
    body: VerifySettlementRequest,
    settings: Settings = Depends(get_app_settings),
    clock: ServerClock = Depends(get_server_clock),
    audit_log: SettlementAuditLog = Depends(get_audit_log),
) -> dict:
    """Authoritative settlement status for a booking.

    Returns status plus the server instant and the check-in, check-out and
    payable-after instants it was derived from (ISO 8601, UTC). When a
    bookingId is given the determination is recorded in the audit log.
    """
    if not body.check_in_date or not body.check_out_date:
        raise HTTPException(status_code=400, detail="checkInDate and checkOutDate required")

    try:
        server_now = clock.now()
    except ClockUnavailable:
        raise HTTPException(status_code=503, detail=CLOCK_UNAVAILABLE_DETAIL)

    try:
        decision = determine_settlement(
            body.check_in_date,
            body.check_out_date,
            body.check_in_time,
            body.check_out_time,
            now=server_now,
            payout_delay=settings.payout_delay,
            tz=settings.tz,
        )
    except InvalidDate as exc:
        raise HTTPException(status_code=400, detail=f"{exc.reason}: {exc.value}")

    if body.booking_id:
        audit_log.record(AuditEntryInput.from_decision(body.booking_id, decision))

    logger.info(
        "settlement verified",
        extra={
            "extra_fields": {
                "correlationId": get_correlation_id(),
                "booking_id": body.booking_id,
                "status": decision.status.value,
                "server_time_iso": decision.server_time_iso,
            }
        },
    )

    return decision.to_dict()


@router.get("/audit")
def list_settlement_audit(
    limit: int = Query(100, ge=1, le=500),
    booking_id: str | None = Query(None, alias="bookingId"),
    audit_log: SettlementAuditLog = Depends(get_audit_log),
) -> dict:
    """Most recent audit entries, newest first."""
    if booking_id:
        entries = audit_log.recent_for_booking(booking_id, limit)
    else:
        entries = audit_log.recent(limit)
    return {"entries": [e.to_dict() for e in entries]}


@router.post("/income")
def summarize_income(
    body: IncomeSummaryRequest,
    settings: Settings = Depends(get_app_settings),
    clock: ServerClock = Depends(get_server_clock),
) -> dict:
    """Host income totals evaluated at server time.

    Only paid, confirmed/completed bookings whose check-in has been reached
    count toward total revenue; the available balance covers paid-out ones.
    """
    try:
        server_now = clock.now()
    except ClockUnavailable:
        raise HTTPException(status_code=503, detail=CLOCK_UNAVAILABLE_DETAIL)

    items: list[IncomeItem] = []
    for booking in body.bookings:
        if not is_eligible_for_income(
            payment_status=booking.payment_status,
            booking_status=booking.booking_status,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            now=server_now,
            check_in_time=booking.check_in_time,
            check_out_time=booking.check_out_time,
            payout_delay=settings.payout_delay,
            tz=settings.tz,
        ):
            continue
        status = get_status(
            booking.check_in_date,
            booking.check_out_date,
            booking.check_in_time,
            booking.check_out_time,
            server_now,
            payout_delay=settings.payout_delay,
            tz=settings.tz,
        )
        amount = rental_income_amount(
            total_price=booking.total_price,
            accommodation_total=booking.accommodation_total,
            pet_total=booking.pet_total,
            service_fee=booking.service_fee,
        )
        items.append(IncomeItem(amount=amount, status=status))

    summary = aggregate_income(items)
    return {
        "serverTimeISO": to_audit_instant(server_now),
        "countedBookings": len(items),
        "totalRevenue": summary.total_revenue,
        "availableBalance": summary.available_balance,
    }
