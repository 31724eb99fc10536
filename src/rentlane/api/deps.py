"""FastAPI dependencies resolving the collaborators wired by ``create_app``."""

from __future__ import annotations

from fastapi import Request

from rentlane.domain.audit import SettlementAuditLog
from rentlane.infra.repositories.bookings_repository import BookingStore
from rentlane.infra.server_clock import ServerClock
from rentlane.infra.settings import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_server_clock(request: Request) -> ServerClock:
    return request.app.state.clock


def get_audit_log(request: Request) -> SettlementAuditLog:
    return request.app.state.audit_log


def get_booking_store(request: Request) -> BookingStore:
    return request.app.state.booking_store
