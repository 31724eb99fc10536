"""Shared pytest fixtures for Rentlane tests."""
import sys

sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from rentlane.api.factory import create_app  # noqa: E402
from rentlane.domain.audit import InMemoryAuditStore, SettlementAuditLog  # noqa: E402
from rentlane.infra.settings import Settings  # noqa: E402

from .helpers import FakeBookingStore, FakeClockSource, make_clock, vn  # noqa: E402


@pytest.fixture
def settings():
    """Default settings (platform timezone, 7-day minimum stay, no payout delay)."""
    return Settings()


@pytest.fixture
def clock_source():
    """Clock endpoint stand-in, initially at 2025-01-01 10:00 platform time."""
    return FakeClockSource(vn(2025, 1, 1, 10, 0))


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def booking_store():
    return FakeBookingStore()


@pytest.fixture
def client(settings, clock_source, audit_store, booking_store):
    """TestClient over an app wired entirely with in-memory collaborators."""
    app = create_app(
        settings,
        clock=make_clock(clock_source, ttl_seconds=0),
        audit_log=SettlementAuditLog(audit_store),
        booking_store=booking_store,
    )
    return TestClient(app)
