"""Settlement audit log.

Records every settlement determination a financial action depends on, with
the server instant it was based on, so disputes can be settled against the
trail instead of anyone's device clock.

The log is a pure recorder: a failing store is logged and ignored, because
losing one audit entry is less harmful than blocking a payout.

Store backends (AUDIT_BACKEND):
- memory (default): process-local list, optionally capped (oldest dropped)
- postgres: settlement_audit_log table, retains every entry
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Protocol

from rentlane.domain.settlement import SettlementDecision, to_audit_instant
from rentlane.infra.settings import Settings
from rentlane.infra.time import utc_now
from rentlane.observability.logging import get_logger

logger = get_logger(__name__)

_WIRE_KEYS = {
    "server_time_iso": "serverTimeISO",
    "server_time_ms": "serverTimeMs",
    "booking_id": "bookingId",
    "status": "status",
    "check_in_iso": "checkInISO",
    "check_out_iso": "checkOutISO",
    "payable_after_iso": "payableAfterISO",
    "recorded_at": "recordedAt",
}


@dataclass(frozen=True)
class AuditEntryInput:
    server_time_iso: str
    server_time_ms: int
    booking_id: str
    status: str
    check_in_iso: str
    check_out_iso: str
    payable_after_iso: str

    @classmethod
    def from_decision(cls, booking_id: str, decision: SettlementDecision) -> AuditEntryInput:
        return cls(
            server_time_iso=decision.server_time_iso,
            server_time_ms=decision.server_time_ms,
            booking_id=booking_id,
            status=decision.status.value,
            check_in_iso=decision.check_in_iso,
            check_out_iso=decision.check_out_iso,
            payable_after_iso=decision.payable_after_iso,
        )


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit record. ``recorded_at`` is the recorder's wall clock."""

    server_time_iso: str
    server_time_ms: int
    booking_id: str
    status: str
    check_in_iso: str
    check_out_iso: str
    payable_after_iso: str
    recorded_at: str

    def to_dict(self) -> dict:
        return {_WIRE_KEYS[k]: v for k, v in asdict(self).items()}


class AuditStore(Protocol):
    """Append-only store of audit entries."""

    def append(self, entry: AuditEntry) -> None:
        ...

    def recent(self, limit: int) -> list[AuditEntry]:
        """Most recent ``limit`` entries, newest first."""
        ...

    def recent_for_booking(self, booking_id: str, limit: int) -> list[AuditEntry]:
        """Most recent ``limit`` entries of one booking, newest first."""
        ...


class InMemoryAuditStore:
    """Process-local store.

    With ``max_entries`` set, the oldest entries are dropped beyond the cap.
    Unbounded when ``max_entries`` is None or 0.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        self._entries: list[AuditEntry] = []
        self._max_entries = max_entries or None
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            if self._max_entries is not None and len(self._entries) > self._max_entries:
                del self._entries[: len(self._entries) - self._max_entries]

    def recent(self, limit: int) -> list[AuditEntry]:
        if limit <= 0:
            return []
        with self._lock:
            return list(reversed(self._entries[-limit:]))

    def recent_for_booking(self, booking_id: str, limit: int) -> list[AuditEntry]:
        if limit <= 0:
            return []
        with self._lock:
            matching = [e for e in self._entries if e.booking_id == booking_id]
        return list(reversed(matching[-limit:]))

    def __len__(self) -> int:
        return len(self._entries)


class SettlementAuditLog:
    """Recorder in front of an ``AuditStore``."""

    def __init__(
        self,
        store: AuditStore,
        *,
        wall_clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._wall_clock = wall_clock

    @property
    def store(self) -> AuditStore:
        return self._store

    def record(self, entry: AuditEntryInput) -> AuditEntry | None:
        """Append ``entry`` stamped with the recording time.

        Returns:
            The stored entry, or None if stamping or the store failed (the
            failure is logged, never raised).
        """
        try:
            full = AuditEntry(**asdict(entry), recorded_at=to_audit_instant(self._wall_clock()))
            self._store.append(full)
        except Exception:
            logger.exception(
                "settlement audit write failed",
                extra={
                    "extra_fields": {
                        "booking_id": entry.booking_id,
                        "status": entry.status,
                        "server_time_iso": entry.server_time_iso,
                    }
                },
            )
            return None
        return full

    def recent(self, limit: int = 100) -> list[AuditEntry]:
        """Most recent ``limit`` entries, newest first."""
        if limit <= 0:
            return []
        return self._store.recent(limit)

    def recent_for_booking(self, booking_id: str, limit: int = 100) -> list[AuditEntry]:
        """Most recent entries for one booking, newest first."""
        if limit <= 0:
            return []
        return self._store.recent_for_booking(booking_id, limit)


def build_audit_store(settings: Settings) -> AuditStore:
    """Store for the configured AUDIT_BACKEND.

    Raises:
        ValueError: If the backend is unknown.
    """
    if settings.audit_backend == "memory":
        return InMemoryAuditStore(max_entries=settings.audit_max_entries)
    if settings.audit_backend == "postgres":
        from rentlane.infra.repositories.audit_repository import PostgresAuditStore

        return PostgresAuditStore()
    raise ValueError(f"Unknown AUDIT_BACKEND: {settings.audit_backend}")
