"""Settlement audit repository - Postgres persistence for audit entries.

Uses raw SQL with psycopg2 (no ORM). Rows are only ever inserted; ordering
comes from the bigserial ``seq`` column.
"""

from __future__ import annotations

from typing import Any

from psycopg2.extensions import cursor as PgCursor

from rentlane.domain.audit import AuditEntry
from rentlane.infra.db import txn

_COLUMNS = """
    server_time_iso, server_time_ms, booking_id, status,
    check_in_iso, check_out_iso, payable_after_iso, recorded_at
"""


def insert_audit_entry(cur: PgCursor, entry: AuditEntry) -> int:
    """Insert one audit entry.

    Args:
        cur: Database cursor (within transaction).
        entry: Entry to persist.

    Returns:
        Sequence number of the new row.
    """
    cur.execute(
        f"""
        INSERT INTO settlement_audit_log ({_COLUMNS})
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING seq
        """,
        (
            entry.server_time_iso,
            entry.server_time_ms,
            entry.booking_id,
            entry.status,
            entry.check_in_iso,
            entry.check_out_iso,
            entry.payable_after_iso,
            entry.recorded_at,
        ),
    )
    row = cur.fetchone()
    return int(row[0])


def list_recent_audit_entries(
    cur: PgCursor,
    *,
    limit: int,
    booking_id: str | None = None,
) -> list[AuditEntry]:
    """Fetch the most recent entries, newest first.

    Args:
        cur: Database cursor.
        limit: Maximum number of rows.
        booking_id: Optional booking filter (uses the booking_id index).
    """
    conditions: list[str] = []
    params: list[Any] = []
    if booking_id is not None:
        conditions.append("booking_id = %s")
        params.append(booking_id)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    params.append(limit)

    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM settlement_audit_log
        {where}
        ORDER BY seq DESC
        LIMIT %s
        """,
        params,
    )
    return [_row_to_entry(row) for row in cur.fetchall()]


def _row_to_entry(row: tuple) -> AuditEntry:
    return AuditEntry(
        server_time_iso=row[0],
        server_time_ms=int(row[1]),
        booking_id=row[2],
        status=row[3],
        check_in_iso=row[4],
        check_out_iso=row[5],
        payable_after_iso=row[6],
        recorded_at=row[7],
    )


class PostgresAuditStore:
    """AuditStore backed by the settlement_audit_log table.

    Each call runs in its own short transaction. Entries are retained
    indefinitely.
    """

    def append(self, entry: AuditEntry) -> None:
        with txn() as cur:
            insert_audit_entry(cur, entry)

    def recent(self, limit: int) -> list[AuditEntry]:
        if limit <= 0:
            return []
        with txn() as cur:
            return list_recent_audit_entries(cur, limit=limit)

    def recent_for_booking(self, booking_id: str, limit: int) -> list[AuditEntry]:
        if limit <= 0:
            return []
        with txn() as cur:
            return list_recent_audit_entries(cur, limit=limit, booking_id=booking_id)
