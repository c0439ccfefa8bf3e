"""Sync run outcome log."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from aurora.models import SyncLogEntry

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def record_sync_log(
    conn: DuckDBPyConnection,
    sync_type: str,
    status: str,
    count: int,
    duration_ms: int,
    error: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO sync_logs (type, status, count, duration_ms, error, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [sync_type, status, count, duration_ms, error, int(time.time() * 1000)],
    )


def list_sync_logs(conn: DuckDBPyConnection, limit: int = 20) -> list[SyncLogEntry]:
    """Most recent runs first."""
    rows = conn.execute(
        """
        SELECT id, type, status, count, duration_ms, error, created_at
        FROM sync_logs ORDER BY id DESC LIMIT ?
        """,
        [limit],
    ).fetchall()
    columns = ["id", "type", "status", "count", "duration_ms", "error", "created_at"]
    return [SyncLogEntry.model_validate(dict(zip(columns, r))) for r in rows]
