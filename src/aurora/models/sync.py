"""Sync run outcome and persisted sync log rows."""

from __future__ import annotations

from pydantic import BaseModel


class SyncResult(BaseModel):
    count: int
    failed: int = 0
    skipped: int = 0  # id or slug already owned by another row
    duration_ms: int


class SyncLogEntry(BaseModel):
    id: int
    type: str
    status: str
    count: int = 0
    duration_ms: int = 0
    error: str | None = None
    created_at: int  # ms epoch
