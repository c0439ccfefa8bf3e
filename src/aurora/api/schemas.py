"""Pydantic schemas for API responses and OpenAPI docs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from aurora.models import CanonicalMarket, OrderBook, PricePoint, SyncLogEntry


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"
    scheduler_running: bool = False


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. not_found, upstream_error")


# --- Markets ---
class MarketsListResponse(BaseModel):
    markets: list[CanonicalMarket]
    view: str
    limit: int
    offset: int


class PriceHistoryResponse(BaseModel):
    market_id: str
    outcome: str
    interval: str
    token_id: str | None = None
    points: list[PricePoint]


class OrderBookResponse(BaseModel):
    market_id: str
    books: dict[str, OrderBook]


# --- Users ---
class UserRecordsResponse(BaseModel):
    address: str
    items: list[dict[str, Any]]


# --- Sync ---
class SyncLogsResponse(BaseModel):
    logs: list[SyncLogEntry]
