"""Polymarket Gamma API client - event/market catalog."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from aurora.ingestion.polymarket.http import ApiClient, UpstreamError

log = structlog.get_logger(__name__)

GAMMA_API_BASE = "https://gamma-api.polymarket.com"
MAX_PAGE_LIMIT = 100

POLYMARKET_TAG_IDS: dict[str, int] = {
    "Politics": 2,
    "Crypto": 21,
    "Economy": 120,
    "Sports": 100639,
    "Technology": 1401,
    "Culture": 596,
    "Geopolitics": 100265,
}


def _iso(value: datetime | str | None) -> str | None:
    if value is None or isinstance(value, str):
        return value or None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class EventsQuery(BaseModel):
    """Allow-listed /events filter. Unset fields are never sent.

    Gamma answers 422 to unknown or no-op default fields, so offset=0 and
    ascending=false are dropped rather than sent explicitly.
    """

    limit: int = 20
    offset: int = 0
    closed: bool | None = None
    tag_id: int | None = None
    exclude_tag_id: int | None = None
    related_tags: bool | None = None
    order: str | None = None
    ascending: bool = False
    featured: bool | None = None
    slug: str | None = None
    id: int | None = None
    cyom: bool | None = None
    start_date_min: datetime | str | None = None
    start_date_max: datetime | str | None = None
    end_date_min: datetime | str | None = None
    end_date_max: datetime | str | None = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": min(self.limit, MAX_PAGE_LIMIT)}
        if self.offset > 0:
            params["offset"] = self.offset
        if self.closed is not None:
            params["closed"] = self.closed
        if self.order:
            params["order"] = self.order
        if self.ascending:
            params["ascending"] = True
        for name in ("tag_id", "exclude_tag_id", "related_tags", "featured", "slug", "id", "cyom"):
            value = getattr(self, name)
            if value is not None:
                params[name] = value
        for name in ("start_date_min", "start_date_max", "end_date_min", "end_date_max"):
            value = _iso(getattr(self, name))
            if value:
                params[name] = value
        return params


def _first(data: Any) -> dict[str, Any] | None:
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    return None


class GammaClient(ApiClient):
    """Raw Gamma responses; JSON-decoded only, no normalization."""

    def __init__(
        self,
        base_url: str = GAMMA_API_BASE,
        *,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)

    async def list_events(self, query: EventsQuery | None = None) -> list[dict[str, Any]]:
        params = (query or EventsQuery()).to_params()
        log.debug("gamma_list_events", params=params)
        data = await self.get_json("/events", params=params)
        return data if isinstance(data, list) else []

    async def list_ending_soon_events(
        self,
        hours: int = 48,
        limit: int = MAX_PAGE_LIMIT,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Open events whose end date falls inside the next `hours`, soonest first."""
        now = now or datetime.now(timezone.utc)
        return await self.list_events(
            EventsQuery(
                limit=limit,
                closed=False,
                end_date_min=now,
                end_date_max=now + timedelta(hours=hours),
                order="endDate",
                ascending=True,
            )
        )

    async def get_event_by_slug(self, slug: str) -> dict[str, Any] | None:
        data = await self.get_json("/events", params={"slug": slug})
        return _first(data)

    async def get_market_by_condition_id(self, condition_id: str) -> dict[str, Any] | None:
        try:
            data = await self.get_json(f"/markets/{condition_id}")
        except UpstreamError as e:
            if e.is_not_found:
                return None
            raise
        if isinstance(data, dict) and data.get("id"):
            return data
        return None

    async def get_market_by_slug(self, slug: str) -> dict[str, Any] | None:
        data = await self.get_json("/markets", params={"slug": slug})
        return _first(data)

    async def search_events(self, term: str, limit: int = 20) -> list[dict[str, Any]]:
        data = await self.get_json(
            "/events",
            params={"title_contains": term, "limit": min(limit, MAX_PAGE_LIMIT), "closed": False},
        )
        return data if isinstance(data, list) else []
