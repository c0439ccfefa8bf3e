"""View name -> upstream fetch plan, and the post-fetch ordering for each view."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from aurora.ingestion.polymarket.gamma import MAX_PAGE_LIMIT, POLYMARKET_TAG_IDS, EventsQuery, GammaClient
from aurora.ingestion.polymarket.http import UpstreamError
from aurora.models import CanonicalMarket

log = structlog.get_logger(__name__)

STATIC_CATEGORIES: tuple[str, ...] = ("Politics", "Crypto", "Economy", "Sports", "Technology", "Culture")
DYNAMIC_VIEWS: tuple[str, ...] = ("Trending", "All", "Breaking", "EndingSoon", "HighestVolume", "New")
VIEWS: tuple[str, ...] = DYNAMIC_VIEWS + STATIC_CATEGORIES
DEFAULT_VIEW = "Trending"

ENDING_SOON_HORIZON = timedelta(hours=48)
ENDING_SOON_MIN_EVENTS = 5
NEW_VIEW_HEADROOM = 40
SPORTS_VIEW_HEADROOM = 60
SEARCH_FETCH_LIMIT = 50


@dataclass(frozen=True)
class FetchPlan:
    """What to ask Gamma for, and which view's filter rules apply to the result."""

    view: str
    filter_view: str
    query: EventsQuery | None = None
    search_term: str | None = None
    ending_soon: bool = False
    fallback_query: EventsQuery | None = None
    fallback_below: int = 0


def _capped(n: int) -> int:
    return min(n, MAX_PAGE_LIMIT)


def resolve_view(view: str, limit: int, offset: int = 0, search: str | None = None) -> FetchPlan:
    """Map a view (or a free-text search, which takes precedence) to a FetchPlan."""
    if search:
        return FetchPlan(view="Search", filter_view="All", search_term=search)

    if view == "Breaking":
        return FetchPlan(view, view, EventsQuery(limit=MAX_PAGE_LIMIT, closed=False))
    if view == "EndingSoon":
        return FetchPlan(
            view,
            view,
            ending_soon=True,
            fallback_query=EventsQuery(limit=MAX_PAGE_LIMIT, closed=False),
            fallback_below=ENDING_SOON_MIN_EVENTS,
        )
    if view == "HighestVolume":
        return FetchPlan(view, view, EventsQuery(limit=MAX_PAGE_LIMIT, closed=False))
    if view == "New":
        return FetchPlan(view, view, EventsQuery(limit=_capped(limit + offset + NEW_VIEW_HEADROOM), closed=False))
    if view == "Sports":
        return FetchPlan(
            view,
            view,
            EventsQuery(
                limit=_capped(limit + offset + SPORTS_VIEW_HEADROOM),
                closed=False,
                tag_id=POLYMARKET_TAG_IDS["Sports"],
                order="startDate",
            ),
        )
    if view in ("Trending", "All"):
        return FetchPlan(view, view, EventsQuery(limit=_capped((limit + offset) * 2), closed=False))
    if view in STATIC_CATEGORIES:
        return FetchPlan(
            view,
            view,
            EventsQuery(
                limit=_capped((limit + offset) * 2),
                closed=False,
                tag_id=POLYMARKET_TAG_IDS[view],
                related_tags=True,
            ),
        )
    raise ValueError(f"unknown view: {view!r}")


async def fetch_plan_events(gamma: GammaClient, plan: FetchPlan, now: datetime) -> list[dict[str, Any]]:
    """Run the plan's catalog calls. Only the ending-soon call has a fallback; others propagate."""
    if plan.search_term is not None:
        return await gamma.search_events(plan.search_term, SEARCH_FETCH_LIMIT)

    if plan.ending_soon:
        try:
            events = await gamma.list_ending_soon_events(
                hours=int(ENDING_SOON_HORIZON.total_seconds() // 3600), limit=MAX_PAGE_LIMIT, now=now
            )
        except UpstreamError as e:
            log.warning("ending_soon_fetch_failed", error=str(e))
            events = []
        if len(events) < plan.fallback_below and plan.fallback_query is not None:
            log.debug("ending_soon_fallback", dedicated=len(events))
            events = events + await gamma.list_events(plan.fallback_query)
        return events

    return await gamma.list_events(plan.query)


def prefer_new_events(events: list[dict[str, Any]], limit: int) -> list[dict[str, Any]]:
    """Events flagged new, unless there are fewer than limit of them."""
    fresh = [e for e in events if e.get("new") is True]
    return fresh if len(fresh) >= limit else events


def prefer_new_markets(markets: list[CanonicalMarket], limit: int) -> list[CanonicalMarket]:
    fresh = [m for m in markets if m.is_new]
    return fresh if len(fresh) >= limit else markets


def ending_within(markets: list[CanonicalMarket], now: datetime, horizon: timedelta) -> list[CanonicalMarket]:
    """now < end_date <= now + horizon, soonest first."""
    deadline = now + horizon
    window = [m for m in markets if m.end_date is not None and now < m.end_date <= deadline]
    return sorted(window, key=lambda m: m.end_date)


def order_markets(view: str, markets: list[CanonicalMarket], now: datetime, limit: int) -> list[CanonicalMarket]:
    """Post-fetch sort/filter for view. Views without a policy keep fetch order."""
    if view == "Breaking":
        active = [m for m in markets if m.volume_24h > 0]
        return sorted(active, key=lambda m: m.volume_24h, reverse=True)
    if view == "EndingSoon":
        return ending_within(markets, now, ENDING_SOON_HORIZON)
    if view == "HighestVolume":
        return sorted(markets, key=lambda m: m.volume, reverse=True)
    if view == "New":
        return prefer_new_markets(markets, limit)
    return markets


def paginate(markets: list[CanonicalMarket], offset: int, limit: int | None) -> list[CanonicalMarket]:
    if limit is None:
        return markets[offset:]
    return markets[offset : offset + limit]
