"""Eligibility rules for raw Gamma markets, plus batch dedup by canonical identity."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any

import structlog
from pydantic import ValidationError

from aurora.markets.normalize import (
    market_identity,
    normalize_market,
    parse_timestamp,
    safe_float,
    tag_labels,
)
from aurora.models import CanonicalMarket

log = structlog.get_logger(__name__)

BLACKLIST_TAGS = frozenset({"Recurring", "Hide From New"})
MIN_REMAINING = timedelta(hours=1)

# Auto-generated short-interval markets ("BTC up or down in 15m")
RECURRING_SLUG_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"[-_]5m[-_\d]",
        r"[-_]15m[-_\d]",
        r"[-_]1h[-_\d]",
        r"[-_]6h[-_\d]",
        r"updown-\d+m",
        r"up-or-down.*\d+[mh]-",
    )
)

SPORTS_VIEW = "Sports"
BROAD_VIEWS = frozenset({"Trending", "All"})


def is_recurring_market(raw_market: dict[str, Any], tags: list[str]) -> bool:
    if any(tag in BLACKLIST_TAGS for tag in tags):
        return True
    slug = str(raw_market.get("slug") or "").lower()
    return any(p.search(slug) for p in RECURRING_SLUG_PATTERNS)


def should_show_market(raw_market: dict[str, Any], view: str, now: datetime) -> bool:
    """Closing-soon guard and per-view noise rules."""
    volume = safe_float(raw_market.get("volume"))
    volume_24h = safe_float(raw_market.get("volume24hr"))
    liquidity = safe_float(raw_market.get("liquidity"))

    end = parse_timestamp(raw_market.get("endDate"))
    if end is not None:
        remaining = end - now
        if timedelta(0) < remaining < MIN_REMAINING:
            return False

    if view == SPORTS_VIEW:
        if volume == 0 and volume_24h == 0 and liquidity < 10:
            return False
        question = str(raw_market.get("question") or "").lower()
        if question.startswith("spread:") and liquidity < 10:
            return False

    if view in BROAD_VIEWS:
        if volume == 0 and volume_24h == 0 and liquidity == 0:
            return False

    return True


def admit_market(
    raw_market: dict[str, Any],
    raw_event: dict[str, Any],
    view: str,
    now: datetime,
) -> bool:
    """True when the market passes every lifecycle, noise and expiry rule for view."""
    if raw_event.get("closed") or raw_event.get("archived"):
        return False
    if not raw_market.get("active") or raw_market.get("closed"):
        return False
    if is_recurring_market(raw_market, tag_labels(raw_event, raw_market)):
        return False

    end = parse_timestamp(raw_market.get("endDate"))
    if end is not None and end < now:
        if view == SPORTS_VIEW:
            return False
        if safe_float(raw_market.get("volume24hr")) == 0:
            return False

    return should_show_market(raw_market, view, now)


def process_events(
    events: list[dict[str, Any]],
    view: str,
    now: datetime,
    seen_ids: set[str] | None = None,
) -> list[CanonicalMarket]:
    """Filter, normalize and dedup every market nested in events; fetch order kept.

    seen_ids is shared when several fetches feed one batch; first occurrence wins.
    """
    seen = seen_ids if seen_ids is not None else set()
    markets: list[CanonicalMarket] = []
    for event in events:
        if not isinstance(event, dict):
            continue
        nested = event.get("markets")
        for raw_market in nested if isinstance(nested, list) else []:
            if not isinstance(raw_market, dict):
                continue
            if not admit_market(raw_market, event, view, now):
                continue
            identity = market_identity(raw_market)
            if not identity or identity in seen:
                continue
            try:
                market = normalize_market(raw_market, event, synced_at=now)
            except (ValidationError, TypeError, ValueError) as e:
                log.warning("market_normalize_failed", market_id=identity, error=str(e))
                continue
            seen.add(identity)
            markets.append(market)
    log.debug("events_processed", view=view, events=len(events), markets=len(markets))
    return markets


def dedup_markets(markets: list[CanonicalMarket], seen_ids: set[str]) -> list[CanonicalMarket]:
    """Drop markets whose identity is already in seen_ids; records the new ones."""
    kept = []
    for market in markets:
        if market.id in seen_ids:
            continue
        seen_ids.add(market.id)
        kept.append(market)
    return kept
