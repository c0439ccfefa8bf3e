"""Gamma event + nested market -> CanonicalMarket.

Gamma is inconsistent about types: event-level volume/liquidity are numbers, the
nested market's volume/liquidity are numeric strings while volume24hr is a number,
and outcomes/outcomePrices/clobTokenIds are JSON-encoded strings. Every coercion
here accepts both shapes and degrades to 0 / [] instead of raising.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any

from aurora.models import DEFAULT_CATEGORY, CanonicalMarket, EventRecord, OutcomeToken

# Checked in order; first keyword set with a substring hit wins.
# Approximate by nature: "eth" also matches "ethics", "war" matches "warriors".
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Crypto",
        (
            "crypto", "bitcoin", "ethereum", "defi", "blockchain", "nft", "btc", "eth",
            "solana", "xrp", "doge", "bnb", "altcoin",
        ),
    ),
    (
        "Politics",
        (
            "politics", "elections", "government", "trump", "president", "congress",
            "senate", "geopolit", "war", "iran", "russia", "nato", "tariff", "sanction",
            "military", "ceasefire", "election", "vote", "democrat", "republican",
        ),
    ),
    (
        "Sports",
        (
            "sports", "nba", "nfl", "nhl", "mlb", "soccer", "football", "tennis", "ufc",
            "mma", "golf", "esports", "dota 2", "formula 1", "formula e", "f1 ",
            "premier league", "champions league", "ncaa", "wnba", "serie a", "bundesliga",
            "la liga", "ligue 1", "baseball", "basketball", "cricket", "rugby",
        ),
    ),
    (
        "Economy",
        (
            "economy", "economic", "finance", "financial", "stock", "fed rate",
            "interest rate", "inflation", "gdp", "recession", "forex", "bond", "treasury",
            "ipo", "s&p", "nasdaq", "dow jones", "federal reserve", "unemployment",
            "trade war", "tariff",
        ),
    ),
    (
        "Technology",
        (
            "technology", "tech", "ai ", "artificial intelligence", "openai", "chatgpt",
            "apple", "google", "microsoft", "meta ", "tesla", "nvidia", "startup",
            "software", "hardware", "chip", "semiconductor",
        ),
    ),
    (
        "Culture",
        (
            "culture", "entertainment", "celebrity", "movie", "music", "award", "oscar",
            "grammy", "tv show", "netflix", "pop culture", "viral", "meme", "game show",
            "reality tv",
        ),
    ),
)


def parse_json_list(raw: Any) -> list[Any]:
    """Decode a JSON-encoded list field. Lists pass through; anything else -> []."""
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return []
    return parsed if isinstance(parsed, list) else []


def safe_float(value: Any) -> float:
    """Number or numeric string -> float; absent, unparsable or non-finite -> 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 string -> aware UTC datetime. Date-only and naive values are taken as UTC."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _text(value: Any) -> str | None:
    """Non-empty scalar -> str; None, blanks and containers -> None."""
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def _tag_label(tag: Any) -> str:
    if isinstance(tag, dict):
        return str(tag.get("label") or tag.get("slug") or "")
    if isinstance(tag, str):
        return tag
    return ""


def tag_labels(*sources: dict[str, Any]) -> list[str]:
    """Union of tag labels across the given records, first-seen order, blanks dropped."""
    labels: list[str] = []
    for source in sources:
        tags = source.get("tags")
        for tag in tags if isinstance(tags, list) else []:
            label = _tag_label(tag)
            if label and label not in labels:
                labels.append(label)
    return labels


def classify_category(tags: list[str], raw_category: str | None = None) -> str:
    """Keyword classification over tag labels + upstream category hint (best effort)."""
    text = " ".join([*tags, _text(raw_category) or ""]).lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in text for k in keywords):
            return category
    return DEFAULT_CATEGORY


def build_outcome_prices(outcomes: list[Any], prices: list[Any]) -> dict[str, float]:
    """Index-aligned outcome -> price. Outcomes without a price entry are left out."""
    result: dict[str, float] = {}
    for name, price in zip(outcomes, prices):
        result[str(name)] = min(max(safe_float(price), 0.0), 1.0)
    return result


def build_tokens(token_ids: list[Any], outcomes: list[Any]) -> list[OutcomeToken]:
    """Pair instrument ids with outcome names; unmatched ids get "Yes" then "No"."""
    tokens = []
    for i, token_id in enumerate(token_ids):
        if i < len(outcomes):
            outcome = str(outcomes[i])
        else:
            outcome = "Yes" if i == len(outcomes) else "No"
        tokens.append(OutcomeToken(token_id=str(token_id), outcome=outcome))
    return tokens


def compute_spread(outcome_prices: dict[str, float]) -> float | None:
    """|p0 - p1| over the first two priced outcomes, 6 dp; None with fewer than two."""
    values = list(outcome_prices.values())
    if len(values) < 2:
        return None
    return round(abs(values[0] - values[1]), 6)


def market_identity(raw_market: dict[str, Any]) -> str:
    return str(raw_market.get("conditionId") or raw_market.get("id") or "")


def normalize_market(
    raw_market: dict[str, Any],
    raw_event: dict[str, Any],
    synced_at: datetime | None = None,
) -> CanonicalMarket:
    """Convert one Gamma market (nested under raw_event) to a CanonicalMarket."""
    outcomes = [str(o) for o in parse_json_list(raw_market.get("outcomes"))]
    prices = parse_json_list(raw_market.get("outcomePrices"))
    token_ids = parse_json_list(raw_market.get("clobTokenIds"))
    outcome_prices = build_outcome_prices(outcomes, prices)
    tags = tag_labels(raw_event, raw_market)
    polymarket_id = str(raw_market.get("id") or "")

    return CanonicalMarket(
        id=market_identity(raw_market),
        polymarket_id=polymarket_id,
        slug=str(raw_market.get("slug") or polymarket_id),
        event_id=str(raw_event.get("id") or ""),
        event_slug=str(raw_event.get("slug") or ""),
        question=_text(raw_market.get("question")) or "Unknown Market",
        description=_text(raw_market.get("description")),
        category=classify_category(tags, raw_event.get("category")),
        tags=tags,
        outcomes=outcomes,
        outcome_prices=outcome_prices,
        tokens=build_tokens(token_ids, outcomes),
        volume=safe_float(raw_market.get("volume")) or safe_float(raw_event.get("volume")),
        volume_24h=safe_float(raw_market.get("volume24hr")) or safe_float(raw_event.get("volume24hr")),
        liquidity=safe_float(raw_market.get("liquidity")) or safe_float(raw_event.get("liquidity")),
        spread=compute_spread(outcome_prices),
        active=raw_market.get("active", True) is not False,
        closed=bool(raw_market.get("closed", False)),
        featured=bool(raw_event.get("featured", False)),
        is_new=bool(raw_event.get("new", False)),
        image_url=_text(raw_market.get("image")) or _text(raw_event.get("image")),
        icon=_text(raw_market.get("icon")) or _text(raw_event.get("icon")),
        start_date=parse_timestamp(raw_market.get("startDate")),
        end_date=parse_timestamp(raw_market.get("endDate")),
        last_synced_at=synced_at or datetime.now(timezone.utc),
    )


def normalize_event(raw_event: dict[str, Any]) -> EventRecord:
    """Parent event row for persistence."""
    event_id = str(raw_event.get("id") or "")
    return EventRecord(
        event_id=event_id,
        slug=str(raw_event.get("slug") or event_id),
        title=_text(raw_event.get("title")) or "",
        description=_text(raw_event.get("description")),
        category=classify_category(tag_labels(raw_event), raw_event.get("category")),
        image_url=_text(raw_event.get("image")),
        start_date=parse_timestamp(raw_event.get("startDate")),
        end_date=parse_timestamp(raw_event.get("endDate")),
        active=raw_event.get("active", True) is not False,
        closed=bool(raw_event.get("closed", False)),
    )
