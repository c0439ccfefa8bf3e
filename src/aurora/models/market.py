"""CanonicalMarket, EventRecord, OutcomeToken - canonical entities."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Category = Literal["Crypto", "Politics", "Sports", "Economy", "Technology", "Culture", "Trending"]

CATEGORIES: tuple[str, ...] = (
    "Crypto",
    "Politics",
    "Sports",
    "Economy",
    "Technology",
    "Culture",
    "Trending",
)
DEFAULT_CATEGORY = "Trending"


class OutcomeToken(BaseModel):
    """Instrument id (CLOB token) paired with the outcome it represents."""

    token_id: str
    outcome: str


class EventRecord(BaseModel):
    """Parent event row persisted ahead of its markets."""

    event_id: str
    slug: str
    title: str = ""
    description: str | None = None
    category: Category = DEFAULT_CATEGORY
    image_url: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    active: bool = True
    closed: bool = False


class CanonicalMarket(BaseModel):
    """Normalized market - one per upstream market nested under an event."""

    id: str  # conditionId, falls back to upstream id
    polymarket_id: str
    slug: str
    event_id: str
    event_slug: str = ""
    question: str
    description: str | None = None
    category: Category = DEFAULT_CATEGORY
    tags: list[str] = Field(default_factory=list)
    outcomes: list[str] = Field(default_factory=list)
    outcome_prices: dict[str, float] = Field(default_factory=dict)
    tokens: list[OutcomeToken] = Field(default_factory=list)
    volume: float = 0.0
    volume_24h: float = 0.0
    liquidity: float = 0.0
    spread: float | None = Field(None, ge=0)
    active: bool = True
    closed: bool = False
    featured: bool = False
    is_new: bool = False
    image_url: str | None = None
    icon: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    last_synced_at: datetime
