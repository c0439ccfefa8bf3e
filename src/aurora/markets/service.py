"""Market read service: view listings, market detail, price history and order books."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import structlog

from aurora.ingestion.polymarket.clob import ClobClient, Interval
from aurora.ingestion.polymarket.gamma import GammaClient
from aurora.ingestion.polymarket.http import UpstreamError
from aurora.markets.enrich import PriceEnricher
from aurora.markets.filters import process_events
from aurora.markets.normalize import normalize_market, safe_float
from aurora.markets.views import (
    DEFAULT_VIEW,
    fetch_plan_events,
    order_markets,
    paginate,
    prefer_new_events,
    resolve_view,
)
from aurora.models import CanonicalMarket, OrderBook, OutcomeToken, PriceHistory, PriceLevel, PricePoint
from aurora.storage.cache import TTLStore
from aurora.storage.markets import find_market

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from aurora.config import Settings

log = structlog.get_logger(__name__)

MARKET_LIST_PREFIX = "markets:"
MARKET_DETAIL_PREFIX = "market:"
ORDERBOOK_DEPTH = 15


def market_list_key(view: str, limit: int, offset: int, search: str | None) -> str:
    params = {"view": view, "limit": limit, "offset": offset, "search": search}
    return MARKET_LIST_PREFIX + json.dumps(params, sort_keys=True)


def _standalone_event(raw_market: dict[str, Any], slug: str) -> dict[str, Any]:
    """Stand-in parent for a market fetched on its own (no event context)."""
    return {
        "id": raw_market.get("id"),
        "slug": slug,
        "title": raw_market.get("question"),
        "active": raw_market.get("active"),
        "closed": raw_market.get("closed"),
        "featured": False,
        "new": False,
        "tags": [],
        "markets": [raw_market],
    }


def _book_levels(raw_levels: Any, *, descending: bool) -> list[PriceLevel]:
    levels = []
    for lev in raw_levels or []:
        if not isinstance(lev, dict):
            continue
        price, size = safe_float(lev.get("price")), safe_float(lev.get("size"))
        if 0 <= price <= 1 and size >= 0:
            levels.append(PriceLevel(price=price, size=size))
    levels.sort(key=lambda lev: lev.price, reverse=descending)
    return levels[:ORDERBOOK_DEPTH]


def format_price_point(raw: dict[str, Any]) -> PricePoint | None:
    """{t: epoch_sec, p: 0..1} -> percentage point labelled like "Jan 5"."""
    if not isinstance(raw, dict) or raw.get("t") is None:
        return None
    ts = int(safe_float(raw.get("t")))
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return PricePoint(
        value=round(safe_float(raw.get("p")) * 100, 2),
        timestamp=ts,
        label=f"{dt:%b} {dt.day}",
    )


class MarketService:
    """Gamma -> filter -> normalize -> order -> live prices, with a short-lived cache for reads."""

    def __init__(
        self,
        gamma: GammaClient,
        clob: ClobClient,
        cache: TTLStore,
        *,
        enricher: PriceEnricher | None = None,
        conn: DuckDBPyConnection | None = None,
        markets_ttl_sec: float = 60,
        price_history_ttl_sec: float = 300,
        orderbook_ttl_sec: float = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.gamma = gamma
        self.clob = clob
        self.cache = cache
        self.enricher = enricher
        self.conn = conn
        self.markets_ttl_sec = markets_ttl_sec
        self.price_history_ttl_sec = price_history_ttl_sec
        self.orderbook_ttl_sec = orderbook_ttl_sec
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings: Settings, conn: DuckDBPyConnection | None = None) -> MarketService:
        timeout = settings.http_timeout_sec
        enricher = None
        if settings.enrichment_enabled:
            enricher = PriceEnricher(
                settings.clob_ws_url,
                timeout_sec=settings.enrichment_timeout_sec,
                ping_interval_sec=settings.enrichment_ping_interval_sec,
            )
        return cls(
            GammaClient(settings.gamma_api_base, timeout=timeout),
            ClobClient(settings.clob_api_base, timeout=timeout),
            TTLStore(maxsize=settings.cache_max_entries),
            enricher=enricher,
            conn=conn,
            markets_ttl_sec=settings.markets_ttl_sec,
            price_history_ttl_sec=settings.price_history_ttl_sec,
            orderbook_ttl_sec=settings.orderbook_ttl_sec,
        )

    async def aclose(self) -> None:
        await self.gamma.aclose()
        await self.clob.aclose()

    async def _enrich(self, markets: list[CanonicalMarket]) -> list[CanonicalMarket]:
        if self.enricher is None:
            return markets
        return await self.enricher.enrich(markets)

    async def fetch_view_with_events(
        self,
        view: str = DEFAULT_VIEW,
        limit: int | None = 20,
        offset: int = 0,
        search: str | None = None,
        *,
        enrich: bool = True,
    ) -> tuple[list[CanonicalMarket], list[dict[str, Any]]]:
        """Uncached pipeline run; also returns the raw events the markets came from.
        limit=None keeps every admitted market."""
        now = self._clock()
        page_size = limit if limit is not None else 100
        plan = resolve_view(view, page_size, offset, search)
        events = await fetch_plan_events(self.gamma, plan, now)
        if plan.view == "New":
            events = prefer_new_events(events, page_size)
        markets = process_events(events, plan.filter_view, now)
        markets = order_markets(plan.view, markets, now, page_size)
        page = paginate(markets, offset, limit)
        if enrich:
            page = await self._enrich(page)
        log.debug("view_fetched", view=plan.view, events=len(events), admitted=len(markets), returned=len(page))
        return page, events

    async def fetch_view(
        self,
        view: str = DEFAULT_VIEW,
        limit: int | None = 20,
        offset: int = 0,
        search: str | None = None,
        *,
        enrich: bool = True,
    ) -> list[CanonicalMarket]:
        markets, _ = await self.fetch_view_with_events(view, limit, offset, search, enrich=enrich)
        return markets

    async def get_markets(
        self,
        view: str = DEFAULT_VIEW,
        limit: int = 20,
        offset: int = 0,
        search: str | None = None,
    ) -> list[CanonicalMarket]:
        key = market_list_key(view, limit, offset, search)
        return await self.cache.get_or_compute(
            key, lambda: self.fetch_view(view, limit, offset, search), self.markets_ttl_sec
        )

    async def _lookup(self, fetch: Callable[[str], Awaitable[dict[str, Any] | None]], key: str) -> dict[str, Any] | None:
        """A 4xx from one lookup means "not this kind of id"; server/network errors propagate."""
        try:
            return await fetch(key)
        except UpstreamError as e:
            if e.is_client_error:
                return None
            raise

    async def _find_detail(self, id_or_slug: str) -> CanonicalMarket | None:
        event = await self._lookup(self.gamma.get_event_by_slug, id_or_slug)
        if event and event.get("markets"):
            market = normalize_market(event["markets"][0], event, synced_at=self._clock())
            return (await self._enrich([market]))[0]

        raw = await self._lookup(self.gamma.get_market_by_condition_id, id_or_slug)
        if raw is None:
            raw = await self._lookup(self.gamma.get_market_by_slug, id_or_slug)
        if raw is not None:
            market = normalize_market(raw, _standalone_event(raw, id_or_slug), synced_at=self._clock())
            return (await self._enrich([market]))[0]

        if self.conn is not None:
            log.info("market_detail_db_fallback", id_or_slug=id_or_slug)
            return find_market(self.conn, id_or_slug)
        return None

    async def get_market_detail(self, id_or_slug: str) -> CanonicalMarket | None:
        """Event slug -> condition id -> market slug -> stored row; None when nothing matches."""
        return await self.cache.get_or_compute(
            MARKET_DETAIL_PREFIX + id_or_slug,
            lambda: self._find_detail(id_or_slug),
            self.markets_ttl_sec,
        )

    async def get_price_history(
        self,
        id_or_slug: str,
        interval: Interval = "1d",
        outcome: str = "Yes",
    ) -> PriceHistory | None:
        market = await self.get_market_detail(id_or_slug)
        if market is None:
            return None
        token = _token_for(market.tokens, outcome)
        if token is None:
            return PriceHistory(outcome=outcome, interval=interval)
        raw = await self.cache.get_or_compute(
            f"price-history:{token.token_id}:{interval}",
            lambda: self.clob.get_price_history(token.token_id, interval),
            self.price_history_ttl_sec,
        )
        points = [p for p in (format_price_point(r) for r in raw) if p is not None]
        return PriceHistory(outcome=outcome, token_id=token.token_id, interval=interval, points=points)

    async def _book(self, token: OutcomeToken) -> OrderBook:
        raw = await self.cache.get_or_compute(
            f"orderbook:{token.token_id}",
            lambda: self.clob.get_order_book(token.token_id),
            self.orderbook_ttl_sec,
        )
        return OrderBook(
            token_id=token.token_id,
            outcome=token.outcome,
            bids=_book_levels(raw.get("bids"), descending=True),
            asks=_book_levels(raw.get("asks"), descending=False),
            timestamp=str(raw["timestamp"]) if raw.get("timestamp") is not None else None,
        )

    async def get_orderbook(self, id_or_slug: str) -> dict[str, OrderBook] | None:
        """Book per outcome, fetched concurrently; outcomes whose fetch fails are left out."""
        market = await self.get_market_detail(id_or_slug)
        if market is None:
            return None
        results = await asyncio.gather(*(self._book(t) for t in market.tokens), return_exceptions=True)
        books: dict[str, OrderBook] = {}
        for token, result in zip(market.tokens, results):
            if isinstance(result, BaseException):
                log.warning("orderbook_fetch_failed", token_id=token.token_id, error=str(result))
                continue
            books[token.outcome] = result
        return books


def _token_for(tokens: list[OutcomeToken], outcome: str) -> OutcomeToken | None:
    for token in tokens:
        if token.outcome == outcome:
            return token
    return tokens[0] if tokens else None
