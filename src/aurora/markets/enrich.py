"""Overlay live CLOB prices on catalog prices, falling back silently to the catalog."""

from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from aurora.ingestion.polymarket.ws import CLOB_WS_URL, fetch_token_prices
from aurora.markets.normalize import compute_spread
from aurora.models import CanonicalMarket, TokenPriceSnapshot

log = structlog.get_logger(__name__)

# Book narrower than this: show the midpoint; wider: show the last trade
NARROW_SPREAD = 0.02
# Shorter ids are placeholders, not real CLOB tokens
MIN_TOKEN_ID_LEN = 10

PriceFetcher = Callable[[list[str]], Awaitable[dict[str, TokenPriceSnapshot]]]


def collect_token_ids(markets: list[CanonicalMarket]) -> list[str]:
    token_ids: list[str] = []
    seen: set[str] = set()
    for market in markets:
        for token in market.tokens:
            tid = token.token_id
            if tid and len(tid) > MIN_TOKEN_ID_LEN and tid not in seen:
                seen.add(tid)
                token_ids.append(tid)
    return token_ids


def display_price(snap: TokenPriceSnapshot) -> float:
    return snap.midpoint if snap.spread < NARROW_SPREAD else snap.last_price


def apply_snapshots(markets: list[CanonicalMarket], snapshots: dict[str, TokenPriceSnapshot]) -> int:
    """Overwrite outcome prices in place; returns how many markets changed."""
    changed = 0
    for market in markets:
        prices = dict(market.outcome_prices)
        updated = False
        for token in market.tokens:
            snap = snapshots.get(token.token_id)
            if snap is None:
                continue
            price = display_price(snap)
            if price > 0 and token.outcome in market.outcomes:
                prices[token.outcome] = round(min(price, 1.0), 4)
                updated = True
        if updated:
            # keep outcome-list order so the spread still compares outcome 0 and 1
            prices = {o: prices[o] for o in market.outcomes if o in prices}
            market.outcome_prices = prices
            market.spread = compute_spread(prices)
            changed += 1
    return changed


class PriceEnricher:
    """One streaming session per batch; never raises to the caller."""

    def __init__(
        self,
        ws_url: str = CLOB_WS_URL,
        *,
        timeout_sec: float = 8.0,
        ping_interval_sec: float = 10.0,
        fetcher: PriceFetcher | None = None,
    ) -> None:
        self.ws_url = ws_url
        self.timeout_sec = timeout_sec
        self.ping_interval_sec = ping_interval_sec
        self._fetcher = fetcher or self._fetch_via_ws

    async def _fetch_via_ws(self, token_ids: list[str]) -> dict[str, TokenPriceSnapshot]:
        return await fetch_token_prices(
            self.ws_url,
            token_ids,
            timeout_sec=self.timeout_sec,
            ping_interval_sec=self.ping_interval_sec,
        )

    async def enrich(self, markets: list[CanonicalMarket]) -> list[CanonicalMarket]:
        token_ids = collect_token_ids(markets)
        if not token_ids:
            return markets
        log.debug("price_enrichment_start", tokens=len(token_ids))
        try:
            snapshots = await self._fetcher(token_ids)
        except Exception as e:
            log.warning("price_enrichment_failed", error=str(e))
            return markets
        if not snapshots:
            log.debug("price_enrichment_empty")
            return markets
        changed = apply_snapshots(markets, snapshots)
        log.debug("price_enrichment_done", snapshots=len(snapshots), markets_changed=changed)
        return markets
