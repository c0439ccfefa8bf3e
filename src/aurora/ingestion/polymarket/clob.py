"""Polymarket CLOB REST client - order books, price history, single prices."""

from __future__ import annotations

from typing import Any, Literal

import httpx

from aurora.ingestion.polymarket.http import ApiClient, UpstreamError

CLOB_API_BASE = "https://clob.polymarket.com"

Interval = Literal["1m", "1h", "6h", "1d", "1w", "all"]

# Minutes per point requested for each chart interval
FIDELITY_BY_INTERVAL: dict[str, int] = {
    "1m": 1,
    "1h": 60,
    "6h": 360,
    "1d": 60,
    "1w": 360,
    "all": 1440,
}


def _price_or_none(value: Any) -> float | None:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return None if price != price else price


class ClobClient(ApiClient):
    def __init__(
        self,
        base_url: str = CLOB_API_BASE,
        *,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)

    async def get_order_book(self, token_id: str) -> dict[str, Any]:
        """Raw book: {market, asset_id, bids: [{price, size}], asks: [...], hash, timestamp}."""
        data = await self.get_json("/book", params={"token_id": token_id})
        return data if isinstance(data, dict) else {}

    async def get_price_history(self, token_id: str, interval: Interval = "1d") -> list[dict[str, Any]]:
        """Raw history points [{t: epoch_sec, p: price}]."""
        data = await self.get_json(
            "/prices-history",
            params={
                "market": token_id,
                "interval": interval,
                "fidelity": FIDELITY_BY_INTERVAL.get(interval, 60),
            },
        )
        if not isinstance(data, dict):
            return []
        return list(data.get("history") or [])

    async def get_last_trade_price(self, token_id: str) -> float | None:
        try:
            data = await self.get_json("/last-trade-price", params={"token_id": token_id})
        except UpstreamError:
            return None
        return _price_or_none(data.get("price")) if isinstance(data, dict) else None

    async def get_midpoint(self, token_id: str) -> float | None:
        try:
            data = await self.get_json("/midpoint", params={"token_id": token_id})
        except UpstreamError:
            return None
        return _price_or_none(data.get("mid")) if isinstance(data, dict) else None
