"""Polymarket market-channel WS frames -> TokenPriceSnapshot updates."""

from __future__ import annotations

from typing import Any

from aurora.models.orderbook import TokenPriceSnapshot


def _float(s: str | float | None) -> float:
    if s is None:
        return 0.0
    try:
        return float(s)
    except (TypeError, ValueError):
        return 0.0


def _level_prices(levels: Any) -> list[float]:
    prices = []
    if not isinstance(levels, list):
        return prices
    for lev in levels:
        if isinstance(lev, dict):
            p = _float(lev.get("price"))
            if 0 < p <= 1:
                prices.append(p)
    return prices


def _midpoint(best_bid: float, best_ask: float) -> float:
    if best_bid > 0 and best_ask > 0:
        return (best_bid + best_ask) / 2
    return 0.0


def parse_book_message(payload: dict[str, Any]) -> TokenPriceSnapshot | None:
    """Convert a 'book' frame to a fresh snapshot. Uses 'bids'/'asks' or 'buys'/'sells'."""
    if payload.get("event_type") != "book":
        return None
    asset_id = str(payload.get("asset_id") or "")
    if not asset_id:
        return None
    bids = _level_prices(payload.get("bids") or payload.get("buys"))
    asks = _level_prices(payload.get("asks") or payload.get("sells"))
    best_bid = max(bids) if bids else 0.0
    best_ask = min(asks) if asks else 0.0
    mid = _midpoint(best_bid, best_ask)
    return TokenPriceSnapshot(
        token_id=asset_id,
        best_bid=best_bid,
        best_ask=best_ask,
        last_price=mid,
        midpoint=mid,
    )


def apply_frame(
    snapshots: dict[str, TokenPriceSnapshot],
    payload: dict[str, Any],
    wanted: set[str],
) -> None:
    """Fold one frame into snapshots.

    Only a 'book' frame creates a snapshot; 'price_change' and 'last_trade_price'
    update instruments that already have one.
    """
    event_type = payload.get("event_type")
    if event_type == "book":
        snap = parse_book_message(payload)
        if snap is not None and snap.token_id in wanted:
            snapshots[snap.token_id] = snap
    elif event_type == "price_change":
        changes = payload.get("price_changes")
        for pc in changes if isinstance(changes, list) else []:
            if not isinstance(pc, dict):
                continue
            existing = snapshots.get(str(pc.get("asset_id") or ""))
            if existing is None:
                continue
            existing.best_bid = _float(pc.get("best_bid"))
            existing.best_ask = _float(pc.get("best_ask"))
            existing.midpoint = _midpoint(existing.best_bid, existing.best_ask)
    elif event_type == "last_trade_price":
        existing = snapshots.get(str(payload.get("asset_id") or ""))
        if existing is not None:
            existing.last_price = _float(payload.get("price"))
