"""Canonical schema (Pydantic) - Market, Event, order book, sync outcome."""

from aurora.models.market import CATEGORIES, DEFAULT_CATEGORY, CanonicalMarket, EventRecord, OutcomeToken
from aurora.models.orderbook import OrderBook, PriceHistory, PriceLevel, PricePoint, TokenPriceSnapshot
from aurora.models.sync import SyncLogEntry, SyncResult

__all__ = [
    "CATEGORIES",
    "DEFAULT_CATEGORY",
    "CanonicalMarket",
    "EventRecord",
    "OutcomeToken",
    "OrderBook",
    "PriceHistory",
    "PriceLevel",
    "PricePoint",
    "TokenPriceSnapshot",
    "SyncLogEntry",
    "SyncResult",
]
