"""Order book, price history and streaming price snapshot models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PriceLevel(BaseModel):
    """Single price level (price -> size)."""

    price: float = Field(..., ge=0, le=1)
    size: float = Field(..., ge=0)


class OrderBook(BaseModel):
    """Top of the CLOB book for one outcome token."""

    token_id: str
    outcome: str
    bids: list[PriceLevel] = Field(default_factory=list)
    asks: list[PriceLevel] = Field(default_factory=list)
    timestamp: str | None = None


class PricePoint(BaseModel):
    """Chart point: price as a percentage (0-100)."""

    value: float
    timestamp: int  # epoch seconds
    label: str


class TokenPriceSnapshot(BaseModel):
    """Latest streamed prices for one instrument."""

    token_id: str
    best_bid: float = 0.0
    best_ask: float = 0.0
    last_price: float = 0.0
    midpoint: float = 0.0

    @property
    def spread(self) -> float:
        return self.best_ask - self.best_bid


class PriceHistory(BaseModel):
    """Chart series for one outcome of a market."""

    outcome: str
    token_id: str | None = None
    interval: str
    points: list[PricePoint] = Field(default_factory=list)
