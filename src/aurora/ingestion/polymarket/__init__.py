"""Polymarket Gamma / CLOB / Data API clients and the CLOB market WebSocket."""

from aurora.ingestion.polymarket.clob import ClobClient
from aurora.ingestion.polymarket.data_api import DataClient
from aurora.ingestion.polymarket.gamma import POLYMARKET_TAG_IDS, EventsQuery, GammaClient
from aurora.ingestion.polymarket.http import UpstreamError

__all__ = [
    "POLYMARKET_TAG_IDS",
    "ClobClient",
    "DataClient",
    "EventsQuery",
    "GammaClient",
    "UpstreamError",
]
