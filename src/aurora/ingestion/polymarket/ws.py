"""Polymarket CLOB WebSocket - short-lived price snapshot session."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any

import structlog
import websockets
from websockets.asyncio.client import ClientConnection

from aurora.ingestion.polymarket.normalize import apply_frame
from aurora.models.orderbook import TokenPriceSnapshot

log = structlog.get_logger(__name__)

CLOB_WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/market"


def _parse_message(raw: str | bytes) -> list[dict[str, Any]]:
    """Decode one frame; the server batches events in a JSON list. Non-JSON (PONG) -> []."""
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        return []
    if isinstance(msg, dict):
        return [msg]
    if isinstance(msg, list):
        return [m for m in msg if isinstance(m, dict)]
    return []


async def _keepalive(ws: ClientConnection, interval_sec: float) -> None:
    with contextlib.suppress(websockets.ConnectionClosed):
        while True:
            await asyncio.sleep(interval_sec)
            await ws.send("PING")


async def fetch_token_prices(
    ws_url: str,
    token_ids: list[str],
    *,
    timeout_sec: float = 8.0,
    ping_interval_sec: float = 10.0,
) -> dict[str, TokenPriceSnapshot]:
    """
    Subscribe to token_ids on the market channel and collect snapshots until every id has
    a book or timeout_sec elapses. Returns whatever was collected; never raises on
    connect, protocol or decode errors. The socket is always closed on exit.
    """
    wanted = set(token_ids)
    snapshots: dict[str, TokenPriceSnapshot] = {}
    if not wanted:
        return snapshots

    try:
        async with asyncio.timeout(timeout_sec):
            async with websockets.connect(ws_url, ping_interval=None, close_timeout=2) as ws:
                await ws.send(json.dumps({"assets_ids": list(wanted), "type": "market"}))
                log.debug("ws_price_session_subscribed", assets=len(wanted))
                keepalive = asyncio.create_task(_keepalive(ws, ping_interval_sec))
                try:
                    async for raw in ws:
                        for payload in _parse_message(raw):
                            try:
                                apply_frame(snapshots, payload, wanted)
                            except (TypeError, ValueError, AttributeError) as e:
                                log.debug("ws_frame_skipped", event_type=payload.get("event_type"), error=str(e))
                        if len(snapshots) >= len(wanted):
                            break
                finally:
                    keepalive.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await keepalive
    except TimeoutError:
        log.debug("ws_price_session_timeout", collected=len(snapshots), requested=len(wanted))
    except Exception as e:
        log.warning("ws_price_session_failed", error=str(e), collected=len(snapshots))
    return snapshots
