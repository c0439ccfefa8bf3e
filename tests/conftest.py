"""Shared fixtures: fixed clock, temp DuckDB, Gamma payload builders, mock transports."""

import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from aurora.ingestion.polymarket import ClobClient, GammaClient
from aurora.markets.service import MarketService
from aurora.storage.cache import TTLStore
from aurora.storage.db import get_connection, init_schema

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

YES_TOKEN = "71321045679252212594626385532706912750332728571942532289631379312455583992563"
NO_TOKEN = "52114319501245915516055106046884209969926127482827954674443846427813813222426"


def iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def raw_market(n: int = 1, **overrides):
    """Gamma-shaped nested market: JSON-encoded list fields, string volume/liquidity."""
    m = {
        "id": str(500000 + n),
        "conditionId": f"0xcond{n:04d}",
        "slug": f"will-thing-{n}-happen",
        "question": f"Will thing {n} happen?",
        "description": "Resolves YES if it happens.",
        "outcomes": json.dumps(["Yes", "No"]),
        "outcomePrices": json.dumps(["0.65", "0.35"]),
        "clobTokenIds": json.dumps([f"{YES_TOKEN[:-4]}{n:04d}", f"{NO_TOKEN[:-4]}{n:04d}"]),
        "volume": "12000.5",
        "volume24hr": 800.0,
        "liquidity": "5000",
        "active": True,
        "closed": False,
        "endDate": iso(NOW + timedelta(days=30)),
        "startDate": iso(NOW - timedelta(days=10)),
    }
    m.update(overrides)
    return m


def raw_event(n: int = 1, markets=None, **overrides):
    e = {
        "id": str(9000 + n),
        "slug": f"event-{n}",
        "title": f"Event {n}",
        "active": True,
        "closed": False,
        "archived": False,
        "featured": False,
        "new": False,
        "volume": 50000.0,
        "volume24hr": 2500.0,
        "liquidity": 9000.0,
        "tags": [{"id": "2", "label": "Politics", "slug": "politics"}],
        "markets": markets if markets is not None else [raw_market(n)],
    }
    e.update(overrides)
    return e


def json_transport(routes):
    """MockTransport dispatching on URL path; a route value may be a callable(request)."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


def make_service(gamma_routes=None, clob_routes=None, *, enricher=None, conn=None, cache=None, now=NOW):
    gamma = GammaClient("https://gamma.test", client=httpx.AsyncClient(transport=json_transport(gamma_routes or {})))
    clob = ClobClient("https://clob.test", client=httpx.AsyncClient(transport=json_transport(clob_routes or {})))
    return MarketService(
        gamma,
        clob,
        cache or TTLStore(),
        enricher=enricher,
        conn=conn,
        clock=lambda: now,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def temp_db():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    conn = get_connection(path)
    init_schema(conn)
    yield conn
    conn.close()
    path.unlink(missing_ok=True)
    Path(tmp).rmdir()
