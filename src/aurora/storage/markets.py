"""Event and market persistence. Only the sync job writes here."""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from aurora.models import CanonicalMarket, EventRecord

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

MARKET_COLUMNS = [
    "id", "polymarket_id", "slug", "event_id", "event_slug", "question", "description",
    "category", "tags", "outcomes", "outcome_prices", "tokens", "volume", "volume_24h",
    "liquidity", "spread", "active", "closed", "featured", "is_new", "image_url", "icon",
    "start_date", "end_date", "last_synced_at",
]


def _ms(dt: datetime | None) -> int | None:
    return int(dt.timestamp() * 1000) if dt is not None else None


def _from_ms(ms: int | None) -> datetime | None:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc) if ms is not None else None


def _json_col(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default
    return value


def upsert_event(conn: DuckDBPyConnection, event: EventRecord) -> None:
    """Insert the event, or refresh only its lifecycle flags if it exists."""
    now_ms = int(time.time() * 1000)
    conn.execute(
        """
        INSERT INTO events (id, slug, title, description, category, image_url, start_date, end_date, active, closed, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (id) DO UPDATE SET
            active = excluded.active,
            closed = excluded.closed,
            updated_at = excluded.updated_at
        """,
        [
            event.event_id,
            event.slug,
            event.title,
            event.description,
            event.category,
            event.image_url,
            _ms(event.start_date),
            _ms(event.end_date),
            event.active,
            event.closed,
            now_ms,
            now_ms,
        ],
    )


def update_market_by_polymarket_id(conn: DuckDBPyConnection, market: CanonicalMarket) -> int:
    """Refresh mutable fields of an existing row; returns rows affected (0 = not stored yet).
    last_synced_at never moves backwards."""
    row = conn.execute(
        """
        UPDATE markets SET
            question = ?,
            category = ?,
            tags = ?,
            outcome_prices = ?,
            tokens = ?,
            volume = ?,
            volume_24h = ?,
            liquidity = ?,
            spread = ?,
            active = ?,
            closed = ?,
            featured = ?,
            is_new = ?,
            last_synced_at = GREATEST(last_synced_at, ?)
        WHERE polymarket_id = ?
        """,
        [
            market.question,
            market.category,
            json.dumps(market.tags),
            json.dumps(market.outcome_prices),
            json.dumps([t.model_dump() for t in market.tokens]),
            market.volume,
            market.volume_24h,
            market.liquidity,
            market.spread,
            market.active,
            market.closed,
            market.featured,
            market.is_new,
            _ms(market.last_synced_at),
            market.polymarket_id,
        ],
    ).fetchone()
    return int(row[0]) if row else 0


def market_identity_taken(conn: DuckDBPyConnection, market_id: str, slug: str) -> bool:
    """True if another row already owns this id or slug."""
    row = conn.execute(
        "SELECT 1 FROM markets WHERE id = ? OR slug = ? LIMIT 1", [market_id, slug]
    ).fetchone()
    return row is not None


def insert_market(conn: DuckDBPyConnection, market: CanonicalMarket) -> None:
    placeholders = ", ".join("?" for _ in range(len(MARKET_COLUMNS) + 1))
    conn.execute(
        f"INSERT INTO markets ({', '.join(MARKET_COLUMNS)}, created_at) VALUES ({placeholders})",
        [
            market.id,
            market.polymarket_id,
            market.slug,
            market.event_id or None,
            market.event_slug,
            market.question,
            market.description,
            market.category,
            json.dumps(market.tags),
            json.dumps(market.outcomes),
            json.dumps(market.outcome_prices),
            json.dumps([t.model_dump() for t in market.tokens]),
            market.volume,
            market.volume_24h,
            market.liquidity,
            market.spread,
            market.active,
            market.closed,
            market.featured,
            market.is_new,
            market.image_url,
            market.icon,
            _ms(market.start_date),
            _ms(market.end_date),
            _ms(market.last_synced_at),
            int(time.time() * 1000),
        ],
    )


def _row_to_market(row: tuple[Any, ...]) -> CanonicalMarket:
    r = dict(zip(MARKET_COLUMNS, row))
    for col in ("tags", "outcomes"):
        r[col] = _json_col(r[col], [])
    r["outcome_prices"] = _json_col(r["outcome_prices"], {})
    r["tokens"] = _json_col(r["tokens"], [])
    for col in ("start_date", "end_date", "last_synced_at"):
        r[col] = _from_ms(r[col])
    r["event_id"] = r["event_id"] or ""
    r["event_slug"] = r["event_slug"] or ""
    return CanonicalMarket.model_validate(r)


def find_market(conn: DuckDBPyConnection, id_or_slug: str) -> CanonicalMarket | None:
    """Look up by condition id, slug or upstream id."""
    row = conn.execute(
        f"""
        SELECT {', '.join(MARKET_COLUMNS)} FROM markets
        WHERE id = ? OR slug = ? OR polymarket_id = ?
        LIMIT 1
        """,
        [id_or_slug, id_or_slug, id_or_slug],
    ).fetchone()
    return _row_to_market(row) if row else None


def list_markets(
    conn: DuckDBPyConnection,
    category: str | None = None,
    limit: int = 100,
) -> list[CanonicalMarket]:
    """Stored open markets, highest 24h volume first."""
    params: list[Any] = []
    where = "closed = FALSE"
    if category:
        where += " AND category = ?"
        params.append(category)
    params.append(limit)
    rows = conn.execute(
        f"SELECT {', '.join(MARKET_COLUMNS)} FROM markets WHERE {where} ORDER BY volume_24h DESC LIMIT ?",
        params,
    ).fetchall()
    return [_row_to_market(r) for r in rows]
