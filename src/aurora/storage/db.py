"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS sync_log_seq START 1;

-- Parent events (written before their markets)
CREATE TABLE IF NOT EXISTS events (
    id              VARCHAR PRIMARY KEY,
    slug            VARCHAR NOT NULL,
    title           VARCHAR NOT NULL,
    description     VARCHAR,
    category        VARCHAR NOT NULL,
    image_url       VARCHAR,
    start_date      BIGINT,
    end_date        BIGINT,
    active          BOOLEAN NOT NULL DEFAULT TRUE,
    closed          BOOLEAN NOT NULL DEFAULT FALSE,
    created_at      BIGINT NOT NULL,
    updated_at      BIGINT NOT NULL
);

-- Canonical markets, keyed by condition id
CREATE TABLE IF NOT EXISTS markets (
    id              VARCHAR PRIMARY KEY,
    polymarket_id   VARCHAR NOT NULL UNIQUE,
    slug            VARCHAR NOT NULL UNIQUE,
    event_id        VARCHAR,
    event_slug      VARCHAR,
    question        VARCHAR NOT NULL,
    description     VARCHAR,
    category        VARCHAR NOT NULL,
    tags            JSON,
    outcomes        JSON,
    outcome_prices  JSON NOT NULL,
    tokens          JSON NOT NULL,
    volume          DOUBLE NOT NULL DEFAULT 0,
    volume_24h      DOUBLE NOT NULL DEFAULT 0,
    liquidity       DOUBLE NOT NULL DEFAULT 0,
    spread          DOUBLE,
    active          BOOLEAN NOT NULL DEFAULT TRUE,
    closed          BOOLEAN NOT NULL DEFAULT FALSE,
    featured        BOOLEAN NOT NULL DEFAULT FALSE,
    is_new          BOOLEAN NOT NULL DEFAULT FALSE,
    image_url       VARCHAR,
    icon            VARCHAR,
    start_date      BIGINT,
    end_date        BIGINT,
    last_synced_at  BIGINT NOT NULL,
    created_at      BIGINT NOT NULL
);

-- One row per sync run
CREATE TABLE IF NOT EXISTS sync_logs (
    id              BIGINT PRIMARY KEY DEFAULT nextval('sync_log_seq'),
    type            VARCHAR NOT NULL,
    status          VARCHAR NOT NULL,
    count           INTEGER NOT NULL DEFAULT 0,
    duration_ms     BIGINT NOT NULL DEFAULT 0,
    error           VARCHAR,
    created_at      BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ":memory:" gives a throwaway in-process database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables, indexes and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
