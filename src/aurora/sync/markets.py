"""One sync run: fetch every category view, dedup globally, upsert events then markets.

Upserts are gathered with return_exceptions=True so one bad record cannot abort the
batch. They share one DuckDB connection and never yield, so they run one after another.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import structlog

from aurora.markets.filters import dedup_markets
from aurora.markets.normalize import normalize_event
from aurora.markets.service import MARKET_DETAIL_PREFIX, MARKET_LIST_PREFIX, MarketService
from aurora.markets.views import STATIC_CATEGORIES
from aurora.models import CanonicalMarket, SyncResult
from aurora.storage.cache import TTLStore
from aurora.storage.markets import (
    insert_market,
    market_identity_taken,
    update_market_by_polymarket_id,
    upsert_event,
)
from aurora.storage.sync_log import record_sync_log

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

SYNC_TYPE = "markets"
SYNC_VIEWS = ("Trending",) + STATIC_CATEGORIES
# Failures beyond this many are counted, not logged individually
LOGGED_FAILURES = 5


async def _collect(
    service: MarketService, per_view_limit: int, enrich: bool
) -> tuple[list[CanonicalMarket], dict[str, dict[str, Any]]]:
    seen: set[str] = set()
    batch: list[CanonicalMarket] = []
    events_by_id: dict[str, dict[str, Any]] = {}
    for view in SYNC_VIEWS:
        try:
            markets, events = await service.fetch_view_with_events(view, per_view_limit, enrich=enrich)
        except Exception as e:
            log.warning("sync_view_failed", view=view, error=str(e))
            continue
        fresh = dedup_markets(markets, seen)
        for event in events:
            if event.get("id") is not None:
                events_by_id.setdefault(str(event["id"]), event)
        batch.extend(fresh)
        log.debug("sync_view_collected", view=view, markets=len(fresh))
    wanted = {m.event_id for m in batch if m.event_id}
    return batch, {eid: ev for eid, ev in events_by_id.items() if eid in wanted}


async def _upsert_market(conn: DuckDBPyConnection, market: CanonicalMarket) -> bool:
    """False when skipped because another row owns the id or slug."""
    if update_market_by_polymarket_id(conn, market) > 0:
        return True
    if market_identity_taken(conn, market.id, market.slug):
        log.debug("sync_market_collision", market_id=market.id, slug=market.slug)
        return False
    insert_market(conn, market)
    return True


async def _upsert_event(conn: DuckDBPyConnection, raw_event: dict[str, Any]) -> None:
    upsert_event(conn, normalize_event(raw_event))


async def sync_markets(
    service: MarketService,
    conn: DuckDBPyConnection,
    cache: TTLStore,
    *,
    per_view_limit: int = 500,
    enrich: bool = True,
) -> SyncResult:
    """Returns counts for the run; re-raises after logging a failed run if the pipeline itself breaks.

    count is rows written; collision skips are reported separately and are not failures.
    """
    start = time.monotonic()
    try:
        markets, events = await _collect(service, per_view_limit, enrich)

        event_results = await asyncio.gather(
            *(_upsert_event(conn, ev) for ev in events.values()), return_exceptions=True
        )
        for eid, res in zip(events, event_results):
            if isinstance(res, BaseException):
                log.warning("sync_event_upsert_failed", event_id=eid, error=str(res))

        results = await asyncio.gather(*(_upsert_market(conn, m) for m in markets), return_exceptions=True)
        count = failed = skipped = 0
        for market, res in zip(markets, results):
            if isinstance(res, BaseException):
                failed += 1
                if failed <= LOGGED_FAILURES:
                    log.warning("sync_market_upsert_failed", market_id=market.id, error=str(res))
            elif res:
                count += 1
            else:
                skipped += 1

        dropped = cache.delete_by_prefix(MARKET_LIST_PREFIX) + cache.delete_by_prefix(MARKET_DETAIL_PREFIX)
        duration_ms = int((time.monotonic() - start) * 1000)
        error = f"{failed} market upserts failed" if failed else None
        record_sync_log(conn, SYNC_TYPE, "success", count, duration_ms, error)
        log.info(
            "sync_completed",
            count=count,
            failed=failed,
            skipped=skipped,
            events=len(events),
            cache_dropped=dropped,
            duration_ms=duration_ms,
        )
        return SyncResult(count=count, failed=failed, skipped=skipped, duration_ms=duration_ms)
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        log.error("sync_failed", error=str(e), duration_ms=duration_ms)
        record_sync_log(conn, SYNC_TYPE, "failed", 0, duration_ms, str(e))
        raise
