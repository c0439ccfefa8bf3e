"""FastAPI app: market listings, detail, charts, user records and sync status."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Literal

import structlog
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aurora.api.schemas import (
    ErrorResponse,
    HealthResponse,
    MarketsListResponse,
    OrderBookResponse,
    PriceHistoryResponse,
    SyncLogsResponse,
    UserRecordsResponse,
)
from aurora.config import configure_logging, get_settings
from aurora.ingestion.polymarket import DataClient, UpstreamError
from aurora.ingestion.polymarket.clob import Interval
from aurora.markets.service import MarketService
from aurora.markets.views import DEFAULT_VIEW
from aurora.models import CanonicalMarket
from aurora.storage.db import get_connection, init_schema
from aurora.storage.sync_log import list_sync_logs
from aurora.sync.markets import sync_markets
from aurora.sync.scheduler import SyncOrchestrator

log = structlog.get_logger(__name__)

ViewName = Literal[
    "Trending", "All", "Breaking", "EndingSoon", "HighestVolume", "New",
    "Politics", "Crypto", "Economy", "Sports", "Technology", "Culture",
]

# Set by run_api() so the lifespan picks up the CLI profile.
_config_profile: str | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings(_config_profile)
    configure_logging(settings)
    conn = get_connection(settings.db_path, read_only=False)
    init_schema(conn)
    service = MarketService.from_settings(settings, conn=conn)
    data = DataClient(settings.data_api_base, timeout=settings.http_timeout_sec)

    async def run_sync():
        return await sync_markets(
            service,
            conn,
            service.cache,
            per_view_limit=settings.sync_per_view_limit,
            enrich=settings.sync_enrich_prices,
        )

    orchestrator = SyncOrchestrator(
        run_sync, cron=settings.sync_cron, startup_delay_sec=settings.sync_startup_delay_sec
    )
    orchestrator.start()
    app.state.service = service
    app.state.data = data
    app.state.conn = conn
    app.state.orchestrator = orchestrator
    try:
        yield
    finally:
        orchestrator.shutdown()
        await service.aclose()
        await data.aclose()
        conn.close()


app = FastAPI(title="Aurora Markets API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def get_service(request: Request) -> MarketService:
    return request.app.state.service


def get_data_client(request: Request) -> DataClient:
    return request.app.state.data


def get_conn(request: Request):
    return request.app.state.conn


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=message, code=code).model_dump(),
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    log.warning("api_upstream_error", path=request.url.path, status=exc.status, error=str(exc))
    return _error_json("upstream_error", "Upstream market data unavailable", status_code=502)


@app.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    running = bool(orchestrator and orchestrator.scheduler.running)
    return HealthResponse(status="ok", scheduler_running=running)


@app.get("/markets", response_model=MarketsListResponse)
async def markets_list(
    view: ViewName = DEFAULT_VIEW,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    search: str | None = Query(None, min_length=1),
    service: MarketService = Depends(get_service),
) -> MarketsListResponse:
    markets = await service.get_markets(view, limit, offset, search)
    return MarketsListResponse(markets=markets, view=view, limit=limit, offset=offset)


@app.get("/markets/{market_id}", response_model=CanonicalMarket, responses={404: {"model": ErrorResponse}})
async def market_detail(market_id: str, service: MarketService = Depends(get_service)):
    market = await service.get_market_detail(market_id)
    if market is None:
        return _error_json("not_found", f"Market {market_id} not found")
    return market


@app.get(
    "/markets/{market_id}/price-history",
    response_model=PriceHistoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def market_price_history(
    market_id: str,
    interval: Interval = "1d",
    outcome: str = "Yes",
    service: MarketService = Depends(get_service),
):
    history = await service.get_price_history(market_id, interval, outcome)
    if history is None:
        return _error_json("not_found", f"Market {market_id} not found")
    return PriceHistoryResponse(
        market_id=market_id,
        outcome=history.outcome,
        interval=history.interval,
        token_id=history.token_id,
        points=history.points,
    )


@app.get("/orderbook/{market_id}", response_model=OrderBookResponse, responses={404: {"model": ErrorResponse}})
async def market_orderbook(market_id: str, service: MarketService = Depends(get_service)):
    books = await service.get_orderbook(market_id)
    if books is None:
        return _error_json("not_found", f"Market {market_id} not found")
    return OrderBookResponse(market_id=market_id, books=books)


@app.get("/users/{address}/positions", response_model=UserRecordsResponse)
async def user_positions(address: str, data: DataClient = Depends(get_data_client)) -> UserRecordsResponse:
    items = await data.get_user_positions(address)
    return UserRecordsResponse(address=address.lower(), items=items)


@app.get("/users/{address}/activity", response_model=UserRecordsResponse)
async def user_activity(
    address: str,
    limit: int = Query(20, ge=1, le=100),
    data: DataClient = Depends(get_data_client),
) -> UserRecordsResponse:
    items = await data.get_user_activity(address, limit=limit)
    return UserRecordsResponse(address=address.lower(), items=items)


@app.get("/sync/logs", response_model=SyncLogsResponse)
def sync_logs(limit: int = Query(20, ge=1, le=200), conn=Depends(get_conn)) -> SyncLogsResponse:
    return SyncLogsResponse(logs=list_sync_logs(conn, limit))


def run_api(host: str = "127.0.0.1", port: int = 8000, profile: str | None = None) -> None:
    global _config_profile
    _config_profile = profile
    import uvicorn

    uvicorn.run("aurora.api.main:app", host=host, port=port, reload=False)
