"""Markets subcommand: list, show."""

from __future__ import annotations

import asyncio

import typer

from aurora.markets.service import MarketService
from aurora.markets.views import DEFAULT_VIEW, VIEWS
from aurora.models import CanonicalMarket
from aurora.storage.db import get_connection, init_schema
from aurora.storage.markets import list_markets as storage_list_markets

app = typer.Typer(help="Live and stored market listings")


def _line(m: CanonicalMarket) -> str:
    prices = "  ".join(f"{o}={p:.2f}" for o, p in m.outcome_prices.items())
    return f"  {m.id[:20]:<20}  {m.category:<10}  {m.volume_24h:>12.0f}  {prices:<22}  {m.question[:60]}"


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    view: str = typer.Option(DEFAULT_VIEW, "--view", "-v", help=f"One of: {', '.join(VIEWS)}"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max markets"),
    offset: int = typer.Option(0, "--offset", help="Skip this many"),
    search: str | None = typer.Option(None, "--search", "-s", help="Title search (ignores view)"),
    stored: bool = typer.Option(False, "--stored", help="Read from the local DB instead of Polymarket"),
) -> None:
    """List markets for a view, live from Polymarket or from the local DB."""
    settings = ctx.obj["settings"]
    if stored:
        conn = get_connection(settings.db_path)
        init_schema(conn)
        try:
            category = view if view not in ("Trending", "All") else None
            markets = storage_list_markets(conn, category=category, limit=limit)
        finally:
            conn.close()
    else:
        if view not in VIEWS:
            raise typer.BadParameter(f"unknown view {view!r}", param_hint="--view")

        async def _fetch() -> list[CanonicalMarket]:
            service = MarketService.from_settings(settings)
            try:
                return await service.fetch_view(view, limit, offset, search)
            finally:
                await service.aclose()

        markets = asyncio.run(_fetch())
    for m in markets:
        typer.echo(_line(m))
    typer.echo(f"Total: {len(markets)} markets")


@app.command("show")
def show(
    ctx: typer.Context,
    id_or_slug: str = typer.Argument(..., help="Event slug, condition id or market slug"),
) -> None:
    """Show one market (falls back to the local DB when Polymarket has no match)."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)

    async def _detail() -> CanonicalMarket | None:
        service = MarketService.from_settings(settings, conn=conn)
        try:
            return await service.get_market_detail(id_or_slug)
        finally:
            await service.aclose()

    try:
        market = asyncio.run(_detail())
    finally:
        conn.close()
    if market is None:
        typer.echo(f"No market found for {id_or_slug}", err=True)
        raise typer.Exit(1)
    typer.echo(market.model_dump_json(indent=2))
