"""Sync subcommand: run, logs."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import typer

from aurora.markets.service import MarketService
from aurora.models import SyncResult
from aurora.storage.db import get_connection, init_schema
from aurora.storage.sync_log import list_sync_logs
from aurora.sync.markets import sync_markets

app = typer.Typer(help="Market sync into the local DB")


@app.command("run")
def run_cmd(
    ctx: typer.Context,
    enrich: bool | None = typer.Option(
        None, "--enrich/--no-enrich", help="Overlay live CLOB prices (default from config)"
    ),
) -> None:
    """Run one sync across every category view."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)

    async def _run() -> SyncResult:
        service = MarketService.from_settings(settings, conn=conn)
        try:
            return await sync_markets(
                service,
                conn,
                service.cache,
                per_view_limit=settings.sync_per_view_limit,
                enrich=settings.sync_enrich_prices if enrich is None else enrich,
            )
        finally:
            await service.aclose()

    try:
        result = asyncio.run(_run())
    finally:
        conn.close()
    typer.echo(
        f"Synced {result.count} markets ({result.failed} failed, {result.skipped} skipped) in {result.duration_ms} ms"
    )


@app.command("logs")
def logs(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Most recent runs to show"),
) -> None:
    """Show recent sync runs."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        entries = list_sync_logs(conn, limit)
    finally:
        conn.close()
    for e in entries:
        at = datetime.fromtimestamp(e.created_at / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"  {e.id:>5}  {at}  {e.status:<8}  {e.count:>6}  {e.duration_ms:>7} ms"
        if e.error:
            line += f"  {e.error}"
        typer.echo(line)
    typer.echo(f"Total: {len(entries)} runs")
