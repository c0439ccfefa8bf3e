"""Cron-scheduled sync with a startup run and a single-flight guard."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

log = structlog.get_logger(__name__)


class SyncOrchestrator:
    """Owns the scheduler and the in-progress flag. A tick that arrives mid-run is dropped, not queued."""

    def __init__(
        self,
        run_sync: Callable[[], Awaitable[Any]],
        *,
        cron: str = "*/5 * * * *",
        startup_delay_sec: float = 3.0,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._run_sync = run_sync
        self.cron = cron
        self.startup_delay_sec = startup_delay_sec
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def trigger(self, reason: str = "manual") -> Any:
        """Run once unless a run is in flight; returns the run's result, or None if skipped or failed."""
        if self._running:
            log.info("sync_skipped_in_progress", reason=reason)
            return None
        self._running = True
        try:
            log.info("sync_triggered", reason=reason)
            return await self._run_sync()
        except Exception as e:
            log.error("sync_run_error", reason=reason, error=str(e))
            return None
        finally:
            self._running = False

    async def _tick(self) -> None:
        await self.trigger("schedule")

    async def _startup(self) -> None:
        await self.trigger("startup")

    def start(self) -> bool:
        """Must be called with a running event loop. False if the cron expression is invalid."""
        try:
            trigger = CronTrigger.from_crontab(self.cron, timezone=timezone.utc)
        except ValueError as e:
            log.error("sync_cron_invalid", cron=self.cron, error=str(e))
            return False
        self.scheduler.add_job(self._tick, trigger, id="sync_markets", max_instances=1, coalesce=True)
        run_at = datetime.now(timezone.utc) + timedelta(seconds=self.startup_delay_sec)
        self.scheduler.add_job(self._startup, DateTrigger(run_date=run_at), id="sync_markets_startup")
        self.scheduler.start()
        log.info("sync_scheduler_started", cron=self.cron, startup_delay_sec=self.startup_delay_sec)
        return True

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            log.info("sync_scheduler_stopped")
