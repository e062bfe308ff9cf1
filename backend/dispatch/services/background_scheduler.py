"""
Background scheduler for the daily occurrence sweep.

Uses APScheduler for in-process scheduling without external dependencies.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from dispatch.core.config import get_settings
from dispatch.core.logger import logger
from dispatch.services.occurrence_generator import OccurrenceGenerator
from dispatch.utils.datetime_utils import now_utc


class BackgroundScheduler:
    """
    Background scheduler for periodic jobs.

    Features:
    - Daily occurrence sweep over every Active plan
    - Startup sweep so a server that was down at sweep time catches up
    """

    def __init__(self, generator: OccurrenceGenerator):
        self._generator = generator
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._last_run: Optional[datetime] = None

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    async def start(self):
        """Start the scheduler and run a catch-up sweep."""
        settings = get_settings()

        # Only run scheduler in non-test environments
        if settings.ENVIRONMENT == "test":
            logger.info("Background scheduler disabled in test environment")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._run_occurrence_sweep,
            CronTrigger(hour=settings.OCCURRENCE_SWEEP_HOUR, minute=settings.OCCURRENCE_SWEEP_MINUTE),
            id="occurrence_sweep",
            name="Recurring Plan Occurrence Sweep",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Background scheduler started:\n"
            f"  - Occurrence sweep: daily {settings.OCCURRENCE_SWEEP_HOUR:02d}:"
            f"{settings.OCCURRENCE_SWEEP_MINUTE:02d}"
        )

        # Catch up in background (non-blocking)
        asyncio.create_task(self._run_occurrence_sweep())

    async def stop(self):
        """Stop the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Background scheduler stopped")

    async def _run_occurrence_sweep(self) -> Optional[dict]:
        try:
            summary = await self._generator.generate_all_active()
        except Exception as e:
            logger.error(f"Occurrence sweep failed: {e}")
            return None
        self._last_run = now_utc()
        return summary


# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


async def get_background_scheduler() -> BackgroundScheduler:
    """Get the global background scheduler instance."""
    global _scheduler
    if _scheduler is None:
        from dispatch.api.deps import get_occurrence_generator

        _scheduler = BackgroundScheduler(generator=get_occurrence_generator())
    return _scheduler


async def start_background_scheduler():
    """Start the global background scheduler."""
    scheduler = await get_background_scheduler()
    await scheduler.start()


async def stop_background_scheduler():
    """Stop the global background scheduler."""
    global _scheduler
    if _scheduler:
        await _scheduler.stop()
        _scheduler = None
