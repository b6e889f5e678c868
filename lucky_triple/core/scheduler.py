"""
Background jobs for the Lucky Triple API.

Jobs:
- Outbox dispatch: drain pending SMS every NOTIFICATION_DISPATCH_INTERVAL_SECONDS

Scheduler: APScheduler (AsyncIOScheduler, started from the app lifespan)
"""
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lucky_triple.core.config import settings
from lucky_triple.core.logging import get_logger
from lucky_triple.services.notification_service import dispatch_outbox_once

logger = get_logger(__name__)


class NotificationScheduler:
    """Owns the AsyncIOScheduler and its jobs."""

    def __init__(self, interval_seconds: Optional[int] = None):
        self.interval_seconds = interval_seconds or settings.NOTIFICATION_DISPATCH_INTERVAL_SECONDS
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 30,
            },
        )
        self._schedule_outbox_dispatch()
        self.scheduler.start()
        self.running = True
        logger.info(f"Scheduler started with {len(self.scheduler.get_jobs())} jobs")

    async def stop(self):
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Scheduler stopped")

    def _schedule_outbox_dispatch(self):
        """
        Schedule: Deliver queued SMS.

        Frequency: every NOTIFICATION_DISPATCH_INTERVAL_SECONDS
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="outbox_dispatch",
            name="Dispatch queued SMS",
        )
        async def dispatch_outbox_job():
            try:
                await dispatch_outbox_once()
            except Exception as e:
                logger.error(f"Outbox dispatch failed: {e}")

        logger.info(f"Scheduled: Outbox dispatch (every {self.interval_seconds}s)")


_scheduler: Optional[NotificationScheduler] = None


async def start_scheduler() -> NotificationScheduler:
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = NotificationScheduler()
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[NotificationScheduler]:
    return _scheduler
