"""
In-process scheduling with APScheduler.

The only periodic job is the room sweep, which drops relay rooms that
have been idle longer than ROOM_TTL_SECONDS.
"""
from typing import Optional
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cliprelay.config import get_settings
from cliprelay.rooms import sweep_all

logger = logging.getLogger("cliprelay.tasks")

_scheduler: Optional[AsyncIOScheduler] = None


def job_sweep_rooms() -> int:
    """Sweep both relay inboxes; returns rooms removed."""
    return sweep_all()


def create_scheduler() -> AsyncIOScheduler:
    """Create and configure the scheduler instance."""
    scheduler = AsyncIOScheduler()
    settings = get_settings()

    scheduler.add_job(
        job_sweep_rooms,
        IntervalTrigger(seconds=settings.ROOM_SWEEP_INTERVAL_SECONDS),
        id="room_sweep",
        name="Idle room sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler


def start_scheduler() -> AsyncIOScheduler:
    """
    Start the background scheduler.

    Must be called from inside a running event loop (the app lifespan).
    """
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = create_scheduler()
    _scheduler.start()
    for job in _scheduler.get_jobs():
        logger.info("Scheduled job %s: %s", job.name, job.trigger)
    return _scheduler


def stop_scheduler(scheduler: Optional[AsyncIOScheduler] = None):
    """
    Stop the background scheduler.

    Args:
        scheduler: Scheduler to stop (uses global if None)
    """
    global _scheduler

    target = scheduler or _scheduler
    if target:
        target.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    _scheduler = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the current scheduler instance."""
    return _scheduler
