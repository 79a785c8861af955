"""
Scheduled jobs for the inventory monitor.

- ``poll_inventory`` runs one monitor tick every ``POLL_TICK_SECONDS``.
  ``max_instances=1`` means a slow tick delays the next one instead of
  overlapping it.
- ``purge_history`` deletes expired history entries once a day.
"""

import logging
from datetime import datetime

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from stockwatch.core.config import Settings
from stockwatch.services.inventory_monitor import InventoryMonitor
from stockwatch.services.inventory_store import InventoryStore

logger = logging.getLogger(__name__)

POLL_JOB_ID = "poll_inventory"
PURGE_JOB_ID = "purge_history"


async def poll_inventory_task(monitor: InventoryMonitor):
    """One scheduler tick"""
    summary = await monitor.run_tick()
    return summary


async def purge_history_task(store: InventoryStore):
    logger.info("Starting cleanup of expired inventory history")
    return await store.purge_expired_history()


def job_listener(event):
    """Listen to job events for logging"""
    if event.code == EVENT_JOB_MISSED:
        logger.warning(f"Job {event.job_id} missed its run time ({event.scheduled_run_time})")
    elif event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(settings: Settings, monitor: InventoryMonitor, store: InventoryStore) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    if settings.POLL_ENABLED:
        scheduler.add_job(
            poll_inventory_task,
            IntervalTrigger(seconds=settings.POLL_TICK_SECONDS),
            args=[monitor],
            id=POLL_JOB_ID,
            name="Poll Inventory",
            replace_existing=True,
            max_instances=1,  # Never overlap ticks
            coalesce=True,
            next_run_time=datetime.now(scheduler.timezone),
        )
        logger.info(f"Inventory poll job added, ticking every {settings.POLL_TICK_SECONDS}s")
    else:
        logger.info("Inventory polling is disabled. Set POLL_ENABLED=true to enable")

    if settings.HISTORY_TTL_DAYS:
        scheduler.add_job(
            purge_history_task,
            CronTrigger(hour=settings.HISTORY_CLEANUP_HOUR, minute=0),
            args=[store],
            id=PURGE_JOB_ID,
            name="Purge Expired History",
            replace_existing=True,
            max_instances=1,
        )
        logger.info(f"History purge job added for {settings.HISTORY_CLEANUP_HOUR:02d}:00 UTC daily")

    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    if scheduler.running:
        return
    scheduler.start()
    logger.info("Scheduler started successfully")

    jobs = scheduler.get_jobs()
    if jobs:
        logger.info(f"Active scheduled jobs: {len(jobs)}")
        for job in jobs:
            logger.info(f"  - {job.name}: {job.trigger}")
    else:
        logger.info("No scheduled jobs configured")


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the scheduler; running jobs are left to finish"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped successfully")
