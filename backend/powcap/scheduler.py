"""Background scheduler for periodic token sweeps."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from powcap.engine import Cap

logger = logging.getLogger(__name__)


async def sweep_job(cap: Cap) -> None:
    """Drop expired tokens and rewrite the store if any were removed."""
    try:
        if await cap.sweep_and_persist():
            logger.info(f"Sweep: {len(cap.state.tokens)} live tokens remain")
    except Exception as e:
        logger.error(f"Sweep failed: {e}")


def create_scheduler(cap: Cap) -> AsyncIOScheduler | None:
    """Build a scheduler for ``cap``, or None when the sweep is disabled."""
    interval = cap.settings.sweep_interval_seconds
    if interval <= 0:
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_job,
        trigger=IntervalTrigger(seconds=interval),
        args=[cap],
        id="sweep_expired_tokens",
        replace_existing=True,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """Start the scheduler on the running event loop."""
    if scheduler is None:
        return
    scheduler.start()
    logger.info("Scheduler started - token sweep running")


def shutdown_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """Shutdown the scheduler without waiting for a running sweep."""
    if scheduler is None or not scheduler.running:
        return
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")
