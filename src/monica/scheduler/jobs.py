"""
APScheduler jobs for background sync.

The periodic sweep pushes whatever the view-models could not push
immediately (offline edits, failed records). It runs in the same process
as `python -m monica`.
"""
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from monica.config import get_settings

logger = logging.getLogger(__name__)


def build_scheduler(engine) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        engine: SQLAlchemy engine to pass to the sync engine.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _periodic_sync,
        trigger="interval",
        minutes=settings.sync_interval_minutes,
        id="periodic_sync",
        replace_existing=True,
        kwargs={"engine": engine},
    )

    return scheduler


async def _periodic_sync(engine) -> None:
    """Interval job: one sync sweep. Never raises, so the scheduler keeps running."""
    from monica.client.errors import sanitize_for_log
    from monica.sync.engine import run_sweep

    logger.info("Periodic sync starting at %s", datetime.now(timezone.utc).isoformat())

    try:
        summary = await run_sweep(engine)
        logger.info("Periodic sync done: %d synced, %d failed", summary.synced, summary.failed)
    except Exception as exc:
        logger.error("Periodic sync failed: %s", sanitize_for_log(str(exc)))
