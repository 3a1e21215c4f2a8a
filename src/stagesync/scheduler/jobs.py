"""
APScheduler jobs for background sync.

The periodic job replays uncontained changes so production catches up even
when nobody triggers POST /sync. Entries withheld behind an open commit are
picked up by a later run once the commit ends.

The scheduler runs inside the `python -m stagesync run` process.
"""
import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from stagesync.config import get_settings
from stagesync.errors import BatchSyncError

logger = logging.getLogger(__name__)


def build_scheduler(synchronizer) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        synchronizer: Synchronizer whose sync() the job runs.

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
        max_instances=1,
        coalesce=True,
        kwargs={"synchronizer": synchronizer},
    )

    return scheduler


async def _periodic_sync(synchronizer) -> None:
    """
    Periodic job: run one batch sync.

    Idempotent: a run with nothing pending changes nothing.
    """
    logger.info("Periodic sync starting at %s", datetime.utcnow().isoformat())

    try:
        count = synchronizer.sync()
        logger.info("Periodic sync finished: %d record(s)", count)
    except BatchSyncError as exc:
        logger.warning(
            "Periodic sync partially failed: %d synchronized, %d failed",
            exc.synchronized, len(exc.failures),
        )
    except Exception as exc:
        logger.error("Periodic sync failed: %s", exc)
