"""APScheduler integration for periodic alert generation.

Uses AsyncIOScheduler with CronTrigger to call generate_alerts() on a
configurable schedule.  No-ops gracefully if no cron expression is configured.
"""

import contextlib
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]

from trendwatch.config import get_settings
from trendwatch.errors import TrendwatchError
from trendwatch.observability.metrics import SCHEDULED_RUNS_TOTAL
from trendwatch.trends.service import PerformanceTrendService

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def _scheduled_alert_job(service: PerformanceTrendService) -> None:
    """Async job executed by the scheduler: generate alerts, record metrics."""
    try:
        alerts = await service.generate_alerts()
    except TrendwatchError:
        SCHEDULED_RUNS_TOTAL.labels(status="error").inc()
        logger.exception("Scheduled alert generation failed")
        return

    SCHEDULED_RUNS_TOTAL.labels(status="success").inc()
    logger.info("Scheduled alert generation created %d alert(s)", len(alerts))


def start_scheduler(service: PerformanceTrendService) -> None:
    """Start the APScheduler if a cron expression is configured."""
    global _scheduler  # noqa: PLW0603

    settings = get_settings()
    if not settings.alert_schedule_cron:
        logger.info("Alert scheduler disabled (ALERT_SCHEDULE_CRON not set)")
        return

    trigger = CronTrigger.from_crontab(settings.alert_schedule_cron)
    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        _scheduled_alert_job,
        trigger=trigger,
        args=[service],
        id="trend_alerts",
        name="Performance Trend Alerts",
        replace_existing=True,
        max_instances=1,
    )
    _scheduler.start()
    logger.info("Alert scheduler started with cron: %s", settings.alert_schedule_cron)


def stop_scheduler() -> None:
    """Gracefully shut down the scheduler if it is running."""
    global _scheduler  # noqa: PLW0603

    if _scheduler is not None:
        with contextlib.suppress(Exception):
            _scheduler.shutdown(wait=False)
        logger.info("Alert scheduler stopped")
        _scheduler = None
