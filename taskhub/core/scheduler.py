"""Scheduler for the daily recurring task job."""

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from taskhub.core.config import Constants, settings
from taskhub.core.scheduler_tracker import JobTracker, retry_job_with_backoff


if TYPE_CHECKING:
    from taskhub.services.recurring_task_service import RecurringTaskGenerator


logger = logging.getLogger(__name__)


async def run_recurring_tasks_job(generator: "RecurringTaskGenerator", tracker: JobTracker | None = None) -> None:
    """Scheduled entry point: run the generator with retries and job tracking."""
    await retry_job_with_backoff(generator.run, Constants.RECURRING_JOB_ID, tracker=tracker)


def create_scheduler(
    generator: "RecurringTaskGenerator",
    tracker: JobTracker | None = None,
) -> AsyncIOScheduler:
    """Build a scheduler with the recurring task job registered.

    The job never overlaps itself: a run still in progress when the next
    fire time arrives causes that fire time to be skipped, and missed runs
    collapse into one.
    """
    scheduler = AsyncIOScheduler()
    if settings.scheduler_timezone:
        scheduler.configure(timezone=settings.scheduler_timezone)

    scheduler.add_job(
        run_recurring_tasks_job,
        trigger=CronTrigger(
            hour=settings.recurring_run_hour,
            minute=settings.recurring_run_minute,
            timezone=settings.scheduler_timezone,
        ),
        args=[generator, tracker],
        id=Constants.RECURRING_JOB_ID,
        name="Generate Recurring Tasks",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=Constants.RECURRING_MISFIRE_GRACE_SECONDS,
        replace_existing=True,
    )
    logger.info(
        "Scheduled recurring tasks job: daily at %02d:%02d",
        settings.recurring_run_hour,
        settings.recurring_run_minute,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Start the scheduler. Call from the app's startup with the event loop running."""
    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the scheduler. Call from the app's shutdown."""
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")
