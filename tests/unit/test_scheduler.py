"""Tests for scheduler wiring of the recurring job."""

from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest

from taskhub.core.config import Constants
from taskhub.core.scheduler import create_scheduler, run_recurring_tasks_job, stop_scheduler
from taskhub.core.scheduler_tracker import JobTracker


@pytest.fixture
def tracker() -> JobTracker:
    client = MagicMock()
    type(client).is_available = PropertyMock(return_value=False)
    return JobTracker(client=client)


@pytest.mark.unit
def test_create_scheduler_registers_daily_job(tracker):
    """Test the recurring job is registered once a day and never overlaps itself."""
    generator = MagicMock()

    scheduler = create_scheduler(generator, tracker)

    job = scheduler.get_job(Constants.RECURRING_JOB_ID)
    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.misfire_grace_time == Constants.RECURRING_MISFIRE_GRACE_SECONDS
    assert job.args == (generator, tracker)
    fields = {field.name: str(field) for field in job.trigger.fields}
    assert fields["hour"] == "0"
    assert fields["minute"] == "0"


@pytest.mark.unit
def test_create_scheduler_honours_configured_time(tracker, monkeypatch):
    """Test the run time comes from settings."""
    from taskhub.core import scheduler as scheduler_module

    monkeypatch.setattr(scheduler_module.settings, "recurring_run_hour", 3)
    monkeypatch.setattr(scheduler_module.settings, "recurring_run_minute", 30)

    job = create_scheduler(MagicMock(), tracker).get_job(Constants.RECURRING_JOB_ID)

    fields = {field.name: str(field) for field in job.trigger.fields}
    assert (fields["hour"], fields["minute"]) == ("3", "30")


@pytest.mark.unit
async def test_run_recurring_tasks_job_runs_generator(tracker):
    """Test the scheduled entry point runs the generator and records success."""
    generator = MagicMock()
    generator.run = AsyncMock()

    await run_recurring_tasks_job(generator, tracker)

    generator.run.assert_awaited_once_with()
    status = await tracker.get_job_status(Constants.RECURRING_JOB_ID)
    assert status["success_count"] == 1


@pytest.mark.unit
async def test_run_recurring_tasks_job_retries(tracker):
    """Test a failed run is retried before being recorded as failed."""
    generator = MagicMock()
    generator.run = AsyncMock(side_effect=RuntimeError("db down"))

    with patch("taskhub.core.scheduler_tracker.asyncio.sleep", new=AsyncMock()):
        await run_recurring_tasks_job(generator, tracker)

    assert generator.run.await_count == 3
    status = await tracker.get_job_status(Constants.RECURRING_JOB_ID)
    assert status["consecutive_failures"] == 1


@pytest.mark.unit
def test_stop_scheduler_when_not_running(tracker):
    """Test stopping a scheduler that never started is a no-op."""
    scheduler = create_scheduler(MagicMock(), tracker)

    stop_scheduler(scheduler)

    assert not scheduler.running
