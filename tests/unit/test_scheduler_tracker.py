"""Tests for scheduler job tracking and retries."""

from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest

from taskhub.core.scheduler_tracker import JobTracker, retry_job_with_backoff


@pytest.fixture
def memory_tracker() -> JobTracker:
    """Tracker with Redis unavailable, so it keeps state in memory."""
    client = MagicMock()
    type(client).is_available = PropertyMock(return_value=False)
    return JobTracker(client=client)


@pytest.mark.unit
async def test_status_of_unknown_job(memory_tracker):
    """Test a job that never ran reports empty stats."""
    status = await memory_tracker.get_job_status("recurring_tasks")

    assert status["job_name"] == "recurring_tasks"
    assert status["consecutive_failures"] == 0
    assert status["success_count"] == 0
    assert status["currently_running"] is False


@pytest.mark.unit
async def test_success_resets_consecutive_failures(memory_tracker):
    """Test a success after failures resets the failure streak."""
    await memory_tracker.record_job_failure("job", "boom")
    await memory_tracker.record_job_failure("job", "boom")
    await memory_tracker.record_job_start("job")
    assert (await memory_tracker.get_job_status("job"))["currently_running"] is True

    await memory_tracker.record_job_success("job")

    status = await memory_tracker.get_job_status("job")
    assert status["consecutive_failures"] == 0
    assert status["failure_count"] == 2
    assert status["success_count"] == 1
    assert status["last_error"] == "boom"
    assert status["currently_running"] is False


@pytest.mark.unit
async def test_failure_error_is_truncated(memory_tracker):
    """Test very long error messages are cut down before storing."""
    await memory_tracker.record_job_failure("job", "x" * 2000)

    assert len((await memory_tracker.get_job_status("job"))["last_error"]) == 500


@pytest.mark.unit
async def test_redis_backed_failure_counts():
    """Test the consecutive failure count comes from Redis when available."""
    client = MagicMock()
    type(client).is_available = PropertyMock(return_value=True)
    client.set = AsyncMock(return_value=True)
    client.increment = AsyncMock(return_value=4)
    client.expire = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=True)
    tracker = JobTracker(client=client)

    assert await tracker.record_job_failure("job", "boom") == 4
    client.set.assert_any_await("scheduler:job:job:last_error", "boom", ttl_seconds=604800)


@pytest.mark.unit
async def test_retry_succeeds_after_transient_failure(memory_tracker):
    """Test a job that fails once and then succeeds is recorded as a success."""
    job = AsyncMock(side_effect=[RuntimeError("transient"), None])

    with patch("taskhub.core.scheduler_tracker.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await retry_job_with_backoff(job, "job", tracker=memory_tracker) is True

    assert job.await_count == 2
    sleep.assert_awaited_once_with(1.0)
    status = await memory_tracker.get_job_status("job")
    assert status["success_count"] == 1
    assert status["failure_count"] == 0


@pytest.mark.unit
async def test_retry_gives_up_after_max_attempts(memory_tracker):
    """Test exhausting retries records one failure with the last error."""
    job = AsyncMock(side_effect=RuntimeError("database locked"))

    with patch("taskhub.core.scheduler_tracker.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await retry_job_with_backoff(job, "job", tracker=memory_tracker, max_retries=3) is False

    assert job.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
    status = await memory_tracker.get_job_status("job")
    assert status["consecutive_failures"] == 1
    assert "database locked" in status["last_error"]
    assert memory_tracker.get_dead_letter_queue() == []


@pytest.mark.unit
async def test_repeated_failures_reach_dead_letter_queue(memory_tracker):
    """Test the third consecutive failed run is parked in the dead letter queue."""
    job = AsyncMock(side_effect=RuntimeError("still broken"))

    with patch("taskhub.core.scheduler_tracker.asyncio.sleep", new=AsyncMock()):
        for _ in range(3):
            await retry_job_with_backoff(job, "job", tracker=memory_tracker, max_retries=1)

    dlq = memory_tracker.get_dead_letter_queue()
    assert dlq == [{"job_name": "job", "error": "still broken", "context": "Failed 3 consecutive times"}]
