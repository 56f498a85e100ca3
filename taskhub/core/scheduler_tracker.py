"""Execution tracking for scheduled jobs."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from taskhub.core.config import Constants
from taskhub.core.redis_client import RedisClient, redis_client


logger = logging.getLogger(__name__)

_STATS_TTL_SECONDS = 86400 * 7
_DLQ_TTL_SECONDS = 86400 * 30
_CURRENT_RUN_TTL_SECONDS = 3600
_MAX_ERROR_LENGTH = 500
_DLQ_FAILURE_THRESHOLD = 3


class JobTracker:
    """Track job runs and health, in Redis when available and in memory otherwise."""

    def __init__(self, client: RedisClient | None = None) -> None:
        self._redis = client or redis_client
        self._memory_storage: dict[str, dict[str, Any]] = {}
        self._dead_letter_queue: deque[tuple[str, str, str]] = deque(
            maxlen=Constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN
        )

    @staticmethod
    def _key(job_name: str, field: str) -> str:
        return f"scheduler:job:{job_name}:{field}"

    def _memory(self, job_name: str) -> dict[str, Any]:
        return self._memory_storage.setdefault(job_name, {})

    async def record_job_start(self, job_name: str) -> None:
        """Mark a job as currently running."""
        now = datetime.now(UTC).isoformat()
        if self._redis.is_available:
            await self._redis.set(self._key(job_name, "current_run"), now, ttl_seconds=_CURRENT_RUN_TTL_SECONDS)
        else:
            self._memory(job_name)["current_run"] = now

    async def record_job_success(self, job_name: str) -> None:
        """Record a successful run and reset the consecutive failure counter."""
        now = datetime.now(UTC).isoformat()

        if self._redis.is_available:
            await self._redis.set(self._key(job_name, "last_success"), now, ttl_seconds=_STATS_TTL_SECONDS)
            await self._redis.set(self._key(job_name, "consecutive_failures"), "0", ttl_seconds=_STATS_TTL_SECONDS)
            await self._redis.increment(self._key(job_name, "success_count"))
            await self._redis.expire(self._key(job_name, "success_count"), _STATS_TTL_SECONDS)
            await self._redis.delete(self._key(job_name, "current_run"))
            return

        job_data = self._memory(job_name)
        job_data["last_success"] = now
        job_data["consecutive_failures"] = 0
        job_data["success_count"] = job_data.get("success_count", 0) + 1
        job_data.pop("current_run", None)

    async def record_job_failure(self, job_name: str, error: str) -> int | None:
        """Record a failed run.

        Returns:
            The number of consecutive failures, or None if Redis could not count them
        """
        now = datetime.now(UTC).isoformat()
        error = error[:_MAX_ERROR_LENGTH]

        if self._redis.is_available:
            await self._redis.set(self._key(job_name, "last_failure"), now, ttl_seconds=_STATS_TTL_SECONDS)
            await self._redis.set(self._key(job_name, "last_error"), error, ttl_seconds=_STATS_TTL_SECONDS)
            consecutive_failures = await self._redis.increment(self._key(job_name, "consecutive_failures"))
            await self._redis.expire(self._key(job_name, "consecutive_failures"), _STATS_TTL_SECONDS)
            await self._redis.increment(self._key(job_name, "failure_count"))
            await self._redis.expire(self._key(job_name, "failure_count"), _STATS_TTL_SECONDS)
            await self._redis.delete(self._key(job_name, "current_run"))
            return consecutive_failures

        job_data = self._memory(job_name)
        job_data["last_failure"] = now
        job_data["last_error"] = error
        job_data["consecutive_failures"] = job_data.get("consecutive_failures", 0) + 1
        job_data["failure_count"] = job_data.get("failure_count", 0) + 1
        job_data.pop("current_run", None)
        return job_data["consecutive_failures"]

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        """Get the health summary of a job."""
        if self._redis.is_available:
            fields = [
                "last_success",
                "last_failure",
                "last_error",
                "consecutive_failures",
                "success_count",
                "failure_count",
                "current_run",
            ]
            values = {field: await self._redis.get(self._key(job_name, field)) for field in fields}
        else:
            values = dict(self._memory_storage.get(job_name, {}))

        current_run = values.get("current_run")
        return {
            "job_name": job_name,
            "last_success": values.get("last_success"),
            "last_failure": values.get("last_failure"),
            "last_error": values.get("last_error"),
            "consecutive_failures": int(values.get("consecutive_failures") or 0),
            "success_count": int(values.get("success_count") or 0),
            "failure_count": int(values.get("failure_count") or 0),
            "currently_running": current_run is not None,
            "current_run_started": current_run,
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        """Park a persistently failing job for operator attention."""
        timestamp = datetime.now(UTC).isoformat()
        self._dead_letter_queue.append((job_name, error, context))

        logger.error(
            "Job added to dead letter queue",
            extra={"job_name": job_name, "error": error, "context": context, "timestamp": timestamp},
        )

        if self._redis.is_available:
            await self._redis.set(
                f"scheduler:dlq:{job_name}:{timestamp}",
                f"{error} | {context}",
                ttl_seconds=_DLQ_TTL_SECONDS,
            )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        return [
            {"job_name": job_name, "error": error, "context": context}
            for job_name, error, context in self._dead_letter_queue
        ]


# Global job tracker instance
job_tracker = JobTracker()


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[object]],
    job_name: str,
    tracker: JobTracker | None = None,
    max_retries: int = 3,
    base_delay: float = 2.0,
) -> bool:
    """Execute a job, retrying with exponential backoff.

    Retrying a whole recurring run is safe because generation is idempotent
    per template and day.

    Args:
        job_func: Async callable to execute
        job_name: Name of the job for tracking
        tracker: Job tracker to record into (defaults to the global tracker)
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds for exponential backoff

    Returns:
        True if an attempt succeeded, False once all attempts are exhausted
    """
    tracker = tracker or job_tracker
    await tracker.record_job_start(job_name)

    last_error = None
    for attempt in range(max_retries):
        try:
            logger.info("Executing %s (attempt %d/%d)", job_name, attempt + 1, max_retries)
            await job_func()
        except Exception as e:
            last_error = str(e) or type(e).__name__
            logger.error("%s failed on attempt %d/%d: %s", job_name, attempt + 1, max_retries, last_error)
            if attempt < max_retries - 1:
                delay = base_delay**attempt
                logger.info("Retrying %s in %.1fs", job_name, delay)
                await asyncio.sleep(delay)
            continue

        await tracker.record_job_success(job_name)
        logger.info("%s completed successfully", job_name)
        return True

    error_msg = f"Failed after {max_retries} attempts: {last_error}"
    consecutive_failures = await tracker.record_job_failure(job_name, error_msg)
    logger.critical(
        "%s failed after all retry attempts",
        job_name,
        extra={"error": error_msg, "consecutive_failures": consecutive_failures},
    )

    if consecutive_failures and consecutive_failures >= _DLQ_FAILURE_THRESHOLD:
        await tracker.add_to_dead_letter_queue(
            job_name=job_name,
            error=last_error or "Unknown error",
            context=f"Failed {consecutive_failures} consecutive times",
        )
    return False
