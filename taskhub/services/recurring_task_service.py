"""Recurring task generation.

Once a day every recurring template is checked against its pattern and, on an
occurrence day, turned into one ordinary task due today at the template's
time of day. Each (template, day) pair is generated at most once, however
many times the run is repeated.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Any

from taskhub.core.config import Constants
from taskhub.core.db_client import DatabaseClient, DuplicateRecordError, sanitize_param
from taskhub.core.errors import GenerationError
from taskhub.core.logging import span
from taskhub.core.recurrence import (
    describe_pattern,
    local_today,
    localize,
    occurrence_due_date,
    occurs_on,
    parse_due_date,
)
from taskhub.core.redis_client import RedisClient
from taskhub.domain.task import RecurringPattern, TaskCreate, TaskPriority, TaskStatus
from taskhub.services.task_service import TaskService


logger = logging.getLogger(__name__)

_RUN_LOCK_KEY = "recurring:run_lock:{day}"
_LAST_RUN_KEY = "recurring:last_run"


@dataclass
class GenerationReport:
    """Outcome of one generation run."""

    run_date: date
    scanned: int = 0
    created: int = 0
    skipped: int = 0
    failures: list[GenerationError] = field(default_factory=list)
    # True when the whole run was skipped because another run held the lock
    run_skipped: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_date": self.run_date.isoformat(),
            "scanned": self.scanned,
            "created": self.created,
            "skipped": self.skipped,
            "failed": len(self.failures),
            "run_skipped": self.run_skipped,
        }


class RecurringTaskGenerator:
    """Materializes task instances from recurring templates.

    Runs never overlap: within a process an asyncio lock rejects a second
    concurrent run, and with Redis configured a per-day lock does the same
    across processes.
    """

    def __init__(
        self,
        db: DatabaseClient,
        tasks: TaskService,
        redis: RedisClient | None = None,
        timezone: tzinfo | None = None,
    ) -> None:
        self._db = db
        self._tasks = tasks
        self._redis = redis
        # None evaluates occurrences in the host's local time
        self._timezone = timezone
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run(self, today: date | None = None) -> GenerationReport:
        """Generate today's instances for every recurring template.

        Args:
            today: Day to generate for (defaults to the current date in the generator's zone)

        Returns:
            Counts of scanned templates, created instances, instances skipped
            because they already existed, and per-template failures
        """
        today = today or local_today(self._timezone)
        if self._lock.locked():
            logger.warning("Recurring generation already running, run skipped", extra={"run_date": str(today)})
            return GenerationReport(run_date=today, run_skipped=True)

        async with self._lock:
            if not await self._acquire_run_lock(today):
                logger.warning("Recurring generation locked by another process", extra={"run_date": str(today)})
                return GenerationReport(run_date=today, run_skipped=True)
            try:
                with span("recurring_task_service.run"):
                    report = await self._generate(today)
            finally:
                await self._release_run_lock(today)

        if self._redis is not None:
            await self._redis.set(_LAST_RUN_KEY, today.isoformat(), ttl_seconds=86400 * 7)
        logger.info(
            "Recurring generation finished: scanned=%d created=%d skipped=%d failed=%d",
            report.scanned,
            report.created,
            report.skipped,
            len(report.failures),
            extra=report.as_dict(),
        )
        return report

    async def last_run_date(self) -> str | None:
        if self._redis is None:
            return None
        return await self._redis.get(_LAST_RUN_KEY)

    async def _acquire_run_lock(self, today: date) -> bool:
        if self._redis is None or not self._redis.is_available:
            return True
        key = _RUN_LOCK_KEY.format(day=today.isoformat())
        if await self._redis.set_if_not_exists(key, "1", Constants.RECURRING_RUN_LOCK_TTL_SECONDS):
            return True
        # SET NX also returns False on a Redis error; only a held key means another run
        return await self._redis.get(key) is None

    async def _release_run_lock(self, today: date) -> None:
        if self._redis is not None and self._redis.is_available:
            await self._redis.delete(_RUN_LOCK_KEY.format(day=today.isoformat()))

    async def _generate(self, today: date) -> GenerationReport:
        report = GenerationReport(run_date=today)
        templates = await self._db.list_all_records(collection="tasks", filter_query='is_recurring = "true"')

        for template in templates:
            report.scanned += 1
            try:
                outcome = await self._process_template(template, today)
            except GenerationError as e:
                logger.error(
                    "Recurring template failed",
                    extra={"template_id": e.template_id, "reason": e.reason, "run_date": str(today)},
                )
                report.failures.append(e)
                continue
            except Exception as e:
                logger.exception(
                    "Unexpected error generating recurring template",
                    extra={"template_id": template.get("id"), "run_date": str(today)},
                )
                report.failures.append(GenerationError(str(template.get("id")), f"unexpected error: {e}"))
                continue

            if outcome is True:
                report.created += 1
            elif outcome is False:
                report.skipped += 1
        return report

    async def _process_template(self, template: dict[str, Any], today: date) -> bool | None:
        """Generate one template's instance for ``today``.

        Returns:
            True if created, False if it already existed, None if today is not an occurrence day

        Raises:
            GenerationError: If the template is malformed or the instance cannot be stored
        """
        template_id = template["id"]
        try:
            pattern = RecurringPattern(template["recurring_pattern"])
            anchor = localize(parse_due_date(template["due_date"]), self._timezone)
        except (TypeError, ValueError) as e:
            raise GenerationError(template_id, f"malformed template: {e}") from e

        if not occurs_on(pattern, anchor, today):
            return None

        occurrence = today.isoformat()
        existing = await self._db.get_first_record(
            collection="tasks",
            filter_query=f'template_id = "{sanitize_param(template_id)}" && occurrence_date = "{occurrence}"',
        )
        if existing:
            logger.debug("Instance already generated", extra={"template_id": template_id, "run_date": occurrence})
            return False

        try:
            data = TaskCreate(
                title=template["title"],
                description=template.get("description") or "",
                status=TaskStatus.TODO,
                priority=template.get("priority") or TaskPriority.MEDIUM,
                due_date=occurrence_due_date(anchor, today),
                assigned_to=template.get("assigned_to"),
                is_recurring=False,
            )
            await self._tasks.create_task(
                data=data,
                created_by=template["created_by"],
                template_id=template_id,
                occurrence_date=occurrence,
                assignment_title="Recurring Task Created",
                assignment_message=(
                    f"A recurring task has been created: {data.title} ({describe_pattern(pattern, anchor)})"
                ),
            )
        except DuplicateRecordError:
            # Lost a race with another writer for the same day
            return False
        except (ValueError, RuntimeError) as e:
            raise GenerationError(template_id, str(e)) from e

        logger.info("Generated recurring instance", extra={"template_id": template_id, "run_date": occurrence})
        return True
