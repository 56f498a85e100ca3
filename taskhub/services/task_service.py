"""Task service: CRUD, permission checks and the notifications/events that follow."""

import logging
from typing import Any

from taskhub.core.db_client import DatabaseClient, sanitize_param
from taskhub.core.logging import span
from taskhub.domain.audit import AuditAction, AuditEntityType
from taskhub.domain.notification import NotificationCreate, NotificationType
from taskhub.domain.task import (
    Task,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
    check_recurrence,
)
from taskhub.domain.user import User
from taskhub.services.audit_service import AuditService
from taskhub.services.event_delivery import EventDeliveryService
from taskhub.services.notification_service import NotificationService
from taskhub.services.user_service import UserService


logger = logging.getLogger(__name__)


class TaskService:
    """Every task mutation goes through here, so each one stores the change,
    writes an audit entry, notifies the people concerned and pushes the
    matching real-time events.
    """

    def __init__(
        self,
        db: DatabaseClient,
        users: UserService,
        notifications: NotificationService,
        delivery: EventDeliveryService,
        audit: AuditService,
    ) -> None:
        self._db = db
        self._users = users
        self._notifications = notifications
        self._delivery = delivery
        self._audit = audit

    async def _to_tasks(self, records: list[dict[str, Any]]) -> list[Task]:
        """Attach assignee and creator display fields."""
        user_ids = {r["created_by"] for r in records} | {r["assigned_to"] for r in records if r.get("assigned_to")}
        summaries = await self._users.get_summaries(user_ids=user_ids)
        return [
            Task(
                **record,
                assigned_user=summaries.get(record.get("assigned_to") or ""),
                creator=summaries.get(record["created_by"]),
            )
            for record in records
        ]

    async def _to_task(self, record: dict[str, Any]) -> Task:
        return (await self._to_tasks([record]))[0]

    async def _require_assignee(self, user_id: str) -> None:
        if not await self._users.user_exists(user_id):
            msg = f"Assigned user not found: {user_id}"
            raise ValueError(msg)

    @staticmethod
    def _require_editor(record: dict[str, Any], user: User, verb: str) -> None:
        if record["created_by"] != user.id and not user.can_manage_tasks:
            logger.warning(
                "Task permission denied",
                extra={"task_id": record["id"], "user_id": user.id, "action": verb},
            )
            raise PermissionError(f"Not authorized to {verb} this task")

    async def _notify_assignee(self, task: Task, *, title: str, message: str) -> None:
        if not task.assigned_to:
            return
        await self._notifications.create_notification(
            data=NotificationCreate(
                user_id=task.assigned_to,
                title=title,
                message=message,
                type=NotificationType.TASK_ASSIGNED,
                related_task_id=task.id,
            )
        )
        self._delivery.task_assigned(task)

    async def _notify_completed(self, task: Task) -> None:
        await self._notifications.create_notification(
            data=NotificationCreate(
                user_id=task.created_by,
                title="Task Completed",
                message=f'The task "{task.title}" has been marked as completed',
                type=NotificationType.TASK_COMPLETED,
                related_task_id=task.id,
            )
        )

    async def list_tasks(
        self,
        *,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        assigned_to: str | None = None,
        created_by: str | None = None,
        search: str | None = None,
    ) -> list[Task]:
        """List tasks, most recently updated first."""
        filters = []
        if status:
            filters.append(f'status = "{status}"')
        if priority:
            filters.append(f'priority = "{priority}"')
        if assigned_to:
            filters.append(f'assigned_to = "{sanitize_param(assigned_to)}"')
        if created_by:
            filters.append(f'created_by = "{sanitize_param(created_by)}"')
        if search:
            term = sanitize_param(search)
            filters.append(f'(title ~ "{term}" || description ~ "{term}")')

        records = await self._db.list_all_records(
            collection="tasks",
            filter_query=" && ".join(filters),
            sort="-updated",
        )
        return await self._to_tasks(records)

    async def get_task(self, *, task_id: str) -> Task:
        """Fetch a task, raising RecordNotFoundError if not found."""
        record = await self._db.get_record(collection="tasks", record_id=task_id)
        return await self._to_task(record)

    async def create_task(
        self,
        *,
        data: TaskCreate,
        created_by: str,
        template_id: str | None = None,
        occurrence_date: str | None = None,
        assignment_title: str = "New Task Assigned",
        assignment_message: str | None = None,
    ) -> Task:
        """Create a task.

        Generated instances of a recurring template pass ``template_id`` and
        ``occurrence_date``; that pair is unique, so a second create for the
        same day raises DuplicateRecordError.

        Raises:
            ValueError: If the assignee does not exist
            DuplicateRecordError: If the template already has an instance for that day
        """
        with span("task_service.create_task"):
            if data.assigned_to:
                await self._require_assignee(data.assigned_to)

            record = await self._db.create_record(
                collection="tasks",
                data={
                    **data.model_dump(mode="json"),
                    "created_by": created_by,
                    "template_id": template_id,
                    "occurrence_date": occurrence_date,
                },
            )
            task = await self._to_task(record)
            logger.info(
                "Created task",
                extra={"task_id": task.id, "created_by": created_by, "template_id": template_id},
            )

            details: dict[str, Any] = {"title": task.title, "assigned_to": task.assigned_to}
            if template_id:
                details["template_id"] = template_id
                details["occurrence_date"] = occurrence_date
            await self._audit.record(
                user_id=created_by,
                action=AuditAction.CREATE,
                entity_type=AuditEntityType.TASK,
                entity_id=task.id,
                details=details,
            )

            self._delivery.task_updated(task)
            await self._notify_assignee(
                task,
                title=assignment_title,
                message=assignment_message or f"You have been assigned a new task: {task.title}",
            )
            return task

    async def update_task(self, *, task_id: str, data: TaskUpdate, user: User) -> Task:
        """Apply a full update. Only the creator, admins and managers may edit.

        Raises:
            RecordNotFoundError: If the task does not exist
            PermissionError: If the user may not edit the task
            ValueError: If the result breaks the recurrence rules or the assignee does not exist
        """
        with span("task_service.update_task"):
            record = await self._db.get_record(collection="tasks", record_id=task_id)
            self._require_editor(record, user, "update")

            changes = data.model_dump(mode="json", exclude_none=True)
            if changes.get("is_recurring") is False:
                changes["recurring_pattern"] = None
            check_recurrence(
                changes.get("is_recurring", bool(record["is_recurring"])),
                changes["recurring_pattern"] if "recurring_pattern" in changes else record["recurring_pattern"],
            )

            assignee_changed = bool(data.assigned_to) and data.assigned_to != record.get("assigned_to")
            if assignee_changed:
                await self._require_assignee(data.assigned_to or "")
            became_completed = data.status == TaskStatus.COMPLETED and record["status"] != TaskStatus.COMPLETED

            if changes:
                record = await self._db.update_record(collection="tasks", record_id=task_id, data=changes)
            task = await self._to_task(record)
            logger.info("Updated task", extra={"task_id": task_id, "user_id": user.id, "fields": sorted(changes)})

            await self._audit.record(
                user_id=user.id,
                action=AuditAction.ASSIGN if assignee_changed else AuditAction.UPDATE,
                entity_type=AuditEntityType.TASK,
                entity_id=task_id,
                details={"changes": changes},
            )

            self._delivery.task_updated(task)
            if assignee_changed:
                await self._notify_assignee(
                    task,
                    title="Task Assigned",
                    message=f"You have been assigned to the task: {task.title}",
                )
            if became_completed:
                await self._notify_completed(task)
            return task

    async def update_status(self, *, task_id: str, status: TaskStatus, user: User) -> Task:
        """Change only the status. Any signed-in user may do this.

        Raises:
            RecordNotFoundError: If the task does not exist
        """
        with span("task_service.update_status"):
            record = await self._db.get_record(collection="tasks", record_id=task_id)
            previous = record["status"]

            record = await self._db.update_record(collection="tasks", record_id=task_id, data={"status": status})
            task = await self._to_task(record)
            logger.info("Task status changed", extra={"task_id": task_id, "from": previous, "to": status})

            await self._audit.record(
                user_id=user.id,
                action=AuditAction.STATUS_CHANGE,
                entity_type=AuditEntityType.TASK,
                entity_id=task_id,
                details={"from": previous, "to": status},
            )

            self._delivery.task_updated(task)
            if status == TaskStatus.COMPLETED and previous != TaskStatus.COMPLETED:
                await self._notify_completed(task)
            return task

    async def delete_task(self, *, task_id: str, user: User) -> None:
        """Delete a task and the notifications that reference it.

        Raises:
            RecordNotFoundError: If the task does not exist
            PermissionError: If the user may not delete the task
        """
        with span("task_service.delete_task"):
            record = await self._db.get_record(collection="tasks", record_id=task_id)
            self._require_editor(record, user, "delete")

            # Notifications go with the task through the foreign key cascade
            await self._db.delete_record(collection="tasks", record_id=task_id)
            logger.info("Deleted task", extra={"task_id": task_id, "user_id": user.id})

            await self._audit.record(
                user_id=user.id,
                action=AuditAction.DELETE,
                entity_type=AuditEntityType.TASK,
                entity_id=task_id,
                details={"title": record["title"]},
            )
            self._delivery.task_deleted(task_id)
