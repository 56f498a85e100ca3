"""Notification service: persistence plus real-time push to the recipient."""

import logging

from taskhub.core.config import Constants
from taskhub.core.db_client import DatabaseClient, sanitize_param, utc_now_iso
from taskhub.core.logging import span
from taskhub.domain.notification import Notification, NotificationCreate, NotificationType
from taskhub.services.event_delivery import EventDeliveryService


logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: DatabaseClient, delivery: EventDeliveryService) -> None:
        self._db = db
        self._delivery = delivery

    async def create_notification(self, *, data: NotificationCreate) -> Notification:
        """Store a notification and push it to the recipient's live connections.

        Args:
            data: Recipient, title, message, type and optional related task

        Returns:
            The stored notification
        """
        with span("notification_service.create_notification"):
            record = await self._db.create_record(
                collection="notifications",
                data={**data.model_dump(mode="json"), "read": False, "timestamp": utc_now_iso()},
            )
            notification = Notification(**record)

            reached = self._delivery.notification_created(notification)
            logger.info(
                "Created notification",
                extra={
                    "notification_id": notification.id,
                    "user_id": notification.user_id,
                    "type": notification.type,
                    "connections_reached": reached,
                },
            )
            return notification

    async def list_for_user(self, *, user_id: str, limit: int = Constants.NOTIFICATION_LIST_LIMIT) -> list[Notification]:
        """Most recent notifications for a user, newest first."""
        records = await self._db.list_records(
            collection="notifications",
            per_page=limit,
            filter_query=f'user_id = "{sanitize_param(user_id)}"',
            sort="-timestamp",
        )
        return [Notification(**record) for record in records]

    async def mark_read(self, *, notification_id: str, user_id: str) -> Notification:
        """Mark one of the user's notifications as read.

        Raises:
            RecordNotFoundError: If the notification does not exist
            PermissionError: If it belongs to someone else
        """
        record = await self._db.get_record(collection="notifications", record_id=notification_id)
        if record["user_id"] != user_id:
            logger.warning(
                "Refused to mark another user's notification read",
                extra={"notification_id": notification_id, "user_id": user_id},
            )
            raise PermissionError("Not authorized to modify this notification")

        record = await self._db.update_record(collection="notifications", record_id=notification_id, data={"read": True})
        return Notification(**record)

    async def clear_all(self, *, user_id: str) -> int:
        """Delete all of a user's notifications and return how many were removed."""
        count = await self._db.delete_records(
            collection="notifications",
            filter_query=f'user_id = "{sanitize_param(user_id)}"',
        )
        logger.info("Cleared notifications", extra={"user_id": user_id, "count": count})
        return count

    async def create_test_notification(
        self,
        *,
        user_id: str,
        title: str | None = None,
        message: str | None = None,
    ) -> Notification:
        return await self.create_notification(
            data=NotificationCreate(
                user_id=user_id,
                title=title or "Test Notification",
                message=message or "This is a test notification",
                type=NotificationType.SYSTEM,
            )
        )
