"""Notification domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class NotificationType(StrEnum):
    """What a notification is about."""

    TASK_ASSIGNED = "task_assigned"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_OVERDUE = "task_overdue"
    SYSTEM = "system"


class Notification(BaseModel):
    """Notification data transfer object."""

    id: str = Field(..., description="Unique notification ID from database")
    user_id: str = Field(..., description="Recipient user ID")
    title: str = Field(..., description="Short title")
    message: str = Field(..., description="Message body")
    type: NotificationType = Field(default=NotificationType.SYSTEM, description="Notification type")
    read: bool = Field(default=False, description="Whether the recipient has read it")
    related_task_id: str | None = Field(default=None, description="Task this notification refers to")
    timestamp: str = Field(..., description="Creation time (ISO format)")


class NotificationCreate(BaseModel):
    """Pydantic model for creating a notification record."""

    user_id: str = Field(..., description="Recipient user ID")
    title: str = Field(..., min_length=1, description="Short title")
    message: str = Field(..., min_length=1, description="Message body")
    type: NotificationType = Field(default=NotificationType.SYSTEM, description="Notification type")
    related_task_id: str | None = Field(default=None, description="Task this notification refers to")
