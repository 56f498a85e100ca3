"""Domain models and DTOs."""

from taskhub.domain.audit import AuditAction, AuditEntityType, AuditLog
from taskhub.domain.events import BROADCAST, Event, EventKind
from taskhub.domain.notification import Notification, NotificationCreate, NotificationType
from taskhub.domain.task import (
    RecurringPattern,
    Task,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskhub.domain.user import User, UserCreate, UserRole, UserSummary


__all__ = [
    "BROADCAST",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Event",
    "EventKind",
    "Notification",
    "NotificationCreate",
    "NotificationType",
    "RecurringPattern",
    "Task",
    "TaskCreate",
    "TaskPriority",
    "TaskStatus",
    "TaskStatusUpdate",
    "TaskUpdate",
    "User",
    "UserCreate",
    "UserRole",
    "UserSummary",
]
