"""Task domain models and enums."""

from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from taskhub.domain.user import UserSummary


MAX_TITLE_LENGTH = 200


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    COMPLETED = "completed"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurringPattern(StrEnum):
    """How often a recurring template produces a new task."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def check_recurrence(is_recurring: bool, pattern: RecurringPattern | None) -> None:
    if not is_recurring and pattern is not None:
        raise ValueError("recurring_pattern must be empty for a non-recurring task")
    if is_recurring and pattern is None:
        raise ValueError("recurring_pattern is required for a recurring task")


class Task(BaseModel):
    """Task read model, with assignee and creator display fields."""

    id: str = Field(..., description="Unique task ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    updated: str = Field(..., description="Last update timestamp (ISO format)")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Current lifecycle state")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    due_date: str = Field(..., description="Due date (ISO format)")
    assigned_to: str | None = Field(default=None, description="Assigned user ID")
    created_by: str = Field(..., description="Creator user ID")
    is_recurring: bool = Field(default=False, description="Whether this task is a recurring template")
    recurring_pattern: RecurringPattern | None = Field(default=None, description="Recurrence of a template")
    template_id: str | None = Field(default=None, description="Template this instance was generated from")
    occurrence_date: str | None = Field(default=None, description="Day this instance was generated for")
    assigned_user: UserSummary | None = Field(default=None, description="Assignee display fields")
    creator: UserSummary | None = Field(default=None, description="Creator display fields")

    @model_validator(mode="after")
    def validate_recurrence(self) -> Self:
        check_recurrence(self.is_recurring, self.recurring_pattern)
        return self


class TaskCreate(BaseModel):
    """Pydantic model for creating a task."""

    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Initial state")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    due_date: datetime = Field(..., description="Due date")
    assigned_to: str | None = Field(default=None, description="Assigned user ID")
    is_recurring: bool = Field(default=False, description="Whether this task is a recurring template")
    recurring_pattern: RecurringPattern | None = Field(default=None, description="Recurrence of a template")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        if len(v) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def validate_recurrence(self) -> Self:
        check_recurrence(self.is_recurring, self.recurring_pattern)
        return self


class TaskUpdate(BaseModel):
    """Full task update. Omitted fields keep their current value."""

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assigned_to: str | None = None
    is_recurring: bool | None = None
    recurring_pattern: RecurringPattern | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        if len(v) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        return v


class TaskStatusUpdate(BaseModel):
    status: TaskStatus
