"""Audit log domain models."""

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class AuditAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    STATUS_CHANGE = "status_change"


class AuditEntityType(StrEnum):
    TASK = "task"
    USER = "user"
    NOTIFICATION = "notification"
    SYSTEM = "system"


class AuditLog(BaseModel):
    """Audit log entry. ``details`` is free-form and varies per action."""

    id: str = Field(..., description="Unique entry ID from database")
    user_id: str | None = Field(default=None, description="Acting user, None for system jobs")
    action: AuditAction = Field(..., description="What was done")
    entity_type: AuditEntityType = Field(..., description="Kind of entity acted on")
    entity_id: str | None = Field(default=None, description="ID of the entity acted on")
    details: dict[str, Any] = Field(default_factory=dict, description="Action-specific details")
    timestamp: str = Field(..., description="When the action happened (ISO format)")

    @field_validator("details", mode="before")
    @classmethod
    def decode_details(cls, v: Any) -> Any:  # noqa: ANN401
        # Stored as JSON text
        if isinstance(v, str):
            return json.loads(v) if v else {}
        return v
