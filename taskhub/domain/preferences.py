"""Per-user preference models: notification channels, theme and dashboard."""

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ThemeMode(StrEnum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class DashboardView(StrEnum):
    """Task list a user lands on."""

    ALL = "all"
    ASSIGNED = "assigned"
    CREATED = "created"
    OVERDUE = "overdue"


class RealTimeChannel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True


class InAppChannel(RealTimeChannel):
    task_assigned: bool = True
    task_updated: bool = True
    task_completed: bool = True
    task_overdue: bool = True


class EmailChannel(InAppChannel):
    daily_digest: bool = False


class NotificationPreferences(BaseModel):
    """Which notifications a user wants, per delivery channel."""

    model_config = ConfigDict(extra="forbid")

    email: EmailChannel = Field(default_factory=EmailChannel)
    in_app: InAppChannel = Field(default_factory=InAppChannel)
    real_time: RealTimeChannel = Field(default_factory=RealTimeChannel)


class ThemePreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: ThemeMode = ThemeMode.SYSTEM
    color: str = Field(default="blue", min_length=1)


class DashboardPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_view: DashboardView = DashboardView.ALL
    show_completed_tasks: bool = True


# Stored as one JSON column each
PREFERENCE_SECTIONS: dict[str, type[BaseModel]] = {
    "notifications": NotificationPreferences,
    "theme": ThemePreferences,
    "dashboard": DashboardPreferences,
}


class UserPreferences(BaseModel):
    """A user's stored preferences."""

    id: str = Field(..., description="Unique preferences record ID from database")
    user_id: str = Field(..., description="Owning user ID")
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    theme: ThemePreferences = Field(default_factory=ThemePreferences)
    dashboard: DashboardPreferences = Field(default_factory=DashboardPreferences)
    updated: str | None = Field(default=None, description="Last change (ISO format)")

    @field_validator("notifications", "theme", "dashboard", mode="before")
    @classmethod
    def decode_section(cls, v: Any) -> Any:  # noqa: ANN401
        if isinstance(v, str):
            return json.loads(v) if v else {}
        return v


class PreferencesUpdate(BaseModel):
    """Partial update. Each given section is merged key by key into the stored one.

    ``notifications`` is merged one level deeper, per channel.
    """

    model_config = ConfigDict(extra="forbid")

    notifications: dict[str, dict[str, Any]] | None = None
    theme: dict[str, Any] | None = None
    dashboard: dict[str, Any] | None = None
