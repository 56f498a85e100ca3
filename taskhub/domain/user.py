"""User domain models and enums."""

import re
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_NAME_LENGTH = 100
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserRole(StrEnum):
    """User role in the team."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class UserSummary(BaseModel):
    """Display fields of a user, embedded in task read models."""

    id: str = Field(..., description="User ID")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    avatar: str | None = Field(default=None, description="Avatar URL")


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID from database")
    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(default=UserRole.MEMBER, description="User role in team")
    avatar: str | None = Field(default=None, description="Avatar URL")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    updated: str | None = Field(default=None, description="Last update timestamp (ISO format)")

    @property
    def can_manage_tasks(self) -> bool:
        """Admins and managers may edit or delete tasks they did not create."""
        return self.role in (UserRole.ADMIN, UserRole.MANAGER)

    def summary(self) -> UserSummary:
        return UserSummary(id=self.id, name=self.name, email=self.email, avatar=self.avatar)


class UserCreate(BaseModel):
    """Pydantic model for creating a user record."""

    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(default=UserRole.MEMBER, description="User role in team")
    avatar: str | None = Field(default=None, description="Avatar URL")

    @field_validator("name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        """Validate name is non-empty and not too long."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email address")
        return v
