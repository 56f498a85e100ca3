"""Configuration management for taskhub."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    sqlite_db_path: str = Field(default="taskhub.db", description="Path to the SQLite database file")

    # Authentication
    secret_key: str | None = Field(default=None, description="Secret used to sign bearer tokens")
    token_max_age_seconds: int = Field(
        default=7 * 24 * 3600, description="Maximum accepted age of a bearer token (in seconds)"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment name")

    # Redis Configuration (optional)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # Browser client origin allowed by CORS
    frontend_url: str = Field(default="*", description="Origin of the browser client")

    # Recurring task generation
    recurring_run_hour: int = Field(default=0, ge=0, le=23, description="Hour of day the recurring job runs")
    recurring_run_minute: int = Field(default=0, ge=0, le=59, description="Minute the recurring job runs")
    scheduler_timezone: str | None = Field(
        default=None, description="Timezone for scheduled jobs (defaults to the host's local timezone)"
    )

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # REST rate limiting (per authenticated user)
    API_RATE_LIMIT_REQUESTS: int = 100
    API_RATE_LIMIT_WINDOW_SECONDS: int = 900  # 15 minutes

    # WebSocket handshake
    WS_AUTH_TIMEOUT_SECONDS: float = 10.0
    WS_CLOSE_AUTH_FAILED: int = 4401
    WS_CLOSE_DELIVERY_FAILED: int = 1011

    # Per-connection outbox; a connection that falls this far behind is dropped
    CONNECTION_OUTBOX_MAXSIZE: int = 256

    # Listing
    NOTIFICATION_LIST_LIMIT: int = 50
    AUDIT_LOG_LIST_LIMIT: int = 100
    DEFAULT_PER_PAGE_LIMIT: int = 100

    # Recurring generation
    RECURRING_JOB_ID: str = "recurring_tasks"
    RECURRING_RUN_LOCK_TTL_SECONDS: int = 3600
    RECURRING_MISFIRE_GRACE_SECONDS: int = 3600

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
