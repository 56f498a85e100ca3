"""Logfire setup for taskhub.

Modules log through ``logging.getLogger(__name__)`` with ``extra=`` fields;
Logfire picks those records up once configured.
"""

import logging

import logfire
from fastapi import FastAPI

from taskhub.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire. Nothing is shipped unless LOGFIRE_TOKEN is set."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="taskhub",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    logfire.instrument_fastapi(app)


def span(name: str) -> logfire.LogfireSpan:
    """Span around a service operation, named ``<service>.<operation>``."""
    return logfire.span(name)


def log_with_user_context(
    target: logging.Logger,
    level: str,
    message: str,
    user_id: str | None = None,
    **extra: object,
) -> None:
    """Log ``message`` at ``level`` with ``user_id`` (when known) among the structured fields."""
    if user_id:
        extra = {"user_id": user_id, **extra}
    getattr(target, level.lower())(message, extra=extra)
