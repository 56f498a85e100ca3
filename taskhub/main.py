"""taskhub - small-team task management with real-time sync."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskhub.core.config import Constants, settings
from taskhub.core.db_client import DatabaseClient, RecordNotFoundError
from taskhub.core.errors import AuthError, classify_error_with_response
from taskhub.core.logging import configure_logfire, instrument_fastapi
from taskhub.core.recurrence import resolve_timezone
from taskhub.core.redis_client import redis_client
from taskhub.core.scheduler import create_scheduler, start_scheduler, stop_scheduler
from taskhub.core.scheduler_tracker import job_tracker
from taskhub.core.schema import init_schema
from taskhub.core.security import TokenVerifier
from taskhub.interface.audit_router import router as audit_router
from taskhub.interface.notifications_router import router as notifications_router
from taskhub.interface.preferences_router import router as preferences_router
from taskhub.interface.realtime import router as realtime_router
from taskhub.interface.tasks_router import router as tasks_router
from taskhub.services.audit_service import AuditService
from taskhub.services.connection_registry import ConnectionRegistry
from taskhub.services.event_delivery import EventDeliveryService
from taskhub.services.notification_service import NotificationService
from taskhub.services.preference_service import PreferenceService
from taskhub.services.recurring_task_service import RecurringTaskGenerator
from taskhub.services.task_service import TaskService
from taskhub.services.user_service import UserService


logger = logging.getLogger(__name__)


async def check_redis_connectivity() -> None:
    """Verify Redis connectivity (optional service).

    Only checks if Redis is configured. Logs a warning if unavailable but doesn't fail.
    """
    if not redis_client.is_available:
        logger.info("startup_validation", extra={"service": "redis", "status": "disabled"})
        return

    if await redis_client.ping():
        logger.info("startup_validation", extra={"service": "redis", "status": "ok"})
    else:
        logger.warning("startup_validation", extra={"service": "redis", "status": "unavailable"})


async def validate_startup_configuration() -> None:
    """Validate required credentials and optional service connectivity.

    Exits the process with a clear message if a required credential is missing.
    """
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("secret_key", "Token signing")
        logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})

        await check_redis_connectivity()
        logger.info("startup_validation_complete", extra={"status": "ok"})

    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: build the service graph, start the scheduler."""
    # Configure logging first so validation logs are captured
    configure_logfire()
    await validate_startup_configuration()

    db = DatabaseClient()
    await db.connect()
    await init_schema(db)

    users = UserService(db)
    verifier = TokenVerifier(users.user_exists)
    registry = ConnectionRegistry(verifier)
    delivery = EventDeliveryService(registry)
    notifications = NotificationService(db, delivery)
    audit = AuditService(db)
    tasks = TaskService(db, users, notifications, delivery, audit)
    generator = RecurringTaskGenerator(db, tasks, redis_client, resolve_timezone(settings.scheduler_timezone))

    app.state.db = db
    app.state.verifier = verifier
    app.state.registry = registry
    app.state.delivery = delivery
    app.state.user_service = users
    app.state.notification_service = notifications
    app.state.audit_service = audit
    app.state.preference_service = PreferenceService(db)
    app.state.task_service = tasks
    app.state.generator = generator

    scheduler = create_scheduler(generator, job_tracker)
    app.state.scheduler = scheduler
    start_scheduler(scheduler)
    try:
        yield
    finally:
        stop_scheduler(scheduler)
        await registry.close_all()
        await db.close()


app = FastAPI(
    title="taskhub",
    description="Small-team task management with real-time sync",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=settings.frontend_url != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)


async def handle_service_error(_request: Request, exc: Exception) -> JSONResponse:
    """Render errors raised by services as a structured error body."""
    status_code, error = classify_error_with_response(exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=status_code, content=error.model_dump(mode="json"), headers=headers)


for _exc_class in (AuthError, PermissionError, RecordNotFoundError, ValueError):
    app.add_exception_handler(_exc_class, handle_service_error)

# Register routers
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(preferences_router)
app.include_router(audit_router)
app.include_router(realtime_router)


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    registry: ConnectionRegistry = request.app.state.registry
    return JSONResponse(
        content={
            "status": "healthy",
            "connections": registry.connection_count,
            "online_users": registry.online_user_count,
            "redis": redis_client.get_health_status(),
        },
        status_code=200,
    )


@app.get("/health/scheduler")
async def scheduler_health_check(request: Request) -> JSONResponse:
    """Scheduler health check endpoint with the recurring job status."""
    job_status = await job_tracker.get_job_status(Constants.RECURRING_JOB_ID)
    generator: RecurringTaskGenerator = request.app.state.generator
    job = request.app.state.scheduler.get_job(Constants.RECURRING_JOB_ID)
    job_status["next_run_time"] = job.next_run_time.isoformat() if job and job.next_run_time else None
    job_status["last_run_date"] = await generator.last_run_date()

    dlq = job_tracker.get_dead_letter_queue()

    overall_status = "degraded" if job_status["consecutive_failures"] > 0 else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": {Constants.RECURRING_JOB_ID: job_status},
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
