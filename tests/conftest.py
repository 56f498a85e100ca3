"""Pytest configuration and shared fixtures."""

import itertools
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC

import pytest

from taskhub.core.db_client import DatabaseClient
from taskhub.core.schema import init_schema
from taskhub.core.security import TokenVerifier
from taskhub.domain.user import User, UserCreate, UserRole
from taskhub.services.audit_service import AuditService
from taskhub.services.connection_registry import ConnectionRegistry
from taskhub.services.event_delivery import EventDeliveryService
from taskhub.services.notification_service import NotificationService
from taskhub.services.preference_service import PreferenceService
from taskhub.services.recurring_task_service import RecurringTaskGenerator
from taskhub.services.task_service import TaskService
from taskhub.services.user_service import UserService


TEST_SECRET_KEY = "test-secret-key"

UserFactory = Callable[..., Awaitable[User]]


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[DatabaseClient]:
    """A fresh SQLite database with the schema applied."""
    client = DatabaseClient(db_path=str(tmp_path / "taskhub-test.db"))
    await client.connect()
    await init_schema(client)
    yield client
    await client.close()


@pytest.fixture
def user_service(db: DatabaseClient) -> UserService:
    return UserService(db)


@pytest.fixture
def make_user(user_service: UserService) -> UserFactory:
    """Factory creating users with unique emails."""
    counter = itertools.count(1)

    async def _make(name: str | None = None, role: UserRole = UserRole.MEMBER) -> User:
        n = next(counter)
        return await user_service.create_user(
            data=UserCreate(name=name or f"User {n}", email=f"user{n}@example.com", role=role)
        )

    return _make


@pytest.fixture
def verifier(user_service: UserService) -> TokenVerifier:
    return TokenVerifier(user_service.user_exists, secret_key=TEST_SECRET_KEY)


@pytest.fixture
async def registry(verifier: TokenVerifier) -> AsyncIterator[ConnectionRegistry]:
    registry = ConnectionRegistry(verifier)
    yield registry
    await registry.close_all()


@pytest.fixture
def delivery(registry: ConnectionRegistry) -> EventDeliveryService:
    return EventDeliveryService(registry)


@pytest.fixture
def notification_service(db: DatabaseClient, delivery: EventDeliveryService) -> NotificationService:
    return NotificationService(db, delivery)


@pytest.fixture
def audit_service(db: DatabaseClient) -> AuditService:
    return AuditService(db)


@pytest.fixture
def preference_service(db: DatabaseClient) -> PreferenceService:
    return PreferenceService(db)


@pytest.fixture
def task_service(
    db: DatabaseClient,
    user_service: UserService,
    notification_service: NotificationService,
    delivery: EventDeliveryService,
    audit_service: AuditService,
) -> TaskService:
    return TaskService(db, user_service, notification_service, delivery, audit_service)


@pytest.fixture
def generator(db: DatabaseClient, task_service: TaskService) -> RecurringTaskGenerator:
    """Generator without Redis (in-process guard only), evaluating occurrences in UTC."""
    return RecurringTaskGenerator(db, task_service, timezone=UTC)
