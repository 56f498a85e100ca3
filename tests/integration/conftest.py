"""Fixtures running the full app (lifespan included) against a temporary database."""

import itertools
from collections.abc import Callable, Iterator
from functools import partial

import pytest
from fastapi.testclient import TestClient

from taskhub.core.config import settings
from taskhub.domain.user import User, UserCreate, UserRole
from taskhub.main import app


INTEGRATION_SECRET_KEY = "integration-secret-key"

SignedInUser = tuple[User, str]


@pytest.fixture
def client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "taskhub-api.db"))
    monkeypatch.setattr(settings, "secret_key", INTEGRATION_SECRET_KEY)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_in(client: TestClient) -> Callable[..., SignedInUser]:
    """Create a user through the running app and return it with a bearer token."""
    counter = itertools.count(1)

    def _signed_in(name: str | None = None, role: UserRole = UserRole.MEMBER) -> SignedInUser:
        n = next(counter)
        data = UserCreate(name=name or f"User {n}", email=f"api{n}@example.com", role=role)
        user = client.portal.call(partial(client.app.state.user_service.create_user, data=data))
        return user, client.app.state.verifier.issue_token(user.id)

    return _signed_in
