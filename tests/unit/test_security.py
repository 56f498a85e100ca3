"""Tests for bearer token signing and verification."""

from unittest.mock import AsyncMock

import pytest

from taskhub.core.errors import AuthError
from taskhub.core.security import TokenVerifier


@pytest.fixture
def user_exists() -> AsyncMock:
    return AsyncMock(return_value=True)


@pytest.fixture
def verifier(user_exists) -> TokenVerifier:
    return TokenVerifier(user_exists, secret_key="unit-secret")


@pytest.mark.unit
async def test_issued_token_verifies(verifier, user_exists):
    """Test a freshly issued token resolves to its user."""
    token = verifier.issue_token("7")

    assert await verifier.verify(token) == "7"
    user_exists.assert_awaited_once_with("7")


@pytest.mark.unit
@pytest.mark.parametrize("token", [None, ""])
async def test_missing_token(verifier, token):
    """Test an absent token is rejected."""
    with pytest.raises(AuthError) as exc_info:
        await verifier.verify(token)

    assert exc_info.value.reason == "No token provided"


@pytest.mark.unit
async def test_tampered_token(verifier):
    """Test a modified token fails signature verification."""
    token = verifier.issue_token("7")

    with pytest.raises(AuthError, match="Invalid token"):
        await verifier.verify(("f" if token[0] != "f" else "g") + token[1:])


@pytest.mark.unit
async def test_token_signed_with_other_secret(user_exists, verifier):
    """Test a token from another deployment is rejected."""
    foreign = TokenVerifier(user_exists, secret_key="other-secret").issue_token("7")

    with pytest.raises(AuthError, match="Invalid token"):
        await verifier.verify(foreign)


@pytest.mark.unit
async def test_expired_token(user_exists):
    """Test a token older than the max age is rejected."""
    verifier = TokenVerifier(user_exists, secret_key="unit-secret", max_age_seconds=-1)

    with pytest.raises(AuthError) as exc_info:
        await verifier.verify(verifier.issue_token("7"))

    assert exc_info.value.reason == "Token expired"


@pytest.mark.unit
async def test_unknown_user(verifier, user_exists):
    """Test a valid token for a deleted user is rejected."""
    user_exists.return_value = False

    with pytest.raises(AuthError) as exc_info:
        await verifier.verify(verifier.issue_token("7"))

    assert exc_info.value.reason == "User not found"


@pytest.mark.unit
async def test_payload_without_user_id(verifier):
    """Test a signed token without a user id is rejected."""
    token = verifier._serializer.dumps({"sub": "7"})

    with pytest.raises(AuthError) as exc_info:
        await verifier.verify(token)

    assert exc_info.value.reason == "Invalid token payload"


@pytest.mark.unit
def test_missing_secret_key_is_a_configuration_error(user_exists, monkeypatch):
    """Test the verifier refuses to start without a signing secret."""
    from taskhub.core import security

    monkeypatch.setattr(security.settings, "secret_key", None)

    with pytest.raises(ValueError, match="SECRET_KEY"):
        TokenVerifier(user_exists)
