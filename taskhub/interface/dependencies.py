"""FastAPI dependencies: the signed-in user and the services built at startup."""

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskhub.core.rate_limiter import rate_limiter
from taskhub.core.security import TokenVerifier
from taskhub.domain.user import User
from taskhub.services.audit_service import AuditService
from taskhub.services.notification_service import NotificationService
from taskhub.services.preference_service import PreferenceService
from taskhub.services.task_service import TaskService
from taskhub.services.user_service import UserService


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


def get_preference_service(request: Request) -> PreferenceService:
    return request.app.state.preference_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_verifier),
    users: UserService = Depends(get_user_service),
) -> User:
    """Resolve the bearer token and apply the per-user rate limit.

    Raises:
        AuthError: If the token is missing or rejected (rendered as 401)
        HTTPException: 429 if the user is over the rate limit
    """
    user_id = await verifier.verify(credentials.credentials if credentials else None)
    user = await users.get_user(user_id=user_id)
    await rate_limiter.check_api_rate_limit(user.id)
    return user


async def require_manager(user: User = Depends(get_current_user)) -> User:
    """Restrict a route to admins and managers."""
    if not user.can_manage_tasks:
        logger.warning("Manager-only route refused", extra={"user_id": user.id, "role": user.role})
        raise PermissionError("Admin or manager role required")
    return user
