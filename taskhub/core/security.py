"""Bearer token signing and verification."""

import logging
from collections.abc import Awaitable, Callable

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from taskhub.core.config import settings
from taskhub.core.errors import AuthError


logger = logging.getLogger(__name__)

UserLookup = Callable[[str], Awaitable[bool]]

_TOKEN_SALT = "taskhub-auth"


class TokenVerifier:
    """Resolve a signed bearer token to a user id.

    Shared by the REST dependency and the WebSocket handshake, so both accept
    and reject exactly the same credentials.
    """

    def __init__(
        self,
        user_exists: UserLookup,
        secret_key: str | None = None,
        max_age_seconds: int | None = None,
    ) -> None:
        secret = secret_key or settings.require_credential("secret_key", "Token signing")
        self._serializer = URLSafeTimedSerializer(secret, salt=_TOKEN_SALT)
        self._max_age = max_age_seconds if max_age_seconds is not None else settings.token_max_age_seconds
        self._user_exists = user_exists

    def issue_token(self, user_id: str) -> str:
        """Sign a token for a user. Used by scripts and tests; there is no login flow."""
        return self._serializer.dumps({"user_id": str(user_id)})

    async def verify(self, token: str | None) -> str:
        """Return the user id the token was issued for.

        Raises:
            AuthError: If the token is missing, malformed, expired or names an unknown user
        """
        if not token:
            raise AuthError("No token provided")

        try:
            payload = self._serializer.loads(token, max_age=self._max_age)
        except SignatureExpired as e:
            raise AuthError("Token expired") from e
        except BadSignature as e:
            raise AuthError("Invalid token") from e

        user_id = payload.get("user_id") if isinstance(payload, dict) else None
        if not user_id:
            raise AuthError("Invalid token payload")

        if not await self._user_exists(str(user_id)):
            logger.warning("Token for unknown user", extra={"user_id": user_id})
            raise AuthError("User not found")
        return str(user_id)
