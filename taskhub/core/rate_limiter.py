"""Rate limiting using a Redis fixed window counter."""

import logging
from datetime import UTC, datetime

from fastapi import HTTPException

from taskhub.core.config import Constants
from taskhub.core.errors import ErrorCode
from taskhub.core.redis_client import RedisClient, redis_client


logger = logging.getLogger(__name__)


class RateLimiter:
    """Rate limiter counting requests per scope and identifier in Redis."""

    def __init__(self, client: RedisClient | None = None) -> None:
        self._redis = client or redis_client

    async def check_rate_limit(
        self,
        scope: str,
        identifier: str,
        limit: int,
        window_seconds: int,
    ) -> None:
        """Check if request is within rate limit.

        - Increment counter for the current window
        - Set expiry on first increment
        - Raise 429 if limit exceeded

        Fails open when Redis is unavailable.

        Args:
            scope: Rate limit scope (e.g., 'api')
            identifier: Unique identifier (e.g., user_id)
            limit: Maximum requests allowed
            window_seconds: Time window in seconds

        Raises:
            HTTPException: 429 if the limit is exceeded
        """
        if not self._redis.is_available:
            logger.debug("rate_limit_check_skipped", extra={"reason": "redis_unavailable"})
            return

        now = datetime.now(UTC)
        window_start = int(now.timestamp()) // window_seconds
        key = f"ratelimit:{scope}:{identifier}:{window_start}"

        count = await self._redis.increment(key)
        if count is None:
            logger.warning("rate_limit_check_failed", extra={"reason": "redis_increment_failed"})
            return

        if count == 1:
            await self._redis.expire(key, window_seconds)

        if count > limit:
            retry_after = window_seconds - (int(now.timestamp()) % window_seconds)
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "scope": scope,
                    "identifier": identifier,
                    "count": count,
                    "limit": limit,
                    "retry_after": retry_after,
                },
            )
            raise HTTPException(
                status_code=429,
                detail={"code": ErrorCode.ERR_RATE_LIMIT_EXCEEDED, "message": "Too many requests"},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limit),
                },
            )

    async def check_api_rate_limit(self, user_id: str) -> None:
        """Check the per-user REST API limit."""
        await self.check_rate_limit(
            scope="api",
            identifier=user_id,
            limit=Constants.API_RATE_LIMIT_REQUESTS,
            window_seconds=Constants.API_RATE_LIMIT_WINDOW_SECONDS,
        )


# Global rate limiter instance
rate_limiter = RateLimiter()
