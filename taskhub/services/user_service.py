"""User lookups and creation."""

import logging

from taskhub.core.db_client import DatabaseClient, DuplicateRecordError, RecordNotFoundError, sanitize_param
from taskhub.core.logging import span
from taskhub.domain.user import User, UserCreate, UserSummary


logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: DatabaseClient) -> None:
        self._db = db

    async def create_user(self, *, data: UserCreate) -> User:
        """Create a user.

        Raises:
            ValueError: If a user with that email already exists
        """
        with span("user_service.create_user"):
            try:
                record = await self._db.create_record(collection="users", data=data.model_dump(mode="json"))
            except DuplicateRecordError as e:
                msg = f"User with email {data.email} already exists"
                logger.warning(msg)
                raise ValueError(msg) from e

            logger.info("Created user", extra={"user_id": record["id"], "role": record["role"]})
            return User(**record)

    async def get_user(self, *, user_id: str) -> User:
        """Fetch a user, raising RecordNotFoundError if not found."""
        record = await self._db.get_record(collection="users", record_id=user_id)
        return User(**record)

    async def get_by_email(self, *, email: str) -> User | None:
        record = await self._db.get_first_record(
            collection="users",
            filter_query=f'email = "{sanitize_param(email.strip().lower())}"',
        )
        return User(**record) if record else None

    async def user_exists(self, user_id: str) -> bool:
        try:
            await self.get_user(user_id=user_id)
        except RecordNotFoundError:
            return False
        return True

    async def get_summaries(self, *, user_ids: set[str]) -> dict[str, UserSummary]:
        """Display fields for the given users; unknown ids are left out."""
        summaries: dict[str, UserSummary] = {}
        for user_id in user_ids:
            try:
                summaries[user_id] = (await self.get_user(user_id=user_id)).summary()
            except RecordNotFoundError:
                logger.debug("Referenced user not found", extra={"user_id": user_id})
        return summaries
