"""User preferences: stored per user, created with defaults on first read."""

import logging
from typing import Any

from taskhub.core.db_client import DatabaseClient, DuplicateRecordError, sanitize_param
from taskhub.core.logging import span
from taskhub.domain.preferences import PREFERENCE_SECTIONS, PreferencesUpdate, UserPreferences


logger = logging.getLogger(__name__)


def _defaults() -> dict[str, Any]:
    return {name: model().model_dump(mode="json") for name, model in PREFERENCE_SECTIONS.items()}


def merge_preferences(current: UserPreferences, update: PreferencesUpdate) -> dict[str, Any]:
    """Merge a partial update into the stored sections and validate the result.

    Keys not mentioned in the update keep their stored values.

    Raises:
        ValueError: On an unknown channel or key, or a value of the wrong type
            (pydantic's ValidationError is a ValueError)
    """
    sections = {name: getattr(current, name).model_dump(mode="json") for name in PREFERENCE_SECTIONS}

    for channel, values in (update.notifications or {}).items():
        if channel not in sections["notifications"]:
            msg = f"Unknown notification channel: {channel}"
            raise ValueError(msg)
        sections["notifications"][channel] = {**sections["notifications"][channel], **values}
    if update.theme:
        sections["theme"] = {**sections["theme"], **update.theme}
    if update.dashboard:
        sections["dashboard"] = {**sections["dashboard"], **update.dashboard}

    return {
        name: model.model_validate(sections[name]).model_dump(mode="json")
        for name, model in PREFERENCE_SECTIONS.items()
    }


class PreferenceService:
    def __init__(self, db: DatabaseClient) -> None:
        self._db = db

    async def _find(self, user_id: str) -> dict[str, Any] | None:
        return await self._db.get_first_record(
            collection="user_preferences",
            filter_query=f'user_id = "{sanitize_param(user_id)}"',
        )

    async def _create_defaults(self, user_id: str) -> dict[str, Any]:
        try:
            record = await self._db.create_record(
                collection="user_preferences",
                data={"user_id": user_id, **_defaults()},
            )
        except DuplicateRecordError:
            # Another request created them first
            record = await self._find(user_id)
            if record is None:
                raise
            return record
        logger.info("Created default preferences", extra={"user_id": user_id})
        return record

    async def get_preferences(self, *, user_id: str) -> UserPreferences:
        """Return the user's preferences, storing the defaults on first access."""
        record = await self._find(user_id) or await self._create_defaults(user_id)
        return UserPreferences(**record)

    async def update_preferences(self, *, user_id: str, update: PreferencesUpdate) -> UserPreferences:
        """Deep-merge ``update`` into the stored preferences.

        Raises:
            ValueError: If the merged preferences are invalid; nothing is stored
        """
        with span("preference_service.update_preferences"):
            current = await self.get_preferences(user_id=user_id)
            sections = merge_preferences(current, update)
            record = await self._db.update_record(collection="user_preferences", record_id=current.id, data=sections)
            logger.info(
                "Updated preferences",
                extra={"user_id": user_id, "sections": sorted(update.model_dump(exclude_none=True))},
            )
            return UserPreferences(**record)

    async def reset_preferences(self, *, user_id: str) -> UserPreferences:
        """Discard the stored preferences and start again from the defaults."""
        with span("preference_service.reset_preferences"):
            await self._db.delete_records(
                collection="user_preferences",
                filter_query=f'user_id = "{sanitize_param(user_id)}"',
            )
            record = await self._create_defaults(user_id)
            logger.info("Reset preferences", extra={"user_id": user_id})
            return UserPreferences(**record)
