"""Preference REST routes for the signed-in user."""

from fastapi import APIRouter, Depends

from taskhub.domain.preferences import PreferencesUpdate, UserPreferences
from taskhub.domain.user import User
from taskhub.interface.dependencies import get_current_user, get_preference_service
from taskhub.services.preference_service import PreferenceService


router = APIRouter(prefix="/api/preferences", tags=["preferences"])


@router.get("")
async def get_preferences(
    user: User = Depends(get_current_user),
    preferences: PreferenceService = Depends(get_preference_service),
) -> UserPreferences:
    return await preferences.get_preferences(user_id=user.id)


@router.put("")
async def update_preferences(
    update: PreferencesUpdate,
    user: User = Depends(get_current_user),
    preferences: PreferenceService = Depends(get_preference_service),
) -> UserPreferences:
    return await preferences.update_preferences(user_id=user.id, update=update)


@router.post("/reset")
async def reset_preferences(
    user: User = Depends(get_current_user),
    preferences: PreferenceService = Depends(get_preference_service),
) -> UserPreferences:
    return await preferences.reset_preferences(user_id=user.id)
