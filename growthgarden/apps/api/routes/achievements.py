from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from growthgarden.apps.api.core.context import get_storage
from growthgarden.apps.api.deps.auth import AuthenticatedUser, get_current_user
from growthgarden.apps.api.services.achievements import check_achievements
from growthgarden.libs.schemas.models import Achievement, AchievementCreate
from growthgarden.libs.storage.base import StorageBackend

router = APIRouter(prefix="/api/achievements", tags=["achievements"])


@router.get("", response_model=List[Achievement])
async def list_achievements(
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_achievements(user.id)


@router.post("", response_model=Achievement, status_code=201)
async def create_achievement(
    payload: AchievementCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.create_achievement(user.id, payload)


@router.post("/check")
async def run_check(
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
) -> Dict[str, Any]:
    unlocked = await check_achievements(storage, user.id)
    achievements = await storage.list_achievements(user.id)
    return {
        "message": "Achievements checked",
        "unlocked": [a.model_dump(by_alias=True, mode="json") for a in unlocked],
        "achievements": [a.model_dump(by_alias=True, mode="json") for a in achievements],
    }


__all__ = ["router"]
