from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from growthgarden.apps.api.core.context import get_storage
from growthgarden.apps.api.deps.auth import AuthenticatedUser, get_current_user
from growthgarden.libs.schemas.models import User, UserUpdate
from growthgarden.libs.storage.base import StorageBackend

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=User)
async def read_me(
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    profile = await storage.get_user(user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


@router.patch("/me", response_model=User)
async def update_me(
    payload: UserUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    profile = await storage.update_user(user.id, payload.model_dump(exclude_unset=True))
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


__all__ = ["router"]
