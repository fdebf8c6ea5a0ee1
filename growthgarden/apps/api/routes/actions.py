from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from growthgarden.apps.api.core.context import get_storage
from growthgarden.apps.api.deps.auth import AuthenticatedUser, get_current_user
from growthgarden.apps.api.services.growth import complete_action
from growthgarden.libs.schemas.models import Action, ActionCreate, ActionUpdate, ReflectionUpdate, utcnow
from growthgarden.libs.storage.base import StorageBackend

router = APIRouter(prefix="/api/actions", tags=["actions"])

_NULLABLE_ACTION_FIELDS = {"description", "personal_reward", "due_date"}


@router.get("", response_model=List[Action])
async def list_actions(
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_actions(user.id)


@router.post("", response_model=Action, status_code=201)
async def create_action(
    payload: ActionCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    if await storage.get_goal(user.id, payload.goal_id) is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return await storage.create_action(user.id, payload)


@router.get("/{action_id}", response_model=Action)
async def get_action(
    action_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    action = await storage.get_action(user.id, action_id)
    if action is None:
        raise HTTPException(status_code=404, detail="Action not found")
    return action


@router.patch("/{action_id}", response_model=Action)
async def update_action(
    action_id: int,
    payload: ActionUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_ACTION_FIELDS
    }
    action = await storage.update_action(user.id, action_id, changes)
    if action is None:
        raise HTTPException(status_code=404, detail="Action not found")
    return action


@router.patch("/{action_id}/complete", response_model=Action)
async def complete(
    action_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    result = await complete_action(storage, user.id, action_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Action not found")
    return result.action


@router.patch("/{action_id}/reflection", response_model=Action)
async def reflect(
    action_id: int,
    payload: ReflectionUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    changes = payload.model_dump()
    changes["reflected_at"] = payload.reflected_at or utcnow()
    action = await storage.update_action(user.id, action_id, changes)
    if action is None:
        raise HTTPException(status_code=404, detail="Action not found")
    return action


@router.delete("/{action_id}", status_code=204)
async def delete_action(
    action_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
) -> Response:
    if not await storage.delete_action(user.id, action_id):
        raise HTTPException(status_code=404, detail="Action not found")
    return Response(status_code=204)


__all__ = ["router"]
