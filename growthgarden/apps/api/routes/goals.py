from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Response

from growthgarden.apps.api.core.context import get_storage
from growthgarden.apps.api.deps.auth import AuthenticatedUser, get_current_user
from growthgarden.apps.api.services.achievements import check_achievements_safely
from growthgarden.apps.api.services.growth import check_goal_health
from growthgarden.libs.schemas.models import Action, Goal, GoalCreate, GoalUpdate
from growthgarden.libs.storage.base import StorageBackend

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/goals", tags=["goals"])

# Fields that may be cleared with an explicit null.
_NULLABLE_GOAL_FIELDS = {"description"}


@router.get("", response_model=List[Goal])
async def list_goals(
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_goals(user.id)


@router.post("", response_model=Goal, status_code=201)
async def create_goal(
    payload: GoalCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    goal = await storage.create_goal(user.id, payload)
    logger.info("Goal %s planted for %s", goal.id, user.id)
    await check_achievements_safely(storage, user.id)
    return goal


@router.post("/check-health")
async def check_health(
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
) -> Dict[str, Any]:
    updated = await check_goal_health(storage, user.id)
    return {"updatedGoals": [goal.model_dump(by_alias=True, mode="json") for goal in updated]}


@router.get("/{goal_id}", response_model=Goal)
async def get_goal(
    goal_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    goal = await storage.get_goal(user.id, goal_id)
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@router.patch("/{goal_id}", response_model=Goal)
async def update_goal(
    goal_id: int,
    payload: GoalUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_GOAL_FIELDS
    }
    goal = await storage.update_goal(user.id, goal_id, changes)
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@router.delete("/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
) -> Response:
    if not await storage.delete_goal(user.id, goal_id):
        raise HTTPException(status_code=404, detail="Goal not found")
    return Response(status_code=204)


@router.get("/{goal_id}/actions", response_model=List[Action])
async def list_goal_actions(
    goal_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_actions_by_goal(user.id, goal_id)


__all__ = ["router"]
