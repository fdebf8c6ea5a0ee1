from __future__ import annotations

import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from growthgarden.apps.api.core.context import get_storage
from growthgarden.apps.api.deps.auth import AuthenticatedUser, get_current_user
from growthgarden.libs.schemas.models import DailyHabit, DailyHabitCreate, DailyHabitUpdate
from growthgarden.libs.storage.base import StorageBackend

router = APIRouter(prefix="/api/daily-habits", tags=["daily-habits"])

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _require_date(value: str, name: str) -> str:
    if not _DATE_RE.match(value):
        raise HTTPException(status_code=400, detail=f"{name} must be formatted as YYYY-MM-DD")
    return value


@router.get("", response_model=List[DailyHabit])
async def list_habits(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    if not start_date or not end_date:
        raise HTTPException(status_code=400, detail="startDate and endDate are required")
    start = _require_date(start_date, "startDate")
    end = _require_date(end_date, "endDate")
    return await storage.list_daily_habits(user.id, start, end)


@router.post("", response_model=DailyHabit, status_code=201)
async def create_habit(
    payload: DailyHabitCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.create_daily_habit(user.id, payload)


@router.get("/{day}", response_model=DailyHabit)
async def get_habit(
    day: str,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    habit = await storage.get_daily_habit(user.id, _require_date(day, "date"))
    if habit is None:
        raise HTTPException(status_code=404, detail="Daily habit not found")
    return habit


@router.patch("/{day}", response_model=DailyHabit)
async def update_habit(
    day: str,
    payload: DailyHabitUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
):
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "notes"
    }
    habit = await storage.update_daily_habit(user.id, _require_date(day, "date"), changes)
    if habit is None:
        raise HTTPException(status_code=404, detail="Daily habit not found")
    return habit


@router.delete("/{day}", status_code=204)
async def delete_habit(
    day: str,
    user: AuthenticatedUser = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
) -> Response:
    if not await storage.delete_daily_habit(user.id, _require_date(day, "date")):
        raise HTTPException(status_code=404, detail="Daily habit not found")
    return Response(status_code=204)


__all__ = ["router"]
