from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query

from growthgarden.apps.api.core.context import AppContext, get_context
from growthgarden.apps.api.deps.auth import AuthenticatedUser, get_current_user
from growthgarden.apps.api.services.reflection.weekly import (
    DEFAULT_HISTORY_WEEKS,
    MAX_HISTORY_WEEKS,
    build_weekly_report,
    historical_reports,
)
from growthgarden.libs.schemas.reports import WeeklyReflectionReport

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/reports", tags=["reports"])

NO_DATA_MESSAGE = "No reflection data available for this week"


def _ai_router(context: AppContext):
    return context.llm_router if context.settings.enable_ai_insights else None


def _serialize(report: WeeklyReflectionReport, *, include_story: bool = True) -> Dict[str, Any]:
    payload = report.model_dump(by_alias=True, mode="json")
    if not include_story:
        payload["accomplishments"].pop("story", None)
    return payload


@router.get("/weekly-reflection")
async def get_weekly_reflection(
    user: AuthenticatedUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any] | None:
    report = await build_weekly_report(context.storage, user.id, router=_ai_router(context))
    return _serialize(report) if report is not None else None


@router.post("/weekly-reflection")
async def generate_weekly_reflection(
    user: AuthenticatedUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    report = await build_weekly_report(context.storage, user.id, router=_ai_router(context))
    if report is None:
        return {"message": NO_DATA_MESSAGE}
    return _serialize(report)


@router.post("/regenerate-insights")
async def regenerate_insights(
    user: AuthenticatedUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    report = await build_weekly_report(
        context.storage, user.id, router=_ai_router(context), include_story=False
    )
    if report is None:
        return {"message": NO_DATA_MESSAGE}
    return _serialize(report, include_story=False)


@router.get("/historical")
async def list_historical(
    weeks: int = Query(default=DEFAULT_HISTORY_WEEKS, ge=1, le=MAX_HISTORY_WEEKS),
    user: AuthenticatedUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    reports = await historical_reports(context.storage, user.id, weeks=weeks)
    return [_serialize(report) for report in reports]


@router.get("/historical/{week_start}")
async def get_historical_week(
    week_start: str,
    user: AuthenticatedUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    try:
        reference = date.fromisoformat(week_start[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail="weekStart must be formatted as YYYY-MM-DD")
    report = await build_weekly_report(
        context.storage, user.id, router=_ai_router(context), reference=reference
    )
    if report is None:
        raise HTTPException(status_code=404, detail=NO_DATA_MESSAGE)
    return _serialize(report)


__all__ = ["router"]
