from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from growthgarden.apps.api.core.context import AppContext, get_context
from growthgarden.libs.schemas.models import utcnow

router = APIRouter(prefix="/api", tags=["health"])

VOLATILE_WARNING = "Using in-memory storage - data will not persist across restarts"


def _storage_status(context: AppContext) -> Dict[str, Any]:
    storage = context.storage
    warning = context.storage_warning
    if not storage.persistent and warning is None:
        warning = VOLATILE_WARNING
    return {"type": storage.kind, "persistent": storage.persistent, "warning": warning}


@router.get("")
async def index(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    return {
        "name": f"{context.settings.app_name} API",
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "storageStatus": "/api/storage-status",
            "goals": "/api/goals",
            "actions": "/api/actions",
            "achievements": "/api/achievements",
            "dailyHabits": "/api/daily-habits",
            "reports": "/api/reports/weekly-reflection",
            "profile": "/api/users/me",
        },
    }


@router.get("/health")
async def health(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "message": f"{context.settings.app_name} API is running",
        "storage": _storage_status(context),
        "timestamp": utcnow().isoformat(),
    }


@router.get("/storage-status")
async def storage_status(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    status = _storage_status(context)
    status["connected"] = context.storage.persistent
    return status


__all__ = ["router"]
