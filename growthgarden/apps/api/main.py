"""FastAPI application entrypoint for GrowthGarden."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from growthgarden.libs.logging_utils import colorize, configure_logging

configure_logging()

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette_exporter import PrometheusMiddleware, handle_metrics

from growthgarden.apps.api.core.context import AppContext
from growthgarden.apps.api.core.db import DatabaseConfigError, connect_database, ensure_schema
from growthgarden.apps.api.routes import (
    achievements,
    actions,
    goals,
    habits,
    health,
    reports,
    users,
)
from growthgarden.libs.json_utils import json_safe
from growthgarden.libs.llm_router import LLMRouter, OpenAIProvider
from growthgarden.libs.schemas.settings import AppSettings, get_settings
from growthgarden.libs.storage import MemoryStore, PostgresStore, StorageBackend

logger = logging.getLogger(__name__)


def build_llm_router(settings: AppSettings) -> LLMRouter | None:
    """Router over the configured providers, or None when AI is off or unconfigured."""

    if not settings.enable_ai_insights:
        logger.info("AI insights disabled; reports use deterministic narratives")
        return None
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; reports use deterministic narratives")
        return None
    router = LLMRouter()
    router.register_provider(
        "openai",
        OpenAIProvider(
            settings.openai_api_key,
            model_chat=settings.openai_model,
            timeout=settings.ai_timeout_seconds,
            base_url=settings.openai_base_url,
        ),
    )
    logger.info(
        colorize("Router configured", "cyan"),
        extra={"event": "router_config", "providers": router.providers, "model_chat": settings.openai_model},
    )
    return router


async def build_storage(settings: AppSettings) -> tuple[StorageBackend, str | None]:
    """Pick the storage backend once. Returns the backend and an optional warning."""

    try:
        pool = await connect_database(settings)
    except DatabaseConfigError:
        raise
    except Exception as exc:
        logger.exception("Database bootstrap failed; continuing with in-memory storage")
        return MemoryStore(), f"Database unavailable ({type(exc).__name__}); data will not persist"

    if pool is None:
        if settings.database_url:
            return MemoryStore(), "Database connection failed; data will not persist"
        return MemoryStore(), None

    try:
        await ensure_schema(pool)
    except Exception:
        logger.exception("Schema creation failed; continuing with in-memory storage")
        await pool.close()
        return MemoryStore(), "Database schema could not be created; data will not persist"
    return PostgresStore(pool), None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Tests install their own context before the app starts.
    if getattr(app.state, "context", None) is not None:
        yield
        return

    settings = get_settings()
    storage, warning = await build_storage(settings)
    context = AppContext(
        settings=settings,
        storage=storage,
        llm_router=build_llm_router(settings),
        http_client=httpx.AsyncClient(),
        storage_warning=warning,
    )
    app.state.context = context
    logger.info(
        colorize(f"Storage ready: {storage.kind}", "green" if storage.persistent else "yellow"),
        extra={"event": "storage_ready", "persistent": storage.persistent},
    )
    try:
        yield
    finally:
        await context.aclose()
        app.state.context = None


def create_app(settings: AppSettings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=f"{settings.app_name} API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware, app_name="growthgarden", group_paths=True)
    app.add_route("/metrics", handle_metrics)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"path": [str(part) for part in error.get("loc", ())], "message": error.get("msg"), "type": error.get("type")}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request data", "details": json_safe(details)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content: dict[str, object] = {"error": "Internal server error"}
        if not settings.is_production:
            content["details"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    for module in (health, goals, actions, achievements, habits, reports, users):
        app.include_router(module.router)
    return app


app = create_app()


def run() -> None:  # pragma: no cover - CLI entrypoint
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "growthgarden.apps.api.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
    )


if __name__ == "__main__":  # pragma: no cover
    run()
