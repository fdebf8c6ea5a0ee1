from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request

from growthgarden.libs.llm_router.router import LLMRouter
from growthgarden.libs.schemas.settings import AppSettings
from growthgarden.libs.storage.base import StorageBackend


@dataclass
class AppContext:
    """Process-wide collaborators built once in the application lifespan."""

    settings: AppSettings
    storage: StorageBackend
    llm_router: LLMRouter | None = None
    http_client: httpx.AsyncClient | None = None
    storage_warning: str | None = None

    async def aclose(self) -> None:
        await self.storage.close()
        if self.http_client is not None:
            await self.http_client.aclose()


def get_context(request: Request) -> AppContext:
    context: AppContext | None = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context has not been initialised")
    return context


def get_storage(request: Request) -> StorageBackend:
    return get_context(request).storage


__all__ = ["AppContext", "get_context", "get_storage"]
