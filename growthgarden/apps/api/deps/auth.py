from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException

from growthgarden.apps.api.core.context import AppContext, get_context
from growthgarden.libs.schemas.settings import AppSettings

logger = logging.getLogger(__name__)

DEFAULT_DEMO_USER_ID = "00000000-0000-0000-0000-000000000001"


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str
    name: str | None = None
    avatar_url: str | None = None


def _profile_from_payload(payload: dict[str, Any]) -> AuthenticatedUser:
    metadata = payload.get("user_metadata") or {}
    email = payload.get("email") or metadata.get("email") or f"{payload['id']}@users.growthgarden"
    return AuthenticatedUser(
        id=str(payload["id"]),
        email=email,
        name=metadata.get("full_name") or metadata.get("name"),
        avatar_url=metadata.get("avatar_url"),
    )


async def verify_token(
    token: str,
    settings: AppSettings,
    client: httpx.AsyncClient | None = None,
) -> AuthenticatedUser | None:
    """Ask the identity provider who ``token`` belongs to."""

    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.warning("Token verification skipped: SUPABASE_URL or SUPABASE_ANON_KEY missing")
        return None

    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"
    headers = {"Authorization": f"Bearer {token}", "apikey": settings.supabase_anon_key}
    try:
        if client is not None:
            response = await client.get(url, headers=headers, timeout=settings.auth_timeout_seconds)
        else:
            async with httpx.AsyncClient() as session:
                response = await session.get(url, headers=headers, timeout=settings.auth_timeout_seconds)
    except httpx.HTTPError as exc:
        logger.warning("Identity provider request failed: %s", exc)
        return None

    if response.status_code != 200:
        logger.info("Token rejected by identity provider (status=%s)", response.status_code)
        return None
    payload = response.json()
    if isinstance(payload, dict) and payload.get("id"):
        return _profile_from_payload(payload)
    return None


def _demo_user(settings: AppSettings) -> AuthenticatedUser | None:
    if not settings.demo_mode or settings.is_production:
        return None
    return AuthenticatedUser(
        id=settings.demo_user_id or DEFAULT_DEMO_USER_ID,
        email=settings.demo_user_email,
        name="Demo Gardener",
    )


async def get_current_user(
    authorization: str | None = Header(default=None),
    context: AppContext = Depends(get_context),
) -> AuthenticatedUser:
    """Resolve the bearer token to a user and make sure a user row exists."""

    settings = context.settings
    user: AuthenticatedUser | None = None
    if authorization is None:
        user = _demo_user(settings)
    elif authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            user = await verify_token(token, settings, context.http_client)

    if user is None:
        raise HTTPException(status_code=401, detail="Unauthenticated")

    await context.storage.ensure_user(user.id, user.email, user.name, user.avatar_url)
    return user


__all__ = ["AuthenticatedUser", "DEFAULT_DEMO_USER_ID", "get_current_user", "verify_token"]
