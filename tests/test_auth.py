import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from growthgarden.apps.api.deps.auth import DEFAULT_DEMO_USER_ID, _demo_user, verify_token
from growthgarden.libs.schemas.settings import AppSettings


def _settings(**overrides):
    values = {
        "ENVIRONMENT": "test",
        "SUPABASE_URL": "https://project.supabase.co/",
        "SUPABASE_ANON_KEY": "anon-key",
    }
    values.update(overrides)
    return AppSettings(**values)


@pytest.mark.asyncio
async def test_verify_token_reads_profile_metadata():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["authorization"] = request.headers["Authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(
            200,
            json={
                "id": "33333333-3333-3333-3333-333333333333",
                "email": "ada@example.com",
                "user_metadata": {"full_name": "Ada", "avatar_url": "https://img/ada.png"},
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        user = await verify_token("tok", _settings(), client)

    assert seen == {
        "url": "https://project.supabase.co/auth/v1/user",
        "authorization": "Bearer tok",
        "apikey": "anon-key",
    }
    assert user.id == "33333333-3333-3333-3333-333333333333"
    assert user.name == "Ada"
    assert user.avatar_url == "https://img/ada.png"


@pytest.mark.asyncio
async def test_verify_token_rejects_non_200():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"msg": "bad jwt"}))
    async with httpx.AsyncClient(transport=transport) as client:
        assert await verify_token("tok", _settings(), client) is None


@pytest.mark.asyncio
async def test_verify_token_survives_network_errors():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await verify_token("tok", _settings(), client) is None


@pytest.mark.asyncio
async def test_verify_token_without_identity_provider_config():
    assert await verify_token("tok", AppSettings(ENVIRONMENT="test")) is None


def test_demo_identity_never_in_production():
    assert _demo_user(_settings(DEMO_MODE=True)).id == DEFAULT_DEMO_USER_ID
    assert _demo_user(_settings(DEMO_MODE=True, ENVIRONMENT="production")) is None
    assert _demo_user(_settings(DEMO_MODE=False)) is None


@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected(app, context):
    context.settings = _settings(DEMO_MODE=False)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/goals")
        health = await client.get("/api/health")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthenticated"}
    assert health.status_code == 200


@pytest.mark.asyncio
async def test_valid_token_creates_user_row(app, context, store):
    def handler(request):
        return httpx.Response(200, json={"id": "44444444-4444-4444-4444-444444444444", "email": "b@example.com"})

    context.settings = _settings(DEMO_MODE=False)
    context.http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/users/me", headers={"Authorization": "Bearer good"})
    finally:
        await context.http_client.aclose()

    assert response.status_code == 200
    assert response.json()["email"] == "b@example.com"
    assert await store.get_user("44444444-4444-4444-4444-444444444444") is not None


@pytest.mark.asyncio
async def test_rejected_token_is_not_replaced_by_demo_identity(app, context, store):
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"msg": "bad jwt"}))
    context.settings = _settings(DEMO_MODE=True)
    context.http_client = httpx.AsyncClient(transport=transport)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            rejected = await client.get("/api/goals", headers={"Authorization": "Bearer expired"})
            malformed = await client.get("/api/goals", headers={"Authorization": "Token abc"})
            anonymous = await client.get("/api/goals")
    finally:
        await context.http_client.aclose()

    assert rejected.status_code == 401
    assert malformed.status_code == 401
    assert anonymous.status_code == 200
    assert await store.get_user(DEFAULT_DEMO_USER_ID) is not None
