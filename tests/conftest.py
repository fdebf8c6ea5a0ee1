import os

os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("GROWTHGARDEN_LOG_FORMAT", "text")
os.environ.pop("DATABASE_URL", None)
os.environ.pop("SUPABASE_DB_URL", None)
os.environ.pop("OPENAI_API_KEY", None)

import pytest

from growthgarden.apps.api.core.context import AppContext
from growthgarden.libs.schemas.settings import AppSettings
from growthgarden.libs.storage.memory import MemoryStore


@pytest.fixture
def settings():
    return AppSettings(
        ENVIRONMENT="test",
        DEMO_MODE=True,
        DEMO_USER_ID="11111111-1111-1111-1111-111111111111",
        DEMO_USER_EMAIL="gardener@example.com",
        ENABLE_AI_INSIGHTS=False,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def context(settings, store):
    return AppContext(settings=settings, storage=store)


@pytest.fixture
def app(context):
    from growthgarden.apps.api.main import app as application

    application.state.context = context
    yield application
    application.state.context = None
    application.dependency_overrides.clear()
