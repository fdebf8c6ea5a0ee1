import asyncio
from types import SimpleNamespace

import pytest

from growthgarden.apps.api.core.llm import LLMResponseError, call_llm
from growthgarden.libs.llm_router.base import BaseProvider
from growthgarden.libs.llm_router.openai_provider import OpenAIProvider
from growthgarden.libs.llm_router.router import LLMRouter, LLMUnavailableError
from growthgarden.libs.llm_router.types import LLMResponse


class StaticProvider(BaseProvider):
    def __init__(self, name, text=None, error=None):
        super().__init__(name)
        self.text = text
        self.error = error
        self.calls = 0

    async def chat(self, *, messages, model=None, **kwargs):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return LLMResponse(model=f"{self.name}-model", text=self.text)


class FakeCompletions:
    def __init__(self, content="{}", delay=0.0):
        self.content = content
        self.delay = delay
        self.payloads = []

    async def create(self, **payload):
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(model=payload["model"], choices=[SimpleNamespace(message=message)], usage=None)


def _fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.mark.asyncio
async def test_router_fails_over_in_policy_order():
    router = LLMRouter()
    broken = StaticProvider("broken", error=RuntimeError("down"))
    backup = StaticProvider("backup", text="hello")
    router.register_provider("broken", broken)
    router.register_provider("backup", backup)

    response = await router.chat(messages=[{"role": "user", "content": "hi"}])

    assert response.text == "hello"
    assert response.provider == "backup"
    assert broken.calls == 1


@pytest.mark.asyncio
async def test_router_raises_when_every_provider_fails():
    router = LLMRouter()
    router.register_provider("broken", StaticProvider("broken", error=RuntimeError("down")))

    with pytest.raises(LLMUnavailableError, match="broken: down"):
        await router.chat(messages=[{"role": "user", "content": "hi"}])


def test_set_policy_requires_providers():
    with pytest.raises(ValueError):
        LLMRouter().set_policy([])


@pytest.mark.asyncio
async def test_call_llm_without_router_or_reply():
    with pytest.raises(LLMUnavailableError):
        await call_llm(None, "hi")

    router = LLMRouter()
    router.register_provider("empty", StaticProvider("empty", text="   "))
    with pytest.raises(LLMResponseError):
        await call_llm(router, "hi")


@pytest.mark.asyncio
async def test_openai_provider_requests_json_mode():
    completions = FakeCompletions(content='{"story": "ok"}')
    provider = OpenAIProvider("key", model_chat="gpt-4o-mini", client=_fake_client(completions))

    response = await provider.chat(messages=[{"role": "user", "content": "hi"}], force_json=True)

    assert response.text == '{"story": "ok"}'
    assert response.provider == "openai"
    payload = completions.payloads[0]
    assert payload["model"] == "gpt-4o-mini"
    assert payload["response_format"] == {"type": "json_object"}
    assert "force_json" not in payload


@pytest.mark.asyncio
async def test_openai_provider_times_out():
    completions = FakeCompletions(delay=1.0)
    provider = OpenAIProvider("key", timeout=0.01, client=_fake_client(completions))

    with pytest.raises(RuntimeError, match="Timeout"):
        await provider.chat(messages=[{"role": "user", "content": "hi"}])
