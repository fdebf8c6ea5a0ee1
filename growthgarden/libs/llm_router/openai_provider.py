"""OpenAI provider implementation for the GrowthGarden LLM router."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Sequence

import openai
from openai import AsyncOpenAI

from .base import BaseProvider
from .types import LLMResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseProvider):
    """Provider that talks to any OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str,
        *,
        model_chat: str = "gpt-4o-mini",
        timeout: float = 12.0,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(name="openai")
        self._model_chat = model_chat
        self._timeout = timeout
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=self._base_url)

    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        model: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        if not isinstance(messages, Sequence) or not messages:
            raise ValueError("OpenAI provider: 'messages' must be a non-empty sequence.")

        normalised_messages: list[dict[str, Any]] = []
        for message in messages:
            if not isinstance(message, Mapping):
                raise ValueError("Each message must be a mapping with 'role' and 'content'.")
            normalised_messages.append(dict(message))

        kwargs = dict(kwargs)
        force_json = bool(kwargs.pop("force_json", False))
        temperature = kwargs.pop("temperature", 0.7)
        max_tokens = kwargs.pop("max_tokens", 800)

        payload: dict[str, Any] = {
            "model": model or self._model_chat,
            "messages": normalised_messages,
            "temperature": float(temperature),
            "max_tokens": int(max_tokens),
            **kwargs,
        }
        if force_json:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**payload),
                timeout=self._timeout,
            )
        except openai.AuthenticationError as exc:
            logger.warning("OpenAI authentication error: %s", exc)
            raise RuntimeError("OpenAI connection error: Invalid API key or unauthorized request") from exc
        except openai.RateLimitError as exc:
            logger.warning("OpenAI rate limit: %s", exc)
            raise RuntimeError("OpenAI connection error: Rate limit reached") from exc
        except openai.APIConnectionError as exc:
            logger.warning("Network error talking to OpenAI: %s", exc)
            raise RuntimeError("OpenAI connection error: Network failure") from exc
        except asyncio.TimeoutError as exc:
            logger.warning("OpenAI call timed out after %.1fs", self._timeout)
            raise RuntimeError("OpenAI connection error: Timeout") from exc
        except openai.OpenAIError as exc:
            raise RuntimeError(f"OpenAI chat failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        message = getattr(choice, "message", None)
        text_content = ""
        if message is not None:
            text_content = getattr(message, "content", "") or ""

        usage = response.usage
        usage_dict = usage.model_dump() if usage is not None and hasattr(usage, "model_dump") else {}

        return LLMResponse(
            model=getattr(response, "model", payload["model"]),
            text=text_content,
            provider=self.name,
            usage=usage_dict,
        )


__all__ = ["DEFAULT_BASE_URL", "OpenAIProvider"]
