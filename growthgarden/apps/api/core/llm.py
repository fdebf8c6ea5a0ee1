from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from growthgarden.libs.llm_router.router import LLMRouter, LLMUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are GrowthGarden, a warm and encouraging personal growth companion."


class LLMResponseError(RuntimeError):
    """Raised when the LLM returns nothing usable."""


async def call_llm(
    router: LLMRouter | None,
    prompt: str | None = None,
    *,
    system: str | None = None,
    messages: Sequence[Mapping[str, Any]] | None = None,
    model: str | None = None,
    **kwargs: Any,
) -> str:
    """Send a single prompt through the router and return the reply text.

    Raises ``LLMUnavailableError`` when no router or provider is available and
    ``LLMResponseError`` when the reply is empty.
    """

    if router is None:
        raise LLMUnavailableError("LLM router has not been initialised")

    if messages is None:
        if prompt is None:
            raise ValueError("Either 'prompt' or 'messages' must be provided")
        messages = (
            {"role": "system", "content": system or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        )

    response = await router.chat(messages=messages, model=model, **kwargs)
    text = (response.text or "").strip()
    if not text:
        raise LLMResponseError(f"Empty response from provider {response.provider}")
    logger.debug("LLM reply received from %s (%d chars)", response.provider, len(text))
    return text


__all__ = ["DEFAULT_SYSTEM_PROMPT", "LLMResponseError", "call_llm"]
