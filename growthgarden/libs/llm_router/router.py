"""LLM router with ordered provider failover."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .base import BaseProvider
from .types import LLMResponse


class LLMUnavailableError(RuntimeError):
    """Raised when no provider could serve a request."""


class LLMRouter:
    """Try registered providers in priority order until one answers."""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._providers: dict[str, BaseProvider] = {}
        self._policy: list[str] = []
        self._logger = logger or logging.getLogger(__name__)

    @property
    def providers(self) -> list[str]:
        return list(self._providers)

    def register_provider(self, key: str, provider: BaseProvider) -> None:
        """Register or replace a provider. New providers go to the end of the policy."""

        self._providers[key] = provider
        if key not in self._policy:
            self._policy.append(key)

    def set_policy(self, providers: Sequence[str]) -> None:
        """Assign the ordered list of providers to try."""

        if not providers:
            raise ValueError("Provider policy requires at least one provider key")
        self._policy = list(dict.fromkeys(providers))

    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        model: str | None = None,
        provider: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Execute a chat request with automatic provider failover."""

        message_payload = [dict(message) for message in messages]
        errors: list[str] = []
        for candidate in self._resolve_candidates(provider_override=provider):
            try:
                response = await self._providers[candidate].chat(
                    messages=message_payload, model=model, **kwargs
                )
            except Exception as exc:
                self._logger.warning("Provider %s failed: %s", candidate, exc)
                errors.append(f"{candidate}: {exc}")
                continue
            if response.provider is None:
                response.provider = candidate
            self._log_usage(candidate, response)
            return response
        raise LLMUnavailableError(f"All providers failed: {'; '.join(errors) or 'none registered'}")

    def _resolve_candidates(self, *, provider_override: str | None) -> list[str]:
        if provider_override:
            if provider_override not in self._providers:
                raise ValueError(f"Override provider '{provider_override}' is not registered")
            return [provider_override]
        return [candidate for candidate in self._policy if candidate in self._providers]

    def _log_usage(self, provider_key: str, response: LLMResponse) -> None:
        usage = response.usage or {}
        self._logger.info(
            "provider=%s model=%s prompt_tokens=%s completion_tokens=%s total_tokens=%s",
            provider_key,
            response.model,
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
            usage.get("total_tokens"),
        )


__all__ = ["LLMRouter", "LLMUnavailableError"]
