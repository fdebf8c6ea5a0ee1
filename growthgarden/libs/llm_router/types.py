"""Shared type utilities for the LLM router."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(slots=True)
class LLMResponse:
    """Normalised LLM response payload returned by providers."""

    model: str
    text: str | None = None
    usage: Mapping[str, Any] | None = None
    provider: str | None = None


__all__ = ["LLMResponse"]
