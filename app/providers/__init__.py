"""Structured-output LLM providers."""

from __future__ import annotations

from app.core.config import settings

from .anthropic_provider import AnthropicProvider
from .base import LLMError, LLMMessage, LLMProvider, LLMResponse, LLMUsage
from .openai_provider import OpenAIProvider


def provider_from_settings() -> LLMProvider:
    """Factory to construct an LLM provider based on app settings."""

    name = settings.llm_provider.lower().strip()
    if name == "openai":
        return OpenAIProvider(
            settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout_seconds,
        )
    if name == "anthropic":
        return AnthropicProvider(
            settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            api_version=settings.anthropic_api_version,
            timeout=settings.llm_timeout_seconds,
        )
    raise ValueError(f"Unsupported LLM provider '{settings.llm_provider}'")


__all__ = [
    "AnthropicProvider",
    "LLMError",
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "LLMUsage",
    "OpenAIProvider",
    "provider_from_settings",
]
