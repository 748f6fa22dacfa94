"""Shared types for structured-output LLM providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional, Protocol

import httpx

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class LLMMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class LLMUsage:
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class LLMResponse:
    content: str
    parsed: Optional[Any] = None
    usage: Optional[LLMUsage] = None
    model: str = ""
    provider: str = ""
    finish_reason: Optional[str] = None


class LLMError(Exception):
    """Provider failure; ``retryable`` marks rate limits, 5xx and transport faults."""

    def __init__(self, code: str, message: str, *, provider: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.provider = provider
        self.retryable = retryable


class LLMProvider(Protocol):
    """Structured completion contract used by lenses and brief synthesis."""

    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        schema: dict[str, Any],
        schema_name: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:  # pragma: no cover - interface
        ...

    async def close(self) -> None:  # pragma: no cover - interface
        ...


def error_from_response(provider: str, response: httpx.Response) -> LLMError:
    message = None
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = error.get("message")
    retryable = response.status_code >= 500 or response.status_code == 429
    return LLMError(
        f"HTTP_{response.status_code}",
        message or f"{provider} API error: {response.status_code}",
        provider=provider,
        retryable=retryable,
    )


def error_from_transport(provider: str, exc: httpx.HTTPError) -> LLMError:
    return LLMError("TRANSPORT", f"{provider} request failed: {exc.__class__.__name__}", provider=provider, retryable=True)


def invalid_response(provider: str, detail: str) -> LLMError:
    return LLMError("INVALID_RESPONSE", f"{provider} returned an unusable reply: {detail}", provider=provider, retryable=True)


def decode_body(provider: str, response: httpx.Response) -> dict[str, Any]:
    """Parse a 2xx reply body, which must be a JSON object."""

    try:
        data = response.json()
    except ValueError as exc:
        raise invalid_response(provider, "body is not JSON") from exc
    if not isinstance(data, dict):
        raise invalid_response(provider, f"expected a JSON object, got {type(data).__name__}")
    return data


def usage_from(data: dict[str, Any], prompt_key: str, completion_key: str) -> Optional[LLMUsage]:
    usage = data.get("usage")
    if not isinstance(usage, dict):
        return None
    prompt_tokens = usage.get(prompt_key)
    completion_tokens = usage.get(completion_key)
    if not isinstance(prompt_tokens, int) or not isinstance(completion_tokens, int):
        return None
    return LLMUsage(prompt_tokens, completion_tokens)
