"""OpenAI chat completions provider with JSON-schema structured output."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from app.providers.base import (
    LLMError,
    LLMMessage,
    LLMResponse,
    decode_body,
    error_from_response,
    error_from_transport,
    invalid_response,
    usage_from,
)

_logger = logging.getLogger(__name__)

PROVIDER = "openai"


class OpenAIProvider:
    """Calls ``/chat/completions`` and parses the reply as JSON."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        schema: dict[str, Any],
        schema_name: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        if not self._api_key:
            raise LLMError("MISSING_API_KEY", "OpenAI API key is not configured", provider=PROVIDER)

        body = {
            "model": self._model,
            "messages": [{"role": message.role, "content": message.content} for message in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "strict": False, "schema": schema},
            },
        }
        try:
            response = await self._client.post(
                "chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            raise error_from_transport(PROVIDER, exc) from exc
        if response.is_error:
            _logger.warning("OpenAI request failed with status %s", response.status_code)
            raise error_from_response(PROVIDER, response)

        data = decode_body(PROVIDER, response)
        choices = data.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices else {}
        if not isinstance(choice, dict):
            raise invalid_response(PROVIDER, "choice is not an object")
        message = choice.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            content = ""
        try:
            parsed = json.loads(content)
        except ValueError:
            parsed = None
        return LLMResponse(
            content=content,
            parsed=parsed,
            usage=usage_from(data, "prompt_tokens", "completion_tokens"),
            model=data.get("model") or self._model,
            provider=PROVIDER,
            finish_reason=choice.get("finish_reason"),
        )
