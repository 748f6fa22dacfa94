"""Anthropic messages provider; structured output through a forced tool call."""

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

PROVIDER = "anthropic"
TOOL_NAME = "structured_response"


class AnthropicProvider:
    """Calls ``/messages``; the system prompt travels outside the message list."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com/v1",
        api_version: str = "2023-06-01",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._api_version = api_version
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
            raise LLMError("MISSING_API_KEY", "Anthropic API key is not configured", provider=PROVIDER)

        system = next((message.content for message in messages if message.role == "system"), None)
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": message.role, "content": message.content}
                for message in messages
                if message.role != "system"
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "tools": [
                {
                    "name": TOOL_NAME,
                    "description": f"Return the {schema_name} as structured data matching the schema",
                    "input_schema": schema,
                }
            ],
            "tool_choice": {"type": "tool", "name": TOOL_NAME},
        }
        if system:
            body["system"] = system

        headers = {"x-api-key": self._api_key, "anthropic-version": self._api_version}
        try:
            response = await self._client.post("messages", json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise error_from_transport(PROVIDER, exc) from exc
        if response.is_error:
            _logger.warning("Anthropic request failed with status %s", response.status_code)
            raise error_from_response(PROVIDER, response)

        data = decode_body(PROVIDER, response)
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise invalid_response(PROVIDER, "content is not a list of blocks")
        content = ""
        parsed = None
        for block in blocks:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text":
                content += str(block.get("text", ""))
            elif block.get("type") == "tool_use" and block.get("name") == TOOL_NAME:
                parsed = block.get("input")
                content = json.dumps(parsed)
        return LLMResponse(
            content=content,
            parsed=parsed,
            usage=usage_from(data, "input_tokens", "output_tokens"),
            model=data.get("model") or self._model,
            provider=PROVIDER,
            finish_reason=data.get("stop_reason"),
        )
