# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Structured outputs are obtained by forcing a single tool whose input
schema is the requested pydantic model.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any

import anthropic
from pydantic import BaseModel

from fileorganizer.llm.base_client import BaseLLMClient
from fileorganizer.llm.models import ImageInput, LLMResponse, Message

logger = logging.getLogger(__name__)

STRUCTURED_TOOL = "structured_output"


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client: anthropic.AsyncAnthropic | None = None

    @property
    def _client(self) -> anthropic.AsyncAnthropic:
        if self.__client is None:
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        api_messages = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
        return await self._create(api_messages, system, max_tokens, temperature, response_format)

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        blocks: list[dict[str, Any]] = []
        for img in images:
            if img.label:
                blocks.append({"type": "text", "text": img.label})
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": img.media_type,
                        "data": base64.b64encode(img.data).decode("ascii"),
                    },
                }
            )

        # Earlier turns are passed through; the last user turn carries the images.
        history = [m for m in messages if m.role != "system"]
        last_user = max((i for i, m in enumerate(history) if m.role == "user"), default=None)
        api_messages: list[dict[str, Any]] = []
        for i, m in enumerate(history):
            if i == last_user:
                api_messages.append(
                    {"role": "user", "content": blocks + [{"type": "text", "text": m.content}]}
                )
            else:
                api_messages.append({"role": m.role, "content": m.content})
        if last_user is None:
            api_messages.append({"role": "user", "content": blocks})

        return await self._create(api_messages, system, max_tokens, temperature, response_format)

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "anthropic"

    # --- Internal helpers ---

    async def _create(
        self,
        api_messages: list[dict[str, Any]],
        system: str | None,
        max_tokens: int,
        temperature: float,
        response_format: type[BaseModel] | None,
    ) -> LLMResponse:
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": api_messages,
        }
        if system:
            params["system"] = system
        if response_format is not None:
            params["tools"] = [
                {
                    "name": STRUCTURED_TOOL,
                    "description": f"Return a {response_format.__name__} object",
                    "input_schema": response_format.model_json_schema(),
                }
            ]
            params["tool_choice"] = {"type": "tool", "name": STRUCTURED_TOOL}

        start = time.monotonic()
        response = await self._client.messages.create(**params)
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            "Anthropic call: model=%s in=%d out=%d latency=%dms",
            response.model, response.usage.input_tokens, response.usage.output_tokens, latency_ms,
        )

        return LLMResponse(
            content=self._extract_content(response, response_format is not None),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    @staticmethod
    def _extract_content(response: Any, structured: bool) -> str:
        """Tool input as JSON for structured calls, else the first text block."""
        for block in response.content:
            block_type = getattr(block, "type", None)
            if structured and block_type == "tool_use":
                return json.dumps(block.input)
            if block_type == "text":
                return block.text
        return ""
