"""Anthropic Claude LLM provider.

Requires the ``anthropic`` extra and ``ANTHROPIC_API_KEY`` env var.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from finsearch.llm.base import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(LLMProvider):
    """Generate responses via the Anthropic API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        try:
            import anthropic
        except ImportError as exc:
            raise ImportError(
                "anthropic package required: pip install finsearch[anthropic]"
            ) from exc

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client: Any = anthropic.AsyncAnthropic(api_key=api_key)

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float | None = None,
    ) -> str:
        kwargs = self._request(
            [{"role": "user", "content": prompt}], system, temperature,
        )
        response = await self._client.messages.create(**kwargs)
        for block in response.content:
            if block.type == "text":
                return block.text
        return ""

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        kwargs = self._request(
            [{"role": m.role, "content": m.content} for m in messages], system, None,
        )
        async with self._client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text

    async def aclose(self) -> None:
        await self._client.close()

    def _request(
        self,
        messages: list[dict[str, str]],
        system: str | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        # Anthropic takes the system prompt as a top-level kwarg
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        return kwargs
