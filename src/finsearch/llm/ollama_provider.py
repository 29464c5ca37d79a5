"""Ollama LLM provider — local-first, no API keys.

Supports DeepSeek-R1, Llama, Mistral, and any model available via Ollama.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence

import httpx

from finsearch.llm.base import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek-r1:32b"
DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaLLMProvider(LLMProvider):
    """Generate responses via a local Ollama server."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 120.0,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float | None = None,
    ) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": self._options(temperature),
        }
        if system:
            payload["system"] = system

        resp = await self._client.post("/api/generate", json=payload)
        resp.raise_for_status()
        return resp.json().get("response", "")

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        chat = [{"role": "system", "content": system}] if system else []
        chat.extend({"role": m.role, "content": m.content} for m in messages)
        payload = {
            "model": self.model,
            "messages": chat,
            "stream": True,
            "options": self._options(None),
        }

        async with self._client.stream("POST", "/api/chat", json=payload) as resp:
            resp.raise_for_status()
            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                event = json.loads(line)
                text = event.get("message", {}).get("content", "")
                if text:
                    yield text
                if event.get("done"):
                    break

    async def aclose(self) -> None:
        await self._client.aclose()

    def _options(self, temperature: float | None) -> dict:
        return {
            "temperature": self.temperature if temperature is None else temperature,
            "num_predict": self.max_tokens,
        }
