"""Ollama embedding provider — local-first, no API keys needed.

Uses the Ollama REST API (http://localhost:11434) with models like
``nomic-embed-text``, ``mxbai-embed-large``, etc.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from finsearch.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embed text via a local Ollama server."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed multiple texts.

        Ollama's /api/embed endpoint supports batch input since v0.5+.
        Falls back to concurrent single calls for older versions.
        """
        if not texts:
            return []

        # Try batch first (Ollama v0.5+)
        try:
            resp = await self._client.post(
                "/api/embed",
                json={"model": self.model, "input": list(texts)},
            )
            resp.raise_for_status()
            data = resp.json()
            if "embeddings" in data:
                return data["embeddings"]
        except (httpx.HTTPError, KeyError):
            logger.debug("Batch embed unavailable, falling back to single calls")

        return list(await asyncio.gather(*(self._embed_single(t) for t in texts)))

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single query."""
        return await self._embed_single(query)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    async def _embed_single(self, text: str) -> list[float]:
        resp = await self._client.post(
            "/api/embeddings",
            json={"model": self.model, "prompt": text},
        )
        resp.raise_for_status()
        return resp.json()["embedding"]
