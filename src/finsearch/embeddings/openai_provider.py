"""OpenAI embedding provider — text-embedding-3-small/large.

Requires ``openai`` extra and an API key via ``OPENAI_API_KEY`` env var.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from finsearch.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"

BATCH_SIZE = 2048  # OpenAI max batch size


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embed text via the OpenAI Embeddings API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        try:
            import openai
        except ImportError as exc:
            raise ImportError(
                "openai package required: pip install finsearch[openai]"
            ) from exc

        self.model = model
        kwargs: dict[str, Any] = {}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url
        self._client: Any = openai.AsyncOpenAI(**kwargs)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []

        all_embeddings: list[list[float]] = []

        for i in range(0, len(texts), BATCH_SIZE):
            batch = list(texts[i : i + BATCH_SIZE])
            resp = await self._client.embeddings.create(
                model=self.model,
                input=batch,
            )
            # Sort by index to guarantee order
            sorted_data = sorted(resp.data, key=lambda x: x.index)
            all_embeddings.extend([d.embedding for d in sorted_data])

        return all_embeddings

    async def embed_query(self, query: str) -> list[float]:
        resp = await self._client.embeddings.create(
            model=self.model,
            input=[query],
        )
        return resp.data[0].embedding

    async def aclose(self) -> None:
        await self._client.close()
