"""HuggingFace/sentence-transformers embedding provider.

Runs locally via ``sentence-transformers``. Requires the ``huggingface`` extra.
Encoding is CPU/GPU bound, so it runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from finsearch.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """Embed text locally using sentence-transformers."""

    def __init__(self, model: str = DEFAULT_MODEL, device: str | None = None):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise ImportError(
                "sentence-transformers required: "
                "pip install finsearch[huggingface]"
            ) from exc

        self._model_name = model
        self._model: Any = SentenceTransformer(model, device=device)
        logger.info("Loaded HF model %s", model)

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        embeddings = await asyncio.to_thread(
            self._model.encode, list(texts), show_progress_bar=False,
        )
        return [vec.tolist() for vec in embeddings]

    async def embed_query(self, query: str) -> list[float]:
        embedding = await asyncio.to_thread(
            self._model.encode, [query], show_progress_bar=False,
        )
        return embedding[0].tolist()
