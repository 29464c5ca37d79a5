"""Rerank gathered documents (and uploaded-file chunks) against the query.

Three optimization modes:

- ``speed``: no document embedding. Only uploaded-file chunks are scored
  (their embeddings are precomputed); gathered documents keep their order.
- ``balanced``: every non-empty document is embedded and scored by cosine
  similarity to the query together with the file chunks.
- ``quality``: the balanced prefilter over a wider window, then a
  sentence-transformers cross-encoder rescores the survivors.

Scores must exceed the threshold to be kept. Sorting is stable, so equal
scores keep gathering order (finance, links, web search, files).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from finsearch.documents.schemas import Document, DocumentMetadata
from finsearch.embeddings.base import EmbeddingProvider
from finsearch.errors import ConfigurationError
from finsearch.retrieval.schemas import (
    SUMMARIZE,
    FileChunk,
    OptimizationMode,
    RerankResult,
    ScoredDocument,
)
from finsearch.retrieval.similarity import cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3
MAX_RESULTS = 15
# Speed mode: file slots kept when gathered documents also have content
FILE_SLOTS_WITH_DOCUMENTS = 8
# Quality mode: embedding prefilter window, as a multiple of max_results
QUALITY_PREFILTER_FACTOR = 3

DEFAULT_CROSS_ENCODER = "cross-encoder/ms-marco-MiniLM-L-6-v2"


class RelevanceScorer(Protocol):
    async def score(self, query: str, texts: Sequence[str]) -> list[float]: ...


class CrossEncoderScorer:
    """Cross-encoder relevance scorer using sentence-transformers."""

    def __init__(self, model: str = DEFAULT_CROSS_ENCODER, device: str | None = None):
        try:
            from sentence_transformers import CrossEncoder
        except ImportError as exc:
            raise ImportError(
                "sentence-transformers required: "
                "pip install finsearch[huggingface]"
            ) from exc

        self._model: Any = CrossEncoder(model, device=device)
        self._model_name = model
        logger.info("Loaded cross-encoder model: %s", model)

    async def score(self, query: str, texts: Sequence[str]) -> list[float]:
        if not texts:
            return []
        pairs = [(query, text) for text in texts]
        scores = await asyncio.to_thread(self._model.predict, pairs)
        return [float(s) for s in scores]


def file_document(chunk: FileChunk) -> Document:
    return Document(
        page_content=chunk.content,
        metadata=DocumentMetadata(title=chunk.file_name, url="File"),
    )


class Reranker:
    """Select and order the documents handed to the answer generator."""

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        threshold: float = DEFAULT_THRESHOLD,
        max_results: int = MAX_RESULTS,
        cross_encoder: RelevanceScorer | None = None,
    ):
        self.embeddings = embeddings
        self.threshold = threshold
        self.max_results = max_results
        self.cross_encoder = cross_encoder

    async def rerank(
        self,
        query: str,
        documents: Sequence[Document],
        files: Sequence[FileChunk] = (),
        mode: OptimizationMode = OptimizationMode.SPEED,
        rerank_enabled: bool = True,
    ) -> RerankResult:
        """Reduce candidates to at most ``max_results`` ordered documents.

        Args:
            query: The resolved question (``summarize`` for link summaries).
            documents: Gathered documents in gathering order.
            files: Uploaded-file chunks with precomputed embeddings.
            mode: Optimization mode.
            rerank_enabled: When False, behave like ``speed``.

        Returns:
            A ``RerankResult``; ``scored`` is False when no scoring happened.
        """
        mode = OptimizationMode(mode)
        result = RerankResult(
            query=query, mode=mode, total_candidates=len(documents) + len(files),
        )

        if not documents and not files:
            return result

        # Summaries are already query-focused; keep breadth
        if query.strip().lower() == SUMMARIZE:
            result.results = [ScoredDocument(d) for d in documents[: self.max_results]]
            return result

        with_content = [d for d in documents if d.has_content]

        if mode == OptimizationMode.SPEED or not rerank_enabled:
            result.results, result.scored = await self._rank_speed(query, with_content, files)
        elif mode == OptimizationMode.BALANCED:
            scored = await self._embed_and_score(query, with_content, files)
            result.results = self._select(scored, self.max_results)
            result.scored = True
        else:
            result.results = await self._rank_quality(query, with_content, files)
            result.scored = True

        logger.info(
            "Reranked %d → %d results (mode=%s, scored=%s)",
            result.total_candidates, len(result.results), mode.value, result.scored,
        )
        return result

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def _rank_speed(
        self,
        query: str,
        documents: list[Document],
        files: Sequence[FileChunk],
    ) -> tuple[list[ScoredDocument], bool]:
        if not files:
            return [ScoredDocument(d) for d in documents[: self.max_results]], False

        query_embedding = await self.embeddings.embed_query(query)
        scored = [
            ScoredDocument(file_document(f), cosine_similarity(query_embedding, f.embedding))
            for f in files
        ]
        selected = self._select(scored, self.max_results)

        if documents:
            selected = selected[:FILE_SLOTS_WITH_DOCUMENTS]

        remaining = self.max_results - len(selected)
        return selected + [ScoredDocument(d) for d in documents[:remaining]], True

    async def _rank_quality(
        self,
        query: str,
        documents: list[Document],
        files: Sequence[FileChunk],
    ) -> list[ScoredDocument]:
        if self.cross_encoder is None:
            raise ConfigurationError("quality mode requires a cross-encoder scorer")

        scored = await self._embed_and_score(query, documents, files)
        shortlist = self._select(scored, self.max_results * QUALITY_PREFILTER_FACTOR)
        if not shortlist:
            return []

        ce_scores = await self.cross_encoder.score(
            query, [s.document.page_content for s in shortlist],
        )
        rescored = [
            ScoredDocument(s.document, score)
            for s, score in zip(shortlist, ce_scores, strict=True)
        ]
        rescored.sort(key=lambda s: s.score, reverse=True)
        return rescored[: self.max_results]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _embed_and_score(
        self,
        query: str,
        documents: list[Document],
        files: Sequence[FileChunk],
    ) -> list[ScoredDocument]:
        doc_embeddings, query_embedding = await asyncio.gather(
            self.embeddings.embed_documents([d.page_content for d in documents]),
            self.embeddings.embed_query(query),
        )

        candidates = documents + [file_document(f) for f in files]
        vectors = list(doc_embeddings) + [f.embedding for f in files]

        return [
            ScoredDocument(doc, cosine_similarity(query_embedding, vec))
            for doc, vec in zip(candidates, vectors, strict=True)
        ]

    def _select(self, scored: list[ScoredDocument], limit: int) -> list[ScoredDocument]:
        """Keep scores above threshold, best first; stable for ties."""
        kept = [s for s in scored if s.score is not None and s.score > self.threshold]
        kept.sort(key=lambda s: s.score, reverse=True)
        return kept[:limit]
