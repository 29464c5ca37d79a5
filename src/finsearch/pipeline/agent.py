"""Search agent — rewrite → gather (finance / links / web) → rerank → stream answer.

One ``SearchAgent`` holds a frozen ``AgentConfig`` plus the upstream
collaborators it needs. Each ``search_and_answer`` call is an independent
run: configuration is checked eagerly, the retrieval stages run when the
returned ``AnswerStream`` is first consumed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timezone

from finsearch.chunking.paragraph_chunker import ParagraphChunker
from finsearch.config import Settings
from finsearch.documents.loader import LinkLoader
from finsearch.documents.schemas import Document
from finsearch.embeddings.base import EmbeddingProvider
from finsearch.errors import ConfigurationError
from finsearch.llm.base import ChatMessage, LLMProvider
from finsearch.pipeline.prompts import build_messages, build_query_prompt, build_system_prompt
from finsearch.pipeline.schemas import AgentConfig
from finsearch.pipeline.stream import AnswerStream
from finsearch.retrieval.files import FileStore, JsonFileStore
from finsearch.retrieval.finance import FinanceFetcher
from finsearch.retrieval.link_summarizer import MAX_CHUNKS_PER_GROUP, LinkSummarizer
from finsearch.retrieval.query_parser import parse_structured_query, strip_thinking
from finsearch.retrieval.reranker import (
    MAX_RESULTS,
    CrossEncoderScorer,
    RelevanceScorer,
    Reranker,
)
from finsearch.retrieval.schemas import SUMMARIZE, OptimizationMode, StructuredQuery
from finsearch.retrieval.web_search import SearxngClient, WebSearchRetriever

logger = logging.getLogger(__name__)


class SearchAgent:
    """Answer questions over finance data, user links, web search and files."""

    def __init__(
        self,
        config: AgentConfig,
        finance: FinanceFetcher | None = None,
        web_search: WebSearchRetriever | None = None,
        link_loader: LinkLoader | None = None,
        file_store: FileStore | None = None,
        cross_encoder: RelevanceScorer | None = None,
        max_results: int = MAX_RESULTS,
        max_chunks_per_group: int = MAX_CHUNKS_PER_GROUP,
    ):
        self.config = config
        self.finance = finance
        self.web_search = web_search
        self.link_loader = link_loader or LinkLoader()
        self.file_store = file_store
        self.cross_encoder = cross_encoder
        self.max_results = max_results
        self.max_chunks_per_group = max_chunks_per_group

    @classmethod
    def from_settings(cls, config: AgentConfig, settings: Settings) -> SearchAgent:
        """Wire collaborators from settings; unset backends stay ``None``."""
        finance = None
        if settings.finance.backend_url:
            finance = FinanceFetcher(
                settings.finance.backend_url,
                quote_url_template=settings.finance.quote_url_template,
                timeout=settings.finance.timeout,
            )

        web_search = None
        if settings.search.searxng_url:
            web_search = WebSearchRetriever(
                SearxngClient(settings.search.searxng_url, timeout=settings.search.timeout),
                language=settings.search.language,
            )

        cross_encoder = None
        if settings.rerank.cross_encoder_model:
            cross_encoder = CrossEncoderScorer(settings.rerank.cross_encoder_model)

        return cls(
            config,
            finance=finance,
            web_search=web_search,
            link_loader=LinkLoader(
                chunker=ParagraphChunker(max_tokens=settings.links.chunk_max_tokens),
                timeout=settings.links.timeout,
            ),
            file_store=JsonFileStore(settings.files.upload_dir),
            cross_encoder=cross_encoder,
            max_results=settings.rerank.max_results,
            max_chunks_per_group=settings.links.max_chunks_per_group,
        )

    def search_and_answer(
        self,
        message: str,
        history: Sequence[ChatMessage],
        llm: LLMProvider,
        embeddings: EmbeddingProvider,
        optimization_mode: str = OptimizationMode.SPEED,
        file_ids: Sequence[str] = (),
    ) -> AnswerStream:
        """Start one answering run.

        Args:
            message: The user's latest message.
            history: Prior conversation turns, oldest first.
            llm: Chat model used for rewriting, link summaries and the answer.
            embeddings: Embedding model used by the reranker.
            optimization_mode: ``speed``, ``balanced`` or ``quality``.
            file_ids: Uploaded files to consider alongside gathered documents.

        Returns:
            An ``AnswerStream``; nothing touches the network until it is consumed.

        Raises:
            ConfigurationError: A required backend or model is missing for
                this config, or the optimization mode is unknown.
        """
        mode = self._validate(optimization_mode, file_ids)
        history = list(history)
        file_ids = list(file_ids)

        async def retrieve() -> list[Document]:
            return await self._retrieve(message, history, llm, embeddings, mode, file_ids)

        def generate(documents: list[Document]) -> AsyncIterator[str]:
            return self._generate(message, history, llm, documents)

        return AnswerStream(retrieve, generate)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self, optimization_mode: str, file_ids: Sequence[str]) -> OptimizationMode:
        try:
            mode = OptimizationMode(optimization_mode)
        except ValueError:
            valid = ", ".join(m.value for m in OptimizationMode)
            raise ConfigurationError(
                f"Unknown optimization mode '{optimization_mode}'. Available: {valid}"
            ) from None

        if self.config.search_web:
            if self.config.use_finance and self.finance is None:
                raise ConfigurationError(
                    "Finance retrieval is enabled but no finance backend URL is "
                    "configured (set FIN_BACKEND_SERVER)"
                )
            if self.web_search is None:
                raise ConfigurationError(
                    "Web search is enabled but no search backend URL is "
                    "configured (set SEARXNG_API_URL)"
                )

        if mode == OptimizationMode.QUALITY and self.config.rerank and self.cross_encoder is None:
            raise ConfigurationError(
                "Optimization mode 'quality' requires a cross-encoder "
                "(set rerank.cross_encoder_model)"
            )

        if file_ids and self.file_store is None:
            raise ConfigurationError("File ids were given but no file store is configured")

        return mode

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def _retrieve(
        self,
        message: str,
        history: list[ChatMessage],
        llm: LLMProvider,
        embeddings: EmbeddingProvider,
        mode: OptimizationMode,
        file_ids: list[str],
    ) -> list[Document]:
        query, documents = message, []
        if self.config.search_web:
            query, documents = await self._gather(message, history, llm)

        files = self.file_store.load(file_ids) if file_ids else []

        reranker = Reranker(
            embeddings,
            threshold=self.config.rerank_threshold,
            max_results=self.max_results,
            cross_encoder=self.cross_encoder,
        )
        result = await reranker.rerank(
            query, documents, files, mode=mode, rerank_enabled=self.config.rerank,
        )
        return result.documents

    async def _rewrite(
        self,
        message: str,
        history: list[ChatMessage],
        llm: LLMProvider,
    ) -> StructuredQuery:
        prompt = build_query_prompt(self.config.query_generator_prompt, message, history)
        raw = await llm.generate(prompt, temperature=0)
        logger.debug("Rewrite output: %s", raw)
        return parse_structured_query(raw, summarizer=self.config.summarizer)

    async def _gather(
        self,
        message: str,
        history: list[ChatMessage],
        llm: LLMProvider,
    ) -> tuple[str, list[Document]]:
        """Run the rewrite and the retrieval branches.

        Returns the query the reranker scores against and the gathered
        documents in merge order: finance, link summaries, web search.
        """
        structured = await self._rewrite(message, history, llm)
        question = structured.question.strip() if structured.needs_search else ""

        finance_docs, link_docs, web_docs = await asyncio.gather(
            self._fetch_finance(structured),
            self._summarize_links(structured, question, llm),
            self._search_web(structured, question),
        )

        if structured.links:
            query = question or SUMMARIZE
        elif question:
            query = strip_thinking(question)
        else:
            query = message

        logger.info(
            "Gathered %d finance, %d link, %d web documents (intent=%s)",
            len(finance_docs), len(link_docs), len(web_docs),
            type(structured.intent).__name__,
        )
        return query, [*finance_docs, *link_docs, *web_docs]

    async def _fetch_finance(self, structured: StructuredQuery) -> list[Document]:
        if not self.config.use_finance or not structured.finance_queries:
            return []
        return await self.finance.fetch(structured.finance_queries)

    async def _summarize_links(
        self,
        structured: StructuredQuery,
        question: str,
        llm: LLMProvider,
    ) -> list[Document]:
        if not structured.links:
            return []
        summarizer = LinkSummarizer(llm, self.link_loader, self.max_chunks_per_group)
        return await summarizer.summarize(structured.links, question)

    async def _search_web(self, structured: StructuredQuery, question: str) -> list[Document]:
        if structured.links or not structured.needs_search:
            return []
        if not question:
            logger.info("Rewrite produced an empty question; skipping web search")
            return []
        return await self.web_search.retrieve(question, engines=self.config.active_engines)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _generate(
        self,
        message: str,
        history: list[ChatMessage],
        llm: LLMProvider,
        documents: list[Document],
    ) -> AsyncIterator[str]:
        system = build_system_prompt(
            self.config.response_prompt,
            documents,
            date=datetime.now(timezone.utc).isoformat(),
        )
        messages = build_messages(message, history)

        logger.info("Generating answer from %d context documents", len(documents))
        async for fragment in llm.stream(messages, system=system):
            yield fragment
