"""Data models for retrieval operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from finsearch.documents.schemas import Document

NOT_NEEDED = "not_needed"
SUMMARIZE = "summarize"


class FinanceCommand(StrEnum):
    """Structured data requests the finance backend understands."""

    CURRENT_PRICE = "CurrentPrice"
    NEWS = "News"
    ANALYST_RATINGS = "AnalystRatings"
    INSIDER_TRADES = "InsiderTrades"
    FUNDAMENTALS = "Fundamentals"
    MARKET_SENTIMENT = "MarketSentiment"


class OptimizationMode(StrEnum):
    """Latency vs. thoroughness trade-off for reranking."""

    SPEED = "speed"
    BALANCED = "balanced"
    QUALITY = "quality"


@dataclass(frozen=True)
class FinanceQuery:
    ticker: str
    command: FinanceCommand


# ---------------------------------------------------------------------------
# Search intent: NotNeeded | NeedsSearch
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotNeeded:
    """The rewrite model decided no web search is needed this turn."""


@dataclass(frozen=True)
class NeedsSearch:
    """Standalone question to search for (may be empty)."""

    question: str


SearchIntent = NotNeeded | NeedsSearch


@dataclass(frozen=True)
class StructuredQuery:
    """Parsed output of the query-rewrite prompt."""

    intent: SearchIntent = field(default_factory=lambda: NeedsSearch(""))
    links: tuple[str, ...] = ()
    finance_queries: tuple[FinanceQuery, ...] = ()

    @property
    def needs_search(self) -> bool:
        return isinstance(self.intent, NeedsSearch)

    @property
    def question(self) -> str:
        """Question text, or ``not_needed`` when search was declined."""
        if isinstance(self.intent, NotNeeded):
            return NOT_NEEDED
        return self.intent.question


# ---------------------------------------------------------------------------
# Web search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchHit:
    """A single result from the web search backend."""

    title: str
    url: str
    content: str = ""
    img_src: str | None = None


# ---------------------------------------------------------------------------
# Reranking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileChunk:
    """One chunk of a user-uploaded file with its precomputed embedding."""

    file_name: str
    content: str
    embedding: list[float]


@dataclass(frozen=True)
class ScoredDocument:
    """A reranked document. ``score`` is None when ranking was skipped."""

    document: Document
    score: float | None = None


@dataclass
class RerankResult:
    """Result of a rerank operation."""

    query: str
    mode: OptimizationMode
    results: list[ScoredDocument] = field(default_factory=list)
    total_candidates: int = 0
    scored: bool = False

    @property
    def documents(self) -> list[Document]:
        return [r.document for r in self.results]
