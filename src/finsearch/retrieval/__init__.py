"""Retrieval — rewrite parsing, finance/link/web branches, reranking."""

from finsearch.retrieval.finance import FinanceFetcher
from finsearch.retrieval.query_parser import parse_structured_query, strip_thinking
from finsearch.retrieval.reranker import Reranker
from finsearch.retrieval.schemas import (
    FinanceCommand,
    FinanceQuery,
    NeedsSearch,
    NotNeeded,
    OptimizationMode,
    RerankResult,
    StructuredQuery,
)
from finsearch.retrieval.similarity import cosine_similarity
from finsearch.retrieval.web_search import SearxngClient, WebSearchRetriever

__all__ = [
    "FinanceCommand",
    "FinanceFetcher",
    "FinanceQuery",
    "NeedsSearch",
    "NotNeeded",
    "OptimizationMode",
    "RerankResult",
    "Reranker",
    "SearxngClient",
    "StructuredQuery",
    "WebSearchRetriever",
    "cosine_similarity",
    "parse_structured_query",
    "strip_thinking",
]
