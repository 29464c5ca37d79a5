"""Finance data fetcher — one backend call per (ticker, command) pair.

Calls run concurrently. A pair whose call fails (network error, non-2xx,
unparseable body) is logged and contributes no document; ``fetch`` itself
never raises for upstream failures.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence

import httpx

from finsearch.documents.schemas import Document, DocumentMetadata
from finsearch.retrieval.schemas import FinanceQuery

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_URL = "https://finviz.com/quote.ashx?t={ticker}"
DEFAULT_TIMEOUT = 20.0


class FinanceFetcher:
    """Resolve finance queries against the structured-data backend."""

    def __init__(
        self,
        backend_url: str,
        quote_url_template: str = DEFAULT_QUOTE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.quote_url_template = quote_url_template
        self.timeout = timeout
        self._client = client

    async def fetch(self, queries: Sequence[FinanceQuery]) -> list[Document]:
        """Fetch every query; failed pairs are skipped."""
        if not queries:
            return []

        if self._client is not None:
            return await self._fetch_all(self._client, queries)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch_all(client, queries)

    async def _fetch_all(
        self,
        client: httpx.AsyncClient,
        queries: Sequence[FinanceQuery],
    ) -> list[Document]:
        results = await asyncio.gather(*(self._fetch_one(client, q) for q in queries))
        docs = [doc for doc in results if doc is not None]
        logger.info("Finance backend returned %d/%d documents", len(docs), len(queries))
        return docs

    async def _fetch_one(self, client: httpx.AsyncClient, query: FinanceQuery) -> Document | None:
        url = f"{self.backend_url}/{query.command.value}"
        try:
            resp = await client.get(url, params={"ticker": query.ticker})
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Finance data fetch failed for %s %s: %s",
                query.ticker, query.command.value, exc,
            )
            return None

        logger.debug("Finance payload for %s %s: %s", query.ticker, query.command.value, payload)

        content = payload.get("content") if isinstance(payload, dict) else None
        return Document(
            page_content=str(content) if content else json.dumps(payload),
            metadata=DocumentMetadata(
                title=f"{query.ticker} {query.command.value}",
                url=self.quote_page(query.ticker),
                ticker=query.ticker,
                command=query.command.value,
            ),
        )

    def quote_page(self, ticker: str) -> str:
        """Citation handle for a ticker; never dereferenced."""
        return self.quote_url_template.format(ticker=ticker)
