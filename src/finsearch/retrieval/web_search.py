"""Web search retriever — SearxNG-compatible metasearch backend.

The backend is called once per question. Unlike the fan-out stages, a
failing search call is a total outage for this branch and raises
``WebSearchError``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from finsearch.documents.schemas import Document, DocumentMetadata
from finsearch.errors import WebSearchError
from finsearch.retrieval.query_parser import strip_thinking
from finsearch.retrieval.schemas import SearchHit

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0

# Engines that return little or no body text; the title stands in for content
VIDEO_ENGINES = frozenset({"youtube"})


class SearxngClient:
    """Minimal async client for the SearxNG JSON API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def search(
        self,
        query: str,
        language: str = "en",
        engines: Sequence[str] = (),
    ) -> list[SearchHit]:
        params = {"q": query, "format": "json", "language": language}
        if engines:
            params["engines"] = ",".join(engines)

        try:
            if self._client is not None:
                resp = await self._client.get(f"{self.base_url}/search", params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(f"{self.base_url}/search", params=params)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise WebSearchError(f"Web search failed for {query!r}: {exc}") from exc

        return [
            SearchHit(
                title=r.get("title", ""),
                url=r.get("url", ""),
                content=r.get("content") or "",
                img_src=r.get("img_src") or None,
            )
            for r in payload.get("results", [])
        ]


class WebSearchRetriever:
    """Turn a standalone question into web search documents."""

    def __init__(self, client: SearxngClient, language: str = "en"):
        self.client = client
        self.language = language

    async def retrieve(self, question: str, engines: Sequence[str] = ()) -> list[Document]:
        question = strip_thinking(question)
        hits = await self.client.search(question, language=self.language, engines=engines)

        title_fallback = any(e in VIDEO_ENGINES for e in engines)
        docs = [
            Document(
                page_content=hit.content or (hit.title if title_fallback else ""),
                metadata=DocumentMetadata(title=hit.title, url=hit.url, img_src=hit.img_src),
            )
            for hit in hits
        ]

        logger.info("Web search returned %d results for %r", len(docs), question)
        return docs
