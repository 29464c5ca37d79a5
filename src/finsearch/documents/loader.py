"""Link loader — fetch user-supplied URLs and chunk their text.

Handles HTML pages, PDFs and plain text. Every chunk is tagged with the
source URL and page title so the link summarizer can regroup them.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Sequence

import httpx
from bs4 import BeautifulSoup, ParserRejectedMarkup

from finsearch.chunking.base import BaseChunker
from finsearch.chunking.paragraph_chunker import ParagraphChunker
from finsearch.documents.schemas import Document, DocumentMetadata

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0

_STRIP_TAGS = ("script", "style", "noscript", "svg", "header", "footer", "nav")


class LinkLoader:
    """Fetch links concurrently and return their chunked content."""

    def __init__(
        self,
        chunker: BaseChunker | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.chunker = chunker or ParagraphChunker()
        self.timeout = timeout
        self._client = client

    async def load(self, links: Sequence[str]) -> list[Document]:
        """Load every link; a link that fails contributes no chunks."""
        if not links:
            return []

        if self._client is not None:
            return await self._load_all(self._client, links)

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._load_all(client, links)

    async def _load_all(self, client: httpx.AsyncClient, links: Sequence[str]) -> list[Document]:
        per_link = await asyncio.gather(*(self._load_link(client, url) for url in links))
        docs = [doc for chunks in per_link for doc in chunks]
        logger.info("Loaded %d chunks from %d links", len(docs), len(links))
        return docs

    async def _load_link(self, client: httpx.AsyncClient, url: str) -> list[Document]:
        try:
            resp = await client.get(url)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Failed to fetch link %s: %s", url, exc)
            return []

        try:
            title, text = self._dispatch(resp.content, resp.headers.get("content-type", ""), url)
        except ParserRejectedMarkup as exc:
            logger.warning("Could not parse link %s: %s", url, exc)
            return []

        if not text.strip():
            logger.warning("Link %s contains no extractable text", url)
            return []

        return self.chunker.chunk(text, DocumentMetadata(title=title or url, url=url))

    # ------------------------------------------------------------------
    # Private dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, data: bytes, content_type: str, url: str) -> tuple[str, str]:
        content_type = content_type.lower()
        if "pdf" in content_type or url.lower().endswith(".pdf"):
            return "", self._load_pdf(data, url)
        if "html" in content_type:
            return self._load_html(data)
        return "", self._load_txt(data)

    # ------------------------------------------------------------------
    # Format-specific loaders
    # ------------------------------------------------------------------

    @staticmethod
    def _load_html(data: bytes) -> tuple[str, str]:
        soup = BeautifulSoup(data, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else ""
        for tag in soup(_STRIP_TAGS):
            tag.decompose()
        return title, soup.get_text("\n")

    @staticmethod
    def _load_pdf(data: bytes, url: str) -> str:
        import pdfplumber

        page_texts: list[str] = []
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                for page in pdf.pages:
                    page_texts.append(page.extract_text() or "")
        except Exception as exc:
            logger.warning("PDF extraction error for %s: %s", url, exc)
            return ""

        return "\n\n".join(page_texts)

    @staticmethod
    def _load_txt(data: bytes) -> str:
        for encoding in ("utf-8", "latin-1", "cp1252"):
            try:
                return data.decode(encoding)
            except UnicodeDecodeError:
                continue
        return data.decode("utf-8", errors="replace")
