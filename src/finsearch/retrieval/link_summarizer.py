"""Link summarizer — turn user-supplied links into one query-focused document each.

Fetched chunks are regrouped per source URL (up to a chunk cap), and each
group is condensed by the LLM into a short journalistic synthesis that
answers the query, or summarizes the page when the query is "summarize".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace
from urllib.parse import urlsplit, urlunsplit

from finsearch.documents.loader import LinkLoader
from finsearch.documents.schemas import Document, DocumentMetadata
from finsearch.llm.base import LLMProvider
from finsearch.retrieval.query_parser import strip_thinking
from finsearch.retrieval.schemas import SUMMARIZE

logger = logging.getLogger(__name__)

MAX_CHUNKS_PER_GROUP = 10

LINK_SUMMARY_PROMPT = """\
You are a web search summarizer, tasked with summarizing a piece of text \
retrieved from a web search. Your job is to summarize the text into a \
detailed, 2-4 paragraph explanation that captures the main ideas and \
provides a comprehensive answer to the query.
If the query is "summarize", you should provide a detailed summary of the \
text. If the query is a specific question, you should answer it in the summary.

- **Journalistic tone**: The summary should sound professional and \
journalistic, not too casual or vague.
- **Thorough and detailed**: Ensure that every key point from the text is \
captured and that the summary directly answers the query.
- **Not too lengthy, but detailed**: The summary should be informative but \
not excessively long. Focus on providing detailed information in a concise format.

The text will be shared inside the `text` XML tag, and the query inside the \
`query` XML tag.

<example>
<text>
Docker is a set of platform-as-a-service products that use OS-level \
virtualization to deliver software in packages called containers. It was \
first released in 2013 and is developed by Docker, Inc.
</text>

<query>
What is Docker and how does it work?
</query>

Response:
Docker is a platform-as-a-service product developed by Docker, Inc., that \
uses container technology to make application deployment more efficient. \
It allows developers to package their software with all necessary \
dependencies, making it easier to run in any environment.
</example>

Everything below is the actual data you will be working with.

<query>
{query}
</query>

<text>
{text}
</text>

Make sure to answer the query in the summary.
"""


def normalize_url(url: str) -> str:
    """Canonical grouping key: lower-case scheme/host, no fragment or trailing slash."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def group_by_url(
    chunks: Sequence[Document],
    max_chunks: int = MAX_CHUNKS_PER_GROUP,
) -> list[Document]:
    """Merge chunks from the same source into one document per URL.

    Content is joined with a blank line; ``total_docs`` counts the chunks
    absorbed. Chunks arriving after a group hits ``max_chunks`` are dropped.
    Groups are returned in order of first appearance.
    """
    groups: dict[str, Document] = {}

    for chunk in chunks:
        key = normalize_url(chunk.metadata.url)
        group = groups.get(key)

        if group is None:
            groups[key] = Document(
                page_content=chunk.page_content,
                metadata=replace(chunk.metadata, total_docs=1),
            )
            continue

        absorbed = group.metadata.total_docs or 0
        if absorbed >= max_chunks:
            continue

        groups[key] = Document(
            page_content=f"{group.page_content}\n\n{chunk.page_content}",
            metadata=replace(group.metadata, total_docs=absorbed + 1),
        )

    return list(groups.values())


class LinkSummarizer:
    """Fetch, group and summarize links for one answering run."""

    def __init__(
        self,
        llm: LLMProvider,
        loader: LinkLoader,
        max_chunks_per_group: int = MAX_CHUNKS_PER_GROUP,
    ):
        self.llm = llm
        self.loader = loader
        self.max_chunks_per_group = max_chunks_per_group

    async def summarize(self, links: Sequence[str], question: str) -> list[Document]:
        """Return one summary document per distinct link that yielded text.

        An empty question means the user only sent links, so the intent
        becomes "summarize".
        """
        query = question.strip() or SUMMARIZE

        chunks = await self.loader.load(links)
        groups = group_by_url(chunks, self.max_chunks_per_group)

        summaries = await asyncio.gather(*(self._summarize_group(g, query) for g in groups))
        docs = [doc for doc in summaries if doc is not None]

        logger.info(
            "Summarized %d/%d link groups for query %r", len(docs), len(groups), query,
        )
        return docs

    async def _summarize_group(self, group: Document, query: str) -> Document | None:
        prompt = LINK_SUMMARY_PROMPT.format(query=query, text=group.page_content)
        try:
            summary = await self.llm.generate(prompt)
        except Exception as exc:
            logger.warning("Summarizing %s failed: %s", group.metadata.url, exc)
            return None

        return Document(
            page_content=strip_thinking(summary),
            metadata=DocumentMetadata(title=group.metadata.title, url=group.metadata.url),
        )
