"""Citation extraction and source mapping.

Parses [1], [2], [1,3], [1-3] from generated answers and maps them back to
the documents that were sent as numbered context lines.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from finsearch.documents.schemas import Document
from finsearch.pipeline.schemas import Citation

# Matches [1], [2], [3,4], [1-3], etc.
_CITATION_RE = re.compile(r"\[(\d+(?:\s*[,\-]\s*\d+)*)\]")


def cited_indices(answer: str, limit: int | None = None) -> set[int]:
    """Return every 1-based context index referenced in ``answer``.

    Ranges are clipped to ``limit`` when given.
    """
    indices: set[int] = set()
    for match in _CITATION_RE.finditer(answer):
        for part in match.group(1).split(","):
            part = part.strip()
            if "-" in part:
                start, end = (int(p) for p in part.split("-", 1))
                if limit is not None:
                    end = min(end, limit)
                indices.update(range(start, end + 1))
            else:
                indices.add(int(part))
    return indices


def extract_citations(answer: str, documents: Sequence[Document]) -> list[Citation]:
    """Extract citation references from an answer and map them to sources.

    Args:
        answer: The generated answer text.
        documents: The documents that were provided as context, in order.

    Returns:
        ``Citation`` objects for indices that point at a real document.
    """
    citations: list[Citation] = []
    for idx in sorted(cited_indices(answer, len(documents))):
        if not 1 <= idx <= len(documents):
            continue
        doc = documents[idx - 1]
        text = doc.page_content
        citations.append(Citation(
            index=idx,
            title=doc.metadata.title,
            url=doc.metadata.url,
            snippet=text[:200] + "..." if len(text) > 200 else text,
            ticker=doc.metadata.ticker,
        ))
    return citations


def format_citations(citations: list[Citation]) -> str:
    """Format citations as a markdown source list."""
    if not citations:
        return ""

    lines = ["\n---\n**Sources:**"]
    for c in citations:
        parts = [f"[{c.index}]"]
        if c.ticker:
            parts.append(c.ticker)
        if c.title:
            parts.append(c.title)
        if c.url:
            parts.append(c.url)
        lines.append(f"- {' | '.join(parts)}")

    return "\n".join(lines)
