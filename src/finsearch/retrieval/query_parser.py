"""Parse the tagged output of the query-rewrite prompt.

The rewrite model answers with XML-ish blocks::

    <question>Market outlook for Tesla</question>
    <links>
    https://example.com/a
    </links>
    <queries>
    <query><ticker>TSLA</ticker><command>News</command></query>
    </queries>

Every block is optional. A block only counts when both its opening and
closing tags are present; anything malformed degrades to "no data of that
kind" and parsing never raises.
"""

from __future__ import annotations

import logging
import re

from finsearch.retrieval.schemas import (
    NOT_NEEDED,
    FinanceCommand,
    FinanceQuery,
    NeedsSearch,
    NotNeeded,
    StructuredQuery,
)

logger = logging.getLogger(__name__)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_QUERY_RE = re.compile(r"<query>(.*?)</query>", re.DOTALL)


def strip_thinking(text: str) -> str:
    """Remove ``<think>…</think>`` reasoning annotations from model output."""
    text = _THINK_RE.sub("", text)
    # A dangling close tag means the opening tag was cut from the output
    if "</think>" in text:
        text = text.rsplit("</think>", 1)[1]
    return text.strip()


def extract_block(text: str, key: str) -> str:
    """Return the stripped content of the first ``<key>…</key>`` block, or ''."""
    open_tag, close_tag = f"<{key}>", f"</{key}>"
    start = text.find(open_tag)
    if start == -1:
        return ""
    start += len(open_tag)
    end = text.find(close_tag, start)
    if end == -1:
        return ""
    return text[start:end].strip()


def extract_lines(text: str, key: str) -> list[str]:
    """Return the non-empty lines of the first ``<key>`` block."""
    block = extract_block(text, key)
    return [line.strip() for line in block.splitlines() if line.strip()]


def _parse_finance_queries(text: str) -> tuple[FinanceQuery, ...]:
    block = extract_block(text, "queries")
    if not block:
        return ()

    queries: list[FinanceQuery] = []
    for raw in _QUERY_RE.findall(block):
        ticker = extract_block(raw, "ticker").upper()
        command = extract_block(raw, "command")
        if not ticker:
            logger.warning("Skipping finance query without ticker: %r", raw)
            continue
        try:
            queries.append(FinanceQuery(ticker=ticker, command=FinanceCommand(command)))
        except ValueError:
            logger.warning("Skipping unknown finance command %r for %s", command, ticker)

    return tuple(queries)


def parse_structured_query(text: str, summarizer: bool = True) -> StructuredQuery:
    """Parse a rewrite-prompt completion into a ``StructuredQuery``.

    Args:
        text: Raw completion text.
        summarizer: When False the whole (thinking-stripped) completion is
            taken as the question instead of the ``question`` block.

    Returns:
        The parsed query; missing blocks come back empty.
    """
    text = strip_thinking(text)

    question = extract_block(text, "question") if summarizer else text
    intent = NotNeeded() if question == NOT_NEEDED else NeedsSearch(question)

    result = StructuredQuery(
        intent=intent,
        links=tuple(extract_lines(text, "links")),
        finance_queries=_parse_finance_queries(text),
    )

    logger.debug(
        "Parsed rewrite: question=%r links=%d finance_queries=%d",
        result.question, len(result.links), len(result.finance_queries),
    )
    return result
