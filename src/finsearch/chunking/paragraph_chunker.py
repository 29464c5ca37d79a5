"""Token-aware paragraph chunker for fetched web pages and PDFs.

Splits on blank-line paragraph boundaries and packs paragraphs into chunks
up to a token budget. Paragraphs that alone exceed the budget are split on
word boundaries.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

import tiktoken

from finsearch.chunking.base import BaseChunker
from finsearch.documents.schemas import Document, DocumentMetadata

logger = logging.getLogger(__name__)

MAX_TOKENS = 500

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@lru_cache(maxsize=1)
def _encoding() -> tiktoken.Encoding | None:
    try:
        return tiktoken.get_encoding("cl100k_base")
    except Exception as exc:
        # BPE data is downloaded on first use
        logger.warning("tiktoken encoding unavailable, estimating tokens: %s", exc)
        return None


def count_tokens(text: str) -> int:
    """Count tokens with the cl100k_base encoding."""
    enc = _encoding()
    if enc is None:
        # Rough approximation: ~1.33 tokens per word
        return len(text.split()) * 4 // 3
    return len(enc.encode(text))


class ParagraphChunker(BaseChunker):
    """Pack paragraphs into chunks of at most ``max_tokens`` tokens."""

    def __init__(self, max_tokens: int = MAX_TOKENS):
        self.max_tokens = max_tokens

    def chunk(self, text: str, metadata: DocumentMetadata | None = None) -> list[Document]:
        meta = metadata or DocumentMetadata()

        pieces: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for para in _PARAGRAPH_SPLIT.split(text):
            para = " ".join(para.split())
            if not para:
                continue

            para_tokens = count_tokens(para)

            if para_tokens > self.max_tokens:
                if current:
                    pieces.append("\n\n".join(current))
                    current, current_tokens = [], 0
                pieces.extend(self._split_long(para))
                continue

            # Would exceed budget — save current and start new
            if current and current_tokens + para_tokens > self.max_tokens:
                pieces.append("\n\n".join(current))
                current, current_tokens = [], 0

            current.append(para)
            current_tokens += para_tokens

        if current:
            pieces.append("\n\n".join(current))

        logger.debug(
            "ParagraphChunker produced %d chunks from %d chars (%s)",
            len(pieces), len(text), meta.url or "unknown source",
        )
        return [Document(page_content=p, metadata=meta) for p in pieces]

    def _split_long(self, para: str) -> list[str]:
        out: list[str] = []
        words: list[str] = []
        tokens = 0
        for word in para.split(" "):
            word_tokens = count_tokens(" " + word)
            if words and tokens + word_tokens > self.max_tokens:
                out.append(" ".join(words))
                words, tokens = [], 0
            words.append(word)
            tokens += word_tokens
        if words:
            out.append(" ".join(words))
        return out
