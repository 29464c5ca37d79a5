"""Data models for retrieved documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DocumentMetadata:
    """Source information carried by every retrieved document."""

    title: str = ""
    url: str = ""
    img_src: str | None = None
    ticker: str | None = None
    command: str | None = None
    total_docs: int | None = None  # chunks absorbed into a link group

    def to_dict(self) -> dict[str, Any]:
        """Wire form: unset optional fields are omitted."""
        d: dict[str, Any] = {"title": self.title, "url": self.url}
        if self.img_src:
            d["img_src"] = self.img_src
        if self.ticker:
            d["ticker"] = self.ticker
        if self.command:
            d["command"] = self.command
        if self.total_docs is not None:
            d["totalDocs"] = self.total_docs
        return d


@dataclass(frozen=True)
class Document:
    """A unit of retrieved text with its source metadata.

    Produced by every retrieval branch (finance backend, link summaries,
    web search, uploaded files) and never mutated afterwards.
    """

    page_content: str
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)

    @property
    def has_content(self) -> bool:
        return bool(self.page_content)

    def to_dict(self) -> dict[str, Any]:
        return {"pageContent": self.page_content, "metadata": self.metadata.to_dict()}
