"""Abstract base class for all chunkers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from finsearch.documents.schemas import Document, DocumentMetadata


class BaseChunker(ABC):
    """Interface for splitting fetched text into retrievable documents."""

    @abstractmethod
    def chunk(self, text: str, metadata: DocumentMetadata | None = None) -> list[Document]:
        """Split text into chunks.

        Args:
            text: Full extracted text of one source.
            metadata: Source metadata to propagate to each chunk.

        Returns:
            List of ``Document`` chunks, in source order.
        """

    @classmethod
    def strategy_name(cls) -> str:
        """Return human-readable strategy name."""
        return cls.__name__
