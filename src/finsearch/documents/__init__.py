"""Documents — data model shared by every retrieval branch.

The link loader lives in ``finsearch.documents.loader``.
"""

from finsearch.documents.schemas import Document, DocumentMetadata

__all__ = ["Document", "DocumentMetadata"]
