"""Read-only access to embeddings of user-uploaded files.

Files are processed by a separate upload step that writes, per file id::

    {upload_dir}/{file_id}-extracted.json   {"title": ..., "contents": [chunk, ...]}
    {upload_dir}/{file_id}-embeddings.json  {"embeddings": [[float, ...], ...]}
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from finsearch.retrieval.schemas import FileChunk

logger = logging.getLogger(__name__)


class FileStore(Protocol):
    def load(self, file_ids: Sequence[str]) -> list[FileChunk]: ...


class JsonFileStore:
    """Load extracted chunks and their embeddings from the uploads directory."""

    def __init__(self, upload_dir: str | Path = "uploads"):
        self.upload_dir = Path(upload_dir)

    def load(self, file_ids: Sequence[str]) -> list[FileChunk]:
        """Return every chunk of the given files, in file then chunk order.

        Raises:
            FileNotFoundError: If a file id has no processed data.
        """
        chunks: list[FileChunk] = []
        for file_id in file_ids:
            chunks.extend(self._load_one(file_id))
        return chunks

    def _load_one(self, file_id: str) -> list[FileChunk]:
        base = self.upload_dir / file_id
        content_path = base.with_name(f"{base.name}-extracted.json")
        embeddings_path = base.with_name(f"{base.name}-embeddings.json")

        with open(content_path, encoding="utf-8") as fh:
            content = json.load(fh)
        with open(embeddings_path, encoding="utf-8") as fh:
            embeddings = json.load(fh)["embeddings"]

        contents = content.get("contents", [])
        if len(contents) != len(embeddings):
            logger.warning(
                "File %s has %d chunks but %d embeddings; extra entries ignored",
                file_id, len(contents), len(embeddings),
            )

        title = content.get("title", file_id)
        return [
            FileChunk(file_name=title, content=text, embedding=emb)
            for text, emb in zip(contents, embeddings)
        ]
