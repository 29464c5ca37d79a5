"""Chunking of fetched link content."""

from finsearch.chunking.base import BaseChunker
from finsearch.chunking.paragraph_chunker import ParagraphChunker

__all__ = ["BaseChunker", "ParagraphChunker"]
