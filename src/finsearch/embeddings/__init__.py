"""Embedding providers — Ollama, OpenAI, HuggingFace."""

from finsearch.embeddings.base import EmbeddingProvider
from finsearch.embeddings.factory import available_providers, get_embedding_provider

__all__ = [
    "EmbeddingProvider",
    "available_providers",
    "get_embedding_provider",
]
