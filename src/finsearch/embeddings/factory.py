"""Embedding provider factory — registry and lazy import.

Same pattern as ``finsearch.llm.factory``.
"""

from __future__ import annotations

import importlib
import logging

from finsearch.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Provider registry: (provider_key, module_path, class_name)
# ---------------------------------------------------------------------------

_PROVIDER_REGISTRY: list[tuple[str, str, str]] = [
    ("ollama", "finsearch.embeddings.ollama_provider", "OllamaEmbeddingProvider"),
    ("openai", "finsearch.embeddings.openai_provider", "OpenAIEmbeddingProvider"),
    ("huggingface", "finsearch.embeddings.huggingface_provider", "HuggingFaceEmbeddingProvider"),
]


def get_embedding_provider(
    provider: str = "ollama",
    **kwargs,
) -> EmbeddingProvider:
    """Build an embedding provider by name.

    Args:
        provider: One of ``ollama``, ``openai``, ``huggingface``.
        **kwargs: Passed to the provider constructor.

    Returns:
        An ``EmbeddingProvider`` instance.
    """
    key = provider.lower()

    for reg_key, module_path, cls_name in _PROVIDER_REGISTRY:
        if reg_key == key:
            mod = importlib.import_module(module_path)
            cls = getattr(mod, cls_name)
            logger.debug("Creating embedding provider %s", cls_name)
            return cls(**kwargs)

    available = [k for k, _, _ in _PROVIDER_REGISTRY]
    raise ValueError(f"Unknown embedding provider '{provider}'. Available: {available}")


def available_providers() -> list[str]:
    """Return names of registered embedding providers."""
    return [k for k, _, _ in _PROVIDER_REGISTRY]
