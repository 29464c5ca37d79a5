"""LLM provider factory — registry and lazy import."""

from __future__ import annotations

import importlib
import logging

from finsearch.llm.base import LLMProvider

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Provider registry: (provider_key, module_path, class_name)
# ---------------------------------------------------------------------------

_PROVIDER_REGISTRY: list[tuple[str, str, str]] = [
    ("ollama", "finsearch.llm.ollama_provider", "OllamaLLMProvider"),
    ("anthropic", "finsearch.llm.anthropic_provider", "AnthropicLLMProvider"),
    ("openai", "finsearch.llm.openai_provider", "OpenAILLMProvider"),
]


def get_llm_provider(
    provider: str = "ollama",
    **kwargs,
) -> LLMProvider:
    """Build an LLM provider by name.

    A new instance is returned on every call; callers own its lifetime.

    Args:
        provider: One of ``ollama``, ``anthropic``, ``openai``.
        **kwargs: Passed to the provider constructor.

    Returns:
        An ``LLMProvider`` instance.
    """
    key = provider.lower()

    for reg_key, module_path, cls_name in _PROVIDER_REGISTRY:
        if reg_key == key:
            mod = importlib.import_module(module_path)
            cls = getattr(mod, cls_name)
            logger.debug("Creating LLM provider %s", cls_name)
            return cls(**kwargs)

    available = [k for k, _, _ in _PROVIDER_REGISTRY]
    raise ValueError(f"Unknown LLM provider '{provider}'. Available: {available}")


def available_providers() -> list[str]:
    """Return names of registered LLM providers."""
    return [k for k, _, _ in _PROVIDER_REGISTRY]
