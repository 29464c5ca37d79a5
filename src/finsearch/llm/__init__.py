"""LLM providers — Ollama, Anthropic, OpenAI."""

from finsearch.llm.base import ChatMessage, LLMProvider
from finsearch.llm.factory import available_providers, get_llm_provider

__all__ = ["ChatMessage", "LLMProvider", "available_providers", "get_llm_provider"]
