"""Abstract base class for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation. ``role`` is ``user`` or ``assistant``."""

    role: str
    content: str


class LLMProvider(ABC):
    """Interface for async LLM completion and token streaming."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a single-shot response from the LLM.

        Args:
            prompt: The user prompt.
            system: Optional system prompt.
            temperature: Override the provider's sampling temperature.

        Returns:
            Generated text response.
        """

    @abstractmethod
    def stream(
        self,
        messages: Sequence[ChatMessage],
        system: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream a multi-turn completion as incremental text fragments.

        Implementations are async generators.

        Args:
            messages: Conversation turns, oldest first; the last is the query.
            system: Optional system prompt.
        """

    async def aclose(self) -> None:
        """Release network resources held by the provider."""

    @classmethod
    def provider_name(cls) -> str:
        """Return human-readable provider name."""
        return cls.__name__
