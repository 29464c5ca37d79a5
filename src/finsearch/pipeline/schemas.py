"""Data models for the answering pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from finsearch.documents.schemas import Document
from finsearch.pipeline.prompts import QUERY_GENERATOR_PROMPT, RESPONSE_PROMPT


class AgentConfig(BaseModel):
    """Retrieval/answering policy for one agent.

    Frozen: every invocation of the agent reads the same snapshot.
    """

    model_config = ConfigDict(frozen=True)

    search_web: bool = True
    rerank: bool = True
    rerank_threshold: float = 0.3
    use_finance: bool = True
    # False: use the whole rewrite output as the question
    summarizer: bool = True
    active_engines: tuple[str, ...] = ()
    query_generator_prompt: str = QUERY_GENERATOR_PROMPT
    response_prompt: str = RESPONSE_PROMPT


class EventType(StrEnum):
    SOURCES = "sources"
    RESPONSE = "response"
    END = "end"


@dataclass(frozen=True)
class StreamEvent:
    """One event of the answer stream.

    ``data`` is the document list for ``sources``, a text fragment for
    ``response`` and None for ``end``.
    """

    type: EventType
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        if self.type == EventType.END:
            return {"type": self.type.value}
        if self.type == EventType.SOURCES:
            return {"type": self.type.value, "data": [d.to_dict() for d in self.data]}
        return {"type": self.type.value, "data": self.data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def sources(cls, documents: list[Document]) -> StreamEvent:
        return cls(EventType.SOURCES, list(documents))

    @classmethod
    def response(cls, fragment: str) -> StreamEvent:
        return cls(EventType.RESPONSE, fragment)

    @classmethod
    def end(cls) -> StreamEvent:
        return cls(EventType.END)


@dataclass
class Citation:
    """A source citation in a generated answer."""

    index: int
    title: str
    url: str
    snippet: str
    ticker: str | None = None
