"""Answering pipeline — agent, focus modes, prompts, streaming, citations."""

from finsearch.pipeline.agent import SearchAgent
from finsearch.pipeline.citations import extract_citations, format_citations
from finsearch.pipeline.focus import available_focus_modes, get_focus_config
from finsearch.pipeline.schemas import AgentConfig, Citation, EventType, StreamEvent
from finsearch.pipeline.stream import AnswerStream

__all__ = [
    "AgentConfig",
    "AnswerStream",
    "Citation",
    "EventType",
    "SearchAgent",
    "StreamEvent",
    "available_focus_modes",
    "extract_citations",
    "format_citations",
    "get_focus_config",
]
