"""Focus modes — named ``AgentConfig`` presets.

- ``finance``: structured finance data plus web search (the default).
- ``web``: plain web search, no finance backend.
- ``youtube``: video search; result titles stand in for missing content.
- ``writing``: no retrieval, the model answers from the conversation alone.
"""

from __future__ import annotations

from collections.abc import Callable

from finsearch.config import Settings
from finsearch.pipeline.schemas import AgentConfig

DEFAULT_FOCUS = "finance"

WRITING_PROMPT = """\
You are Stockalyzer, an AI model who is expert at writing and financial \
analysis. You are currently set on focus mode 'Writing Assistant': you help \
the user write responses to their queries. You have no web search and no \
context documents; if you cannot answer from what the user wrote, say so and \
suggest switching to another focus mode.

<context>
{context}
</context>

Current date & time in ISO format (UTC timezone) is: {date}.
"""


def _finance(settings: Settings) -> AgentConfig:
    return AgentConfig(
        search_web=True,
        use_finance=True,
        rerank=True,
        rerank_threshold=settings.rerank.threshold,
    )


def _web(settings: Settings) -> AgentConfig:
    return AgentConfig(
        search_web=True,
        use_finance=False,
        rerank=True,
        rerank_threshold=settings.rerank.threshold,
    )


def _youtube(settings: Settings) -> AgentConfig:
    return AgentConfig(
        search_web=True,
        use_finance=False,
        rerank=True,
        rerank_threshold=settings.rerank.threshold,
        active_engines=("youtube",),
    )


def _writing(settings: Settings) -> AgentConfig:
    return AgentConfig(
        search_web=False,
        use_finance=False,
        rerank=False,
        response_prompt=WRITING_PROMPT,
    )


_REGISTRY: dict[str, Callable[[Settings], AgentConfig]] = {
    "finance": _finance,
    "web": _web,
    "youtube": _youtube,
    "writing": _writing,
}


def get_focus_config(name: str = DEFAULT_FOCUS, settings: Settings | None = None) -> AgentConfig:
    """Build the ``AgentConfig`` for a focus mode.

    Raises:
        ValueError: If the focus mode is unknown.
    """
    builder = _REGISTRY.get(name)
    if builder is None:
        available = ", ".join(sorted(_REGISTRY))
        raise ValueError(f"Unknown focus mode '{name}'. Available: {available}")
    return builder(settings or Settings())


def available_focus_modes() -> list[str]:
    return sorted(_REGISTRY)
