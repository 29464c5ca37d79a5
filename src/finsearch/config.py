"""Application settings loaded from YAML with environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Settings sections
# ---------------------------------------------------------------------------


class EmbeddingSettings(BaseModel):
    provider: str = "ollama"
    model: str = "nomic-embed-text"


class LLMSettings(BaseModel):
    provider: str = "ollama"
    model: str = "deepseek-r1:32b"
    temperature: float = 0.7
    max_tokens: int = 2048


class FinanceSettings(BaseModel):
    backend_url: str | None = None
    quote_url_template: str = "https://finviz.com/quote.ashx?t={ticker}"
    timeout: float = 20.0


class SearchSettings(BaseModel):
    searxng_url: str | None = None
    language: str = "en"
    timeout: float = 20.0


class LinkSettings(BaseModel):
    max_chunks_per_group: int = 10
    chunk_max_tokens: int = 500
    timeout: float = 20.0


class RerankSettings(BaseModel):
    threshold: float = 0.3
    max_results: int = 15
    cross_encoder_model: str | None = None


class FileSettings(BaseModel):
    upload_dir: str = "uploads"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    finance: FinanceSettings = Field(default_factory=FinanceSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    links: LinkSettings = Field(default_factory=LinkSettings)
    rerank: RerankSettings = Field(default_factory=RerankSettings)
    files: FileSettings = Field(default_factory=FileSettings)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

# (environment variable, section, field)
_ENV_OVERRIDES: list[tuple[str, str, str]] = [
    ("FIN_BACKEND_SERVER", "finance", "backend_url"),
    ("SEARXNG_API_URL", "search", "searxng_url"),
    ("FINSEARCH_UPLOAD_DIR", "files", "upload_dir"),
]


def _find_settings_file() -> Path | None:
    """Walk up from cwd looking for settings.yaml."""
    profile = os.getenv("FINSEARCH_PROFILE", "")
    names = [f"settings-{profile}.yaml", "settings.yaml"] if profile else ["settings.yaml"]

    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        for name in names:
            candidate = parent / name
            if candidate.exists():
                return candidate
    return None


def _apply_env_overrides(raw: dict) -> dict:
    for env_name, section, field in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if value:
            raw.setdefault(section, {})[field] = value
    return raw


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML file, falling back to defaults.

    Environment variables in ``_ENV_OVERRIDES`` win over the file.
    """
    path = Path(path) if path else _find_settings_file()

    raw: dict = {}
    if path is not None:
        with open(path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}

    return Settings(**_apply_env_overrides(raw))
