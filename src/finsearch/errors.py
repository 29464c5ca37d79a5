"""Exception types raised by the answering pipeline."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invocation cannot start: a required backend, credential or mode is missing."""


class WebSearchError(RuntimeError):
    """The web search backend could not be reached or returned an error."""
