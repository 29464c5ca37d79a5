"""CLI entry point — Typer app for finsearch commands.

Usage:
    finsearch ask "What is the current price of Apple?"
    finsearch ask "Summarize https://example.com/article" --focus web
    finsearch ask "Compare these filings" --file 3f2a --mode balanced
    finsearch status
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from finsearch import __version__

app = typer.Typer(
    name="finsearch",
    help="Financial search agent — answer questions with cited sources.",
    no_args_is_help=True,
)

console = Console()


def _setup_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


async def _consume(stream) -> tuple[list, str]:
    """Print response fragments as they arrive; return sources and answer."""
    sources: list = []
    parts: list[str] = []

    async for event in stream:
        if event.type == "sources":
            sources = event.data
            console.print(f"[dim]Found {len(sources)} sources[/]\n")
        elif event.type == "response":
            parts.append(event.data)
            console.print(event.data, end="", markup=False, highlight=False)

    console.print()
    return sources, "".join(parts)


async def _answer(stream, llm, embeddings) -> tuple[list, str]:
    try:
        return await _consume(stream)
    finally:
        await llm.aclose()
        await embeddings.aclose()


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask"),
    focus: str = typer.Option(
        "finance", "--focus", "-F", help="Focus mode (finance, web, youtube, writing)",
    ),
    mode: str = typer.Option(
        "speed", "--mode", "-m", help="Optimization mode (speed, balanced, quality)",
    ),
    llm_provider: str | None = typer.Option(
        None, "--llm", "-l", help="LLM provider (default from settings)",
    ),
    embedding_provider: str | None = typer.Option(
        None, "--embedding", "-e", help="Embedding provider (default from settings)",
    ),
    file_ids: list[str] = typer.Option(
        [], "--file", "-f", help="Uploaded file id to include (repeatable)",
    ),
    settings_path: Path | None = typer.Option(
        None, "--settings", "-s", help="Path to settings.yaml",
    ),
) -> None:
    """Ask a question and stream a cited answer."""
    from finsearch.config import load_settings
    from finsearch.embeddings.factory import get_embedding_provider
    from finsearch.errors import ConfigurationError, WebSearchError
    from finsearch.llm.factory import get_llm_provider
    from finsearch.pipeline.agent import SearchAgent
    from finsearch.pipeline.citations import extract_citations, format_citations
    from finsearch.pipeline.focus import get_focus_config

    _setup_logging()
    settings = load_settings(settings_path)

    llm_kwargs: dict = {}
    llm_name = llm_provider or settings.llm.provider
    if llm_name == settings.llm.provider:
        llm_kwargs = {
            "model": settings.llm.model,
            "temperature": settings.llm.temperature,
            "max_tokens": settings.llm.max_tokens,
        }

    emb_kwargs: dict = {}
    emb_name = embedding_provider or settings.embedding.provider
    if emb_name == settings.embedding.provider:
        emb_kwargs = {"model": settings.embedding.model}

    try:
        config = get_focus_config(focus, settings)
        agent = SearchAgent.from_settings(config, settings)
        llm = get_llm_provider(llm_name, **llm_kwargs)
        emb = get_embedding_provider(emb_name, **emb_kwargs)
        stream = agent.search_and_answer(question, [], llm, emb, mode, file_ids)
    except (ConfigurationError, ValueError, ImportError) as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=2) from exc

    console.print(f"\n[bold]Q:[/] {question}\n")

    try:
        sources, answer = asyncio.run(_answer(stream, llm, emb))
    except WebSearchError as exc:
        console.print(f"\n[bold red]Search failed:[/] {exc}")
        raise typer.Exit(code=1) from exc
    except FileNotFoundError as exc:
        console.print(f"\n[bold red]Missing uploaded file:[/] {exc}")
        raise typer.Exit(code=1) from exc

    citations = extract_citations(answer, sources)
    if citations:
        console.print(format_citations(citations), markup=False)

    if sources:
        table = Table(title="Sources")
        table.add_column("#", style="cyan")
        table.add_column("Title")
        table.add_column("URL", style="dim")
        for i, doc in enumerate(sources, 1):
            table.add_row(str(i), doc.metadata.title[:70], doc.metadata.url)
        console.print(table)

    console.print(f"\n[dim]Focus: {focus} | Mode: {mode} | LLM: {llm_name}[/]")


@app.command()
def status() -> None:
    """Show available providers, focus modes and optimization modes."""
    from finsearch.config import load_settings
    from finsearch.embeddings.factory import available_providers as emb_providers
    from finsearch.llm.factory import available_providers as llm_providers
    from finsearch.pipeline.focus import available_focus_modes
    from finsearch.retrieval.schemas import OptimizationMode

    settings = load_settings()

    console.print(f"\n[bold green]finsearch[/] v{__version__}\n")

    table = Table(title="Available Components")
    table.add_column("Layer", style="cyan")
    table.add_column("Available")

    table.add_row("LLM Providers", ", ".join(llm_providers()))
    table.add_row("Embedding Providers", ", ".join(emb_providers()))
    table.add_row("Focus Modes", ", ".join(available_focus_modes()))
    table.add_row("Optimization Modes", ", ".join(m.value for m in OptimizationMode))

    console.print(table)

    backends = Table(title="Backends")
    backends.add_column("Backend", style="cyan")
    backends.add_column("URL")
    backends.add_row("Finance", settings.finance.backend_url or "[red]not configured[/]")
    backends.add_row("Web search", settings.search.searxng_url or "[red]not configured[/]")
    backends.add_row("Uploads", settings.files.upload_dir)
    console.print(backends)


if __name__ == "__main__":
    app()
