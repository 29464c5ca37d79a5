"""Shared fixtures for tests — synthetic pages and uploads, no network calls."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Synthetic page content
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_article_text() -> str:
    return textwrap.dedent("""\
        Apple Inc. (AAPL) — Q4 2024 Earnings Summary

        Revenue came in at $94.9 billion, up 6% year-over-year. Services revenue
        hit a new all-time record of $25.0 billion, driven by advertising, App Store,
        and cloud services. Gross margin expanded 120 basis points to 46.2%.

        Management raised guidance for Q1 2025, citing strong iPhone 16 demand
        and continued growth in emerging markets. The company repurchased
        $25 billion of stock during the quarter.

        Risk Factors

        Foreign exchange headwinds remain a concern, with the strong dollar
        reducing international revenue by approximately 3 percentage points.
    """)


@pytest.fixture
def sample_html() -> str:
    return textwrap.dedent("""\
        <html>
        <head>
          <title>Apple beats estimates on services strength</title>
          <style>body { color: red; }</style>
          <script>var tracking = "do-not-index";</script>
        </head>
        <body>
          <nav>Home | Markets | Tech</nav>
          <p>Apple reported revenue of $94.9 billion, up 6% year-over-year.</p>

          <p>Services revenue reached a record $25.0 billion.</p>
          <footer>Copyright Example News</footer>
        </body>
        </html>
    """)


@pytest.fixture
def aapl_price_payload() -> dict:
    return {"content": "Apple Inc. (AAPL) last traded at $189.84, up 1.2% today."}


# ---------------------------------------------------------------------------
# Uploaded files
# ---------------------------------------------------------------------------


def write_upload(
    upload_dir: Path,
    file_id: str,
    title: str,
    contents: list[str],
    embeddings: list[list[float]],
) -> None:
    (upload_dir / f"{file_id}-extracted.json").write_text(
        json.dumps({"title": title, "contents": contents}), encoding="utf-8",
    )
    (upload_dir / f"{file_id}-embeddings.json").write_text(
        json.dumps({"embeddings": embeddings}), encoding="utf-8",
    )


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """Uploads directory with one processed file, ``10k``."""
    d = tmp_path / "uploads"
    d.mkdir()
    write_upload(
        d, "10k", "apple_10k.pdf",
        ["Net sales were $391 billion.", "Risk factors include FX exposure."],
        [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
    )
    return d


@pytest.fixture
def add_upload(upload_dir: Path):
    """Write another processed file into ``upload_dir``."""

    def _add(file_id: str, title: str, contents: list[str], embeddings: list[list[float]]) -> None:
        write_upload(upload_dir, file_id, title, contents, embeddings)

    return _add
