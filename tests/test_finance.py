"""Tests for the finance data fetcher — mocked backend, no network."""

from __future__ import annotations

import asyncio

import httpx

from finsearch.retrieval.finance import FinanceFetcher
from finsearch.retrieval.schemas import FinanceCommand, FinanceQuery

BACKEND = "http://fin.test"


def _run(coro):
    return asyncio.run(coro)


def _fetcher(handler) -> FinanceFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FinanceFetcher(BACKEND, client=client)


class TestFinanceFetcher:
    def test_builds_document(self, aapl_price_payload):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=aapl_price_payload)

        docs = _run(_fetcher(handler).fetch([FinanceQuery("AAPL", FinanceCommand.CURRENT_PRICE)]))

        assert len(docs) == 1
        doc = docs[0]
        assert doc.page_content == aapl_price_payload["content"]
        assert doc.metadata.title == "AAPL CurrentPrice"
        assert doc.metadata.ticker == "AAPL"
        assert doc.metadata.command == "CurrentPrice"
        assert doc.metadata.url == "https://finviz.com/quote.ashx?t=AAPL"

        assert seen[0].url.path == "/CurrentPrice"
        assert seen[0].url.params["ticker"] == "AAPL"

    def test_partial_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["ticker"] == "BAD":
                return httpx.Response(503)
            return httpx.Response(200, json={"content": f"data for {request.url.path}"})

        queries = [
            FinanceQuery("AAPL", FinanceCommand.NEWS),
            FinanceQuery("BAD", FinanceCommand.NEWS),
            FinanceQuery("MSFT", FinanceCommand.FUNDAMENTALS),
        ]
        docs = _run(_fetcher(handler).fetch(queries))

        assert len(docs) == 2
        assert {d.metadata.ticker for d in docs} == {"AAPL", "MSFT"}

    def test_invalid_json_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>gateway</html>")

        assert _run(_fetcher(handler).fetch([FinanceQuery("AAPL", FinanceCommand.NEWS)])) == []

    def test_connection_error_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert _run(_fetcher(handler).fetch([FinanceQuery("AAPL", FinanceCommand.NEWS)])) == []

    def test_payload_without_content_serialized(self):
        payload = {"rating": "Buy", "target": 220}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        docs = _run(_fetcher(handler).fetch([FinanceQuery("AAPL", FinanceCommand.ANALYST_RATINGS)]))
        assert '"rating": "Buy"' in docs[0].page_content

    def test_no_queries_no_requests(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert _run(_fetcher(handler).fetch([])) == []

    def test_custom_quote_template(self):
        fetcher = FinanceFetcher(BACKEND, quote_url_template="https://quotes.test/{ticker}")
        assert fetcher.quote_page("NVDA") == "https://quotes.test/NVDA"

    def test_backend_trailing_slash(self):
        assert FinanceFetcher("http://fin.test/").backend_url == BACKEND
