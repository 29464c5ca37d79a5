"""Tests for the answering pipeline — fully mocked, no network."""

from __future__ import annotations

import asyncio
import hashlib
import json

import httpx
import numpy as np
import pytest

from finsearch.config import Settings
from finsearch.documents.loader import LinkLoader
from finsearch.documents.schemas import Document, DocumentMetadata
from finsearch.embeddings.base import EmbeddingProvider
from finsearch.errors import ConfigurationError, WebSearchError
from finsearch.llm.base import ChatMessage, LLMProvider
from finsearch.pipeline.agent import SearchAgent
from finsearch.pipeline.citations import cited_indices, extract_citations, format_citations
from finsearch.pipeline.focus import available_focus_modes, get_focus_config
from finsearch.pipeline.prompts import (
    RESPONSE_PROMPT,
    build_messages,
    build_query_prompt,
    build_system_prompt,
    format_chat_history,
    format_context,
)
from finsearch.pipeline.schemas import AgentConfig, Citation, EventType, StreamEvent
from finsearch.pipeline.stream import AnswerStream
from finsearch.retrieval.files import JsonFileStore
from finsearch.retrieval.finance import FinanceFetcher
from finsearch.retrieval.web_search import SearxngClient, WebSearchRetriever

FIN_URL = "http://fin.test"
SEARCH_URL = "http://search.test"

AAPL_REWRITE = (
    "<think>The user wants a live price.</think>\n"
    "<question>\nnot_needed\n</question>\n"
    "<queries>\n"
    "<query><ticker>AAPL</ticker><command>CurrentPrice</command></query>\n"
    "</queries>"
)


def _run(coro):
    return asyncio.run(coro)


async def _events(stream: AnswerStream) -> list[StreamEvent]:
    return [event async for event in stream]


# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------

DIM = 64


class MockEmbedder(EmbeddingProvider):
    def __init__(self, dim: int = DIM):
        self._dim = dim

    async def embed_documents(self, texts):
        return [self._hash_embed(t) for t in texts]

    async def embed_query(self, query):
        return self._hash_embed(query)

    def _hash_embed(self, text: str) -> list[float]:
        h = hashlib.sha256(text.encode()).digest()
        vec = np.array([h[i % len(h)] / 255.0 for i in range(self._dim)], dtype=np.float32)
        vec /= np.linalg.norm(vec)
        return vec.tolist()


class MockLLM(LLMProvider):
    """Scripted model: rewrite output, link summary and answer tokens."""

    def __init__(
        self,
        rewrite: str = "<question>\nnot_needed\n</question>",
        tokens: tuple[str, ...] = ("Apple last traded at $189.84", "[1]."),
        summary: str = "The article reports record services revenue.",
    ):
        self.rewrite = rewrite
        self.tokens = tokens
        self.summary = summary
        self.prompts: list[tuple[str, float | None]] = []
        self.streamed: list[tuple[list[ChatMessage], str | None]] = []

    async def generate(self, prompt, system=None, temperature=None):
        self.prompts.append((prompt, temperature))
        if "Rephrased question:" in prompt:
            return self.rewrite
        return self.summary

    async def stream(self, messages, system=None):
        self.streamed.append((list(messages), system))
        for token in self.tokens:
            yield token


class Backend:
    """Mocked finance + search backends recording every request."""

    def __init__(self, finance: dict | None = None, search: dict | None = None, search_status=200):
        self.finance = finance or {}
        self.search = search or {"results": []}
        self.search_status = search_status
        self.finance_calls: list[httpx.Request] = []
        self.search_calls: list[httpx.Request] = []

    def finance_handler(self, request: httpx.Request) -> httpx.Response:
        self.finance_calls.append(request)
        key = (request.url.params["ticker"], request.url.path.lstrip("/"))
        if key not in self.finance:
            return httpx.Response(404)
        return httpx.Response(200, json=self.finance[key])

    def search_handler(self, request: httpx.Request) -> httpx.Response:
        self.search_calls.append(request)
        return httpx.Response(self.search_status, json=self.search)

    def agent(self, config: AgentConfig, **kwargs) -> SearchAgent:
        finance = FinanceFetcher(
            FIN_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(self.finance_handler)),
        )
        web = WebSearchRetriever(SearxngClient(
            SEARCH_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(self.search_handler)),
        ))
        kwargs.setdefault("finance", finance)
        kwargs.setdefault("web_search", web)
        return SearchAgent(config, **kwargs)


def _page_loader(pages: dict[str, str]) -> LinkLoader:
    def handler(request: httpx.Request) -> httpx.Response:
        html = pages.get(str(request.url))
        return httpx.Response(200, html=html) if html else httpx.Response(404)

    return LinkLoader(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _doc(title: str, content: str, url: str = "https://news.test", ticker=None) -> Document:
    return Document(
        page_content=content,
        metadata=DocumentMetadata(title=title, url=url, ticker=ticker),
    )


# ---------------------------------------------------------------------------
# Prompt tests
# ---------------------------------------------------------------------------


class TestPrompts:
    def test_format_context_numbered(self):
        docs = [_doc("AAPL CurrentPrice", "$189.84"), _doc("Apple news", "Record quarter")]
        assert format_context(docs) == "1. AAPL CurrentPrice $189.84\n2. Apple news Record quarter"

    def test_format_context_empty(self):
        assert format_context([]) == ""

    def test_chat_history(self):
        history = [ChatMessage("user", "Hi"), ChatMessage("assistant", "Hello!")]
        assert format_chat_history(history) == "Human: Hi\nAI: Hello!"

    def test_query_prompt_fills_placeholders(self):
        prompt = build_query_prompt(
            "{chat_history}|{query}", "And Tesla?", [ChatMessage("user", "Price of Apple?")],
        )
        assert prompt == "Human: Price of Apple?|And Tesla?"

    def test_system_prompt(self):
        system = build_system_prompt(RESPONSE_PROMPT, [_doc("T", "C")], date="2026-01-02T00:00:00+00:00")
        assert "<context>\n1. T C\n</context>" in system
        assert "2026-01-02T00:00:00+00:00" in system
        assert "could not find any relevant information" in system

    def test_messages_end_with_query(self):
        history = [ChatMessage("user", "Hi"), ChatMessage("assistant", "Hello!")]
        messages = build_messages("Price of Apple?", history)
        assert messages[-1] == ChatMessage("user", "Price of Apple?")
        assert messages[:2] == history


# ---------------------------------------------------------------------------
# Citation tests
# ---------------------------------------------------------------------------


class TestCitations:
    def test_extract_simple(self):
        docs = [_doc("A", "Revenue text"), _doc("B", "Services text", ticker="AAPL")]
        citations = extract_citations("Revenue grew [1]. Services were strong [2].", docs)

        assert [c.index for c in citations] == [1, 2]
        assert citations[1].ticker == "AAPL"
        assert citations[1].snippet == "Services text"

    def test_ranges_and_lists(self):
        assert cited_indices("See [1-3] and [5, 7].") == {1, 2, 3, 5, 7}

    def test_range_clipped_to_limit(self):
        assert cited_indices("[2-20000000]", limit=3) == {2, 3}

    def test_huge_range_maps_to_available_documents(self):
        docs = [_doc("A", "x"), _doc("B", "y")]
        citations = extract_citations("Everything [1-20000000].", docs)
        assert [c.index for c in citations] == [1, 2]

    def test_out_of_range_ignored(self):
        assert extract_citations("Claim [4].", [_doc("A", "x")]) == []

    def test_snippet_truncated(self):
        citations = extract_citations("[1]", [_doc("A", "x" * 300)])
        assert citations[0].snippet == "x" * 200 + "..."

    def test_format(self):
        text = format_citations([
            Citation(index=1, title="AAPL CurrentPrice", url="https://q.test/AAPL", snippet="", ticker="AAPL"),
        ])
        assert "**Sources:**" in text
        assert "[1] | AAPL | AAPL CurrentPrice | https://q.test/AAPL" in text

    def test_format_empty(self):
        assert format_citations([]) == ""


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


class TestStreamEvent:
    def test_sources_wire_form(self):
        event = StreamEvent.sources([_doc("AAPL CurrentPrice", "$189.84", ticker="AAPL")])
        assert event.to_dict() == {
            "type": "sources",
            "data": [{
                "pageContent": "$189.84",
                "metadata": {"title": "AAPL CurrentPrice", "url": "https://news.test", "ticker": "AAPL"},
            }],
        }

    def test_response_and_end(self):
        assert json.loads(StreamEvent.response("Hi").to_json()) == {"type": "response", "data": "Hi"}
        assert StreamEvent.end().to_dict() == {"type": "end"}


class TestAnswerStream:
    def _stream(self, retrieve_calls: list[int], fail: Exception | None = None) -> AnswerStream:
        async def retrieve():
            retrieve_calls.append(1)
            if fail:
                raise fail
            return [_doc("T", "C")]

        async def generate(documents):
            for token in ("a", "b"):
                yield f"{token}{len(documents)}"

        return AnswerStream(retrieve, generate)

    def test_event_order(self):
        events = _run(_events(self._stream([])))
        assert [e.type for e in events] == [
            EventType.SOURCES, EventType.RESPONSE, EventType.RESPONSE, EventType.END,
        ]
        assert [e.data for e in events[1:3]] == ["a1", "b1"]

    def test_sources_computed_once(self):
        calls: list[int] = []
        stream = self._stream(calls)

        async def both():
            first = await stream.sources()
            answer = await stream.answer()
            return first, answer

        sources, answer = _run(both())
        assert len(sources) == 1
        assert answer == "a1b1"
        assert len(calls) == 1

    def test_tokens_single_use(self):
        stream = self._stream([])

        async def twice():
            await stream.answer()
            await stream.answer()

        with pytest.raises(RuntimeError):
            _run(twice())

    def test_failure_has_no_end_event(self):
        stream = self._stream([], fail=WebSearchError("down"))
        seen: list[StreamEvent] = []

        async def consume():
            async for event in stream:
                seen.append(event)

        with pytest.raises(WebSearchError):
            _run(consume())
        assert seen == []


# ---------------------------------------------------------------------------
# Agent end-to-end
# ---------------------------------------------------------------------------


class TestSearchAgentFinance:
    def test_current_price_of_apple(self, aapl_price_payload):
        backend = Backend(finance={("AAPL", "CurrentPrice"): aapl_price_payload})
        llm = MockLLM(rewrite=AAPL_REWRITE)
        agent = backend.agent(AgentConfig(use_finance=True))

        stream = agent.search_and_answer(
            "What is the current price of Apple?", [], llm, MockEmbedder(),
        )
        events = _run(_events(stream))

        assert [e.type for e in events] == ["sources", "response", "response", "end"]
        sources = events[0].data
        assert len(sources) == 1
        assert sources[0].metadata.ticker == "AAPL"

        # No search for not_needed
        assert backend.search_calls == []

        _, system = llm.streamed[0]
        assert f"1. AAPL CurrentPrice {aapl_price_payload['content']}" in system

        answer = "".join(e.data for e in events if e.type == "response")
        assert "[1]" in answer
        citations = extract_citations(answer, sources)
        assert citations[0].ticker == "AAPL"

    def test_rewrite_runs_deterministically(self, aapl_price_payload):
        backend = Backend(finance={("AAPL", "CurrentPrice"): aapl_price_payload})
        llm = MockLLM(rewrite=AAPL_REWRITE)
        history = [ChatMessage("user", "Hi"), ChatMessage("assistant", "Hello! How can I help?")]

        stream = backend.agent(AgentConfig()).search_and_answer(
            "What is the current price of Apple?", history, llm, MockEmbedder(),
        )
        _run(_events(stream))

        prompt, temperature = llm.prompts[0]
        assert temperature == 0
        assert "Human: Hi\nAI: Hello! How can I help?" in prompt
        assert "Follow up question: What is the current price of Apple?" in prompt

        messages, _ = llm.streamed[0]
        assert messages[:2] == history
        assert messages[-1] == ChatMessage("user", "What is the current price of Apple?")

    def test_finance_partial_failure(self, aapl_price_payload):
        rewrite = (
            "<question>\nnot_needed\n</question><queries>"
            "<query><ticker>AAPL</ticker><command>CurrentPrice</command></query>"
            "<query><ticker>ZZZZ</ticker><command>News</command></query>"
            "</queries>"
        )
        backend = Backend(finance={("AAPL", "CurrentPrice"): aapl_price_payload})
        stream = backend.agent(AgentConfig()).search_and_answer(
            "Apple and ZZZZ?", [], MockLLM(rewrite=rewrite), MockEmbedder(),
        )
        sources = _run(stream.sources())

        assert len(backend.finance_calls) == 2
        assert [d.metadata.ticker for d in sources] == ["AAPL"]

    def test_finance_disabled_skips_backend(self):
        backend = Backend()
        stream = backend.agent(AgentConfig(use_finance=False)).search_and_answer(
            "What is the current price of Apple?", [], MockLLM(rewrite=AAPL_REWRITE), MockEmbedder(),
        )
        assert _run(stream.sources()) == []
        assert backend.finance_calls == []


class TestSearchAgentWeb:
    SEARCH = {
        "results": [
            {"title": "Tesla outlook", "url": "https://news.test/tsla", "content": "Analysts expect growth."},
            {"title": "TSLA deliveries", "url": "https://news.test/deliveries", "content": "Deliveries rose."},
        ]
    }

    def test_finance_documents_precede_web(self, aapl_price_payload):
        rewrite = (
            "<question>\nMarket outlook for Tesla\n</question>\n<queries>"
            "<query><ticker>TSLA</ticker><command>News</command></query>"
            "</queries>"
        )
        backend = Backend(
            finance={("TSLA", "News"): {"content": "Tesla shares jumped."}},
            search=self.SEARCH,
        )
        stream = backend.agent(AgentConfig()).search_and_answer(
            "What is the market outlook for Tesla?", [], MockLLM(rewrite=rewrite), MockEmbedder(),
        )
        sources = _run(stream.sources())

        assert [d.metadata.title for d in sources] == ["TSLA News", "Tesla outlook", "TSLA deliveries"]
        assert backend.search_calls[0].url.params["q"] == "Market outlook for Tesla"

    def test_active_engines_forwarded(self):
        backend = Backend(search=self.SEARCH)
        config = get_focus_config("youtube", Settings())
        stream = backend.agent(config).search_and_answer(
            "Tesla videos", [], MockLLM(rewrite="<question>\nTesla videos\n</question>"), MockEmbedder(),
        )
        _run(stream.sources())
        assert backend.search_calls[0].url.params["engines"] == "youtube"

    def test_not_needed_without_finance_generates_anyway(self):
        backend = Backend(search=self.SEARCH)
        llm = MockLLM(rewrite="<question>\nnot_needed\n</question>", tokens=("Hello!",))
        stream = backend.agent(AgentConfig()).search_and_answer("Hi there", [], llm, MockEmbedder())
        events = _run(_events(stream))

        assert backend.search_calls == []
        assert events[0].data == []
        assert [e.type for e in events] == ["sources", "response", "end"]

    def test_empty_question_skips_search(self):
        backend = Backend(search=self.SEARCH)
        stream = backend.agent(AgentConfig()).search_and_answer(
            "???", [], MockLLM(rewrite="nothing useful"), MockEmbedder(),
        )
        assert _run(stream.sources()) == []
        assert backend.search_calls == []

    def test_search_outage_ends_without_end_event(self):
        backend = Backend(search_status=500)
        stream = backend.agent(AgentConfig()).search_and_answer(
            "Tesla?", [], MockLLM(rewrite="<question>\nTesla outlook\n</question>"), MockEmbedder(),
        )
        seen: list[StreamEvent] = []

        async def consume():
            async for event in stream:
                seen.append(event)

        with pytest.raises(WebSearchError):
            _run(consume())
        assert all(e.type != EventType.END for e in seen)

    def test_balanced_mode_scores_documents(self):
        backend = Backend(search=self.SEARCH)
        config = AgentConfig(rerank_threshold=-1.0)
        stream = backend.agent(config).search_and_answer(
            "Tesla?", [], MockLLM(rewrite="<question>\nTesla outlook\n</question>"),
            MockEmbedder(), optimization_mode="balanced",
        )
        sources = _run(stream.sources())
        assert {d.metadata.url for d in sources} == {
            "https://news.test/tsla", "https://news.test/deliveries",
        }


class TestSearchAgentLinks:
    def test_single_url_is_summarized(self, sample_html: str):
        url = "https://news.test/apple"
        backend = Backend(search={"results": [{"title": "x", "url": "y", "content": "z"}]})
        llm = MockLLM(rewrite=f"<question>\n\n</question>\n<links>\n{url}\n</links>")
        agent = backend.agent(AgentConfig(), link_loader=_page_loader({url: sample_html}))

        sources = _run(agent.search_and_answer(url, [], llm, MockEmbedder()).sources())

        assert len(sources) == 1
        assert sources[0].metadata.url == url
        assert sources[0].page_content == llm.summary
        summary_prompt = llm.prompts[1][0]
        assert "<query>\nsummarize\n</query>" in summary_prompt
        assert backend.search_calls == []

    def test_links_with_question_and_finance(self, sample_html: str, aapl_price_payload):
        url = "https://news.test/apple"
        rewrite = (
            "<question>\nHow did services do?\n</question>\n"
            f"<links>\n{url}\n</links>\n"
            "<queries><query><ticker>AAPL</ticker><command>CurrentPrice</command></query></queries>"
        )
        backend = Backend(finance={("AAPL", "CurrentPrice"): aapl_price_payload})
        llm = MockLLM(rewrite=rewrite)
        agent = backend.agent(AgentConfig(), link_loader=_page_loader({url: sample_html}))

        sources = _run(agent.search_and_answer("services?", [], llm, MockEmbedder()).sources())

        assert [d.metadata.url for d in sources] == ["https://finviz.com/quote.ashx?t=AAPL", url]
        assert "<query>\nHow did services do?\n</query>" in llm.prompts[1][0]
        assert backend.search_calls == []


class TestSearchAgentFiles:
    def test_files_join_sources(self, upload_dir):
        class AxisEmbedder(MockEmbedder):
            async def embed_query(self, query):
                return [1.0, 0.0, 0.0]

        agent = SearchAgent(
            AgentConfig(search_web=False, use_finance=False),
            file_store=JsonFileStore(upload_dir),
        )
        stream = agent.search_and_answer(
            "What were net sales?", [], MockLLM(), AxisEmbedder(), file_ids=["10k"],
        )
        sources = _run(stream.sources())

        assert [d.page_content for d in sources] == ["Net sales were $391 billion."]
        assert sources[0].metadata.url == "File"

    def test_missing_file_propagates(self, upload_dir):
        agent = SearchAgent(AgentConfig(search_web=False), file_store=JsonFileStore(upload_dir))
        stream = agent.search_and_answer("q", [], MockLLM(), MockEmbedder(), file_ids=["nope"])
        with pytest.raises(FileNotFoundError):
            _run(stream.sources())


class TestSearchAgentConfiguration:
    def test_finance_without_backend(self):
        agent = SearchAgent(AgentConfig(use_finance=True), finance=None, web_search=object())
        with pytest.raises(ConfigurationError, match="FIN_BACKEND_SERVER"):
            agent.search_and_answer("q", [], MockLLM(), MockEmbedder())

    def test_web_search_without_backend(self):
        agent = SearchAgent(AgentConfig(use_finance=False))
        with pytest.raises(ConfigurationError, match="SEARXNG_API_URL"):
            agent.search_and_answer("q", [], MockLLM(), MockEmbedder())

    def test_unknown_mode(self):
        agent = SearchAgent(AgentConfig(search_web=False))
        with pytest.raises(ConfigurationError, match="turbo"):
            agent.search_and_answer("q", [], MockLLM(), MockEmbedder(), optimization_mode="turbo")

    def test_quality_without_cross_encoder(self):
        agent = SearchAgent(AgentConfig(search_web=False))
        with pytest.raises(ConfigurationError, match="cross-encoder"):
            agent.search_and_answer("q", [], MockLLM(), MockEmbedder(), optimization_mode="quality")

    def test_errors_raised_before_any_model_call(self):
        llm = MockLLM()
        agent = SearchAgent(AgentConfig(use_finance=False))
        with pytest.raises(ConfigurationError):
            agent.search_and_answer("q", [], llm, MockEmbedder())
        assert llm.prompts == []
        assert llm.streamed == []

    def test_config_is_frozen(self):
        config = AgentConfig()
        with pytest.raises(Exception):
            config.search_web = False  # type: ignore[misc]

    def test_from_settings_without_backends(self):
        agent = SearchAgent.from_settings(AgentConfig(search_web=False), Settings())
        assert agent.finance is None
        assert agent.web_search is None
        assert agent.cross_encoder is None

    def test_from_settings_with_backends(self):
        settings = Settings.model_validate({
            "finance": {"backend_url": FIN_URL},
            "search": {"searxng_url": SEARCH_URL, "language": "de"},
            "rerank": {"max_results": 5},
        })
        agent = SearchAgent.from_settings(AgentConfig(), settings)

        assert agent.finance.backend_url == FIN_URL
        assert agent.web_search.language == "de"
        assert agent.max_results == 5


# ---------------------------------------------------------------------------
# Writing focus / focus registry
# ---------------------------------------------------------------------------


class TestFocusModes:
    def test_available(self):
        assert available_focus_modes() == ["finance", "web", "writing", "youtube"]

    def test_unknown_focus(self):
        with pytest.raises(ValueError, match="Unknown focus mode"):
            get_focus_config("crypto")

    def test_threshold_from_settings(self):
        settings = Settings.model_validate({"rerank": {"threshold": 0.5}})
        assert get_focus_config("web", settings).rerank_threshold == 0.5
        assert get_focus_config("web", settings).use_finance is False

    def test_writing_skips_retrieval(self):
        llm = MockLLM(tokens=("Dear investor,",))
        agent = SearchAgent(get_focus_config("writing"))
        events = _run(_events(agent.search_and_answer("Draft a memo", [], llm, MockEmbedder())))

        assert llm.prompts == []
        assert events[0].data == []
        assert events[1].data == "Dear investor,"
