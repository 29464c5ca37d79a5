"""Two-channel answer stream: sources resolved once, tokens until closed.

``AnswerStream`` exposes one answering run as:

- ``await stream.sources()`` — the selected documents, computed on first use.
- ``stream.tokens()`` — the generated answer as text fragments; waits for
  the sources first. Can be opened once.
- ``async for event in stream`` — the combined protocol: one ``sources``
  event, zero or more ``response`` events, one final ``end`` event.

A failure in any stage raises out of the iterator, so a consumer that never
sees ``end`` must treat the run as failed. Stopping iteration early is the
cancellation mechanism.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from finsearch.documents.schemas import Document
from finsearch.pipeline.schemas import StreamEvent

RetrieveFn = Callable[[], Awaitable[list[Document]]]
GenerateFn = Callable[[list[Document]], AsyncIterator[str]]


class AnswerStream:
    """Lazy, single-run view over retrieval and generation."""

    def __init__(self, retrieve: RetrieveFn, generate: GenerateFn):
        self._retrieve = retrieve
        self._generate = generate
        self._sources: list[Document] | None = None
        self._lock = asyncio.Lock()
        self._tokens_opened = False

    async def sources(self) -> list[Document]:
        async with self._lock:
            if self._sources is None:
                self._sources = await self._retrieve()
        return self._sources

    async def tokens(self) -> AsyncIterator[str]:
        if self._tokens_opened:
            raise RuntimeError("the token channel of an AnswerStream can only be consumed once")
        self._tokens_opened = True

        documents = await self.sources()
        async for fragment in self._generate(documents):
            yield fragment

    async def events(self) -> AsyncIterator[StreamEvent]:
        yield StreamEvent.sources(await self.sources())
        async for fragment in self.tokens():
            yield StreamEvent.response(fragment)
        yield StreamEvent.end()

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.events()

    async def answer(self) -> str:
        """Consume the token channel and return the full answer text."""
        return "".join([fragment async for fragment in self.tokens()])
