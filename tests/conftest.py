"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from typing import Callable, Sequence, Union

import pytest

from stepflow.core.events import MemorySink
from stepflow.core.state import Branch, PipelineState, Vector

Response = Union[str, Exception, Callable[[str], str]]


class FakeLLM:
    """Scripted model: returns responses in order, then repeats the last one.

    A response may be text, an exception to raise, or a callable of the prompt.
    """

    def __init__(self, *responses: Response, delay: float = 0.0):
        self.responses = list(responses) or ["ok"]
        self.prompts: list[str] = []
        self.delay = delay

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(len(self.prompts) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FakeEmbedder:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        if self.fail:
            raise ConnectionError("embedding service down")
        self.texts.append(text)
        return [float(len(text)), 1.0]

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]


class FakeStore:
    """In-memory store returning documents in insertion order."""

    def __init__(self, texts: Sequence[str] = (), fail: bool = False):
        self.vectors = [Vector(id=f"v{i}", text=t) for i, t in enumerate(texts)]
        self.fail = fail
        self.requests: list[int] = []

    async def add(self, vectors: Sequence[Vector]) -> None:
        self.vectors.extend(vectors)

    async def get_similar(self, embedding: Sequence[float], k: int) -> list[Vector]:
        if self.fail:
            raise TimeoutError("store timed out")
        self.requests.append(k)
        return self.vectors[:k]

    async def clear(self) -> None:
        self.vectors.clear()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def docs():
    return [f"passage {i}" for i in range(12)]


@pytest.fixture
def make_state(sink, docs):
    """Build a state wired to fakes; keyword arguments override fields."""

    def factory(llm=None, store=None, embedder=None, **fields) -> PipelineState:
        return PipelineState(
            llm=llm or FakeLLM(),
            embedder=embedder if embedder is not None else FakeEmbedder(),
            branch=Branch(store=store if store is not None else FakeStore(docs)),
            sink=sink,
            **fields,
        )

    return factory


def ingest_sources(state: PipelineState) -> list[str]:
    return [event.source for event in state.branch.ingest_events()]
