"""RAG pipeline example.

Builds a tiny in-memory vector store, then answers the same question with
the three RAG strategies and a self-critique pass. Requires OPENAI_API_KEY
(or STEPFLOW_BASE_URL pointing at an OpenAI-compatible server).
"""

import asyncio
import logging
import math
from typing import Sequence

from stepflow import Branch, PipelineState, Settings, compile_and_run
from stepflow.core.state import Vector
from stepflow.providers import OpenAIChat, OpenAIEmbedder

DOCUMENTS = [
    "Retrieval-augmented generation grounds model answers in retrieved passages.",
    "Map-reduce RAG answers per group of passages and synthesizes a final answer.",
    "Decomposition splits a complex question into focused sub-questions.",
    "Self-critique drafts an answer, reviews it and rewrites it.",
    "Chunked processing runs a task over parts of a long text in parallel.",
]


class InMemoryStore:
    """Cosine-similarity store for small demos."""

    def __init__(self):
        self.vectors: list[Vector] = []

    async def add(self, vectors: Sequence[Vector]) -> None:
        self.vectors.extend(vectors)

    async def get_similar(self, embedding: Sequence[float], k: int) -> list[Vector]:
        def score(vector: Vector) -> float:
            dot = sum(a * b for a, b in zip(embedding, vector.embedding))
            norm = math.sqrt(sum(a * a for a in embedding)) * math.sqrt(
                sum(b * b for b in vector.embedding)
            )
            return dot / norm if norm else 0.0

        return sorted(self.vectors, key=score, reverse=True)[:k]

    async def clear(self) -> None:
        self.vectors.clear()


async def main():
    logging.basicConfig(level=logging.INFO)
    settings = Settings.from_env()
    llm = OpenAIChat.from_settings(settings)
    embedder = OpenAIEmbedder.from_settings(settings)

    store = InMemoryStore()
    embeddings = await embedder.embed_many(DOCUMENTS)
    await store.add(
        [Vector(id=f"doc-{i}", text=t, embedding=tuple(e)) for i, (t, e) in enumerate(zip(DOCUMENTS, embeddings))]
    )

    pipelines = {
        "retrieve-combine-generate": "SetK(3) | RAG",
        "map-reduce": "DCRAG('k=4;group=2;stream')",
        "decompose-aggregate": "DARAG('subs=2;per=2')",
        "self-critique": "TraceOn | UseSelfCritique('1')",
    }

    for name, dsl in pipelines.items():
        state = PipelineState(
            query="How do the RAG strategies differ?",
            llm=llm,
            embedder=embedder,
            branch=Branch(store=store),
        )
        await compile_and_run(dsl, state)

        print("=" * 60)
        print(f"{name}: {dsl}")
        print("=" * 60)
        print(state.output)
        for event in state.branch.ingest_events():
            print(f"  [ingest] {event.source}")
        print()


if __name__ == "__main__":
    asyncio.run(main())
