"""Tests for chunking and the parallel divide-and-conquer orchestrator."""

import asyncio

import pytest
from conftest import FakeLLM, ingest_sources

from stepflow.config import DivideAndConquerConfig
from stepflow.core.errors import ExternalCallError
from stepflow.core.runtime import compile_and_run
from stepflow.orchestration import (
    DivideAndConquerOrchestrator,
    TaskType,
    chunk_text,
    classify_task,
)


class TrackingLLM:
    """Echoes the chunk back, recording peak concurrency."""

    def __init__(self, delays=None, fail_on=None):
        self.delays = delays or {}
        self.fail_on = fail_on
        self.active = 0
        self.peak = 0

    async def generate_text(self, prompt: str) -> str:
        chunk = prompt.split("\n\n", 1)[1]
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delays.get(chunk, 0.001))
            if chunk == self.fail_on:
                raise RuntimeError(f"cannot process {chunk}")
            return chunk.upper()
        finally:
            self.active -= 1


class StaticRouter:
    def __init__(self, models=None, error=None):
        self.models = models or {}
        self.error = error
        self.requests = []

    def select(self, task_type):
        self.requests.append(task_type)
        if self.error:
            raise self.error
        return self.models.get(task_type)


# =============================================================================
# Chunking
# =============================================================================


def test_chunk_text_packs_paragraphs():
    text = "aaa\n\nbbb\n\nccc"
    assert chunk_text(text, 7) == ["aaa", "bbb", "ccc"]
    assert chunk_text(text, 8) == ["aaa\n\nbbb", "ccc"]


def test_chunk_text_splits_long_paragraphs():
    assert chunk_text("One. Two. Three.", 9) == ["One. Two.", "Three."]
    assert chunk_text("abcdefghij", 4) == ["abcd", "efgh", "ij"]


def test_chunks_never_exceed_size():
    text = "\n\n".join(f"Sentence {i} is here. And another one {i}!" * (i % 4 + 1) for i in range(20))
    chunks = chunk_text(text, 60)
    assert chunks
    assert all(0 < len(c) <= 60 for c in chunks)


def test_chunk_text_rejects_bad_size():
    with pytest.raises(ValueError):
        chunk_text("x", 0)
    assert chunk_text("  \n\n  ", 10) == []


@pytest.mark.parametrize(
    "task, expected",
    [
        ("Refactor this function", TaskType.CODE),
        ("Summarize and extract key points:", TaskType.SUMMARIZATION),
        ("Analyze the argument", TaskType.REASONING),
        ("Write a story about it", TaskType.CREATIVE),
        ("Translate to French", TaskType.GENERAL),
    ],
)
def test_classify_task(task, expected):
    assert classify_task(task) is expected


# =============================================================================
# Orchestrator
# =============================================================================


@pytest.mark.asyncio
async def test_results_merge_in_chunk_order():
    llm = TrackingLLM(delays={"a": 0.05, "b": 0.01, "c": 0.0})
    orchestrator = DivideAndConquerOrchestrator(llm, DivideAndConquerConfig(max_parallelism=3))

    result = await orchestrator.execute("Task", ["a", "b", "c"])

    assert result.output == "A\n\nB\n\nC"
    assert result.completed == result.total == 3
    assert not result.cancelled


@pytest.mark.asyncio
async def test_parallelism_is_bounded():
    llm = TrackingLLM(delays={str(i): 0.01 for i in range(10)})
    orchestrator = DivideAndConquerOrchestrator(llm, DivideAndConquerConfig(max_parallelism=2))

    await orchestrator.execute("Task", [str(i) for i in range(10)])

    assert llm.peak == 2


@pytest.mark.asyncio
async def test_chunk_failure_raises():
    llm = TrackingLLM(fail_on="b")
    orchestrator = DivideAndConquerOrchestrator(llm)

    with pytest.raises(ExternalCallError):
        await orchestrator.execute("Task", ["a", "b", "c"])


@pytest.mark.asyncio
async def test_cancellation_returns_partial_merge():
    llm = TrackingLLM(delays={"fast": 0.0, "slow": 5})
    orchestrator = DivideAndConquerOrchestrator(llm)
    cancel = asyncio.Event()

    async def cancel_soon():
        await asyncio.sleep(0.05)
        cancel.set()

    _, result = await asyncio.gather(cancel_soon(), orchestrator.execute("Task", ["fast", "slow"], cancel))

    assert result.cancelled
    assert result.output == "FAST"
    assert result.completed == 1
    assert result.total == 2


@pytest.mark.asyncio
async def test_empty_chunk_list():
    result = await DivideAndConquerOrchestrator(FakeLLM()).execute("Task", [])
    assert result.output == ""
    assert result.total == 0


@pytest.mark.asyncio
async def test_router_selects_model_per_task_type(sink):
    general = FakeLLM("general")
    summarizer = FakeLLM("summary")
    router = StaticRouter({TaskType.SUMMARIZATION: summarizer})
    orchestrator = DivideAndConquerOrchestrator(general, router=router, sink=sink)

    result = await orchestrator.run("Summarize:", "one\n\ntwo")

    assert result.output == "summary"
    assert summarizer.calls == 1
    assert general.calls == 0
    assert router.requests == [TaskType.SUMMARIZATION]
    assert sink.names() == ["dac.chunk"]


@pytest.mark.asyncio
async def test_router_failure_falls_back_to_general_model():
    general = FakeLLM("general")
    orchestrator = DivideAndConquerOrchestrator(general, router=StaticRouter(error=KeyError("x")))

    result = await orchestrator.execute("Translate", ["one"])

    assert result.output == "general"


# =============================================================================
# DivideAndConquer token
# =============================================================================


@pytest.mark.asyncio
async def test_dac_token_uses_context(make_state):
    llm = FakeLLM(lambda prompt: prompt.split("\n\n", 1)[1].upper())
    state = make_state(llm=llm, context="first part\n\nsecond part")

    await compile_and_run("DivideAndConquer('Shout:;chunk=12;parallel=2')", state)

    assert state.output == "FIRST PART\n\nSECOND PART"
    assert llm.calls == 2
    assert all(p.startswith("Shout:\n\n") for p in llm.prompts)


@pytest.mark.asyncio
async def test_dac_token_falls_back_to_single_call(make_state):
    text = "first part\n\nsecond part"

    def script(prompt):
        if text not in prompt:
            raise RuntimeError("chunk failed")
        return "whole"

    state = make_state(llm=FakeLLM(script), prompt=text)

    await compile_and_run("DAC('Summarize:;chunk=12')", state)

    assert state.output == "whole"
    assert ingest_sources(state) == ["dac:fallback:ExternalCallError"]
