"""Tests for the built-in step tokens."""

import os

import pytest
from conftest import FakeLLM, ingest_sources

from stepflow.core.runtime import compile_and_run
from stepflow.core.state import PipelineState, ReasoningKind


@pytest.mark.asyncio
async def test_setters():
    state = PipelineState()
    await compile_and_run("Set('p') | SetTopic(\"t\") | SetQuery(q) | UseK(3)", state)
    assert (state.prompt, state.topic, state.query, state.retrieval_k) == ("p", "t", "q", 3)


@pytest.mark.asyncio
async def test_setters_keep_inner_quotes():
    state = PipelineState()
    await compile_and_run("Set(\"'x'\") | SetQuery('\"q\"')", state)
    assert state.prompt == "'x'"
    assert state.query == '"q"'


@pytest.mark.asyncio
async def test_step_string_alias():
    state = PipelineState()
    await compile_and_run("Step<string,string>('hello | world')", state)
    assert state.prompt == "hello | world"


@pytest.mark.asyncio
async def test_set_source_resolves_path():
    state = PipelineState()
    await compile_and_run("SetSource('~/docs')", state)

    expected = os.path.abspath(os.path.expanduser("~/docs"))
    assert state.branch.data_source == expected
    assert ingest_sources(state) == [f"source:set:{expected}"]


@pytest.mark.asyncio
async def test_trace_toggle(sink):
    state = PipelineState(sink=sink)
    await compile_and_run("TraceOn | Set('x') | TraceOff", state)

    assert not state.trace
    assert [e.name for e in sink.events] == ["trace.enabled", "trace.disabled"]
    assert all(e.verbose for e in sink.events)


@pytest.mark.asyncio
async def test_chain_style_rag(make_state):
    llm = FakeLLM("answer")
    state = make_state(llm=llm, query="what is rag")

    await compile_and_run(
        "Retrieve('amount=2') | CombineDocs('sep=\\n\\n;prefix=Context:\\n') "
        "| Template('{context}\\nQ: {question}') | LLM",
        state,
    )

    assert state.retrieved == ["passage 0", "passage 1"]
    assert state.context == "Context:\npassage 0\n\npassage 1"
    assert llm.prompts == ["Context:\npassage 0\n\npassage 1\nQ: what is rag"]
    assert state.output == "answer"
    assert state.branch.latest(ReasoningKind.FINAL).prompt == llm.prompts[0]


@pytest.mark.asyncio
async def test_combine_documents_append_and_clear():
    state = PipelineState(prompt="question", retrieved=["a", " ", "b", "c"])
    await compile_and_run("CombineDocuments('sep=+;take=3;append;clear')", state)

    assert state.context == "a+b"
    assert state.prompt == "a+b\n\nquestion"
    assert state.retrieved == []


@pytest.mark.asyncio
async def test_llm_without_prompt_is_noop():
    llm = FakeLLM()
    state = PipelineState(llm=llm)
    await compile_and_run("RunLLM", state)
    assert llm.calls == 0


@pytest.mark.asyncio
async def test_llm_without_model_is_recorded():
    state = PipelineState(prompt="p")
    await compile_and_run("LLM", state)
    assert ingest_sources(state)[0].startswith("step:error:LLM:RuntimeError:")


@pytest.mark.asyncio
async def test_rag_tokens(make_state):
    llm = FakeLLM("out")
    state = make_state(llm=llm, query="q")

    await compile_and_run("SetK(2) | RAG", state)
    assert state.output == "out"
    assert state.context == "passage 0\n---\npassage 1"

    state = make_state(llm=llm, query="q")
    await compile_and_run("DCRAG('k=4;group=2')", state)
    assert state.output == "out"

    state = make_state(llm=llm, query="q")
    await compile_and_run("SubQAggregate('subs=1;per=1')", state)
    assert state.output == "out"
