"""State setters and the chain-style retrieval/template/LLM steps."""

from __future__ import annotations

import os

from ..config import RagDefaults
from ..core.args import StepArgs, parse_int, unescape
from ..core.errors import StepError
from ..core.registry import Step, token
from ..core.state import PipelineState, ReasoningKind
from ..providers.protocols import generate_with_tools
from ..rag.retrieval import retrieve_into
from ..rag.templates import fill_template


@token("Set", "SetPrompt", "Step<string,string>")
def set_prompt(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.prompt = args or ""
        return s

    return step


@token("SetTopic")
def set_topic(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.topic = args or ""
        return s

    return step


@token("SetQuery")
def set_query(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.query = args or ""
        return s

    return step


@token("SetSource", "UseSource", "Source")
def set_source(args: str | None = None) -> Step:
    """Point the branch at a data source; ``~`` and relative paths are resolved."""

    async def step(s: PipelineState) -> PipelineState:
        path = (args or "").strip()
        if not path.strip():
            return s
        resolved = os.path.abspath(os.path.expanduser(path))
        s.branch.data_source = resolved
        s.branch.record_ingest(f"source:set:{resolved}")
        return s

    return step


@token("SetK", "UseK", "K")
def set_k(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        k = parse_int(args)
        if k is None:
            return s
        if k <= 0:
            raise StepError("SetK", "invalid-k", f"retrieval k must be > 0, got {k}")
        s.retrieval_k = k
        s.emit("state.k", k=k)
        return s

    return step


@token("TraceOn")
def trace_on(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.trace = True
        s.emit("trace.enabled")
        return s

    return step


@token("TraceOff")
def trace_off(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.emit("trace.disabled")
        s.trace = False
        return s

    return step


@token("RetrieveSimilarDocuments", "RetrieveDocs", "Retrieve")
def retrieve_documents(args: str | None = None) -> Step:
    """Replace ``retrieved`` with the top passages.

    Usage: ``Retrieve('amount=8;query=what is rag')``. The query defaults to
    the state query, then the prompt.
    """
    options = StepArgs.parse(args)

    async def step(s: PipelineState) -> PipelineState:
        amount = options.get_int("amount", s.retrieval_k)
        await retrieve_into(s, amount, options.get("query"))
        return s

    return step


@token("CombineDocuments", "CombineDocs")
def combine_documents(args: str | None = None) -> Step:
    """Join retrieved passages into ``context``.

    Usage: ``CombineDocuments('sep=\\n\\n;take=4;prefix=Context:\\n;append;clear')``.
    ``append`` also prepends the combined text to the prompt and ``clear``
    empties ``retrieved`` afterwards.
    """
    options = StepArgs.parse(args)
    separator = options.get_text("sep", RagDefaults.document_separator)
    prefix = options.get_text("prefix", "")
    suffix = options.get_text("suffix", "")
    append = options.has_flag("append") or options.has_flag("appendPrompt")
    clear = options.has_flag("clear")

    async def step(s: PipelineState) -> PipelineState:
        take = min(options.get_int("take", len(s.retrieved)), len(s.retrieved))
        blocks = [doc for doc in s.retrieved[:take] if doc and doc.strip()]
        if not blocks:
            return s

        combined = prefix + separator.join(blocks) + suffix
        s.context = combined
        if append:
            s.prompt = f"{combined}\n\n{s.prompt}" if s.prompt.strip() else combined
        if clear:
            s.retrieved = []
        return s

    return step


@token("Template", "UseTemplate")
def template(args: str | None = None) -> Step:
    """Fill ``{context}``, ``{question}``, ``{prompt}`` and ``{topic}`` into the prompt."""
    text = unescape(args or "")

    async def step(s: PipelineState) -> PipelineState:
        if not text.strip():
            return s
        s.prompt = fill_template(
            text, context=s.context, question=s.question, prompt=s.prompt, topic=s.topic
        )
        return s

    return step


@token("LLM", "RunLLM")
def run_llm(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        if not s.prompt.strip():
            return s
        text, calls = await generate_with_tools(s.require_llm(), s.prompt, s.tools)
        s.output = text
        s.branch.record_reasoning(ReasoningKind.FINAL, text, s.prompt, calls)
        s.emit("llm.output", chars=len(text))
        return s

    return step
