"""The three RAG orchestration strategies.

All of them read the question from the pipeline state (query, then prompt,
then topic), record every LLM call in the branch log and write the final
answer to ``state.output``. Failures of individual sub-calls are recorded as
ingest events and do not abort the strategy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import RagDefaults
from ..core.args import StepArgs
from ..core.errors import ExternalCallError, kind_of, safe_message
from ..core.state import PipelineState, ReasoningKind
from ..providers.protocols import generate_with_tools
from .retrieval import can_retrieve, retrieve, retrieve_into
from .templates import (
    AGGREGATE_TEMPLATE,
    ANSWER_TEMPLATE,
    DECOMPOSE_TEMPLATE,
    PARTIAL_SEPARATOR,
    SUB_ANSWER_TEMPLATE,
    SYNTHESIS_TEMPLATE,
    fill_template,
    format_pairs,
    parse_sub_questions,
    partition,
)

logger = logging.getLogger(__name__)

_DEFAULTS = RagDefaults()


def _failure(prefix: str, exc: Exception) -> str:
    return f"{prefix}:{kind_of(exc)}:{safe_message(exc)}"


async def _answer(state: PipelineState, prompt: str) -> str:
    """One recorded LLM call."""
    text, calls = await generate_with_tools(state.require_llm(), prompt, state.tools)
    state.branch.record_reasoning(ReasoningKind.FINAL, text, prompt, calls)
    return text


@dataclass(frozen=True)
class GenerateOptions:
    """Options for retrieve-combine-generate.

    Args:
        k: Passages to retrieve and combine, defaults to ``state.retrieval_k``
        separator: Joins passages into ``{context}``
        template: Answer prompt
    """

    k: int | None = None
    separator: str = _DEFAULTS.document_separator
    template: str = ANSWER_TEMPLATE

    @classmethod
    def from_args(cls, raw: str | None) -> GenerateOptions:
        args = StepArgs.parse(raw)
        return cls(
            k=args.get_int("k", 0) or None,
            separator=args.get_text("sep", _DEFAULTS.document_separator),
            template=args.get_text("template", ANSWER_TEMPLATE),
        )


@dataclass(frozen=True)
class MapReduceOptions:
    """Options for map-reduce RAG.

    Args:
        k: Passages to use, defaults to ``max(min_k, state.retrieval_k)``
        group: Passages per partial answer
        separator: Joins passages within a group
        template: Per-group answer prompt
        final_template: Synthesis prompt over ``{partials}``
        stream: Emit each partial answer as a verbose event
    """

    k: int | None = None
    group: int = _DEFAULTS.group_size
    separator: str = _DEFAULTS.document_separator
    template: str = ANSWER_TEMPLATE
    final_template: str = SYNTHESIS_TEMPLATE
    stream: bool = False

    @classmethod
    def from_args(cls, raw: str | None) -> MapReduceOptions:
        args = StepArgs.parse(raw)
        return cls(
            k=args.get_int("k", 0) or None,
            group=args.get_int("group", _DEFAULTS.group_size),
            separator=args.get_text("sep", _DEFAULTS.document_separator),
            template=args.get_text("template", ANSWER_TEMPLATE),
            final_template=args.get_text("final", SYNTHESIS_TEMPLATE),
            stream=args.has_flag("stream"),
        )


@dataclass(frozen=True)
class DecomposeOptions:
    """Options for decompose-aggregate RAG.

    Args:
        subs: Maximum number of sub-questions
        per: Passages retrieved for each sub-question
        k: Passages retrieved for the main question up front
        separator: Joins passages within a sub-question context
        decompose_template: Prompt with ``{question}`` and ``{N}``
        template: Sub-answer prompt with ``{subquestion}`` and ``{context}``
        final_template: Synthesis prompt over ``{pairs}``
        stream: Emit each sub-answer as a verbose event
    """

    subs: int = _DEFAULTS.sub_questions
    per: int = _DEFAULTS.docs_per_sub_question
    k: int | None = None
    separator: str = _DEFAULTS.document_separator
    decompose_template: str = DECOMPOSE_TEMPLATE
    template: str = SUB_ANSWER_TEMPLATE
    final_template: str = AGGREGATE_TEMPLATE
    stream: bool = False

    @classmethod
    def from_args(cls, raw: str | None) -> DecomposeOptions:
        args = StepArgs.parse(raw)
        return cls(
            subs=args.get_int("subs", _DEFAULTS.sub_questions),
            per=args.get_int("per", _DEFAULTS.docs_per_sub_question),
            k=args.get_int("k", 0) or None,
            separator=args.get_text("sep", _DEFAULTS.document_separator),
            decompose_template=args.get_text("decompose", DECOMPOSE_TEMPLATE),
            template=args.get_text("template", SUB_ANSWER_TEMPLATE),
            final_template=args.get_text("final", AGGREGATE_TEMPLATE),
            stream=args.has_flag("stream"),
        )


async def retrieve_combine_generate(
    state: PipelineState,
    options: GenerateOptions | None = None,
) -> PipelineState:
    """Retrieve, join the passages into ``{context}`` and answer with one call."""
    options = options or GenerateOptions()
    question = state.question
    if not question.strip():
        return state

    k = options.k or state.retrieval_k
    if not state.retrieved:
        await retrieve_into(state, k, question)

    docs = [doc for doc in state.retrieved if doc and doc.strip()][:k]
    state.context = options.separator.join(docs)

    prompt = fill_template(
        options.template,
        context=state.context,
        question=question,
        prompt=state.prompt,
        topic=state.topic,
    )
    state.output = await _answer(state, prompt)
    state.emit("rag.answer", strategy="retrieve-combine-generate", docs=len(docs))
    return state


async def map_reduce(
    state: PipelineState,
    options: MapReduceOptions | None = None,
) -> PipelineState:
    """Answer per group of passages, then synthesize over the partial answers.

    A failing group is recorded as ``dcrag:part-error:<Kind>:<message>`` and
    omitted. If no group succeeds the synthesis call is skipped, a
    ``dcrag:final-skipped:no-partials`` event is recorded and ``output`` is
    left unchanged.
    """
    options = options or MapReduceOptions()
    question = state.question
    if not question.strip():
        return state

    k = options.k or max(_DEFAULTS.min_k, state.retrieval_k)
    if not state.retrieved:
        await retrieve_into(state, k, question)

    docs = [doc for doc in state.retrieved if doc and doc.strip()][:k]
    if not docs:
        return state

    groups = partition(docs, options.group)
    verbose = options.stream or state.trace
    partials: list[str] = []

    for index, group in enumerate(groups, start=1):
        prompt = fill_template(
            options.template,
            context=options.separator.join(group),
            question=question,
            prompt=state.prompt,
            topic=state.topic,
        )
        try:
            answer = await _answer(state, prompt)
        except ExternalCallError as exc:
            state.branch.record_ingest(_failure("dcrag:part-error", exc))
            logger.warning("Partial answer %d/%d failed: %s", index, len(groups), exc)
            continue
        partials.append(answer)
        state.sink.emit(
            "rag.partial",
            {"index": index, "total": len(groups), "docs": len(group), "text": answer},
            verbose=verbose,
        )

    partial_text = PARTIAL_SEPARATOR.join(p for p in partials if p and p.strip())
    if not partial_text:
        state.branch.record_ingest("dcrag:final-skipped:no-partials")
        state.emit("rag.final.skipped", groups=len(groups))
        return state

    final_prompt = fill_template(
        options.final_template,
        partials=partial_text,
        question=question,
        prompt=state.prompt,
        topic=state.topic,
    )
    try:
        state.output = await _answer(state, final_prompt)
    except ExternalCallError as exc:
        state.branch.record_ingest(_failure("dcrag:final-error", exc))
        logger.warning("Synthesis failed: %s", exc)
        return state

    state.prompt = final_prompt
    state.sink.emit(
        "rag.final",
        {"strategy": "map-reduce", "partials": len(partials), "text": state.output},
        verbose=verbose,
    )
    return state


async def decompose_aggregate(
    state: PipelineState,
    options: DecomposeOptions | None = None,
) -> PipelineState:
    """Split the question into sub-questions, answer each, then synthesize.

    Each sub-question retrieves its own passages. Failures are recorded as
    ``darag:decompose-error``, ``darag:retrieve-error``, ``darag:sub-error`` or
    ``darag:final-error`` events. With no usable sub-questions the original
    question is answered as the only one.
    """
    options = options or DecomposeOptions()
    question = state.question
    if not question.strip():
        return state

    k = options.k or max(_DEFAULTS.min_k, state.retrieval_k)
    await retrieve_into(state, k, question.replace("|", ":"))

    decompose_prompt = fill_template(
        options.decompose_template, question=question, N=str(options.subs)
    )
    sub_questions: list[str] = []
    try:
        sub_questions = parse_sub_questions(await _answer(state, decompose_prompt), options.subs)
    except ExternalCallError as exc:
        state.branch.record_ingest(_failure("darag:decompose-error", exc))
        logger.warning("Decomposition failed: %s", exc)

    if not sub_questions:
        sub_questions = [question]

    verbose = options.stream or state.trace
    pairs: list[tuple[str, str]] = []

    for index, sub_question in enumerate(sub_questions, start=1):
        blocks: list[str] = []
        if can_retrieve(state):
            try:
                blocks = await retrieve(
                    state.branch.store, state.embedder, sub_question, options.per
                )
            except ExternalCallError as exc:
                state.branch.record_ingest(_failure("darag:retrieve-error", exc))

        prompt = fill_template(
            options.template,
            context=options.separator.join(blocks),
            subquestion=sub_question,
            question=question,
            prompt=state.prompt,
            topic=state.topic,
        )
        try:
            answer = await _answer(state, prompt)
        except ExternalCallError as exc:
            state.branch.record_ingest(_failure("darag:sub-error", exc))
            logger.warning("Sub-question %d/%d failed: %s", index, len(sub_questions), exc)
            continue
        pairs.append((sub_question, answer))
        state.sink.emit(
            "rag.sub_answer",
            {"index": index, "total": len(sub_questions), "question": sub_question, "text": answer},
            verbose=verbose,
        )

    final_prompt = fill_template(
        options.final_template,
        pairs=format_pairs(pairs),
        question=question,
        prompt=state.prompt,
        topic=state.topic,
    )
    try:
        state.output = await _answer(state, final_prompt)
    except ExternalCallError as exc:
        state.branch.record_ingest(_failure("darag:final-error", exc))
        logger.warning("Aggregation failed: %s", exc)
        return state

    state.prompt = final_prompt
    state.sink.emit(
        "rag.final",
        {"strategy": "decompose-aggregate", "pairs": len(pairs), "text": state.output},
        verbose=verbose,
    )
    return state
