"""Divide-and-conquer token."""

from __future__ import annotations

import logging

from ..config import DivideAndConquerConfig
from ..core.args import StepArgs
from ..core.errors import ExternalCallError, kind_of
from ..core.registry import Step, token
from ..core.state import PipelineState, ReasoningKind
from ..orchestration.divide_and_conquer import DivideAndConquerOrchestrator
from ..providers.protocols import generate

logger = logging.getLogger(__name__)

DEFAULT_TASK = "Summarize and extract key points:"


@token("DivideAndConquer", "DAC")
def divide_and_conquer(args: str | None = None) -> Step:
    """Process the context (or prompt) in parallel chunks and merge in order.

    Usage: ``DivideAndConquer('Summarize:;chunk=800;parallel=4')``. If the
    orchestration fails the whole text goes through the state's model in one
    call and a ``dac:fallback:<Kind>`` event is recorded.
    """
    options = StepArgs.parse(args)
    task = options.first or DEFAULT_TASK
    config = DivideAndConquerConfig(
        max_parallelism=options.get_int("parallel", DivideAndConquerConfig.max_parallelism),
        chunk_size=options.get_int("chunk", DivideAndConquerConfig.chunk_size),
        merge_separator=options.get_text("sep", DivideAndConquerConfig.merge_separator),
    )

    async def step(s: PipelineState) -> PipelineState:
        text = s.context if s.context.strip() else s.prompt
        if not text.strip():
            return s

        llm = s.require_llm()
        orchestrator = DivideAndConquerOrchestrator(llm, config, router=s.router, sink=s.sink)
        chunks = orchestrator.chunk(text)
        try:
            result = await orchestrator.execute(task, chunks)
            output = result.output
            prompt = f"{task} [{len(chunks)} chunks]"
        except ExternalCallError as exc:
            logger.warning("Divide-and-conquer failed, using a single call: %s", exc)
            s.branch.record_ingest(f"dac:fallback:{kind_of(exc)}")
            prompt = f"{task}\n\n{text}"
            output = await generate(llm, prompt)

        s.output = output
        s.branch.record_reasoning(ReasoningKind.FINAL, output, prompt)
        s.emit("dac.done", chunks=len(chunks), chars=len(output))
        return s

    return step
