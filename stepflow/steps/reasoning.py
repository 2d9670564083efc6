"""Draft, critique and improve tokens."""

from __future__ import annotations

from ..core.args import parse_int
from ..core.registry import Step, token
from ..core.state import PipelineState
from ..reasoning.self_critique import SelfCritiqueLoop, critique, draft, improve


def _iterations(args: str | None) -> int:
    value = parse_int(args)
    return value if value is not None and value > 0 else 1


@token("UseDraft")
def use_draft(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.output = (await draft(s)).text
        s.emit("reasoning.draft", chars=len(s.output))
        return s

    return step


@token("UseCritique")
def use_critique(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.output = (await critique(s)).text
        s.emit("reasoning.critique", chars=len(s.output))
        return s

    return step


@token("UseImprove", "UseFinal")
def use_improve(args: str | None = None) -> Step:
    async def step(s: PipelineState) -> PipelineState:
        s.output = (await improve(s)).text
        s.emit("reasoning.improve", chars=len(s.output))
        return s

    return step


@token("UseRefinementLoop")
def use_refinement_loop(args: str | None = None) -> Step:
    """Draft if needed, then run n critique/improve cycles: ``UseRefinementLoop('3')``."""
    iterations = _iterations(args)

    async def step(s: PipelineState) -> PipelineState:
        result = await SelfCritiqueLoop(iterations).run(s)
        s.output = result.improved
        return s

    return step


@token("UseSelfCritique")
def use_self_critique(args: str | None = None) -> Step:
    """Like ``UseRefinementLoop`` but renders draft, critique and result sections."""
    iterations = _iterations(args)

    async def step(s: PipelineState) -> PipelineState:
        result = await SelfCritiqueLoop(iterations).run(s)
        s.output = result.render()
        s.context = result.improved
        s.emit(
            "reasoning.self_critique",
            iterations=result.iterations,
            confidence=result.confidence.value,
        )
        return s

    return step
