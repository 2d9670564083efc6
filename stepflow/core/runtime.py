"""Sequential pipeline runtime with per-step failure isolation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Iterable, Union

from .dsl import CompiledStep, compile_pipeline
from .errors import kind_of, safe_message
from .registry import Step, TokenRegistry
from .state import Branch, PipelineState

logger = logging.getLogger(__name__)

RunnableStep = Union[CompiledStep, Step]


@dataclass(frozen=True)
class StepOutcome:
    """Result of running one step.

    Args:
        name: Step name
        error: The exception the step raised, or None on success
    """

    name: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _step_name(step: RunnableStep) -> str:
    if isinstance(step, CompiledStep):
        return step.name
    if hasattr(step, "__token_name__"):
        return step.__token_name__
    if hasattr(step, "__name__"):
        return step.__name__
    return str(step)


def _callable(step: RunnableStep) -> Step:
    return step.step if isinstance(step, CompiledStep) else step


_DATA_FIELDS = (
    "prompt",
    "query",
    "topic",
    "context",
    "output",
    "retrieved",
    "retrieval_k",
    "trace",
)


def _restore(state: PipelineState, source: PipelineState) -> None:
    for name in _DATA_FIELDS:
        setattr(state, name, getattr(source, name))


def _rollback(state: PipelineState, snapshot: PipelineState, branch: Branch) -> None:
    _restore(state, snapshot)
    state.branch = branch
    state.branch.store = snapshot.branch.store
    state.branch.data_source = snapshot.branch.data_source
    state.branch.truncate(len(snapshot.branch))


def _adopt(state: PipelineState, result: PipelineState) -> None:
    for f in fields(result):
        if f.name != "branch":
            setattr(state, f.name, getattr(result, f.name))
    state.branch.adopt(result.branch)


async def run_step(step: RunnableStep, state: PipelineState) -> StepOutcome:
    """Run one step against ``state``, converting a raised error into an outcome.

    On failure the state is rolled back to how it stood before the step ran.
    The state keeps its ``Branch`` object; the events the failed step
    recorded are dropped from it. ``asyncio.CancelledError`` is not an
    ``Exception`` and propagates.
    """
    name = _step_name(step)
    snapshot = state.snapshot()
    branch = state.branch
    try:
        result = await _callable(step)(state)
    except Exception as exc:
        _rollback(state, snapshot, branch)
        return StepOutcome(name=name, error=exc)

    if result is not None and result is not state:
        _adopt(state, result)
    return StepOutcome(name=name)


async def run_pipeline(
    steps: Iterable[RunnableStep],
    state: PipelineState,
) -> PipelineState:
    """Run steps strictly in order, recording failures instead of raising.

    A failing step leaves one ``IngestEvent`` with source
    ``step:error:<StepName>:<Kind>:<message>`` in the branch log and the
    pipeline continues with the next step.

    Args:
        steps: Compiled steps or bare step callables
        state: State mutated in place by each step

    Returns:
        The same state object after the final step
    """
    for step in steps:
        outcome = await run_step(step, state)
        if outcome.ok:
            continue

        kind = kind_of(outcome.error)
        message = safe_message(outcome.error)
        state.branch.record_ingest(f"step:error:{outcome.name}:{kind}:{message}")
        state.emit("step.failed", step=outcome.name, kind=kind, message=message)
        logger.warning("Step '%s' failed: %s: %s", outcome.name, kind, message)

    return state


async def compile_and_run(
    dsl: str,
    state: PipelineState,
    registry: TokenRegistry | None = None,
) -> PipelineState:
    """Compile a DSL expression and run it against ``state``.

    Raises:
        CompileError: If the expression names an unknown token. Nothing runs.
    """
    steps = compile_pipeline(dsl, registry)
    logger.debug("Running pipeline: %s", ", ".join(step.name for step in steps))
    return await run_pipeline(steps, state)
