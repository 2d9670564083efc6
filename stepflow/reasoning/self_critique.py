"""Draft, critique and improve reasoning over the branch log."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from ..core.errors import ExternalCallError, StepError, kind_of, safe_message
from ..core.state import PipelineState, ReasoningKind, ReasoningStep
from ..providers.protocols import generate_with_tools
from ..rag.retrieval import can_retrieve, retrieve

logger = logging.getLogger(__name__)

DRAFT_TEMPLATE = (
    "You are an expert assistant. Write a thorough first draft answering the request.\n"
    "Topic: {topic}\n"
    "Request: {query}\n"
    "{context}"
    "Draft:"
)

CRITIQUE_TEMPLATE = (
    "Critically review the following draft about {topic}.\n"
    "Request: {query}\n\n"
    "Draft:\n{draft}\n\n"
    "List factual errors, gaps, unclear passages and missing perspectives. "
    "End with an overall assessment of its quality.\n"
    "Critique:"
)

IMPROVE_TEMPLATE = (
    "Rewrite the draft so that it addresses every point of the critique.\n"
    "Topic: {topic}\n"
    "Request: {query}\n\n"
    "Draft:\n{draft}\n\n"
    "Critique:\n{critique}\n\n"
    "Improved response:"
)

_DRAFT_KINDS = (ReasoningKind.DRAFT, ReasoningKind.IMPROVE)


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    def __str__(self) -> str:
        return self.value


class CritiquePhase(Enum):
    NO_DRAFT = "no-draft"
    DRAFTED = "drafted"
    CRITIQUED = "critiqued"
    IMPROVED = "improved"
    DONE = "done"


_POSITIVE_MARKERS = ("excellent", "high quality", "outstanding")
_NEGATIVE_MARKERS = ("needs work", "significant issues", "major issues")
_NEGATION = re.compile(r"\b(no|not|without|free of|few)\s+(any\s+)?$")


def _has_unnegated(text: str, marker: str) -> bool:
    start = text.find(marker)
    while start >= 0:
        if not _NEGATION.search(text[max(0, start - 16) : start]):
            return True
        start = text.find(marker, start + len(marker))
    return False


def assess_confidence(critique: str | None) -> Confidence:
    """Advisory confidence from marker phrases in a critique.

    Negative markers win over positive ones. A negated marker
    (``no major issues``, ``not excellent``) does not count.
    """
    text = (critique or "").lower()
    if any(_has_unnegated(text, marker) for marker in _NEGATIVE_MARKERS):
        return Confidence.LOW
    if any(_has_unnegated(text, marker) for marker in _POSITIVE_MARKERS):
        return Confidence.HIGH
    return Confidence.MEDIUM


@dataclass(frozen=True)
class SelfCritiqueResult:
    draft: str
    critique: str
    improved: str
    iterations: int
    confidence: Confidence

    def render(self) -> str:
        return (
            "\n=== Self-Critique Result ===\n"
            f"Iterations: {self.iterations}\n"
            f"Confidence: {self.confidence}\n"
            "\n--- Draft ---\n"
            f"{self.draft}\n"
            "\n--- Critique ---\n"
            f"{self.critique}\n"
            "\n--- Improved Response ---\n"
            f"{self.improved}\n"
            "\n=========================\n"
        )


async def _generate(state: PipelineState, kind: ReasoningKind, prompt: str) -> ReasoningStep:
    text, calls = await generate_with_tools(state.require_llm(), prompt, state.tools)
    return state.branch.record_reasoning(kind, text, prompt, calls)


async def draft(state: PipelineState) -> ReasoningStep:
    """Produce a draft, grounded on up to ``retrieval_k`` passages when possible."""
    topic, query = state.normalized()
    context = ""
    if can_retrieve(state):
        try:
            passages = await retrieve(state.branch.store, state.embedder, query, state.retrieval_k)
        except ExternalCallError as exc:
            state.branch.record_ingest(f"draft:retrieve-error:{kind_of(exc)}:{safe_message(exc)}")
            passages = []
        if passages:
            context = "\nContext:\n" + "\n---\n".join(passages) + "\n\n"

    prompt = (
        DRAFT_TEMPLATE.replace("{topic}", topic)
        .replace("{query}", query)
        .replace("{context}", context or "\n")
    )
    return await _generate(state, ReasoningKind.DRAFT, prompt)


async def critique(state: PipelineState) -> ReasoningStep:
    """Critique the latest draft or improvement.

    Raises:
        StepError: If the branch holds no draft yet.
    """
    source = state.branch.latest(*_DRAFT_KINDS)
    if source is None:
        raise StepError("UseCritique", "no-draft", "Nothing to critique: run UseDraft first")

    topic, query = state.normalized()
    prompt = (
        CRITIQUE_TEMPLATE.replace("{topic}", topic)
        .replace("{query}", query)
        .replace("{draft}", source.text)
    )
    return await _generate(state, ReasoningKind.CRITIQUE, prompt)


async def improve(state: PipelineState) -> ReasoningStep:
    """Rewrite the latest draft or improvement using the latest critique.

    Raises:
        StepError: If the branch holds no draft or no critique yet.
    """
    source = state.branch.latest(*_DRAFT_KINDS)
    review = state.branch.latest(ReasoningKind.CRITIQUE)
    if source is None or review is None:
        raise StepError("UseImprove", "no-critique", "Nothing to improve: run UseDraft and UseCritique first")

    topic, query = state.normalized()
    prompt = (
        IMPROVE_TEMPLATE.replace("{topic}", topic)
        .replace("{query}", query)
        .replace("{draft}", source.text)
        .replace("{critique}", review.text)
    )
    return await _generate(state, ReasoningKind.IMPROVE, prompt)


class SelfCritiqueLoop:
    """Run draft, then ``iterations`` critique/improve cycles.

    If the branch already holds a draft, drafting is skipped, so with
    ``iterations=n`` the loop makes ``1 + 2n`` calls on a fresh branch and
    ``2n`` otherwise.

    Example:
        loop = SelfCritiqueLoop(iterations=2)
        result = await loop.run(state)
        print(result.confidence, result.improved)
    """

    def __init__(self, iterations: int = 1):
        if iterations <= 0:
            raise ValueError(f"iterations must be > 0, got {iterations}")
        self.iterations = iterations
        self.phase = CritiquePhase.NO_DRAFT

    def _advance(self, phase: CritiquePhase) -> None:
        logger.debug("Self-critique %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    async def run(self, state: PipelineState) -> SelfCritiqueResult:
        existing = state.branch.latest(ReasoningKind.DRAFT)
        if existing is None:
            first = await draft(state)
        else:
            first = existing
        self._advance(CritiquePhase.DRAFTED)

        last_critique = ""
        improved = first.text
        for cycle in range(1, self.iterations + 1):
            last_critique = (await critique(state)).text
            self._advance(CritiquePhase.CRITIQUED)
            improved = (await improve(state)).text
            self._advance(CritiquePhase.IMPROVED)
            state.emit("reasoning.cycle", cycle=cycle, of=self.iterations)

        self._advance(CritiquePhase.DONE)
        return SelfCritiqueResult(
            draft=first.text,
            critique=last_critique,
            improved=improved,
            iterations=self.iterations,
            confidence=assess_confidence(last_critique),
        )
