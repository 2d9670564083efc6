"""Prompt templates for the RAG strategies."""

from __future__ import annotations

import re
from typing import Sequence, TypeVar

T = TypeVar("T")

ANSWER_TEMPLATE = (
    "Use the following context to answer the question. Be precise and concise.\n"
    "{context}\n\n"
    "Question: {question}\n"
    "Answer:"
)

SYNTHESIS_TEMPLATE = (
    "You are to synthesize a final, precise answer from multiple partial answers.\n"
    "Question: {question}\n\n"
    "Partial Answers:\n{partials}\n\n"
    "Final Answer:"
)

DECOMPOSE_TEMPLATE = (
    "You are tasked with answering a complex question by breaking it down into distinct "
    "sub-questions that together fully address the original.\n"
    "Main question: {question}\n\n"
    "Return exactly {N} non-overlapping sub-questions as a numbered list (1., 2., ...), "
    "one per line, focused and specific."
)

SUB_ANSWER_TEMPLATE = (
    "You are answering a sub-question as part of a larger task.\n"
    "Main question: {question}\n"
    "Sub-question: {subquestion}\n\n"
    "Use the following context snippets to produce a precise, thorough answer. "
    "Cite facts from context; avoid speculation.\n"
    "Context:\n{context}\n\n"
    "Answer:"
)

AGGREGATE_TEMPLATE = (
    "Synthesize a high-quality final answer to the main question by integrating the "
    "following detailed sub-answers.\n"
    "Provide:\n"
    "- Executive summary (3-6 bullets)\n"
    "- Integrated comprehensive answer tying together all parts\n"
    "- If relevant: Considerations and Next steps\n\n"
    "Main question: {question}\n\n"
    "Sub-answers:\n{pairs}\n\n"
    "Final Answer:"
)

PARTIAL_SEPARATOR = "\n\n---\n\n"

_LIST_PREFIX = re.compile(r"^\s*(\d+\.|\d+\)|[-*])\s*")


def fill_template(template: str, **values: str | None) -> str:
    """Substitute ``{name}`` placeholders by literal replacement.

    Unlike :meth:`str.format`, braces that do not name a supplied value are
    left untouched, so templates may contain JSON or code samples.
    """
    for name, value in values.items():
        template = template.replace("{" + name + "}", value or "")
    return template


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive groups of ``size``; the last may be shorter."""
    if size <= 0:
        raise ValueError(f"group size must be > 0, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def parse_sub_questions(text: str | None, limit: int) -> list[str]:
    """Parse one sub-question per line, stripping list markers.

    Accepts ``1. q``, ``1) q``, ``- q``, ``* q`` and plain lines. At most
    ``limit`` questions are returned.
    """
    questions: list[str] = []
    for line in (text or "").splitlines():
        question = _LIST_PREFIX.sub("", line.strip(), count=1).strip()
        if question:
            questions.append(question)
    return questions[:limit]


def format_pairs(pairs: Sequence[tuple[str, str]]) -> str:
    return "".join(
        f"Sub-question {i}: {question}\nAnswer:\n{answer}\n\n"
        for i, (question, answer) in enumerate(pairs, start=1)
    )
