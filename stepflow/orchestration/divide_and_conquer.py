"""Parallel chunk-process-and-merge orchestration."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from ..config import DivideAndConquerConfig
from ..core.errors import ExternalCallError, OperationCancelled
from ..core.events import EventSink, NullSink
from ..providers.protocols import LLM, generate

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class TaskType(str, Enum):
    CODE = "code"
    REASONING = "reasoning"
    SUMMARIZATION = "summarization"
    CREATIVE = "creative"
    GENERAL = "general"


_TASK_KEYWORDS: tuple[tuple[TaskType, tuple[str, ...]], ...] = (
    (TaskType.CODE, ("code", "function", "refactor", "bug", "compile", "class ", "implement")),
    (TaskType.SUMMARIZATION, ("summar", "key points", "tl;dr", "condense", "extract")),
    (TaskType.REASONING, ("analy", "reason", "explain why", "evaluate", "compare", "prove")),
    (TaskType.CREATIVE, ("write a story", "poem", "creative", "imagine", "brainstorm")),
)


def classify_task(task: str) -> TaskType:
    """Keyword-based task type used to route chunks to a capable model."""
    text = task.lower()
    for task_type, keywords in _TASK_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return task_type
    return TaskType.GENERAL


class ModelRouter(Protocol):
    """Chooses a model for a task type; ``None`` means no preference."""

    def select(self, task_type: TaskType) -> LLM | None: ...


@dataclass(frozen=True)
class OrchestrationResult:
    """Merged output of a divide-and-conquer run.

    Args:
        output: Chunk results joined in chunk order
        completed: Number of chunks that produced a result
        total: Number of chunks submitted
        cancelled: True when the run was cut short by cancellation
    """

    output: str
    completed: int
    total: int
    cancelled: bool = False


def _split_long(paragraph: str, size: int) -> list[str]:
    """Split on sentence boundaries, hard-splitting sentences longer than ``size``."""
    pieces: list[str] = []
    current = ""
    for sentence in _SENTENCE_END.split(paragraph):
        while len(sentence) > size:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(sentence[:size])
            sentence = sentence[size:]
        if not sentence:
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= size:
            current = candidate
        else:
            pieces.append(current)
            current = sentence
    if current:
        pieces.append(current)
    return pieces


def chunk_text(text: str, chunk_size: int) -> list[str]:
    """Split ``text`` into ordered chunks of at most ``chunk_size`` characters.

    Paragraphs are packed greedily; paragraphs longer than ``chunk_size`` are
    split on sentence boundaries and then hard-split.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")

    chunks: list[str] = []
    current = ""
    for paragraph in _PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split_long(paragraph, chunk_size))
            continue
        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) <= chunk_size:
            current = candidate
        else:
            chunks.append(current)
            current = paragraph
    if current:
        chunks.append(current)
    return chunks


class DivideAndConquerOrchestrator:
    """Process chunks concurrently with bounded parallelism and merge in order.

    Each chunk task writes only its own pre-allocated result slot, so the
    merge is independent of completion order.

    Args:
        llm: General model, used when no router is set or it declines
        config: Parallelism, chunk size and merge separator
        router: Optional capability router consulted per chunk
        sink: Receives ``dac.*`` events

    Example:
        orchestrator = DivideAndConquerOrchestrator(llm)
        chunks = orchestrator.chunk(document)
        result = await orchestrator.execute("Summarize the following text:", chunks)
        print(result.output)
    """

    def __init__(
        self,
        llm: LLM,
        config: DivideAndConquerConfig | None = None,
        router: ModelRouter | None = None,
        sink: EventSink | None = None,
    ):
        self.llm = llm
        self.config = config or DivideAndConquerConfig()
        self.router = router
        self.sink = sink if sink is not None else NullSink()

    def chunk(self, text: str) -> list[str]:
        return chunk_text(text, self.config.chunk_size)

    def _model_for(self, task_type: TaskType) -> LLM:
        if self.router is None:
            return self.llm
        try:
            selected = self.router.select(task_type)
        except Exception as exc:
            logger.warning("Model routing failed for %s, using general model: %s", task_type.value, exc)
            return self.llm
        return selected if selected is not None else self.llm

    async def execute(
        self,
        task: str,
        chunks: Sequence[str],
        cancel: asyncio.Event | None = None,
    ) -> OrchestrationResult:
        """Run ``task`` over every chunk and merge the results by index.

        Raises:
            ExternalCallError: If any chunk fails. Remaining chunks are cancelled.
        """
        total = len(chunks)
        if total == 0:
            return OrchestrationResult(output="", completed=0, total=0)

        task_type = classify_task(task)
        results: list[str | None] = [None] * total
        semaphore = asyncio.Semaphore(self.config.max_parallelism)

        async def process(index: int, chunk: str) -> None:
            async with semaphore:
                model = self._model_for(task_type)
                results[index] = await generate(model, f"{task}\n\n{chunk}", cancel)
                self.sink.emit("dac.chunk", {"index": index, "total": total, "chars": len(chunk)})

        tasks = [asyncio.create_task(process(i, chunk)) for i, chunk in enumerate(chunks)]
        cancelled = False
        try:
            await asyncio.gather(*tasks)
        except OperationCancelled:
            cancelled = True
        except ExternalCallError:
            raise
        except Exception as exc:
            raise ExternalCallError("divide-and-conquer", exc) from exc
        finally:
            for t in tasks:
                if not t.done():
                    t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        finished = [r for r in results if r is not None]
        output = self.config.merge_separator.join(finished)
        logger.debug("Merged %d/%d chunk results", len(finished), total)
        return OrchestrationResult(
            output=output,
            completed=len(finished),
            total=total,
            cancelled=cancelled,
        )

    async def run(self, task: str, text: str, cancel: asyncio.Event | None = None) -> OrchestrationResult:
        """Chunk ``text`` and execute ``task`` over the chunks."""
        return await self.execute(task, self.chunk(text), cancel)
