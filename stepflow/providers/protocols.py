"""Collaborator interface types consumed by the pipeline core."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from ..core.cancellation import run_cancellable
from ..core.errors import ExternalCallError, StepflowError
from ..core.state import ToolExecution, Vector

if TYPE_CHECKING:
    from ..agents.tools import ToolRegistry


class LLM(Protocol):
    """Interface for text generation models."""

    async def generate_text(self, prompt: str) -> str:
        """Return the model's completion for a single prompt."""
        ...


@runtime_checkable
class ToolAwareLLM(Protocol):
    """A model that may call tools while answering."""

    async def generate_text(self, prompt: str) -> str: ...

    async def generate_with_tools(
        self,
        prompt: str,
        tools: ToolRegistry,
    ) -> tuple[str, list[ToolExecution]]:
        """Return the final text and the tools used to produce it."""
        ...


class Embedder(Protocol):
    """Interface for embedding models."""

    async def embed(self, text: str) -> list[float]: ...

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]: ...


class VectorStore(Protocol):
    """Interface for vector similarity stores.

    ``get_similar`` returns documents ranked most similar first.
    """

    async def add(self, vectors: Sequence[Vector]) -> None: ...

    async def get_similar(self, embedding: Sequence[float], k: int) -> list[Vector]: ...

    async def clear(self) -> None: ...


async def generate(
    llm: LLM,
    prompt: str,
    cancel: asyncio.Event | None = None,
) -> str:
    """Call ``llm.generate_text``, wrapping provider failures.

    Raises:
        ExternalCallError: If the model call fails.
        OperationCancelled: If ``cancel`` is set before or during the call.
    """
    try:
        text = await run_cancellable(llm.generate_text(prompt), cancel)
    except StepflowError:
        raise
    except Exception as exc:
        raise ExternalCallError("llm", exc) from exc
    return text or ""


async def generate_with_tools(
    llm: LLM,
    prompt: str,
    tools: ToolRegistry | None,
) -> tuple[str, list[ToolExecution]]:
    """Use the tool-aware variant when both the model and a registry support it."""
    if tools is None or not len(tools) or not isinstance(llm, ToolAwareLLM):
        return await generate(llm, prompt), []
    try:
        text, calls = await llm.generate_with_tools(prompt, tools)
    except StepflowError:
        raise
    except Exception as exc:
        raise ExternalCallError("llm", exc) from exc
    return text or "", list(calls)
