"""Pipeline state, branch audit log and event types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator, Union

from .events import EventSink, LoggingSink

if TYPE_CHECKING:
    from ..agents.tools import ToolRegistry
    from ..orchestration.divide_and_conquer import ModelRouter
    from ..providers.protocols import LLM, Embedder, VectorStore


DEFAULT_RETRIEVAL_K = 8


@dataclass(frozen=True)
class Vector:
    """A stored passage with its embedding.

    Args:
        id: Identifier, unique within a store
        text: Passage text
        embedding: Embedding values
    """

    id: str
    text: str
    embedding: tuple[float, ...] = ()


def truncate_for_display(text: str | None, max_length: int) -> str:
    """Flatten newlines and cut ``text`` to ``max_length`` characters plus ``...``."""
    if not text:
        return ""
    text = text.replace("\r\n", " ").replace("\n", " ")
    return text if len(text) <= max_length else text[:max_length] + "..."


@dataclass(frozen=True)
class ToolExecution:
    """Display-safe record of one tool invocation."""

    tool_name: str
    args_summary: str
    result_summary: str

    @classmethod
    def summarize(cls, tool_name: str, args_text: str | None, result: str | None) -> ToolExecution:
        return cls(
            tool_name=tool_name,
            args_summary=truncate_for_display(args_text, 50),
            result_summary=truncate_for_display(result, 100),
        )

    def __str__(self) -> str:
        return f"[{self.tool_name}] {self.args_summary} -> {self.result_summary}"


class ReasoningKind(str, Enum):
    DRAFT = "draft"
    CRITIQUE = "critique"
    IMPROVE = "improve"
    FINAL = "final"


@dataclass(frozen=True)
class IngestEvent:
    """Something entered or failed to enter the branch.

    Args:
        source: Colon-delimited description (e.g. ``retrieve:8:what is rag``)
        ids: Identifiers of the affected documents
    """

    source: str
    ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReasoningStep:
    """One recorded LLM reasoning call.

    Args:
        kind: Which reasoning phase produced the text
        text: The model output
        prompt: The prompt that produced it
        tool_calls: Tools the model used while answering
    """

    kind: ReasoningKind
    text: str
    prompt: str
    tool_calls: tuple[ToolExecution, ...] = ()


Event = Union[IngestEvent, ReasoningStep]


class Branch:
    """Audit-log-and-storage context owned by one pipeline run.

    The event log only grows: events are frozen and the log is exposed as a
    tuple. Downstream code learns what happened by reading it. The one
    exception is a failed step, whose events are dropped on rollback.
    """

    __slots__ = ("store", "data_source", "_events")

    def __init__(
        self,
        store: VectorStore | None = None,
        data_source: str | None = None,
        events: list[Event] | None = None,
    ):
        self.store = store
        self.data_source = data_source
        self._events: list[Event] = list(events) if events else []

    @property
    def events(self) -> tuple[Event, ...]:
        return tuple(self._events)

    def record_ingest(self, source: str, ids: Any = ()) -> IngestEvent:
        event = IngestEvent(source=source, ids=tuple(ids))
        self._events.append(event)
        return event

    def record_reasoning(
        self,
        kind: ReasoningKind,
        text: str,
        prompt: str,
        tool_calls: Any = (),
    ) -> ReasoningStep:
        event = ReasoningStep(kind=kind, text=text, prompt=prompt, tool_calls=tuple(tool_calls))
        self._events.append(event)
        return event

    def ingest_events(self) -> list[IngestEvent]:
        return [e for e in self._events if isinstance(e, IngestEvent)]

    def reasoning_steps(self, *kinds: ReasoningKind) -> list[ReasoningStep]:
        steps = [e for e in self._events if isinstance(e, ReasoningStep)]
        if kinds:
            steps = [e for e in steps if e.kind in kinds]
        return steps

    def latest(self, *kinds: ReasoningKind) -> ReasoningStep | None:
        """Most recent reasoning step of any of the given kinds."""
        for event in reversed(self._events):
            if isinstance(event, ReasoningStep) and event.kind in kinds:
                return event
        return None

    def copy(self) -> Branch:
        return Branch(store=self.store, data_source=self.data_source, events=self._events)

    def truncate(self, length: int) -> None:
        """Drop the events recorded after the first ``length``.

        Only the runtime calls this, to discard what a failed step logged.
        """
        del self._events[length:]

    def adopt(self, other: Branch) -> None:
        """Take over the storage and log of ``other`` without replacing this object."""
        if other is self:
            return
        self.store = other.store
        self.data_source = other.data_source
        self._events[:] = other._events

    def __iter__(self) -> Iterator[Event]:
        return iter(tuple(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return f"Branch(source={self.data_source!r}, events={len(self._events)})"


@dataclass
class PipelineState:
    """Mutable record threaded through the steps of one pipeline run.

    Created once per invocation, mutated in place by each step and returned
    to the caller after the final step. Collaborators (LLM, embedder, tools,
    router, sink) are carried alongside so that steps stay plain functions of
    the state.
    """

    prompt: str = ""
    query: str = ""
    topic: str = ""
    context: str = ""
    output: str = ""
    retrieved: list[str] = field(default_factory=list)
    retrieval_k: int = DEFAULT_RETRIEVAL_K
    trace: bool = False
    branch: Branch = field(default_factory=Branch)
    llm: LLM | None = None
    embedder: Embedder | None = None
    tools: ToolRegistry | None = None
    router: ModelRouter | None = None
    sink: EventSink = field(default_factory=LoggingSink)

    def __post_init__(self) -> None:
        if self.retrieval_k <= 0:
            raise ValueError(f"retrieval_k must be > 0, got {self.retrieval_k}")

    @property
    def question(self) -> str:
        """The query, falling back to the prompt and then the topic."""
        return self.query or self.prompt or self.topic

    def normalized(self) -> tuple[str, str]:
        """Return ``(topic, query)`` with the fallbacks reasoning steps use."""
        topic = self.topic or self.prompt or "topic"
        query = self.query or self.prompt or topic
        return topic, query

    def require_llm(self) -> LLM:
        if self.llm is None:
            raise RuntimeError("No LLM configured on the pipeline state")
        return self.llm

    def emit(self, name: str, **fields: Any) -> None:
        self.sink.emit(name, fields, verbose=self.trace)

    def snapshot(self) -> PipelineState:
        """Copy with independent lists and branch log; collaborators are shared."""
        return PipelineState(
            prompt=self.prompt,
            query=self.query,
            topic=self.topic,
            context=self.context,
            output=self.output,
            retrieved=list(self.retrieved),
            retrieval_k=self.retrieval_k,
            trace=self.trace,
            branch=self.branch.copy(),
            llm=self.llm,
            embedder=self.embedder,
            tools=self.tools,
            router=self.router,
            sink=self.sink,
        )
