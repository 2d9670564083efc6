"""Agent conversation, action and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Union

from ..core.state import ToolExecution


@dataclass(frozen=True)
class AgentMessage:
    """A single entry of the agent's conversation buffer.

    Args:
        role: Who produced the entry (assistant, tool, or system)
        content: The message text
    """

    role: Literal["assistant", "tool", "system"]
    content: str


@dataclass(frozen=True)
class Complete:
    summary: str


@dataclass(frozen=True)
class Think:
    thought: str


@dataclass(frozen=True)
class UseTool:
    """A tool invocation request.

    Args:
        tool_name: Name of the tool to invoke
        args_text: Raw argument text, usually a JSON object
    """

    tool_name: str
    args_text: str = ""


@dataclass(frozen=True)
class Unknown:
    raw_text: str


AgentAction = Union[Complete, Think, UseTool, Unknown]


class AgentPhase(str, Enum):
    THINKING = "thinking"
    ACTING_ON_TOOL = "acting_on_tool"


class AgentStatus(str, Enum):
    """Why an agent run ended."""

    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FORCED_COMPLETE = "forced_complete"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass
class AgentResult:
    """Outcome of one agent run.

    Args:
        status: Terminal status
        summary: Completion summary or a description of why the run stopped
        iterations: Budget-consuming iterations (tool uses and completion)
        turns: All LLM turns, including free think and unknown turns
        executions: The most recent tool executions, oldest first
        actions_taken: Total tool executions, including evicted ones
    """

    status: AgentStatus
    summary: str
    iterations: int
    turns: int
    executions: list[ToolExecution] = field(default_factory=list)
    actions_taken: int = 0

    @property
    def completed(self) -> bool:
        return self.status is AgentStatus.COMPLETED

    @property
    def action_log(self) -> str:
        return "\n".join(str(execution) for execution in self.executions)
