"""Bounded autonomous agent loop."""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from ..config import AgentLimits
from ..core.cancellation import run_cancellable
from ..core.errors import ExternalCallError, OperationCancelled
from ..core.events import EventSink, LoggingSink
from ..core.state import ToolExecution, truncate_for_display
from ..providers.protocols import LLM, generate
from .prompts import FORMAT_REMINDER, NUDGE_MESSAGE, build_agent_prompt, describe_tools
from .protocol import parse_agent_action
from .state import (
    AgentMessage,
    AgentPhase,
    AgentResult,
    AgentStatus,
    Complete,
    Think,
    UseTool,
)
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class AutoAgent:
    """Plan, act and observe until the task is complete or a limit is hit.

    Only tool use and completion consume the iteration budget. Thinking and
    unparseable turns are free, but the consecutive counters for both reset
    only when a tool runs, so free turns between two budget-consuming turns
    are bounded and every run terminates.

    Args:
        llm: Model producing one JSON action per turn
        tools: Tools the agent may call
        limits: Iteration budget and stuck-detection thresholds
        max_iterations: Overrides ``limits.max_iterations``
        sink: Receives ``agent.*`` events
        trace: Emit events as verbose
        cancel: Set to stop the run before the next external call

    Example:
        >>> agent = AutoAgent(OpenAIChat(), default_tools())
        >>> result = await agent.run("Summarize README.md")
        >>> result.status, result.summary
    """

    def __init__(
        self,
        llm: LLM,
        tools: ToolRegistry | None = None,
        limits: AgentLimits | None = None,
        max_iterations: int | None = None,
        sink: EventSink | None = None,
        trace: bool = False,
        cancel: asyncio.Event | None = None,
    ):
        self.llm = llm
        self.tools = tools if tools is not None else ToolRegistry()
        self.limits = limits or AgentLimits()
        self.max_iterations = max_iterations or self.limits.max_iterations
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be > 0, got {self.max_iterations}")
        self.sink = sink if sink is not None else LoggingSink()
        self.trace = trace
        self.cancel = cancel
        self.phase = AgentPhase.THINKING

    def _emit(self, name: str, **fields) -> None:
        self.sink.emit(name, fields, verbose=self.trace)

    async def run(self, task: str) -> AgentResult:
        """Run the loop for ``task`` and return how it ended."""
        limits = self.limits
        history: deque[AgentMessage] = deque(maxlen=limits.max_history)
        executions: deque[ToolExecution] = deque(maxlen=limits.max_action_log)
        tool_descriptions = describe_tools(self.tools)

        iterations = 0
        turns = 0
        actions_taken = 0
        consecutive_thinks = 0
        consecutive_unknowns = 0
        self.phase = AgentPhase.THINKING

        def finish(status: AgentStatus, summary: str) -> AgentResult:
            self._emit("agent.done", status=status.value, iterations=iterations, turns=turns)
            logger.debug("Agent finished: %s after %d iterations", status.value, iterations)
            return AgentResult(
                status=status,
                summary=summary,
                iterations=iterations,
                turns=turns,
                executions=list(executions),
                actions_taken=actions_taken,
            )

        while True:
            if self.cancel is not None and self.cancel.is_set():
                return finish(AgentStatus.CANCELLED, f"Task cancelled after {iterations} iterations")
            if iterations >= self.max_iterations:
                return finish(
                    AgentStatus.BUDGET_EXHAUSTED,
                    f"Task incomplete after {self.max_iterations} iterations. "
                    f"Actions taken: {actions_taken}",
                )

            turns += 1
            self._emit("agent.turn", turn=turns, iteration=iterations, budget=self.max_iterations)
            prompt = build_agent_prompt(
                task,
                tool_descriptions,
                history,
                executions,
                max_history=limits.prompt_history,
                max_actions=limits.prompt_actions,
            )
            try:
                response = await generate(self.llm, prompt, self.cancel)
            except OperationCancelled:
                return finish(AgentStatus.CANCELLED, f"Task cancelled after {iterations} iterations")
            except ExternalCallError as exc:
                logger.warning("Agent LLM call failed at turn %d: %s", turns, exc)
                return finish(AgentStatus.ABORTED, f"LLM error after {iterations} iterations: {exc}")

            history.append(AgentMessage("assistant", response))
            action = parse_agent_action(response)

            if isinstance(action, Complete):
                iterations += 1
                return finish(AgentStatus.COMPLETED, action.summary)

            if isinstance(action, UseTool):
                iterations += 1
                self.phase = AgentPhase.ACTING_ON_TOOL
                self._emit("agent.tool", tool=action.tool_name, args=truncate_for_display(action.args_text, 200))
                try:
                    result = await run_cancellable(
                        self.tools.invoke(action.tool_name, action.args_text), self.cancel
                    )
                except OperationCancelled:
                    return finish(AgentStatus.CANCELLED, f"Task cancelled during {action.tool_name}")
                executions.append(ToolExecution.summarize(action.tool_name, action.args_text, result))
                actions_taken += 1
                history.append(AgentMessage("tool", f"[{action.tool_name}]: {result}"))
                consecutive_thinks = 0
                consecutive_unknowns = 0
                self.phase = AgentPhase.THINKING
                continue

            if isinstance(action, Think):
                consecutive_thinks += 1
                self._emit("agent.think", thought=truncate_for_display(action.thought, 200), streak=consecutive_thinks)
                if consecutive_thinks >= limits.force_complete_thinks:
                    return finish(
                        AgentStatus.FORCED_COMPLETE,
                        f"Stopped after {consecutive_thinks} consecutive thoughts without action. "
                        f"Last thought: {truncate_for_display(action.thought, 500)}",
                    )
                if consecutive_thinks >= limits.nudge_thinks:
                    history.append(AgentMessage("system", NUDGE_MESSAGE))
                continue

            consecutive_unknowns += 1
            self._emit("agent.unknown", streak=consecutive_unknowns)
            if consecutive_unknowns >= limits.max_unknowns:
                return finish(
                    AgentStatus.ABORTED,
                    f"Aborted after {consecutive_unknowns} unparseable responses",
                )
            history.append(AgentMessage("system", FORMAT_REMINDER))


async def run_auto_agent(
    task: str,
    max_iterations: int | None = None,
    *,
    llm: LLM,
    tools: ToolRegistry | None = None,
    limits: AgentLimits | None = None,
    sink: EventSink | None = None,
    cancel: asyncio.Event | None = None,
) -> str:
    """Run an agent for ``task`` and return its summary text."""
    agent = AutoAgent(
        llm,
        tools=tools,
        limits=limits,
        max_iterations=max_iterations,
        sink=sink,
        cancel=cancel,
    )
    result = await agent.run(task)
    return result.summary
