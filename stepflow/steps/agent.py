"""Autonomous agent token."""

from __future__ import annotations

from ..agents.agent import AutoAgent
from ..agents.builtin import default_tools
from ..config import AgentLimits
from ..core.args import StepArgs
from ..core.registry import Step, token
from ..core.state import PipelineState


@token("AutoAgent", "Agent", "CopilotAgent")
def auto_agent(args: str | None = None) -> Step:
    """Hand the task to the agent loop.

    Usage: ``AutoAgent('Add logging to the service;maxIter=10')``. Without a
    task the state query is used. The summary goes to ``output``, the action
    log to ``context`` and the task to ``query``.
    """
    options = StepArgs.parse(args)
    max_iterations = options.get_int("maxiter", AgentLimits.max_iterations)

    async def step(s: PipelineState) -> PipelineState:
        task = options.positional[-1] if options.positional else s.query
        if not task or not task.strip():
            s.emit("agent.skipped", reason="no task")
            return s

        agent = AutoAgent(
            s.require_llm(),
            tools=s.tools if s.tools is not None else default_tools(s),
            max_iterations=max_iterations,
            sink=s.sink,
            trace=s.trace,
        )
        result = await agent.run(task)
        s.output = result.summary
        s.context = result.action_log
        s.query = task
        return s

    return step
