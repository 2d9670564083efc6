"""Prompt construction for the autonomous agent."""

from __future__ import annotations

import json
from typing import Iterable

from ..core.state import ToolExecution, truncate_for_display
from .state import AgentMessage
from .tools import ToolRegistry

AGENT_INSTRUCTIONS = """\
You are an autonomous AI agent. You can read files, write code, run tools and
complete tasks independently.

## Your Behavior
1. ALWAYS respond with valid JSON (a tool call or completion)
2. Think step-by-step about what needs to be done
3. Use tools to gather information before making changes
4. When editing files, include enough context to uniquely identify the location
5. Verify your changes by reading files or running tests
6. IMPORTANT: Once you have gathered enough information, mark the task as complete!

## Important Rules
- Never guess file contents - always read first
- Make small, incremental changes
- If you encounter an error, analyze it and try a different approach
- DO NOT read the same file multiple times - analyze what you already have
- When you have the answer, complete immediately with a detailed summary
"""

COMPLETION_INSTRUCTIONS = """\
## Completing the Task

When the task is complete, respond with:
{"complete": true, "summary": "Description of what was accomplished"}
"""

NUDGE_MESSAGE = (
    "You have been thinking for several turns without acting. "
    "Use a tool now or mark the task as complete."
)

FORMAT_REMINDER = (
    "Please use one of the available tools or mark the task as complete. "
    'Respond with a single JSON object such as {"tool": "name", "args": {...}} '
    'or {"complete": true, "summary": "..."}.'
)


def describe_tools(tools: ToolRegistry) -> str:
    """Render the tool list with example arguments for the prompt."""
    lines = [
        "## Available Tools",
        "",
        "Use tools by responding with JSON in this format:",
        '{"tool": "tool_name", "args": {"arg1": "value1", ...}}',
    ]
    for schema in tools.schemas():
        properties = schema["parameters"].get("properties", {})
        example = {name: prop.get("description", name) for name, prop in properties.items()}
        lines.append("")
        lines.append(f"### {schema['name']}")
        lines.append(schema["description"])
        lines.append(f"Args: {json.dumps(example)}")
    lines.append("")
    lines.append(COMPLETION_INSTRUCTIONS)
    return "\n".join(lines)


def build_agent_prompt(
    task: str,
    tool_descriptions: str,
    history: Iterable[AgentMessage],
    actions: Iterable[ToolExecution],
    max_history: int = 10,
    max_actions: int = 10,
) -> str:
    """Assemble the prompt for one agent turn.

    Only the last ``max_actions`` executions and ``max_history`` messages are
    included. Tool results keep up to 2000 characters, other messages 500.
    """
    parts = [AGENT_INSTRUCTIONS, tool_descriptions, f"\n## Current Task\n{task}"]

    recent_actions = list(actions)[-max_actions:]
    if recent_actions:
        parts.append("\n## Actions Taken So Far")
        parts.extend(f"- {action}" for action in recent_actions)

    recent_history = list(history)[-max_history:]
    if recent_history:
        parts.append("\n## Conversation History")
        for message in recent_history:
            limit = 2000 if message.role == "tool" else 500
            parts.append(f"[{message.role}]: {truncate_for_display(message.content, limit)}")

    parts.append("\n## Your Next Action (respond with JSON only):")
    return "\n".join(parts)
