"""Parsing of agent responses into actions.

The model answers with one JSON object::

    {"tool": "read_file", "args": {"path": "README.md"}}
    {"complete": true, "summary": "Fixed the failing test"}
    {"thought": "I should look at the config first"}

The object is taken from the first ``{`` to the last ``}`` so surrounding
prose and code fences are ignored.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.errors import ProtocolError
from .state import AgentAction, Complete, Think, Unknown, UseTool

DEFAULT_SUMMARY = "Task completed"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CompletionPayload(_Payload):
    complete: Literal[True]
    summary: str | None = None

    def to_action(self) -> AgentAction:
        return Complete(self.summary or DEFAULT_SUMMARY)


class ToolCallPayload(_Payload):
    tool: str = Field(min_length=1)
    args: str | dict[str, Any] | list[Any] | int | float | bool | None = None

    def to_action(self) -> AgentAction:
        if self.args is None:
            args_text = ""
        elif isinstance(self.args, str):
            args_text = self.args
        else:
            args_text = json.dumps(self.args)
        return UseTool(self.tool, args_text)


class ThoughtPayload(_Payload):
    thought: str

    def to_action(self) -> AgentAction:
        return Think(self.thought)


# Checked in order: completion wins over a tool call in the same object.
_PAYLOADS: tuple[type[_Payload], ...] = (CompletionPayload, ToolCallPayload, ThoughtPayload)


def extract_json(text: str) -> str | None:
    """Text between the first ``{`` and the last ``}``, if any."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def decode_payload(data: Any) -> _Payload:
    """Validate a decoded JSON value against the known response shapes.

    Raises:
        ProtocolError: If ``data`` matches none of them.
    """
    if isinstance(data, dict):
        for model in _PAYLOADS:
            try:
                return model.model_validate(data)
            except ValidationError:
                continue
    raise ProtocolError(f"Response matches no known action shape: {str(data)[:200]}")


def parse_agent_action(response: str | None) -> AgentAction:
    """Turn one model response into exactly one action.

    Empty text and well-formed JSON of no known shape become :class:`Unknown`.
    Text without JSON, or with malformed JSON, is a :class:`Think` carrying
    the whole response.
    """
    text = response or ""
    if not text.strip():
        return Unknown(text)

    candidate = extract_json(text)
    if candidate is None:
        return Think(text)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return Think(text)

    try:
        return decode_payload(data).to_action()
    except ProtocolError:
        return Unknown(text)
