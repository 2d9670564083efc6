"""Tool interface, decorator and registry for the agent loop."""

from __future__ import annotations

import inspect
import json
import logging
import types
from typing import Any, Awaitable, Callable, Iterable, Protocol, Union, get_args, get_origin, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Tool(Protocol):
    """Interface for agent tools.

    ``invoke`` receives the raw argument text from the model (usually a JSON
    object) and returns the result text shown back to the model.
    """

    name: str
    description: str

    async def invoke(self, args_text: str) -> str: ...


def tool(
    _fn: Callable | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Callable:
    """Decorator to mark a function as a tool and optionally name it."""

    def wrapper(fn: Callable) -> Callable:
        setattr(fn, "__tool_name__", name or getattr(fn, "__name__", "tool"))
        if description is not None:
            setattr(fn, "__tool_description__", description)
        return fn

    if _fn is None:
        return wrapper

    return wrapper(_fn)


_SIMPLE_TYPE_MAP = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


def _json_type(annotation: Any) -> dict[str, Any]:
    """Convert a Python type annotation to a JSON schema fragment."""
    if annotation is type(None):
        return {"type": "null"}

    origin = get_origin(annotation)
    args = get_args(annotation)

    # Optional[T] and T | None
    if origin is Union or origin is types.UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return _json_type(non_none[0])
        return {"type": "string"}

    if origin is list or annotation is list:
        schema: dict[str, Any] = {"type": "array"}
        if args:
            schema["items"] = _json_type(args[0])
        return schema

    if origin is dict or annotation is dict:
        return {"type": "object"}

    return {"type": _SIMPLE_TYPE_MAP.get(annotation, "string")}


def _parse_docstring(doc: str) -> tuple[str, dict[str, str]]:
    """Split a Google-style docstring into its summary and Args descriptions."""
    summary: list[str] = []
    params: dict[str, str] = {}
    section: str | None = None
    current: str | None = None

    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            section = "args"
            continue
        if stripped.endswith(":") and not line.startswith(" "):
            section = "other"
            continue

        if section is None:
            if not stripped and summary:
                section = "body"
            elif stripped:
                summary.append(stripped)
        elif section == "args" and stripped:
            param, sep, text = stripped.partition(":")
            param = param.split("(")[0].strip()
            if sep and param.isidentifier():
                current = param
                params[param] = text.strip()
            elif current:
                params[current] += " " + stripped

    return " ".join(summary), params


def _function_to_schema(fn: Callable) -> dict[str, Any]:
    """Generate a function-calling schema from a signature and docstring."""
    signature = inspect.signature(fn, eval_str=True)
    summary, param_docs = _parse_docstring(inspect.getdoc(fn) or "")

    properties: dict[str, Any] = {}
    required: list[str] = []
    for param_name, param in signature.parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        prop = (
            _json_type(param.annotation)
            if param.annotation is not inspect.Parameter.empty
            else {"type": "string"}
        )
        if param_name in param_docs:
            prop["description"] = param_docs[param_name]
        properties[param_name] = prop
        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    return {
        "name": getattr(fn, "__tool_name__", fn.__name__),
        "description": getattr(fn, "__tool_description__", summary or fn.__name__),
        "parameters": {"type": "object", "properties": properties, "required": required},
    }


class FunctionTool:
    """Adapt an async function to the :class:`Tool` interface.

    A JSON object argument is mapped to keyword parameters. Any other text
    is passed, unquoted, as the first parameter, so ``read_file`` can be
    called with either ``{"path": "a.py"}`` or ``a.py``.
    """

    def __init__(self, fn: Callable[..., Awaitable[Any]]):
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"Tool '{getattr(fn, '__name__', fn)}' must be an async function")
        self.fn = fn
        self.schema = _function_to_schema(fn)
        self.name: str = self.schema["name"]
        self.description: str = self.schema["description"]
        self._params = [
            p
            for p in inspect.signature(fn).parameters.values()
            if p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
        ]

    def _arguments(self, args_text: str) -> dict[str, Any]:
        text = (args_text or "").strip()
        try:
            decoded = json.loads(text) if text else {}
        except json.JSONDecodeError:
            decoded = None

        if isinstance(decoded, dict):
            known = {p.name for p in self._params}
            return {key: value for key, value in decoded.items() if key in known}
        if not self._params or not text:
            return {}
        return {self._params[0].name: text.strip("\"'")}

    async def invoke(self, args_text: str) -> str:
        result = await self.fn(**self._arguments(args_text))
        return result if isinstance(result, str) else str(result)

    def __repr__(self) -> str:
        return f"FunctionTool({self.name})"


def as_tool(obj: Tool | Callable[..., Awaitable[Any]]) -> Tool:
    if isinstance(obj, Tool) and not inspect.isfunction(obj):
        return obj
    return FunctionTool(obj)


class ToolRegistry:
    """Name-keyed collection of tools; lookup is case-insensitive.

    Example:
        @tool
        async def word_count(text: str) -> str:
            \"\"\"Count the words in a text.\"\"\"
            return str(len(text.split()))

        registry = ToolRegistry([word_count])
        await registry.invoke("word_count", '{"text": "a b c"}')  # "3"
    """

    def __init__(self, tools: Iterable[Tool | Callable[..., Awaitable[Any]]] | None = None):
        self._tools: dict[str, Tool] = {}
        for item in tools or ():
            self.register(item)

    def register(self, item: Tool | Callable[..., Awaitable[Any]]) -> Tool:
        adapted = as_tool(item)
        key = adapted.name.lower()
        if key in self._tools:
            raise ValueError(f"Duplicate tool name: {adapted.name}")
        self._tools[key] = adapted
        return adapted

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name.strip().lower())

    def names(self) -> list[str]:
        return [t.name for t in self._tools.values()]

    def schemas(self) -> list[dict[str, Any]]:
        """Function-calling schemas for every tool."""
        schemas = []
        for t in self._tools.values():
            schema = getattr(t, "schema", None)
            if schema is None:
                schema = {
                    "name": t.name,
                    "description": t.description,
                    "parameters": {"type": "object", "properties": {}, "required": []},
                }
            schemas.append(schema)
        return schemas

    async def invoke(self, name: str, args_text: str) -> str:
        """Run a tool, reporting an unknown name or a failure as result text."""
        found = self.get(name)
        if found is None:
            return f"Error: Unknown tool '{name}'. Available tools: {', '.join(self.names())}"
        try:
            return await found.invoke(args_text)
        except Exception as exc:
            logger.warning("Tool '%s' failed: %s", found.name, exc)
            return f"Error executing {found.name}: {exc}"

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):
        return iter(self._tools.values())
