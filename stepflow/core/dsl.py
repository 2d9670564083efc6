"""Pipeline DSL: tokenize, compile and explain pipe-delimited expressions.

Grammar::

    pipeline := token ("|" token)*
    token    := Name | Name "(" arg ")"
    arg      := 'text' | "text" | text

A ``|`` inside quotes or parentheses belongs to the argument. Empty segments
are skipped. Every name is resolved when the expression is compiled, so an
unknown token rejects the whole expression before any step runs.
"""

from __future__ import annotations

from dataclasses import dataclass

from .args import parse_string
from .errors import CompileError
from .registry import Step, StepFactory, TokenRegistry, default_registry


@dataclass(frozen=True)
class CompiledStep:
    """A resolved DSL token ready to run.

    Args:
        name: Token name as written in the expression
        args: Unquoted argument text, or None when the token had no parentheses
        factory: The step factory the name resolved to
        step: The step built from ``factory(args)``
    """

    name: str
    args: str | None
    factory: StepFactory
    step: Step

    def __repr__(self) -> str:
        if self.args is None:
            return f"CompiledStep({self.name})"
        return f"CompiledStep({self.name}({self.args!r}))"


def tokenize(expression: str | None) -> list[str]:
    """Split an expression on top-level pipes, trimming and dropping empties."""
    if not expression or not expression.strip():
        return []

    tokens: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None

    for ch in expression:
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        elif ch == "|" and depth == 0:
            _flush(current, tokens)
            current = []
            continue
        current.append(ch)

    _flush(current, tokens)
    return tokens


def _flush(chars: list[str], tokens: list[str]) -> None:
    text = "".join(chars).strip()
    if text:
        tokens.append(text)


def parse_token(raw: str) -> tuple[str, str | None]:
    """Split ``Name(arg)`` into ``(name, unquoted arg)``.

    Tokens without a closing parenthesis are returned whole as the name.
    """
    raw = raw.strip()
    open_idx = raw.find("(")
    if open_idx <= 0 or not raw.endswith(")"):
        return raw, None
    name = raw[:open_idx].strip()
    return name, parse_string(raw[open_idx + 1 : -1])


def compile_pipeline(
    expression: str,
    registry: TokenRegistry | None = None,
) -> list[CompiledStep]:
    """Compile a DSL expression into resolved steps, in source order.

    Raises:
        CompileError: If any token name is not registered.
    """
    if registry is None:
        registry = _registry()
    compiled: list[CompiledStep] = []

    for position, raw in enumerate(tokenize(expression)):
        name, args = parse_token(raw)
        factory, found = registry.resolve(name)
        if not found:
            raise CompileError(name, position, expression)
        compiled.append(CompiledStep(name=name, args=args, factory=factory, step=factory(args)))

    return compiled


def explain(expression: str, registry: TokenRegistry | None = None) -> str:
    """Describe how each token of an expression resolves."""
    if registry is None:
        registry = _registry()
    lines = ["Pipeline tokens:"]

    tokens = tokenize(expression)
    if not tokens:
        lines.append("  (none)")
    for raw in tokens:
        name, args = parse_token(raw)
        factory, found = registry.resolve(name)
        target = registry.canonical_name(factory) if found else "(unknown)"
        shown = f"{name}({args})" if args is not None else name
        lines.append(f"  {shown} -> {target}")

    lines.append("")
    lines.append("Available token groups:")
    for group in registry.groups():
        lines.append(f"  {', '.join(group)}")
    return "\n".join(lines)


def _registry() -> TokenRegistry:
    # Importing the step library registers its tokens.
    from .. import steps  # noqa: F401

    return default_registry
