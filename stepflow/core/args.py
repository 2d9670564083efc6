"""Helpers for step argument text.

A step receives the text between the parentheses of its DSL token with one
level of surrounding quotes removed by the compiler; steps use it as is.
Steps with several settings split that text on ``;`` into ``key=value``
pairs and bare flags::

    DCRAG('k=24;group=6;sep=\\n---\\n;stream')
"""

from __future__ import annotations

import re

_SINGLE_QUOTED = re.compile(r"^'(?P<s>.*)'$", re.DOTALL)
_DOUBLE_QUOTED = re.compile(r'^"(?P<s>.*)"$', re.DOTALL)
_DIGITS = re.compile(r"\s*(-?\d+)\s*")

_TRUE_VALUES = {"1", "true", "on", "yes"}


def parse_string(arg: str | None) -> str:
    """Strip one level of matching single or double quotes."""
    arg = (arg or "").strip()
    match = _SINGLE_QUOTED.match(arg) or _DOUBLE_QUOTED.match(arg)
    if match:
        return match.group("s")
    return arg


def parse_int(arg: str | None) -> int | None:
    """First integer found in the argument text, if any."""
    if not arg:
        return None
    match = _DIGITS.search(arg)
    return int(match.group(1)) if match else None


def parse_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def unescape(value: str) -> str:
    """Turn literal ``\\n`` and ``\\t`` sequences into real whitespace."""
    return value.replace("\\n", "\n").replace("\\t", "\t")


class StepArgs:
    """Parsed ``;``-separated step arguments.

    Keys are case-insensitive. Parts without ``=`` are kept as positional
    values in order.

    Example:
        >>> args = StepArgs.parse("Fix the bug;maxIter=10")
        >>> args.positional
        ['Fix the bug']
        >>> args.get_int("maxiter", 15)
        10
    """

    __slots__ = ("options", "positional")

    def __init__(self, options: dict[str, str], positional: list[str]):
        self.options = options
        self.positional = positional

    @classmethod
    def parse(cls, raw: str | None, separator: str = ";") -> StepArgs:
        options: dict[str, str] = {}
        positional: list[str] = []
        for part in (raw or "").split(separator):
            part = part.strip()
            if not part:
                continue
            key, eq, value = part.partition("=")
            if eq and key.strip() and " " not in key.strip():
                options[key.strip().lower()] = value
            else:
                positional.append(part)
        return cls(options, positional)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.options.get(key.lower(), default)

    def get_int(self, key: str, default: int, minimum: int = 1) -> int:
        """Integer option, ignoring values that do not parse or fall below ``minimum``."""
        raw = self.options.get(key.lower())
        if raw is None:
            return default
        try:
            value = int(raw.strip())
        except ValueError:
            return default
        return value if value >= minimum else default

    def get_text(self, key: str, default: str) -> str:
        raw = self.options.get(key.lower())
        return unescape(raw) if raw is not None else default

    def has_flag(self, name: str) -> bool:
        """True for a bare ``name`` part or a truthy ``name=value`` option."""
        lowered = name.lower()
        if any(p.lower() == lowered for p in self.positional):
            return True
        value = self.options.get(lowered)
        return value is not None and parse_flag(value)

    @property
    def first(self) -> str | None:
        return self.positional[0] if self.positional else None

    def __repr__(self) -> str:
        return f"StepArgs(options={self.options!r}, positional={self.positional!r})"
