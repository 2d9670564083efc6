"""Structured event sinks.

Business logic emits named events with keyword fields; the sink decides how
to render them. Hosts plug in their own presentation layer by implementing
:class:`EventSink`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

__all__ = ["EventSink", "LoggingSink", "MemorySink", "NullSink", "RecordedEvent"]

logger = logging.getLogger("stepflow.events")


class EventSink(Protocol):
    """Protocol for structured event sinks."""

    def emit(self, name: str, fields: dict[str, Any], verbose: bool = False) -> None:
        """Receive one event.

        Args:
            name: Dotted event name (e.g. ``rag.partial``)
            fields: Event payload
            verbose: True when the pipeline has tracing enabled
        """
        ...


class LoggingSink:
    """Render events through :mod:`logging`.

    Events are logged at INFO when tracing is enabled and DEBUG otherwise.
    """

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def emit(self, name: str, fields: dict[str, Any], verbose: bool = False) -> None:
        level = logging.INFO if verbose else logging.DEBUG
        if not self._log.isEnabledFor(level):
            return
        detail = " ".join(f"{key}={value!r}" for key, value in fields.items())
        self._log.log(level, "[%s] %s", name, detail)


@dataclass(frozen=True)
class RecordedEvent:
    name: str
    fields: dict[str, Any]
    verbose: bool = False


@dataclass
class MemorySink:
    """Keep every event in memory, in emission order."""

    events: list[RecordedEvent] = field(default_factory=list)

    def emit(self, name: str, fields: dict[str, Any], verbose: bool = False) -> None:
        self.events.append(RecordedEvent(name, dict(fields), verbose))

    def names(self) -> list[str]:
        return [event.name for event in self.events]


class NullSink:
    """Discard all events."""

    def emit(self, name: str, fields: dict[str, Any], verbose: bool = False) -> None:
        return None
