"""Structured diagnostic events for the cache and the API client.

Components receive a sink at construction and report through it instead of
writing to the console directly, so tests can assert on what was emitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class DiagnosticEvent:
    """A single event, e.g. ``cache.expired`` with ``{"key": ..., "age_ms": ...}``."""
    name: str
    level: int = logging.DEBUG
    fields: dict[str, Any] = field(default_factory=dict)
    error: BaseException | None = None


class DiagnosticSink(Protocol):
    def emit(self, event: DiagnosticEvent) -> None: ...


class LoggingSink:
    """Default sink: forward events to the standard ``logging`` tree."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("deploydeck.diagnostics")

    def emit(self, event: DiagnosticEvent) -> None:
        if not self._logger.isEnabledFor(event.level):
            return
        details = " ".join(f"{k}={v!r}" for k, v in sorted(event.fields.items()))
        exc_info = None
        if event.error is not None:
            exc_info = (type(event.error), event.error, event.error.__traceback__)
        self._logger.log(event.level, "%s %s", event.name, details, exc_info=exc_info)


class RecordingSink:
    """Keeps every event in memory, optionally forwarding to another sink."""

    def __init__(self, forward: DiagnosticSink | None = None) -> None:
        self.events: list[DiagnosticEvent] = []
        self._forward = forward

    def emit(self, event: DiagnosticEvent) -> None:
        self.events.append(event)
        if self._forward is not None:
            self._forward.emit(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> list[DiagnosticEvent]:
        return [e for e in self.events if e.name == name]

    def clear(self) -> None:
        self.events.clear()
