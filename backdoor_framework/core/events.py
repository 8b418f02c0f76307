"""Structured report events emitted by the command pipeline.

The core never prints. Each step of command processing produces a
:class:`ServerEvent` that a sink (see :mod:`backdoor_framework.reporting`)
renders for humans.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .variables import VariableEntry


class EventKind(str, Enum):
    COMMAND_RECEIVED = "command-received"
    BREAKER_TRIPPED = "breaker-tripped"
    VARIABLE_SNAPSHOT = "variable-snapshot"


@dataclass(frozen=True, slots=True)
class ServerEvent:
    kind: EventKind
    command: Optional[Any] = None
    variables: Tuple[VariableEntry, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.kind.value,
            "createdAt": self.created_at.isoformat(timespec="seconds"),
        }
        if self.command is not None:
            payload["command"] = self.command.describe()
        if self.kind is EventKind.VARIABLE_SNAPSHOT:
            payload["variables"] = [entry.as_dict() for entry in self.variables]
        return payload


EventSink = Callable[[ServerEvent], None]


class EventRecorder:
    """Sink that keeps every event; handy for tests and diagnostics."""

    def __init__(self) -> None:
        self.events: List[ServerEvent] = []

    def __call__(self, event: ServerEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[EventKind]:
        return [event.kind for event in self.events]


def discard_event(event: ServerEvent) -> None:
    """Sink that drops every event."""
