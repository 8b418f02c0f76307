"""Text rendering of server events."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .core.events import EventKind, ServerEvent
from .core.protocol import Exit, Nop, SetVariable, Unknown
from .core.variables import VariableEntry

LOGGER = logging.getLogger(__name__)


def format_command(event: ServerEvent) -> str:
    command = event.command
    if isinstance(command, Unknown):
        return command.describe()
    if isinstance(command, (Nop, Exit, SetVariable)):
        return f"command: {command.describe()}"
    return f"command: {command!r}"


def format_variables(entries: Iterable[VariableEntry]) -> List[str]:
    lines = ["variables:"]
    for entry in entries:
        lines.append(f"  {entry.identifier}: {entry.name:<24} = {entry.value}")
    return lines


def render_event(event: ServerEvent) -> List[str]:
    if event.kind is EventKind.COMMAND_RECEIVED:
        return [format_command(event)]
    if event.kind is EventKind.BREAKER_TRIPPED:
        return ["*** PROTECTED: circuit breaker tripped"]
    return format_variables(event.variables)


class LoggingReporter:
    """Event sink that writes rendered events to a logger.

    Breaker trips are logged at WARNING. Snapshots can be silenced, which
    keeps busy servers readable.
    """

    def __init__(
        self, logger: Optional[logging.Logger] = None, *, show_snapshots: bool = True
    ) -> None:
        self._logger = logger or LOGGER
        self._show_snapshots = show_snapshots

    def __call__(self, event: ServerEvent) -> None:
        if event.kind is EventKind.VARIABLE_SNAPSHOT and not self._show_snapshots:
            return
        level = (
            logging.WARNING
            if event.kind is EventKind.BREAKER_TRIPPED
            else logging.INFO
        )
        for line in render_event(event):
            self._logger.log(level, "%s", line)
