"""Post-command interrupt routine."""

from __future__ import annotations

import logging
from typing import List, Optional

from .events import EventKind, EventSink, ServerEvent, discard_event
from .safety import trip_breaker_based_on_voltage
from .variables import VariableEntry, VariableStore

LOGGER = logging.getLogger(__name__)


class InterruptHandler:
    """Runs the safety policy and reports the variable table.

    On real hardware this is where the firmware work happens in response to
    interrupts. Here it runs synchronously once per applied command, never
    for ``Exit``.
    """

    def __init__(self, store: VariableStore, sink: Optional[EventSink] = None) -> None:
        self._store = store
        self._sink: EventSink = sink or discard_event
        self.invocations = 0
        self.trips = 0

    @property
    def store(self) -> VariableStore:
        return self._store

    def run(self) -> List[VariableEntry]:
        self.invocations += 1
        LOGGER.debug("server interrupt #%d", self.invocations)

        if trip_breaker_based_on_voltage(self._store):
            self.trips += 1
            self._sink(ServerEvent(kind=EventKind.BREAKER_TRIPPED))

        snapshot = self._store.snapshot()
        self._sink(
            ServerEvent(kind=EventKind.VARIABLE_SNAPSHOT, variables=tuple(snapshot))
        )
        return snapshot
