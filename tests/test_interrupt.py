"""Tests for the post-command interrupt routine."""

from backdoor_framework.core.events import EventKind, EventRecorder
from backdoor_framework.core.interrupt import InterruptHandler
from backdoor_framework.core.variables import VariableName, VariableStore


def test_interrupt_reports_snapshot(store: VariableStore, recorder: EventRecorder):
    handler = InterruptHandler(store, recorder)

    snapshot = handler.run()

    assert recorder.kinds() == [EventKind.VARIABLE_SNAPSHOT]
    assert list(recorder.events[0].variables) == snapshot
    assert handler.invocations == 1
    assert handler.trips == 0


def test_interrupt_trips_before_snapshot(store: VariableStore, recorder: EventRecorder):
    store.set(VariableName.VOLTAGE, 250)
    handler = InterruptHandler(store, recorder)

    snapshot = handler.run()

    assert recorder.kinds() == [EventKind.BREAKER_TRIPPED, EventKind.VARIABLE_SNAPSHOT]
    breaker = next(e for e in snapshot if e.identifier == VariableName.CIRCUIT_BREAKER)
    assert breaker.value == 0
    assert handler.trips == 1


def test_interrupt_without_sink(store: VariableStore):
    handler = InterruptHandler(store)

    handler.run()
    handler.run()

    assert handler.invocations == 2
