import logging

from backdoor_framework.core.events import EventKind, ServerEvent
from backdoor_framework.core.protocol import Exit, Nop, SetVariable, Unknown
from backdoor_framework.core.variables import VariableStore
from backdoor_framework.reporting import LoggingReporter, render_event


def test_render_commands():
    def render(command):
        return render_event(ServerEvent(kind=EventKind.COMMAND_RECEIVED, command=command))

    assert render(Nop()) == ["command: nop"]
    assert render(Exit()) == ["command: exit"]
    assert render(SetVariable(1, 100)) == ["command: set variable[1] = 100"]
    assert render(Unknown(9)) == ["unknown command: 9"]


def test_render_snapshot():
    store = VariableStore()
    store.set(17, 4)
    event = ServerEvent(
        kind=EventKind.VARIABLE_SNAPSHOT, variables=tuple(store.snapshot())
    )

    lines = render_event(event)

    assert lines[0] == "variables:"
    assert lines[2] == "  1: voltage                  = 240"
    assert lines[-1] == "  17: var[17]                  = 4"


def test_event_as_dict():
    event = ServerEvent(kind=EventKind.COMMAND_RECEIVED, command=SetVariable(2, 3))

    payload = event.as_dict()

    assert payload["kind"] == "command-received"
    assert payload["command"] == "set variable[2] = 3"


def test_logging_reporter(caplog):
    reporter = LoggingReporter(show_snapshots=False)

    with caplog.at_level(logging.INFO, logger="backdoor_framework.reporting"):
        reporter(ServerEvent(kind=EventKind.BREAKER_TRIPPED))
        reporter(ServerEvent(kind=EventKind.VARIABLE_SNAPSHOT))

    assert [record.levelno for record in caplog.records] == [logging.WARNING]
    assert "circuit breaker tripped" in caplog.text
