"""End-to-end tests for the Unix socket command server."""

import asyncio
import os
from pathlib import Path

import pytest
import pytest_asyncio

from backdoor_framework.core.events import EventKind, EventRecorder
from backdoor_framework.core.protocol import Nop, SetVariable
from backdoor_framework.core.variables import VariableName, VariableStore
from backdoor_framework.server import CommandServer, TransportError


@pytest_asyncio.fixture
async def server(store: VariableStore, recorder: EventRecorder, socket_path: Path):
    instance = CommandServer(store, socket_path=socket_path, sink=recorder)
    await instance.start()
    try:
        yield instance
    finally:
        await instance.stop()


async def _drained(server: CommandServer, sessions: int, wait_for) -> None:
    await wait_for(lambda: server.sessions >= sessions and not server.busy)


@pytest.mark.asyncio
async def test_set_variable_below_range_trips_breaker(server, store, send, wait_for):
    await send(server.socket_path, bytes([2, VariableName.VOLTAGE, 200]))
    await _drained(server, 1, wait_for)

    assert store.get(VariableName.VOLTAGE) == 200
    assert store.get(VariableName.CIRCUIT_BREAKER) == 0


@pytest.mark.asyncio
async def test_set_variable_in_range_keeps_breaker(server, store, send, wait_for):
    await send(server.socket_path, bytes([2, VariableName.VOLTAGE, 240]))
    await _drained(server, 1, wait_for)

    assert store.get(VariableName.CIRCUIT_BREAKER) == 1


@pytest.mark.asyncio
async def test_breaker_only_recloses_explicitly(server, store, send, wait_for):
    await send(server.socket_path, bytes([2, 1, 250, 2, 1, 240]))
    await _drained(server, 1, wait_for)
    assert store.get(VariableName.CIRCUIT_BREAKER) == 0

    await send(server.socket_path, bytes([2, VariableName.CIRCUIT_BREAKER, 1]))
    await _drained(server, 2, wait_for)
    assert store.get(VariableName.CIRCUIT_BREAKER) == 1


@pytest.mark.asyncio
async def test_each_command_gets_one_interrupt(server, store, recorder, send, wait_for):
    before = store.values()

    await send(server.socket_path, bytes([0, 0, 9]))
    await _drained(server, 1, wait_for)

    assert store.values() == before
    assert recorder.kinds() == [
        EventKind.COMMAND_RECEIVED,
        EventKind.VARIABLE_SNAPSHOT,
    ] * 3
    assert server.interrupt.invocations == 3
    assert server.commands_processed == 3


@pytest.mark.asyncio
async def test_trip_is_reported_between_command_and_snapshot(
    server, recorder, send, wait_for
):
    await send(server.socket_path, bytes([2, VariableName.VOLTAGE, 10]))
    await _drained(server, 1, wait_for)

    assert recorder.kinds() == [
        EventKind.COMMAND_RECEIVED,
        EventKind.BREAKER_TRIPPED,
        EventKind.VARIABLE_SNAPSHOT,
    ]
    assert recorder.events[0].command == SetVariable(VariableName.VOLTAGE, 10)


@pytest.mark.asyncio
async def test_partial_set_variable_is_discarded(server, store, recorder, send, wait_for):
    before = store.values()

    await send(server.socket_path, bytes([2, VariableName.VOLTAGE]))
    await _drained(server, 1, wait_for)

    assert store.values() == before
    assert recorder.events == []
    assert server.listening


@pytest.mark.asyncio
async def test_commands_before_partial_still_apply(server, store, send, wait_for):
    await send(server.socket_path, bytes([2, 7, 7, 2, 8]))
    await _drained(server, 1, wait_for)

    assert store.get(7) == 7
    assert store.get(8) == 0


@pytest.mark.asyncio
async def test_exit_stops_without_interrupt(server, recorder, send, wait_for):
    await send(server.socket_path, bytes([0, 1, 0]))
    await asyncio.wait_for(server.wait_for_exit(), timeout=2)

    assert server.exit_requested
    assert recorder.kinds() == [
        EventKind.COMMAND_RECEIVED,
        EventKind.VARIABLE_SNAPSHOT,
        EventKind.COMMAND_RECEIVED,
    ]
    assert server.interrupt.invocations == 1

    await server.stop()
    assert not os.path.exists(server.socket_path)
    assert not server.listening


@pytest.mark.asyncio
async def test_sessions_are_serialized(server, store, recorder, wait_for):
    _, first = await asyncio.open_unix_connection(str(server.socket_path))
    first.write(bytes([2, 10, 1]))
    await first.drain()
    await wait_for(lambda: store.get(10) == 1)

    _, second = await asyncio.open_unix_connection(str(server.socket_path))
    second.write(bytes([2, 11, 1]))
    await second.drain()
    await asyncio.sleep(0.1)

    assert store.get(11) == 0
    assert server.sessions == 1

    first.close()
    await first.wait_closed()
    await wait_for(lambda: store.get(11) == 1)

    second.close()
    await second.wait_closed()
    await _drained(server, 2, wait_for)
    assert recorder.events[0].command == SetVariable(10, 1)
    assert recorder.events[2].command == SetVariable(11, 1)


@pytest.mark.asyncio
async def test_read_timeout_ends_idle_session(store, recorder, socket_path, wait_for):
    server = CommandServer(
        store, socket_path=socket_path, sink=recorder, read_timeout=0.05
    )
    await server.start()
    try:
        _, writer = await asyncio.open_unix_connection(str(socket_path))
        writer.write(bytes([0, 2, 1]))
        await writer.drain()
        await _drained(server, 1, wait_for)

        assert recorder.events[0].command == Nop()
        assert store.get(1) == 240
        writer.close()
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_process_command_directly(store, recorder, socket_path):
    server = CommandServer(store, socket_path=socket_path, sink=recorder)

    assert server.process_command(SetVariable(VariableName.VOLTAGE, 246)) is False
    assert store.get(VariableName.CIRCUIT_BREAKER) == 0


@pytest.mark.asyncio
async def test_bind_failure_raises_transport_error(store, tmp_path):
    missing = tmp_path / "missing-dir" / "s.sock"
    server = CommandServer(store, socket_path=missing)

    with pytest.raises(TransportError):
        await server.start()


@pytest.mark.asyncio
async def test_second_server_cannot_take_over_live_socket(
    server, store, send, wait_for
):
    other_store = VariableStore()
    other = CommandServer(other_store, socket_path=server.socket_path)

    with pytest.raises(TransportError):
        await other.start()
    await other.stop()

    assert os.path.exists(server.socket_path)
    await send(server.socket_path, bytes([2, 9, 9]))
    await _drained(server, 1, wait_for)

    assert store.get(9) == 9
    assert other_store.get(9) == 0


@pytest.mark.asyncio
async def test_leftover_socket_file_is_not_replaced(store, socket_path):
    socket_path.write_bytes(b"")
    server = CommandServer(store, socket_path=socket_path)

    with pytest.raises(TransportError):
        await server.start()
    await server.stop()

    assert socket_path.exists()
