"""Unix-domain socket server that feeds client bytes to the command protocol."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from . import constants
from .core.events import EventKind, EventSink, ServerEvent, discard_event
from .core.interrupt import InterruptHandler
from .core.protocol import Command, CommandDecoder, ShortReadError, apply_command
from .core.variables import VariableStore

LOGGER = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when the listening socket cannot be created, bound or served."""


class SessionOutcome(str, Enum):
    CLOSED = "closed"
    SHORT_READ = "short_read"
    TIMED_OUT = "timed_out"
    EXIT = "exit"
    FAILED = "failed"


class CommandServer:
    """Accepts clients one at a time and runs their commands.

    The listener may accept a new connection while a session is running, but
    every session holds ``_session_lock`` for its whole lifetime, so the next
    client's bytes are not read until the current client has hung up. The
    variable store and the interrupt handler are only touched under that lock.
    """

    def __init__(
        self,
        store: VariableStore,
        *,
        socket_path: Path = constants.DEFAULT_SOCKET_PATH,
        backlog: int = constants.DEFAULT_LISTEN_BACKLOG,
        read_timeout: Optional[float] = None,
        sink: Optional[EventSink] = None,
    ) -> None:
        self._store = store
        self._socket_path = Path(socket_path)
        self._backlog = backlog
        self._read_timeout = read_timeout if read_timeout else None
        self._sink: EventSink = sink or discard_event
        self._interrupt = InterruptHandler(store, self._sink)
        self._server: Optional[asyncio.AbstractServer] = None
        self._owns_path = False
        self._session_lock = asyncio.Lock()
        self._exit_requested = asyncio.Event()
        self._sessions = 0
        self._commands = 0

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    @property
    def store(self) -> VariableStore:
        return self._store

    @property
    def interrupt(self) -> InterruptHandler:
        return self._interrupt

    @property
    def sessions(self) -> int:
        return self._sessions

    @property
    def commands_processed(self) -> int:
        return self._commands

    @property
    def exit_requested(self) -> bool:
        return self._exit_requested.is_set()

    @property
    def listening(self) -> bool:
        return self._server is not None

    @property
    def busy(self) -> bool:
        """True while a session holds the connection slot."""
        return self._session_lock.locked()

    async def start(self) -> None:
        """Bind the listening socket.

        An existing file at the path is never replaced, whether it belongs to
        a live server or was left behind by one; remove it by hand.
        """

        if os.path.lexists(self._socket_path):
            raise TransportError(
                f"cannot bind socket {self._socket_path}: address already in use"
            )
        try:
            self._server = await asyncio.start_unix_server(
                self._handle_client,
                path=str(self._socket_path),
                backlog=self._backlog,
            )
        except OSError as exc:
            raise TransportError(
                f"cannot bind socket {self._socket_path}: {exc.strerror or exc}"
            ) from exc
        self._owns_path = True
        LOGGER.info("server is listening at %s", self._socket_path)

    async def wait_for_exit(self) -> None:
        await self._exit_requested.wait()

    async def serve_until_exit(self) -> None:
        if self._server is None:
            await self.start()
        try:
            await self.wait_for_exit()
        finally:
            await self.stop()

    async def stop(self) -> None:
        server = self._server
        self._server = None
        if server is not None:
            server.close()
            await server.wait_closed()
        if not self._owns_path:
            return
        self._owns_path = False
        with contextlib.suppress(FileNotFoundError):
            os.unlink(self._socket_path)
            LOGGER.debug("Removed socket %s", self._socket_path)

    def process_command(self, command: Command) -> bool:
        """Apply one decoded command and run the interrupt routine.

        Returns True when the command is ``Exit``; in that case the interrupt
        routine is skipped.
        """

        self._commands += 1
        self._sink(ServerEvent(kind=EventKind.COMMAND_RECEIVED, command=command))
        if apply_command(command, self._store):
            return True
        self._interrupt.run()
        return False

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        async with self._session_lock:
            if self._exit_requested.is_set():
                await _close_writer(writer)
                return

            self._sessions += 1
            session_id = self._sessions
            LOGGER.debug("Session %d started", session_id)
            try:
                outcome = await self._run_session(reader)
            except Exception:
                LOGGER.exception("Session %d failed", session_id)
                outcome = SessionOutcome.FAILED
            finally:
                await _close_writer(writer)

            LOGGER.debug("Session %d ended: %s", session_id, outcome.value)
            if outcome is SessionOutcome.EXIT:
                self._exit_requested.set()

    async def _run_session(self, reader: asyncio.StreamReader) -> SessionOutcome:
        decoder = CommandDecoder()
        while True:
            try:
                chunk = await self._read(reader, decoder.bytes_needed)
            except asyncio.TimeoutError:
                if decoder.pending:
                    LOGGER.warning(
                        "Read timed out; discarding partial command %s",
                        decoder.pending.hex(),
                    )
                else:
                    LOGGER.info("Read timed out; closing idle session")
                return SessionOutcome.TIMED_OUT
            except ConnectionError as exc:
                LOGGER.debug("Connection error while reading: %s", exc)
                chunk = b""

            if not chunk:
                try:
                    decoder.finish()
                except ShortReadError as exc:
                    LOGGER.warning(
                        "Discarding partial command %s: %s", exc.partial.hex(), exc
                    )
                    return SessionOutcome.SHORT_READ
                return SessionOutcome.CLOSED

            for command in decoder.feed(chunk):
                if self.process_command(command):
                    return SessionOutcome.EXIT

    async def _read(self, reader: asyncio.StreamReader, size: int) -> bytes:
        if self._read_timeout is None:
            return await reader.read(size)
        return await asyncio.wait_for(reader.read(size), timeout=self._read_timeout)


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(ConnectionError):
        await writer.wait_closed()
