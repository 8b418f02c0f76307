"""Main application entry-point for backdoor-framework."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from .config import FrameworkConfig, load_config
from .core.events import EventSink
from .core.safety import breaker_closed
from .core.variables import VariableStore
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .reporting import LoggingReporter
from .server import CommandServer, TransportError

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TRANSPORT_ERROR = 1


class FirmwareApp:
    """Pretends to be firmware: owns the variable table and the server.

    The store is created here with its documented defaults (or injected for
    tests) and lives until the process exits.
    """

    def __init__(
        self,
        config: Optional[FrameworkConfig] = None,
        *,
        store: Optional[VariableStore] = None,
        sink: Optional[EventSink] = None,
    ) -> None:
        self._config = config or load_config()
        self._store = store or VariableStore()
        self._sink: EventSink = sink or LoggingReporter(
            show_snapshots=self._config.logging.show_snapshots
        )
        self._server = CommandServer(
            self._store,
            socket_path=self._config.server.socket_path,
            backlog=self._config.server.backlog,
            read_timeout=self._config.read_timeout,
            sink=self._sink,
        )
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None

    @property
    def store(self) -> VariableStore:
        return self._store

    @property
    def server(self) -> CommandServer:
        return self._server

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> int:
        """Serve clients until an ``Exit`` command arrives.

        Returns the process exit status: 0 after ``Exit``, 1 when the socket
        cannot be set up.
        """

        try:
            await self._server.start()
        except TransportError as exc:
            LOGGER.error("%s", exc)
            return EXIT_TRANSPORT_ERROR

        await self._health.update(
            "transport", True, f"listening at {self._server.socket_path}"
        )
        self._health.register_probe("breaker", self._breaker_status)

        try:
            await self._start_health_server()
            await self._server.wait_for_exit()
            LOGGER.info("Exit command received; shutting down")
        finally:
            await self._stop_services()
        return EXIT_OK

    @classmethod
    def start(cls, config: Optional[FrameworkConfig] = None) -> int:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
        )
        try:
            return asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("backdoor-framework received shutdown signal")
            return EXIT_OK

    def _breaker_status(self) -> Tuple[bool, Optional[str]]:
        if breaker_closed(self._store):
            return True, "closed"
        return False, "tripped"

    async def _start_health_server(self) -> None:
        health_config = self._config.health
        if not health_config.enabled:
            return
        self._health_server = HealthServer(
            self._health,
            health_config.host,
            health_config.port,
            variables=self._store.snapshot,
        )
        try:
            await self._health_server.start()
        except OSError as exc:
            LOGGER.warning("Health endpoint unavailable: %s", exc)
            self._health_server = None

    async def _stop_services(self) -> None:
        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None
        await self._server.stop()
        await self._health.update("transport", False, "stopped")
