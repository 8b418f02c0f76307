"""Health and state reporting for backdoor-framework."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from aiohttp import web

from .core.variables import VariableEntry

LOGGER = logging.getLogger(__name__)

Probe = Callable[[], Tuple[bool, Optional[str]]]
SnapshotProvider = Callable[[], List[VariableEntry]]


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks component statuses for the running server.

    Components are either pushed with :meth:`update` or evaluated on demand
    through probes registered with :meth:`register_probe`.
    """

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._probes: Dict[str, Probe] = {}
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    def register_probe(self, name: str, probe: Probe) -> None:
        self._probes[name] = probe

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())
            probes = list(self._probes.items())

        for name, probe in probes:
            healthy, detail = probe()
            entries.append(ComponentStatus(name=name, healthy=healthy, detail=detail))

        components = [status.as_dict() for status in entries]
        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        return {"status": overall, "components": components}


class HealthServer:
    """Minimal HTTP server exposing `/healthz` and `/variables`."""

    def __init__(
        self,
        reporter: HealthReporter,
        host: str,
        port: int,
        *,
        variables: Optional[SnapshotProvider] = None,
    ) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._variables = variables
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/variables", self._handle_variables)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_variables(self, request: web.Request) -> web.Response:
        if self._variables is None:
            return web.json_response({"variables": []}, status=404)
        entries = [entry.as_dict() for entry in self._variables()]
        return web.json_response({"variables": entries})
