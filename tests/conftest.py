import asyncio
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Iterator

import pytest

from backdoor_framework.core.events import EventRecorder
from backdoor_framework.core.variables import VariableStore


@pytest.fixture
def store() -> VariableStore:
    return VariableStore()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def socket_path() -> Iterator[Path]:
    """Short socket path; AF_UNIX paths are limited to about 100 bytes."""
    with tempfile.TemporaryDirectory(prefix="bdf") as directory:
        yield Path(directory) / "s.sock"


async def wait_until(
    predicate: Callable[[], bool], *, timeout: float = 2.0, interval: float = 0.01
) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_for() -> Callable[..., Awaitable[None]]:
    return wait_until


async def send_raw(path: Path, payload: bytes) -> None:
    _, writer = await asyncio.open_unix_connection(str(path))
    writer.write(payload)
    await writer.drain()
    writer.close()
    await writer.wait_closed()


@pytest.fixture
def send() -> Callable[[Path, bytes], Awaitable[None]]:
    return send_raw
