"""Client side: pretend to be an agent or a hardware sensor."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from . import constants
from .core.protocol import build_frame

LOGGER = logging.getLogger(__name__)


class ClientConnectionError(RuntimeError):
    """Raised when the server socket cannot be reached or written."""


async def send_bytes(
    payload: bytes, socket_path: Path = constants.DEFAULT_SOCKET_PATH
) -> None:
    """Open a connection, write ``payload`` and close it."""

    try:
        _, writer = await asyncio.open_unix_connection(str(socket_path))
    except OSError as exc:
        raise ClientConnectionError(
            f"cannot connect to server at {socket_path}: {exc.strerror or exc}"
        ) from exc

    try:
        writer.write(payload)
        await writer.drain()
    except ConnectionError as exc:
        raise ClientConnectionError(f"write failed: {exc}") from exc
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            LOGGER.debug("Server closed the connection before we did")


async def send_tokens(
    tokens: Sequence[str],
    socket_path: Path = constants.DEFAULT_SOCKET_PATH,
    *,
    strict: bool = False,
) -> bytes:
    """Translate command tokens and send them; returns the bytes written."""

    payload = build_frame(tokens, strict=strict)
    LOGGER.debug("Sending %s to %s", payload.hex(), socket_path)
    await send_bytes(payload, socket_path)
    return payload
