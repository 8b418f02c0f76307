"""Constants used across the backdoor-framework package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "backdoor-framework"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path(".") / DEFAULT_CONFIG_FILENAME

DEFAULT_SOCKET_PATH = Path(".") / f"{APP_NAME}-socket"
DEFAULT_LISTEN_BACKLOG = 5

# Command code byte plus the widest argument list (SetVariable).
MAX_BYTES_IN_COMMAND = 3

DEFAULT_HEALTH_HOST = "127.0.0.1"
