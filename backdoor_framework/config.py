"""Configuration loader for backdoor-framework."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class ServerConfig:
    socket_path: Path = constants.DEFAULT_SOCKET_PATH
    backlog: int = constants.DEFAULT_LISTEN_BACKLOG
    read_timeout_seconds: float = 0.0  # 0 disables the per-read timeout


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    show_snapshots: bool = True


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = constants.DEFAULT_HEALTH_HOST
    port: int = 0


@dataclass(slots=True)
class FrameworkConfig:
    server: ServerConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path

    @property
    def read_timeout(self) -> Optional[float]:
        timeout = self.server.read_timeout_seconds
        return timeout if timeout > 0 else None


def load_config(path: Optional[Path] = None) -> FrameworkConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "server": {
                "socket_path": str(constants.DEFAULT_SOCKET_PATH),
                "backlog": str(constants.DEFAULT_LISTEN_BACKLOG),
                "read_timeout_seconds": "0",
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "show_snapshots": "true",
            },
            "health": {
                "enabled": "false",
                "host": constants.DEFAULT_HEALTH_HOST,
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    server_defaults = ServerConfig()
    try:
        read_timeout_value = parser.getfloat(
            "server",
            "read_timeout_seconds",
            fallback=server_defaults.read_timeout_seconds,
        )
    except ValueError:
        read_timeout_value = server_defaults.read_timeout_seconds

    server = ServerConfig(
        socket_path=Path(
            parser.get(
                "server", "socket_path", fallback=str(constants.DEFAULT_SOCKET_PATH)
            )
        ).expanduser(),
        backlog=max(
            1,
            parser.getint(
                "server", "backlog", fallback=constants.DEFAULT_LISTEN_BACKLOG
            ),
        ),
        read_timeout_seconds=max(0.0, read_timeout_value),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        show_snapshots=parser.getboolean("logging", "show_snapshots", fallback=True),
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback=constants.DEFAULT_HEALTH_HOST),
        port=parser.getint("health", "port", fallback=0),
    )

    return FrameworkConfig(
        server=server,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )
