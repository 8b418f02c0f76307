"""Command-line interface for backdoor-framework."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import FirmwareApp
from .client import ClientConnectionError, send_tokens
from .config import load_config
from .core.protocol import InvalidArgumentToken
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backdoor-framework",
        description="Firmware-like command server and its client",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-s",
        "--socket",
        type=Path,
        default=None,
        help="Override the server socket path from the configuration",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the server until an exit command")

    send_parser = subparsers.add_parser(
        "send",
        help="Send one command to the server",
        description=(
            "COMMAND is nop, exit, set or an integer in [0,255]. For set, the "
            "first ARG may be a variable name (voltage, amperage, min_voltage, "
            "max_voltage, circuit_breaker). Unparseable tokens are sent as 0 "
            "unless --strict is given."
        ),
    )
    send_parser.add_argument("tokens", nargs="+", metavar="COMMAND [ARG...]")
    send_parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject tokens that are not names or integers in [0,255]",
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.socket is not None:
        config.server.socket_path = args.socket
        config.raw.set("server", "socket_path", str(args.socket))

    if args.command == "serve":
        return FirmwareApp.start(config)

    if args.command == "send":
        configure_logging(config.logging.level)
        try:
            asyncio.run(
                send_tokens(args.tokens, config.server.socket_path, strict=args.strict)
            )
        except InvalidArgumentToken as exc:
            LOGGER.error("Invalid argument: %s", exc)
            return 1
        except (ValueError, ClientConnectionError) as exc:
            LOGGER.error("%s", exc)
            return 1
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
