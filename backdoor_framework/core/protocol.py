"""Binary command protocol.

Clients send a one-byte command code followed by a fixed number of one-byte
arguments. The number of arguments is intrinsic to the code, so commands can
be sent back-to-back on one connection without any delimiter:

    +------+--------+--------+
    | code | arg[0] | arg[1] |   (SetVariable: identifier, value)
    +------+--------+--------+

Codes are a stable public contract. Never reassign a number once it has been
given a meaning; shell scripts drive the client with hard-coded integers.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple

from .. import constants
from .variables import VariableStore, lookup_variable

LOGGER = logging.getLogger(__name__)


class CommandCode(IntEnum):
    NOP = 0  # no operation, but still triggers the interrupt routine
    EXIT = 1  # exit the server without running the interrupt routine
    SET_VARIABLE = 2  # set variable to value


ARITY: Dict[CommandCode, int] = {
    CommandCode.NOP: 0,
    CommandCode.EXIT: 0,
    CommandCode.SET_VARIABLE: 2,
}


def command_arity(code: int) -> int:
    """Number of argument bytes following ``code``; unknown codes take none."""
    try:
        return ARITY[CommandCode(code)]
    except ValueError:
        return 0


class ShortReadError(Exception):
    """Raised when a stream ends before a command's bytes were all received."""

    def __init__(self, partial: bytes, expected: int) -> None:
        super().__init__(
            f"stream ended after {len(partial)} of {expected} command bytes"
        )
        self.partial = bytes(partial)
        self.expected = expected


class InvalidArgumentToken(ValueError):
    """Raised for client tokens that are neither a known name nor a byte."""

    def __init__(self, token: str, reason: str) -> None:
        super().__init__(f"invalid token {token!r}: {reason}")
        self.token = token
        self.reason = reason


# ---------------------------------------------------------------------------
# Command variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Command(ABC):
    """Base for all decoded commands; only its variants are instantiated."""

    name: ClassVar[str] = "command"

    @property
    @abstractmethod
    def code(self) -> int:
        ...

    @property
    def arguments(self) -> Tuple[int, ...]:
        return ()

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Nop(Command):
    name: ClassVar[str] = "nop"

    @property
    def code(self) -> int:
        return CommandCode.NOP


@dataclass(frozen=True, slots=True)
class Exit(Command):
    name: ClassVar[str] = "exit"

    @property
    def code(self) -> int:
        return CommandCode.EXIT


@dataclass(frozen=True, slots=True)
class SetVariable(Command):
    identifier: int
    value: int

    name: ClassVar[str] = "set"

    @property
    def code(self) -> int:
        return CommandCode.SET_VARIABLE

    @property
    def arguments(self) -> Tuple[int, ...]:
        return (self.identifier, self.value)

    def describe(self) -> str:
        return f"set variable[{self.identifier}] = {self.value}"


@dataclass(frozen=True, slots=True)
class Unknown(Command):
    raw_code: int

    name: ClassVar[str] = "unknown"

    @property
    def code(self) -> int:
        return self.raw_code

    def describe(self) -> str:
        return f"unknown command: {self.raw_code}"


def build_command(code: int, arguments: Sequence[int] = ()) -> Command:
    """Create the command variant for ``code`` from its argument bytes."""

    expected = command_arity(code)
    if len(arguments) != expected:
        raise ValueError(
            f"command {code} takes {expected} argument bytes, got {len(arguments)}"
        )

    if code == CommandCode.NOP:
        return Nop()
    if code == CommandCode.EXIT:
        return Exit()
    if code == CommandCode.SET_VARIABLE:
        return SetVariable(identifier=arguments[0], value=arguments[1])
    return Unknown(raw_code=code)


def encode_command(command: Command) -> bytes:
    return bytes((command.code, *command.arguments))


def apply_command(command: Command, store: VariableStore) -> bool:
    """Apply ``command`` to ``store``.

    Returns True when the command asks the server to exit. Every variant is
    handled explicitly; a new variant without a branch here is a bug.
    """

    if isinstance(command, Exit):
        return True
    if isinstance(command, SetVariable):
        store.set(command.identifier, command.value)
        return False
    if isinstance(command, (Nop, Unknown)):
        return False
    raise TypeError(f"Unhandled command variant: {type(command).__name__}")


# ---------------------------------------------------------------------------
# Incremental decoder
# ---------------------------------------------------------------------------


class DecoderState(str, Enum):
    AWAITING_COMMAND_BYTE = "awaiting_command_byte"
    AWAITING_ARG_BYTES = "awaiting_arg_bytes"


class CommandDecoder:
    """Turns a byte stream into commands using the per-code arity table.

    ``bytes_needed`` tells a reader how many more bytes complete the current
    command, which lets a session avoid reading past it before the command
    has been applied.
    """

    def __init__(self) -> None:
        self._state = DecoderState.AWAITING_COMMAND_BYTE
        self._code = 0
        self._arguments = bytearray()

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def bytes_needed(self) -> int:
        if self._state is DecoderState.AWAITING_COMMAND_BYTE:
            return 1
        return command_arity(self._code) - len(self._arguments)

    @property
    def pending(self) -> bytes:
        if self._state is DecoderState.AWAITING_COMMAND_BYTE:
            return b""
        return bytes((self._code, *self._arguments))

    def feed(self, data: bytes) -> List[Command]:
        commands: List[Command] = []
        for byte in data:
            command = self._feed_byte(byte)
            if command is not None:
                commands.append(command)
        return commands

    def finish(self) -> None:
        """Signal end of stream; a half-received command raises ShortReadError."""
        if self._state is DecoderState.AWAITING_COMMAND_BYTE:
            return
        partial = self.pending
        expected = 1 + command_arity(self._code)
        self._reset()
        raise ShortReadError(partial, expected)

    def _feed_byte(self, byte: int) -> Optional[Command]:
        if self._state is DecoderState.AWAITING_COMMAND_BYTE:
            self._code = byte
            if command_arity(byte) == 0:
                return self._complete()
            self._state = DecoderState.AWAITING_ARG_BYTES
            return None

        self._arguments.append(byte)
        if len(self._arguments) == command_arity(self._code):
            return self._complete()
        return None

    def _complete(self) -> Command:
        command = build_command(self._code, tuple(self._arguments))
        self._reset()
        return command

    def _reset(self) -> None:
        self._state = DecoderState.AWAITING_COMMAND_BYTE
        self._code = 0
        self._arguments = bytearray()


def decode_stream(data: bytes) -> List[Command]:
    """Decode a complete byte string, raising ShortReadError on a trailing partial."""
    decoder = CommandDecoder()
    commands = decoder.feed(data)
    decoder.finish()
    return commands


# ---------------------------------------------------------------------------
# Client-side name resolution
# ---------------------------------------------------------------------------

COMMAND_NAMES: Dict[str, CommandCode] = {
    "nop": CommandCode.NOP,
    "exit": CommandCode.EXIT,
    "set": CommandCode.SET_VARIABLE,
}

_NUMERIC_PREFIX = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


def parse_integer_token(token: str, *, strict: bool = False) -> int:
    """Parse ``token`` as a byte the way C's ``strtoul(token, NULL, 0)`` would.

    The longest numeric prefix wins: decimal, ``0x`` hex or leading-zero
    octal, so ``"12abc"`` is 12. A token with no numeric prefix becomes 0
    and one outside [0, 255] wraps modulo 256, each with a warning. With
    ``strict`` the whole token must be a number in range, otherwise
    :class:`InvalidArgumentToken` is raised.
    """

    match = _NUMERIC_PREFIX.match(token)
    if match is None:
        if strict:
            raise InvalidArgumentToken(token, "not a name or integer")
        LOGGER.warning("Token %r is not a name or integer; sending 0", token)
        return 0

    if match.end() != len(token.rstrip()):
        if strict:
            raise InvalidArgumentToken(token, "trailing characters after number")
        LOGGER.warning(
            "Token %r has trailing characters; using %r", token, match.group(0).strip()
        )

    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    if sign == "-":
        value = -value

    if not 0 <= value <= 255:
        if strict:
            raise InvalidArgumentToken(token, "outside [0, 255]")
        wrapped = value % 256
        LOGGER.warning("Token %r is outside [0, 255]; sending %d", token, wrapped)
        return wrapped
    return value


def resolve_command_token(token: str, *, strict: bool = False) -> int:
    code = COMMAND_NAMES.get(token)
    if code is not None:
        return int(code)
    return parse_integer_token(token, strict=strict)


def resolve_argument_token(
    command_code: int, position: int, token: str, *, strict: bool = False
) -> int:
    """Resolve an argument token; variable names apply to set's identifier slot."""

    if command_code == CommandCode.SET_VARIABLE and position == 0:
        identifier = lookup_variable(token)
        if identifier is not None:
            return identifier
    return parse_integer_token(token, strict=strict)


def build_frame(tokens: Sequence[str], *, strict: bool = False) -> bytes:
    """Translate ``["set", "voltage", "100"]`` style tokens into raw bytes.

    The frame is sent as-is; fewer arguments than the command's arity are
    allowed and will be discarded by the server as a short read.
    """

    if not tokens:
        raise ValueError("a command token is required")
    if len(tokens) > constants.MAX_BYTES_IN_COMMAND:
        raise ValueError(
            f"too many arguments: at most {constants.MAX_BYTES_IN_COMMAND} tokens"
        )

    code = resolve_command_token(tokens[0], strict=strict)
    payload = [code]
    for position, token in enumerate(tokens[1:]):
        payload.append(resolve_argument_token(code, position, token, strict=strict))
    return bytes(payload)


__all__ = [
    "ARITY",
    "COMMAND_NAMES",
    "Command",
    "CommandCode",
    "CommandDecoder",
    "DecoderState",
    "Exit",
    "InvalidArgumentToken",
    "Nop",
    "SetVariable",
    "ShortReadError",
    "Unknown",
    "apply_command",
    "build_command",
    "build_frame",
    "command_arity",
    "decode_stream",
    "encode_command",
    "parse_integer_token",
    "resolve_argument_token",
    "resolve_command_token",
]
