"""Core primitives for backdoor-framework."""

from .events import EventKind, EventRecorder, EventSink, ServerEvent
from .interrupt import InterruptHandler
from .protocol import (
    Command,
    CommandCode,
    CommandDecoder,
    Exit,
    InvalidArgumentToken,
    Nop,
    SetVariable,
    ShortReadError,
    Unknown,
    apply_command,
    build_frame,
    encode_command,
)
from .safety import breaker_closed, trip_breaker_based_on_voltage
from .variables import VariableEntry, VariableName, VariableStore, variable_name

__all__ = [
    "Command",
    "CommandCode",
    "CommandDecoder",
    "EventKind",
    "EventRecorder",
    "EventSink",
    "Exit",
    "InterruptHandler",
    "InvalidArgumentToken",
    "Nop",
    "ServerEvent",
    "SetVariable",
    "ShortReadError",
    "Unknown",
    "VariableEntry",
    "VariableName",
    "VariableStore",
    "apply_command",
    "breaker_closed",
    "build_frame",
    "encode_command",
    "trip_breaker_based_on_voltage",
    "variable_name",
]
