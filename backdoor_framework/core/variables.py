"""In-memory variable table shared by the protocol and the interrupt routine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional

VARIABLE_COUNT = 256


class VariableName(IntEnum):
    """Reserved variable identifiers.

    The numbers are part of the wire contract used by scripts that drive the
    client with raw integers; never renumber an existing entry.
    """

    UNUSED = 0  # default when the client did not specify anything
    VOLTAGE = 1  # potential read from hardware
    AMPERAGE = 2  # current read from hardware
    MIN_VOLTAGE = 3  # min allowed voltage before the breaker trips
    MAX_VOLTAGE = 4  # max allowed voltage before the breaker trips
    CIRCUIT_BREAKER = 5  # 0 => open (tripped); non-zero => closed


DEFAULT_VALUES: Dict[int, int] = {
    VariableName.UNUSED: 0,
    VariableName.VOLTAGE: 240,
    VariableName.AMPERAGE: 0,
    VariableName.MIN_VOLTAGE: 235,
    VariableName.MAX_VOLTAGE: 245,
    VariableName.CIRCUIT_BREAKER: 1,
}


def variable_name(identifier: int, *, synthesize: bool = True) -> Optional[str]:
    """Return the display name for ``identifier``.

    Reserved identifiers map to their lower-case names. Any other identifier
    yields ``var[<id>]``, or ``None`` when ``synthesize`` is false.
    """

    try:
        return VariableName(identifier).name.lower()
    except ValueError:
        if not synthesize:
            return None
        return f"var[{identifier}]"


def lookup_variable(name: str) -> Optional[int]:
    """Resolve a reserved variable name to its identifier; names are lower-case."""

    for member in VariableName:
        if member.name.lower() == name:
            return int(member)
    return None


def _check_byte(label: str, value: int) -> int:
    if not 0 <= value < VARIABLE_COUNT:
        raise ValueError(f"{label} must be in [0, 255], got {value}")
    return int(value)


@dataclass(frozen=True, slots=True)
class VariableEntry:
    identifier: int
    name: str
    value: int

    def as_dict(self) -> Dict[str, object]:
        return {"id": self.identifier, "name": self.name, "value": self.value}


class VariableStore:
    """Fixed-size table of 256 byte-valued variables.

    Reads and writes always succeed; there is no notion of which identifiers
    a client may set. The store has no locking of its own and relies on the
    server processing commands strictly one at a time.
    """

    def __init__(self, initial: Optional[Dict[int, int]] = None) -> None:
        self._values: List[int] = [0] * VARIABLE_COUNT
        self._initial = dict(DEFAULT_VALUES)
        if initial:
            for identifier, value in initial.items():
                self._initial[_check_byte("identifier", identifier)] = _check_byte(
                    "value", value
                )
        self.reset()

    def reset(self) -> None:
        """Restore every variable to its documented starting value."""
        self._values = [0] * VARIABLE_COUNT
        for identifier, value in self._initial.items():
            self._values[identifier] = value

    def get(self, identifier: int) -> int:
        return self._values[_check_byte("identifier", identifier)]

    def set(self, identifier: int, value: int) -> None:
        self._values[_check_byte("identifier", identifier)] = _check_byte(
            "value", value
        )

    def __getitem__(self, identifier: int) -> int:
        return self.get(identifier)

    def __setitem__(self, identifier: int, value: int) -> None:
        self.set(identifier, value)

    def __len__(self) -> int:
        return VARIABLE_COUNT

    def values(self) -> List[int]:
        return list(self._values)

    def snapshot(self) -> List[VariableEntry]:
        """Entries for all reserved or non-zero variables, ascending by id."""
        entries: List[VariableEntry] = []
        for identifier, value in enumerate(self._values):
            reserved = variable_name(identifier, synthesize=False) is not None
            if reserved or value:
                entries.append(
                    VariableEntry(
                        identifier=identifier,
                        name=variable_name(identifier) or "",
                        value=value,
                    )
                )
        return entries
