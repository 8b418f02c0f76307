"""Protected-resource policy: tripping the circuit breaker.

An agent is authenticated by virtue of having reached the server over its
socket. It is authorized to trip the breaker only when the voltage falls
outside the configured range and the breaker is still closed.
"""

from __future__ import annotations

from .variables import VariableName, VariableStore


def breaker_should_trip(store: VariableStore) -> bool:
    """Return True when the breaker is closed and voltage is out of range."""

    if store.get(VariableName.CIRCUIT_BREAKER) == 0:
        return False
    voltage = store.get(VariableName.VOLTAGE)
    return voltage < store.get(VariableName.MIN_VOLTAGE) or voltage > store.get(
        VariableName.MAX_VOLTAGE
    )


def trip_breaker_based_on_voltage(store: VariableStore) -> bool:
    """Open the breaker if the policy demands it.

    Performs at most one mutation (``circuit_breaker = 0``) and returns
    whether the trip happened. The breaker is never re-closed here.
    """

    if not breaker_should_trip(store):
        return False
    store.set(VariableName.CIRCUIT_BREAKER, 0)
    return True


def breaker_closed(store: VariableStore) -> bool:
    return store.get(VariableName.CIRCUIT_BREAKER) != 0
