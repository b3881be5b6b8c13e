# File: roof_types.py
"""Minimal type definitions for MegaRoof driver."""

from enum import IntEnum


class ShutterState(IntEnum):
    """Roof state as reported in the second status field."""
    OPEN = 0
    CLOSED = 1
    OPENING = 2
    CLOSING = 3
    ERROR = 4

    @classmethod
    def from_token(cls, token) -> 'ShutterState':
        """Map a raw status token ('0'..'3') to a state, anything else is ERROR."""
        return _TOKEN_STATES.get(token, cls.ERROR)


_TOKEN_STATES = {
    '0': ShutterState.OPEN,
    '1': ShutterState.CLOSED,
    '2': ShutterState.OPENING,
    '3': ShutterState.CLOSING,
}


class DecoderState(IntEnum):
    """Frame decoder states."""
    AWAITING_START = 0
    ACCUMULATING = 1
