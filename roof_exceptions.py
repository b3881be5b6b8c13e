# File: roof_exceptions.py
"""
MegaRoof Exception Hierarchy

Custom exceptions for roof controller operations. Every error the driver
raises derives from MegaRoofError so the calling layer can separate
recoverable communication problems from programming errors.
"""


class MegaRoofError(Exception):
    """Base exception for all MegaRoof driver errors."""
    pass


class NotConnectedError(MegaRoofError):
    """Raised when a command, query or operation needs an open port.

    Also raised when the port drops while a shutter operation is waiting
    for the controller to reply.
    """
    pass


class RoofConnectError(MegaRoofError):
    """Raised when the serial port cannot be opened.

    Possible causes:
    - Port name does not exist
    - Port busy (another application holds it)
    - Insufficient permissions
    """
    pass


class FrameError(MegaRoofError):
    """Base class for inbound status frame problems."""
    pass


class BadLengthError(FrameError):
    """Raised when a status frame body has the wrong length.

    The previous snapshot is kept and freshness is cleared.
    """

    def __init__(self, message: str, expected: int, actual: int):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class CommsFailureError(MegaRoofError):
    """Raised when writing to the serial port fails.

    Recoverable: the caller should report it and carry on.
    """
    pass


class OperationTimedOutError(MegaRoofError):
    """Raised when the controller did not reply within the bounded wait."""

    def __init__(self, message: str, attempts: int, interval: float):
        super().__init__(message)
        self.attempts = attempts
        self.interval = interval


class RoofNotImplementedError(MegaRoofError, NotImplementedError):
    """Raised for features the current protocol revision does not support."""
    pass
