# File: roof_commands.py
"""
Command dispatch for the MegaRoof controller.

Status queries are answered from the status cache while it is fresh. Every
other command, and a status query against a stale cache, is written through
to the controller as ``COMMAND#`` without waiting for a reply.
"""

from typing import Tuple

from roof_cache import RoofStatusCache
from roof_exceptions import NotConnectedError, RoofNotImplementedError
from roof_framing import END_DELIMITER


# Result of a written command, and the token query_bool treats as True
ACK_TOKEN = '1'
TRUE_TOKEN = '1'

# Reserved status commands and the cache field each one reads
STATUS_COMMANDS = {
    'RAIN': 'rain',
    'SHUTTERSTATUS': 'roof_state',
    'PARK': 'park_state',
    'RAINSENSOR': 'rain_sensor_override',
    'PARKSENSOR': 'park_sensor_override',
    'SPARE': 'spare',
}

# Action tokens understood by the controller firmware
ACTION_OPEN = 'OPEN'
ACTION_CLOSE = 'CLOSE'
ACTION_ABORT = 'ABORT'

# Override tokens advertised as supported actions
OVERRIDE_COMMANDS = [
    'INIT', 'FORCEOPEN', 'FORCECLOSE', 'NORAINSENSE', 'NOPARKSENSE',
    'RAINSENSE', 'PARKSENSE', 'PARKSENSOR', 'RAINSENSOR',
]


class CommandDispatcher:
    """Routes logical commands to the status cache or the serial transport."""

    def __init__(self, transport, cache: RoofStatusCache, logger):
        """
        Args:
            transport: Object with ``is_open`` and ``write(bytes)``
            cache: Status cache fed by the serial reader
            logger: Logger instance
        """
        self._transport = transport
        self._cache = cache
        self._logger = logger

    def dispatch(self, command: str, raw: bool = False) -> str:
        """
        Run a command and return its string result.

        Args:
            command: Command token, e.g. 'RAIN' or 'OPEN'
            raw: Terminator-free mode (not supported by this protocol revision)

        Returns:
            Cached field value for a fresh status query, otherwise ACK_TOKEN

        Raises:
            ValueError: If command is empty, not a string or not ASCII
            NotConnectedError: Port not open
            RoofNotImplementedError: raw mode requested
            CommsFailureError: Write to the controller failed
        """
        value, _ = self.resolve(command, raw)
        return value

    def dispatch_bool(self, command: str, raw: bool = False) -> bool:
        """True exactly when the command result equals TRUE_TOKEN."""
        return self.dispatch(command, raw) == TRUE_TOKEN

    def resolve(self, command: str, raw: bool = False) -> Tuple[str, bool]:
        """
        Like dispatch(), also reporting where the answer came from.

        Returns:
            Tuple of (result, from_cache)
        """
        if not command or not isinstance(command, str):
            raise ValueError("Command must be a non-empty string")

        if not self._transport.is_open:
            self._logger.error(f"Command '{command}' attempted while disconnected")
            raise NotConnectedError(f"Not connected, cannot send '{command}'")

        if raw:
            self._logger.warning(f"Command '{command}': raw mode without '#' terminator not implemented")
            raise RoofNotImplementedError("Raw commands without terminator are not supported")

        self._logger.debug(f"Attempting command '{command}'")

        field_name = STATUS_COMMANDS.get(command)
        if field_name is not None:
            value = self._cache.field(field_name)
            if value is not None:
                self._logger.debug(f"Command '{command}' answered from cache: '{value}'")
                return value, True
            if command == 'SHUTTERSTATUS':
                self._logger.warning("No fresh shutter data, passing SHUTTERSTATUS to controller")

        self.write_through(command)
        return ACK_TOKEN, False

    def write_through(self, command: str) -> None:
        """Write ``command#`` to the controller without awaiting a reply.

        Raises:
            ValueError: Command contains non-ASCII characters
            CommsFailureError: Write to the controller failed
        """
        try:
            payload = (command + END_DELIMITER).encode('ascii')
        except UnicodeEncodeError as ex:
            raise ValueError(f"Command '{command}' must be ASCII") from ex

        self._transport.write(payload)
        self._logger.debug(f"Command '{command}' written to controller")
