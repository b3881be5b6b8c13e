# File: MegaRoofDevice.py
"""MegaRoof roll-off-roof device: connection management and command surface."""

import threading
from logging import Logger
from typing import Any, Dict, List, Optional

from roof_cache import RoofStatusCache
from roof_commands import OVERRIDE_COMMANDS, CommandDispatcher
from roof_exceptions import BadLengthError, RoofNotImplementedError
from roof_framing import FrameDecoder
from roof_serial import SerialTransport
from roof_shutter import ShutterController
from roof_types import ShutterState


class RoofMetadata:
    """Static device metadata."""
    Name = 'MegaRoof'
    Description = 'MegaRoof ROR Driver'
    Version = '2.7'
    Info = 'MegaRoof Arduino Interface Version: 2.7'


class MegaRoofDevice:
    """Roll-off-roof controller on a serial port.

    Wires the serial transport, frame decoder and status cache together and
    exposes the command surface used by client layers: blind, boolean and
    string commands, shutter open/close/abort and shutter status.

    Connection state is never stored; ``is_connected`` asks the transport
    every time so an unplugged controller shows up without a disconnect.
    """

    def __init__(self, config, logger: Logger, transport: Optional[SerialTransport] = None) -> None:
        """
        Args:
            config: MegaRoofConfig (dev_port, baud_rate, poll_interval, poll_attempts)
            logger: Logger instance for device operations
            transport: Serial transport, a new SerialTransport if omitted
        """
        self._config = config
        self._logger = logger
        self._lock = threading.RLock()
        self._logger.info("Initializing MegaRoofDevice instance")

        self._transport = transport if transport is not None else SerialTransport(logger)
        self._decoder = FrameDecoder()
        self._cache = RoofStatusCache(logger)
        self._dispatcher = CommandDispatcher(self._transport, self._cache, logger)
        self._shutter = ShutterController(
            self._dispatcher,
            self._cache,
            lambda: self.is_connected,
            logger,
            interval=config.poll_interval,
            attempts=config.poll_attempts,
        )

        self._logger.info(f"MegaRoofDevice initialized for port {config.dev_port}")

    # -------------------------------------------------------------------------
    # Connection Management
    # -------------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        """True while the serial port is open."""
        return self._transport.is_open

    def connect(self) -> None:
        """
        Open the serial port and start decoding status frames.

        Raises:
            RoofConnectError: Port missing, busy or not permitted
        """
        with self._lock:
            if self.is_connected:
                self._logger.debug("Connect requested while already connected")
                return

            port = self._config.dev_port
            self._logger.info(f"Connecting to port {port}")

            self._decoder.reset()
            self._cache.clear_freshness()
            self._transport.open(
                port,
                on_data=self._on_serial_data,
                baudrate=self._config.baud_rate,
                on_error=self._on_serial_error,
            )
            self._logger.info(f"Connected to roof controller on {port}")

    def disconnect(self) -> None:
        """Close the serial port and release any thread waiting on the roof."""
        with self._lock:
            self._logger.info(f"Disconnecting from port {self._config.dev_port}")
            self._transport.close()
            self._cache.clear_freshness()
            self._cache.interrupt_waiters()

    def _on_serial_data(self, data: bytes) -> None:
        """Reader-thread callback: decode frames and update the status cache."""
        for message in self._decoder.feed_bytes(data):
            try:
                self._cache.ingest(message)
            except BadLengthError as ex:
                self._logger.warning(f"Communications: {ex} ('{message}')")

    def _on_serial_error(self, ex: Exception) -> None:
        """Reader-thread callback when the port fails (e.g., unplugged)."""
        self._logger.error(f"Roof controller connection lost: {ex}")
        self._cache.clear_freshness()
        self._cache.interrupt_waiters()

    # -------------------------------------------------------------------------
    # Command Surface
    # -------------------------------------------------------------------------

    def send(self, command: str, raw: bool = False) -> None:
        """Transmit a command without waiting for a response."""
        self._dispatcher.dispatch(command, raw)

    def query(self, command: str, raw: bool = False) -> str:
        """Transmit a command and return its string result.

        Status commands (RAIN, SHUTTERSTATUS, PARK, RAINSENSOR, PARKSENSOR,
        SPARE) are served from the status cache while it is fresh; anything
        else returns the write acknowledgement '1'.
        """
        return self._dispatcher.dispatch(command, raw)

    def query_bool(self, command: str, raw: bool = False) -> bool:
        """Transmit a command and return True if the result is '1'."""
        return self._dispatcher.dispatch_bool(command, raw)

    def open_shutter(self) -> int:
        """Open the roof, blocking until the controller replies.

        Returns:
            Wait attempt on which the reply arrived

        Raises:
            OperationTimedOutError: No reply within the bounded wait
            NotConnectedError: Not connected or connection lost
        """
        return self._shutter.open()

    def close_shutter(self) -> int:
        """Close the roof, blocking until the controller replies.

        Returns:
            Wait attempt on which the reply arrived

        Raises:
            OperationTimedOutError: No reply within the bounded wait
            NotConnectedError: Not connected or connection lost
        """
        return self._shutter.close()

    def abort(self) -> None:
        """Stop roof and mount movement."""
        self._shutter.abort()

    def shutter_status(self) -> ShutterState:
        """Current roof state from the latest fresh status frame.

        A stale cache makes the query fall through to the controller, whose
        reply is only the write acknowledgement, so ERROR is reported.
        """
        value, from_cache = self._dispatcher.resolve('SHUTTERSTATUS')
        state = ShutterState.from_token(value) if from_cache else ShutterState.ERROR
        self._logger.debug(f"ShutterStatus: {value} -> {state.name}")
        return state

    @property
    def slewing(self) -> bool:
        """True while the roof is opening or closing."""
        return self.shutter_status() in (ShutterState.OPENING, ShutterState.CLOSING)

    @property
    def supported_actions(self) -> List[str]:
        """Override commands understood by the controller firmware."""
        return list(OVERRIDE_COMMANDS)

    def action(self, action_name: str, action_parameters: str = '') -> str:
        """Named actions are not implemented; send override tokens with send()."""
        self._logger.warning(f"Action {action_name}, parameters {action_parameters} not implemented")
        raise RoofNotImplementedError(f"Action {action_name} is not implemented by this driver")

    def status(self) -> Dict[str, Any]:
        """Summary of connection and cached status for diagnostics."""
        snapshot = self._cache.snapshot
        return {
            'name': RoofMetadata.Name,
            'description': RoofMetadata.Description,
            'driver_version': RoofMetadata.Version,
            'driver_info': RoofMetadata.Info,
            'port': self._config.dev_port,
            'connected': self.is_connected,
            'fresh': self._cache.is_fresh,
            'fields': snapshot.as_dict() if snapshot else None,
            'shutter': ShutterState.from_token(snapshot.roof_state).name if snapshot else None,
            'frames_discarded': self._decoder.frames_discarded,
            'cache': self._cache.get_cache_status(),
        }

    @property
    def cache(self) -> RoofStatusCache:
        return self._cache

    @property
    def decoder(self) -> FrameDecoder:
        return self._decoder
