# File: roof_serial.py
"""
Serial transport for the MegaRoof roll-off-roof controller.

Opens the controller's serial port, runs a background reader thread that
hands every inbound chunk to a callback, and provides a synchronous write
path for commands.

Example:
    Basic usage with context manager:

    >>> with SerialTransport(logger) as transport:
    ...     transport.open('/dev/ttyUSB0', on_data=decoder_callback)
    ...     transport.write(b'OPEN#')
"""

import threading
from typing import Callable, Optional

import serial

from roof_exceptions import CommsFailureError, NotConnectedError, RoofConnectError


# Constants
DEFAULT_BAUDRATE = 19200
DEFAULT_READ_TIMEOUT = 0.1
DEFAULT_WRITE_TIMEOUT = 1.0
READER_JOIN_TIMEOUT = 3.0
MAX_READ_CHUNK = 256


class SerialTransport:
    """Full-duplex serial channel with threaded inbound delivery.

    Thread Safety:
        open/close/write are serialized by an RLock. The data callback runs
        on the reader thread, never under the lock.
    """

    def __init__(self, logger):
        """
        Initialize transport.

        Args:
            logger: Logger instance for communication diagnostics
        """
        self._logger = logger
        self._lock = threading.RLock()
        self._serial: Optional[serial.Serial] = None
        self._port = ''
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._on_data: Optional[Callable[[bytes], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None

    def __enter__(self) -> 'SerialTransport':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_open(self) -> bool:
        """Check if the serial port is open (recomputed on every call)."""
        with self._lock:
            return self._serial is not None and self._serial.is_open

    def open(
        self,
        port: str,
        on_data: Callable[[bytes], None],
        baudrate: int = DEFAULT_BAUDRATE,
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> None:
        """
        Open the port and start delivering inbound bytes.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0' or 'COM3')
            on_data: Called from the reader thread with each inbound chunk
            baudrate: Communication baud rate
            on_error: Called from the reader thread if the port fails

        Raises:
            ValueError: If parameters are invalid
            RoofConnectError: If the port cannot be opened
        """
        if not port or not isinstance(port, str):
            raise ValueError("Port must be a non-empty string")

        if not isinstance(baudrate, int) or baudrate <= 0:
            raise ValueError("Baudrate must be a positive integer")

        if not callable(on_data):
            raise ValueError("on_data must be callable")

        with self._lock:
            if self.is_open:
                self._logger.warning(f"Serial port {self._port} already open")
                return

            port_obj = None
            try:
                port_obj = serial.Serial(
                    port=port,
                    baudrate=baudrate,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                    xonxoff=False,
                    rtscts=False,
                    dsrdtr=False,
                    timeout=DEFAULT_READ_TIMEOUT,
                    write_timeout=DEFAULT_WRITE_TIMEOUT
                )

                if not port_obj.is_open:
                    port_obj.open()

                # Discard anything received before we were listening
                port_obj.reset_input_buffer()

            except (serial.SerialException, OSError, ValueError) as ex:
                self._logger.error(f"Failed to open serial connection on {port}: {ex}")
                if port_obj is not None:
                    self._release_failed_port(port_obj)
                self._serial = None
                raise RoofConnectError(f"Serial connection failed on {port}: {ex}") from ex

            self._serial = port_obj
            self._port = port
            self._on_data = on_data
            self._on_error = on_error
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._background_reader,
                name='MegaRoofSerialReader',
                daemon=True
            )
            self._thread.start()
            self._logger.info(f"Serial connection opened: {port} @ {baudrate} baud")

    def write(self, data: bytes) -> None:
        """
        Write bytes to the controller and flush.

        Raises:
            NotConnectedError: Port not open
            CommsFailureError: Write failed or timed out
        """
        with self._lock:
            if not self.is_open:
                raise NotConnectedError("Serial port not connected")

            try:
                self._serial.write(data)
                self._serial.flush()
            except (serial.SerialException, OSError) as ex:
                self._logger.error(f"Serial write failed on {self._port}: {ex}")
                raise CommsFailureError(f"Serial communication error: {ex}") from ex

        self._logger.debug(f"Wrote {data!r}")

    def close(self) -> None:
        """Stop the reader thread and close the port. Safe to call repeatedly."""
        with self._lock:
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        # Wait outside lock to avoid deadlock with the reader
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=READER_JOIN_TIMEOUT)
            if thread.is_alive():
                self._logger.warning("Serial reader thread did not stop gracefully")

        with self._lock:
            self._close_port()

    def _close_port(self) -> None:
        """Close the physical serial connection."""
        if self._serial:
            try:
                if self._serial.is_open:
                    self._serial.close()
                    self._logger.info(f"Serial connection closed: {self._port}")
            except (serial.SerialException, OSError) as ex:
                self._logger.warning(f"Error closing serial connection: {ex}")
            finally:
                self._serial = None

    def _release_failed_port(self, port_obj: serial.Serial) -> None:
        """Close a port whose setup failed after the OS handle was acquired."""
        try:
            if port_obj.is_open:
                port_obj.close()
        except (serial.SerialException, OSError) as ex:
            self._logger.warning(f"Error releasing serial port after failed open: {ex}")

    def _background_reader(self) -> None:
        """Reader thread: deliver inbound chunks until stopped or the port fails."""
        self._logger.info("Serial background reader started")
        port = self._serial

        while not self._stop_event.is_set():
            try:
                waiting = port.in_waiting
                data = port.read(min(waiting, MAX_READ_CHUNK) if waiting else 1)
            except (serial.SerialException, OSError, TypeError, AttributeError) as ex:
                if self._stop_event.is_set():
                    break
                self._handle_port_failure(ex)
                break

            if not data:
                continue

            try:
                self._on_data(data)
            except Exception as ex:
                # Inbound handling must never stop byte delivery
                self._logger.error(f"Error handling inbound data {data!r}: {ex}")

        self._logger.info("Serial background reader stopped")

    def _handle_port_failure(self, ex: Exception) -> None:
        self._logger.error(f"Serial port {self._port} failed: {ex}")
        with self._lock:
            self._close_port()

        if self._on_error:
            try:
                self._on_error(ex)
            except Exception as callback_ex:
                self._logger.error(f"Error in serial failure callback: {callback_ex}")
