# File: roof_shutter.py
"""
Shutter open/close operations with a bounded wait for the controller reply.

The controller does not acknowledge OPEN or CLOSE directly; it answers with
its next status broadcast. An operation clears cache freshness, writes the
command, then waits up to ``attempts`` intervals for a fresh frame.
"""

import time

from roof_cache import RoofStatusCache
from roof_commands import ACTION_ABORT, ACTION_CLOSE, ACTION_OPEN, CommandDispatcher
from roof_exceptions import NotConnectedError, OperationTimedOutError


DEFAULT_POLL_INTERVAL = 0.6   # seconds
DEFAULT_POLL_ATTEMPTS = 5


class ShutterController:
    """Drives OPEN/CLOSE operations and waits for the controller to respond.

    Attributes:
        interval: Seconds per wait attempt
        attempts: Maximum number of wait attempts
    """

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        cache: RoofStatusCache,
        is_connected,
        logger,
        interval: float = DEFAULT_POLL_INTERVAL,
        attempts: int = DEFAULT_POLL_ATTEMPTS
    ):
        """
        Args:
            dispatcher: Command dispatcher used to write action commands
            cache: Status cache signalled by the serial reader
            is_connected: Callable returning current connection liveness
            logger: Logger instance
            interval: Seconds per wait attempt
            attempts: Maximum number of wait attempts
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if not isinstance(attempts, int) or attempts < 1:
            raise ValueError("attempts must be a positive integer")

        self._dispatcher = dispatcher
        self._cache = cache
        self._is_connected = is_connected
        self._logger = logger
        self.interval = interval
        self.attempts = attempts

    def open(self) -> int:
        """Open the roof. Returns the attempt on which the controller replied."""
        return self._run(ACTION_OPEN)

    def close(self) -> int:
        """Close the roof. Returns the attempt on which the controller replied."""
        return self._run(ACTION_CLOSE)

    def abort(self) -> None:
        """Stop all roof and mount movement. Does not wait for a reply."""
        self._dispatcher.dispatch(ACTION_ABORT)
        self._logger.info("Abort sent to roof controller")

    def _run(self, action: str) -> int:
        """
        Issue an action command and wait for a fresh status frame.

        Returns:
            1-based attempt number during which the reply arrived

        Raises:
            NotConnectedError: Not connected, or the connection dropped
                during the wait
            OperationTimedOutError: No reply within attempts * interval
            CommsFailureError: Command could not be written
        """
        marker = self._cache.interrupt_marker
        self._cache.clear_freshness()
        self._dispatcher.dispatch(action)
        self._logger.info(f"Shutter asked to {action.lower()}")

        started = time.monotonic()
        for attempt in range(1, self.attempts + 1):
            if self._cache.wait_for_fresh(self.interval):
                self._logger.info(
                    f"{action} acknowledged on attempt {attempt} "
                    f"after {time.monotonic() - started:.2f}s"
                )
                return attempt

            if self._cache.was_interrupted_since(marker) or not self._is_connected():
                self._logger.error(f"Connection lost while waiting for {action} reply")
                raise NotConnectedError(f"Connection lost during {action}")

            self._logger.debug(f"{action}: no reply on attempt {attempt}/{self.attempts}")

        self._logger.warning(
            f"No response from roof within poll time "
            f"({self.attempts} x {self.interval:.2f}s) after {action}"
        )
        raise OperationTimedOutError(
            f"No reply to {action} after {self.attempts} attempts",
            attempts=self.attempts,
            interval=self.interval,
        )
