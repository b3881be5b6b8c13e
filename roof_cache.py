"""
MegaRoof Status Cache Module

Holds the last status frame broadcast by the roof controller together with a
freshness flag. The serial reader thread is the only writer of snapshots;
command and shutter code only read, and may only clear freshness so that a
later fresh reading proves the controller answered after that point.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from roof_exceptions import BadLengthError
from roof_framing import FIELD_SEPARATOR

# Protocol constants
STATUS_MESSAGE_LENGTH = 14

# Positional field names of the status frame
STATUS_FIELDS = (
    'rain',
    'roof_state',
    'park_state',
    'rain_sensor_override',
    'park_sensor_override',
    'spare',
)


@dataclass(frozen=True)
class StatusSnapshot:
    """Immutable parsed status frame.

    ``fields`` holds whatever the split produced. A well-formed frame has
    exactly six; missing ones read as None.
    """
    body: str
    fields: Tuple[str, ...]
    received_at: float

    @classmethod
    def from_message(cls, message: str) -> 'StatusSnapshot':
        return cls(
            body=message,
            fields=tuple(message.split(FIELD_SEPARATOR)),
            received_at=time.time(),
        )

    def get(self, name: str) -> Optional[str]:
        """Return a field by name, None if the frame did not carry it."""
        index = STATUS_FIELDS.index(name)
        if index < len(self.fields):
            return self.fields[index]
        return None

    @property
    def well_formed(self) -> bool:
        return len(self.fields) == len(STATUS_FIELDS)

    @property
    def rain(self) -> Optional[str]:
        return self.get('rain')

    @property
    def roof_state(self) -> Optional[str]:
        return self.get('roof_state')

    @property
    def park_state(self) -> Optional[str]:
        return self.get('park_state')

    @property
    def rain_sensor_override(self) -> Optional[str]:
        return self.get('rain_sensor_override')

    @property
    def park_sensor_override(self) -> Optional[str]:
        return self.get('park_sensor_override')

    @property
    def spare(self) -> Optional[str]:
        return self.get('spare')

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {name: self.get(name) for name in STATUS_FIELDS}


class RoofStatusCache:
    """Thread-safe, freshness-tagged cache of the controller status."""

    def __init__(self, logger, expected_length: int = STATUS_MESSAGE_LENGTH):
        """Initialize cache.

        Args:
            logger: Logger instance for error reporting
            expected_length: Required status body length
        """
        self.logger = logger
        self._expected_length = expected_length
        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._snapshot: Optional[StatusSnapshot] = None
        self._fresh = False
        self._generation = 0
        self._interrupts = 0
        self._rejected = 0

    def ingest(self, message: str) -> StatusSnapshot:
        """Validate a frame body and install it as the current snapshot.

        Args:
            message: Body text between the frame delimiters

        Returns:
            The newly installed snapshot

        Raises:
            BadLengthError: Body length is wrong; the previous snapshot is
                kept and freshness is cleared
        """
        if len(message) != self._expected_length:
            with self._changed:
                self._fresh = False
                self._rejected += 1
            raise BadLengthError(
                f"Corrupted status message length: expected {self._expected_length}, "
                f"got {len(message)}",
                expected=self._expected_length,
                actual=len(message),
            )

        snapshot = StatusSnapshot.from_message(message)
        if not snapshot.well_formed:
            self.logger.warning(
                f"Status message has {len(snapshot.fields)} fields, expected "
                f"{len(STATUS_FIELDS)}: '{message}'"
            )

        with self._changed:
            self._snapshot = snapshot
            self._fresh = True
            self._generation += 1
            self._changed.notify_all()

        self.logger.debug(f"Status cache updated: {message}")
        return snapshot

    def field(self, name: str) -> Optional[str]:
        """Get a status field, only while the cache is fresh.

        Args:
            name: One of STATUS_FIELDS

        Returns:
            Raw field token, or None when stale, empty or not carried

        Raises:
            ValueError: Unknown field name
        """
        if name not in STATUS_FIELDS:
            raise ValueError(f"Unknown status field: {name}")

        with self._lock:
            if not self._fresh or self._snapshot is None:
                return None
            return self._snapshot.get(name)

    @property
    def snapshot(self) -> Optional[StatusSnapshot]:
        """Last accepted snapshot, fresh or not."""
        with self._lock:
            return self._snapshot

    @property
    def is_fresh(self) -> bool:
        with self._lock:
            return self._fresh

    @property
    def generation(self) -> int:
        """Number of snapshots installed since creation."""
        with self._lock:
            return self._generation

    def clear_freshness(self) -> None:
        """Mark the cached status stale until the next valid frame."""
        with self._lock:
            self._fresh = False

    def wait_for_fresh(self, timeout: float) -> bool:
        """Block until the cache is fresh, interrupted, or timeout elapses.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            True if the cache is fresh on return
        """
        with self._changed:
            interrupts = self._interrupts
            self._changed.wait_for(
                lambda: self._fresh or self._interrupts != interrupts,
                timeout,
            )
            return self._fresh

    def interrupt_waiters(self) -> None:
        """Wake every thread blocked in wait_for_fresh (connection dropped)."""
        with self._changed:
            self._interrupts += 1
            self._changed.notify_all()

    def was_interrupted_since(self, marker: int) -> bool:
        with self._lock:
            return self._interrupts != marker

    @property
    def interrupt_marker(self) -> int:
        with self._lock:
            return self._interrupts

    def clear(self) -> None:
        """Forget the snapshot and freshness."""
        with self._lock:
            self._snapshot = None
            self._fresh = False
            self.logger.info("Status cache cleared")

    def get_cache_status(self) -> Dict[str, Any]:
        """Get overall cache status for debugging."""
        with self._lock:
            snapshot = self._snapshot
            return {
                'fresh': self._fresh,
                'generation': self._generation,
                'rejected_messages': self._rejected,
                'last_message': snapshot.body if snapshot else None,
                'age': time.time() - snapshot.received_at if snapshot else None,
            }
