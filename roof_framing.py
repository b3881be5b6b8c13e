# File: roof_framing.py
"""
Status frame decoder for the MegaRoof controller.

The controller broadcasts ``$f1,f2,f3,f4,f5,f6#`` every few seconds. This
module recovers the text between the delimiters from the raw byte stream,
one byte at a time, with no I/O of its own. Validation of the body is left
to the status cache.

Example:
    >>> decoder = FrameDecoder()
    >>> decoder.feed_bytes(b'noise$AAA$0,1,0,0,0,12.3#')
    ['0,1,0,0,0,12.3']
"""

from typing import List, Optional, Union

from roof_types import DecoderState


# Constants
START_DELIMITER = '$'
END_DELIMITER = '#'
FIELD_SEPARATOR = ','
MAX_FRAME_LENGTH = 64


class FrameDecoder:
    """Byte-at-a-time state machine for ``$...#`` framed messages.

    Not thread-safe; feed it from a single thread (the serial reader).

    Attributes:
        state: Current DecoderState
        frames_emitted: Number of bodies returned so far
        frames_discarded: Partial frames dropped by a restart or overflow
    """

    def __init__(self, max_length: int = MAX_FRAME_LENGTH):
        if not isinstance(max_length, int) or max_length <= 0:
            raise ValueError("max_length must be a positive integer")

        self._max_length = max_length
        self._buffer: List[str] = []
        self.state = DecoderState.AWAITING_START
        self.frames_emitted = 0
        self.frames_discarded = 0

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def pending(self) -> str:
        """Characters accumulated for the frame in progress."""
        return ''.join(self._buffer)

    def reset(self) -> None:
        """Drop any partial frame and wait for the next start delimiter."""
        self._buffer.clear()
        self.state = DecoderState.AWAITING_START

    def feed(self, byte: Union[int, str, bytes]) -> Optional[str]:
        """
        Consume one inbound byte.

        Args:
            byte: An int (as produced by iterating ``bytes``), a one-character
                str, or a one-byte bytes object

        Returns:
            The completed message body when this byte is an end delimiter
            closing a frame, otherwise None
        """
        char = self._to_char(byte)

        if char == START_DELIMITER:
            # A start delimiter always restarts framing
            if self.state == DecoderState.ACCUMULATING:
                self.frames_discarded += 1
            self._buffer.clear()
            self.state = DecoderState.ACCUMULATING
            return None

        if self.state == DecoderState.AWAITING_START:
            return None

        if char == END_DELIMITER:
            message = ''.join(self._buffer)
            self._buffer.clear()
            self.state = DecoderState.AWAITING_START
            self.frames_emitted += 1
            return message

        self._buffer.append(char)
        if len(self._buffer) > self._max_length:
            self.frames_discarded += 1
            self.reset()
        return None

    def feed_bytes(self, data: bytes) -> List[str]:
        """Feed a chunk of bytes and return every body completed by it, in order."""
        messages = []
        for byte in data:
            message = self.feed(byte)
            if message is not None:
                messages.append(message)
        return messages

    @staticmethod
    def _to_char(byte: Union[int, str, bytes]) -> str:
        if isinstance(byte, int):
            return chr(byte)
        if isinstance(byte, (bytes, bytearray)):
            if len(byte) != 1:
                raise ValueError(f"Expected a single byte, got {len(byte)}")
            return chr(byte[0])
        if isinstance(byte, str) and len(byte) == 1:
            return byte
        raise ValueError(f"Cannot feed {byte!r} to the frame decoder")
