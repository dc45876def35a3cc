"""Stream assembler: rebuilds fixed-size frames from a chunked byte stream."""

import logging
from collections.abc import Iterator

from jkbms_gateway.protocol.constants import (
    BUFFER_OVERFLOW_LIMIT,
    BUFFER_TRIM_SIZE,
    FRAME_SIZE,
    HEADER_TAIL_KEEP,
    RESPONSE_HEADER,
)
from jkbms_gateway.protocol.frames import Frame

logger = logging.getLogger(__name__)


class StreamAssembler:
    """Reassembles 300-byte JK BMS frames from notification chunks.

    Chunks carry no message boundaries: a frame may span several chunks,
    several frames may share one, and the device interleaves garbage such
    as heartbeat text. One assembler is owned by exactly one session.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._stats = {
            "bytes_read": 0,
            "frames_read": 0,
            "bytes_discarded": 0,
            "overflows": 0,
        }

    @property
    def stats(self) -> dict:
        """Get assembler statistics."""
        return self._stats.copy()

    @property
    def buffered(self) -> int:
        """Number of bytes currently held in the buffer."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Iterator[Frame]:
        """Append a chunk and return the frames it completes.

        The chunk is buffered and the buffer bounds are enforced before
        returning; extraction is lazy. Frames not consumed from the returned
        iterator stay buffered and come out of the next call, unless the
        undrained backlog grows past the overflow limit.

        Args:
            chunk: Raw bytes from the transport.

        Returns:
            Iterator over complete frames, in arrival order.
        """
        self._buffer.extend(chunk)
        self._stats["bytes_read"] += len(chunk)
        self._trim()
        return self._drain()

    def _trim(self) -> None:
        if self._buffer.find(RESPONSE_HEADER) == -1:
            # Keep a possible partial header split across chunks
            self._discard(len(self._buffer) - HEADER_TAIL_KEEP)
            return

        if len(self._buffer) > BUFFER_OVERFLOW_LIMIT:
            dropped = len(self._buffer) - BUFFER_TRIM_SIZE
            logger.warning("Buffer overflow (%d bytes), trimming %d bytes", len(self._buffer), dropped)
            self._discard(dropped)
            self._stats["overflows"] += 1

    def _discard(self, count: int) -> None:
        if count > 0:
            del self._buffer[:count]
            self._stats["bytes_discarded"] += count

    def _drain(self) -> Iterator[Frame]:
        while True:
            frame = self._extract_frame()
            if frame is None:
                break
            self._stats["frames_read"] += 1
            yield frame

    def _extract_frame(self) -> Frame | None:
        header_idx = self._buffer.find(RESPONSE_HEADER)
        if header_idx == -1:
            self._discard(len(self._buffer) - HEADER_TAIL_KEEP)
            return None

        if header_idx > 0:
            logger.debug("Discarding %d bytes before header", header_idx)
            self._discard(header_idx)

        if len(self._buffer) < FRAME_SIZE:
            return None

        frame = Frame(bytes(self._buffer[:FRAME_SIZE]))
        del self._buffer[:FRAME_SIZE]
        return frame

    def reset(self) -> None:
        """Clear the receive buffer."""
        self._buffer.clear()
