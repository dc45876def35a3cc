"""Frame construction and parsing for JK BMS protocol."""

from typing import Optional

from jkbms_gateway.protocol.checksum import calculate_checksum
from jkbms_gateway.protocol.constants import (
    CHECKSUM_OFFSET,
    FRAME_SIZE,
    RECORD_TYPE_OFFSET,
    REQUEST_HEADER,
    REQUEST_SIZE,
    RESPONSE_HEADER,
    RecordType,
)


class Frame:
    """
    Represents one complete JK BMS response frame.

    Frame structure (300 bytes):
    [55][AA][EB][90][TYPE][COUNTER][PAYLOAD...][CHECKSUM]

    Attributes:
        data: Raw frame bytes, header and checksum included
    """

    def __init__(self, data: bytes):
        """
        Initialize a frame.

        Args:
            data: Exactly FRAME_SIZE bytes starting with the response header
        """
        if len(data) != FRAME_SIZE:
            raise ValueError(f"Frame must be {FRAME_SIZE} bytes, got {len(data)}")
        self.data = bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Optional["Frame"]:
        """
        Parse a frame from received bytes.

        Args:
            data: Raw frame bytes

        Returns:
            Frame object, or None if length or header is wrong

        Example:
            >>> raw = b'\\x55\\xaa\\xeb\\x90\\x02' + bytes(295)
            >>> Frame.from_bytes(raw).record_type
            2
        """
        if len(data) != FRAME_SIZE:
            return None

        if not data.startswith(RESPONSE_HEADER):
            return None

        return cls(data)

    @property
    def record_type(self) -> int:
        """Raw record type tag (byte 4)."""
        return self.data[RECORD_TYPE_OFFSET]

    @property
    def kind(self) -> RecordType | None:
        """Known record type, or None for an unrecognized tag."""
        try:
            return RecordType(self.record_type)
        except ValueError:
            return None

    @property
    def checksum(self) -> int:
        """Checksum byte carried in the frame."""
        return self.data[CHECKSUM_OFFSET]

    @property
    def checksum_valid(self) -> bool:
        """Whether the carried checksum matches the frame contents."""
        return calculate_checksum(self.data[:CHECKSUM_OFFSET]) == self.checksum

    def __len__(self) -> int:
        return len(self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return self.data == other.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"Frame(type=0x{self.record_type:02X}, len={len(self.data)})"


def build_request(command: int) -> bytes:
    """Build a 20-byte request packet for the given command code.

    Format: [AA][55][90][EB][CMD][LEN=0][13 x 00][CHECKSUM]

    Args:
        command: Command code (see Command).

    Returns:
        Request bytes ready to write to the device.
    """
    packet = bytearray(REQUEST_SIZE)
    packet[0:4] = REQUEST_HEADER
    packet[4] = command
    packet[-1] = calculate_checksum(packet[:-1])
    return bytes(packet)


def build_frame(record_type: int, payload: bytes = b"", counter: int = 0) -> bytes:
    """Build a raw response frame with a valid checksum.

    Mostly useful for simulators and tests.

    Args:
        record_type: Tag stored at byte 4.
        payload: Bytes placed from offset 6; zero padded.
        counter: Frame counter stored at byte 5.

    Returns:
        FRAME_SIZE bytes.
    """
    body_size = CHECKSUM_OFFSET - 6
    if len(payload) > body_size:
        raise ValueError(f"Payload too long: {len(payload)} > {body_size}")

    frame = bytearray(FRAME_SIZE)
    frame[0:4] = RESPONSE_HEADER
    frame[4] = record_type
    frame[5] = counter & 0xFF
    frame[6 : 6 + len(payload)] = payload
    frame[CHECKSUM_OFFSET] = calculate_checksum(frame[:CHECKSUM_OFFSET])
    return bytes(frame)
