"""JK BMS protocol implementation."""

from jkbms_gateway.protocol.assembler import StreamAssembler
from jkbms_gateway.protocol.checksum import calculate_checksum, verify_checksum
from jkbms_gateway.protocol.codec import Codec, JK02Codec
from jkbms_gateway.protocol.constants import FRAME_SIZE, RESPONSE_HEADER, Command, RecordType
from jkbms_gateway.protocol.dispatcher import FrameDispatcher
from jkbms_gateway.protocol.frames import Frame, build_request
from jkbms_gateway.protocol.session import Session
from jkbms_gateway.protocol.sink import Sink

__all__ = [
    "Codec",
    "Command",
    "FRAME_SIZE",
    "Frame",
    "FrameDispatcher",
    "JK02Codec",
    "RESPONSE_HEADER",
    "RecordType",
    "Session",
    "Sink",
    "StreamAssembler",
    "build_request",
    "calculate_checksum",
    "verify_checksum",
]
