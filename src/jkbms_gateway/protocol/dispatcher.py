"""Frame dispatcher: routes complete frames by record type."""

import logging
from collections.abc import Mapping

from jkbms_gateway.core.errors import DecodeError
from jkbms_gateway.protocol.codec import Codec, Record
from jkbms_gateway.protocol.constants import DECODED_RECORD_TYPES, RecordType
from jkbms_gateway.protocol.frames import Frame
from jkbms_gateway.protocol.sink import Sink

logger = logging.getLogger(__name__)


class FrameDispatcher:
    """Classifies frames and routes decoded records to their sinks.

    Cell telemetry and device info frames are decoded; settings and
    unknown record types are dropped without a decode attempt. Decode
    failures are logged and the frame dropped.
    """

    def __init__(self, codec: Codec, sinks: Mapping[RecordType, Sink]):
        """
        Initialize dispatcher.

        Args:
            codec: Codec used to decode frame payloads.
            sinks: Destination sink per decoded record type.
        """
        self._codec = codec
        self._sinks = sinks
        self._stats = {
            "dispatched": 0,
            "decode_errors": 0,
            "ignored": 0,
        }

    @property
    def stats(self) -> dict:
        """Get dispatcher statistics."""
        return self._stats.copy()

    def dispatch(self, frame: Frame) -> Record | None:
        """Decode and route a frame.

        Args:
            frame: Complete frame from the assembler.

        Returns:
            The decoded record, or None if the frame was dropped.
        """
        kind = frame.kind
        logger.debug("Dispatching frame: type=0x%02X", frame.record_type)

        if kind is None:
            logger.warning("Unknown record type: 0x%02X", frame.record_type)
            self._stats["ignored"] += 1
            return None

        if kind not in DECODED_RECORD_TYPES:
            logger.debug("%s frame received (ignored)", kind.name)
            self._stats["ignored"] += 1
            return None

        try:
            record = self._codec.decode(frame.data)
        except DecodeError as e:
            logger.error("Failed to decode %s frame: %s", kind.name, e)
            self._stats["decode_errors"] += 1
            return None

        sink = self._sinks.get(kind)
        if sink is not None:
            sink.put(record)
        self._stats["dispatched"] += 1
        return record
