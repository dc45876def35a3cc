"""Payload codec for JK BMS JK02 frames.

Decodes 300-byte response frames into CellTelemetry / DeviceInfo records
and encodes the request commands. Field offsets follow the JK02 24-cell
layout.
"""

import logging
import struct
from typing import Protocol

from pydantic import ValidationError

from jkbms_gateway.core.errors import DecodeError
from jkbms_gateway.core.models import CellTelemetry, DeviceInfo
from jkbms_gateway.protocol.checksum import calculate_checksum
from jkbms_gateway.protocol.constants import (
    CHECKSUM_OFFSET,
    FRAME_SIZE,
    RECORD_TYPE_OFFSET,
    RESPONSE_HEADER,
    Command,
    RecordType,
)
from jkbms_gateway.protocol.frames import build_request

logger = logging.getLogger(__name__)

Record = CellTelemetry | DeviceInfo

MAX_CELLS = 24

# Cell data offsets
CELL_VOLTAGE_OFFSET = 6
CELL_MASK_OFFSET = 54
AVG_CELL_VOLTAGE_OFFSET = 58
DELTA_CELL_VOLTAGE_OFFSET = 60
CELL_RESISTANCE_OFFSET = 64
MOSFET_TEMP_OFFSET = 112
BATTERY_VOLTAGE_OFFSET = 118
BATTERY_POWER_OFFSET = 122
BATTERY_CURRENT_OFFSET = 126
TEMP_SENSOR_OFFSETS = (130, 132)
BALANCE_CURRENT_OFFSET = 138
REMAIN_PERCENT_OFFSET = 141
REMAIN_CAPACITY_OFFSET = 142
NOMINAL_CAPACITY_OFFSET = 146
CYCLE_COUNT_OFFSET = 150
CYCLE_CAPACITY_OFFSET = 154
CELL_UP_TIME_OFFSET = 162

# Device info string fields: name -> (offset, length)
DEVICE_INFO_STRINGS = {
    "device_model": (6, 16),
    "hardware_version": (22, 8),
    "software_version": (30, 8),
    "device_name": (46, 16),
    "device_passcode": (62, 16),
    "manufacturing_date": (78, 8),
    "serial_number": (86, 11),
    "passcode": (97, 5),
    "userdata": (102, 16),
    "setup_passcode": (118, 16),
    "userdata2": (134, 16),
}
DEVICE_UP_TIME_OFFSET = 38
POWERON_TIMES_OFFSET = 42


class Codec(Protocol):
    """Decodes response frames and encodes request commands."""

    def decode(self, frame: bytes) -> Record:
        """Decode a complete frame, raising DecodeError on failure."""
        ...

    def encode_cell_telemetry_request(self) -> bytes:
        """Command bytes requesting cell data."""
        ...

    def encode_device_info_request(self) -> bytes:
        """Command bytes requesting device info."""
        ...


def _check_frame(frame: bytes) -> None:
    """Validate length, header and checksum of a response frame.

    Raises:
        DecodeError: If the frame is not a well-formed response.
    """
    if len(frame) < FRAME_SIZE:
        raise DecodeError(f"Not enough data: {len(frame)} bytes")
    if not frame.startswith(RESPONSE_HEADER):
        raise DecodeError("Missing response header")
    expected = frame[CHECKSUM_OFFSET]
    calculated = calculate_checksum(frame[:CHECKSUM_OFFSET])
    if expected != calculated:
        raise DecodeError(f"Bad checksum: expected 0x{expected:02X}, calculated 0x{calculated:02X}")


def _decode_string(frame: bytes, offset: int, length: int) -> str:
    raw = frame[offset : offset + length].split(b"\x00", 1)[0]
    return raw.decode("utf-8", errors="ignore").strip()


def _enabled_cells(frame: bytes) -> list[int]:
    """Indices of populated cells.

    Uses the enabled-cell bitmask when present, otherwise falls back to
    every cell up to the last non-zero voltage.
    """
    mask = struct.unpack_from("<I", frame, CELL_MASK_OFFSET)[0]
    if mask:
        return [i for i in range(MAX_CELLS) if mask & (1 << i)]

    voltages = struct.unpack_from(f"<{MAX_CELLS}H", frame, CELL_VOLTAGE_OFFSET)
    count = MAX_CELLS
    while count and voltages[count - 1] == 0:
        count -= 1
    return list(range(count))


def parse_cell_data(frame: bytes) -> CellTelemetry:
    """Parse a cell data frame into CellTelemetry.

    Args:
        frame: Complete 300-byte frame.

    Returns:
        Decoded CellTelemetry.

    Raises:
        DecodeError: If the frame is malformed or of another record type.
    """
    _check_frame(frame)
    if frame[RECORD_TYPE_OFFSET] != RecordType.CELL_TELEMETRY:
        raise DecodeError(f"Bad record type 0x{frame[RECORD_TYPE_OFFSET]:02X} for cell data")

    cells = _enabled_cells(frame)
    voltages = struct.unpack_from(f"<{MAX_CELLS}H", frame, CELL_VOLTAGE_OFFSET)
    resistances = struct.unpack_from(f"<{MAX_CELLS}H", frame, CELL_RESISTANCE_OFFSET)

    try:
        return CellTelemetry(
            cell_voltage=[voltages[i] * 0.001 for i in cells],
            average_cell_voltage=struct.unpack_from("<H", frame, AVG_CELL_VOLTAGE_OFFSET)[0] * 0.001,
            delta_cell_voltage=struct.unpack_from("<H", frame, DELTA_CELL_VOLTAGE_OFFSET)[0] * 0.001,
            balance_current=struct.unpack_from("<h", frame, BALANCE_CURRENT_OFFSET)[0] * 0.001,
            cell_resistance=[resistances[i] * 0.001 for i in cells],
            battery_voltage=struct.unpack_from("<I", frame, BATTERY_VOLTAGE_OFFSET)[0] * 0.001,
            battery_power=struct.unpack_from("<I", frame, BATTERY_POWER_OFFSET)[0] * 0.001,
            battery_current=struct.unpack_from("<i", frame, BATTERY_CURRENT_OFFSET)[0] * 0.001,
            battery_temperature=[struct.unpack_from("<h", frame, off)[0] * 0.1 for off in TEMP_SENSOR_OFFSETS],
            mosfet_temperature=struct.unpack_from("<h", frame, MOSFET_TEMP_OFFSET)[0] * 0.1,
            remain_percent=frame[REMAIN_PERCENT_OFFSET],
            remain_capacity=struct.unpack_from("<I", frame, REMAIN_CAPACITY_OFFSET)[0] * 0.001,
            nominal_capacity=struct.unpack_from("<I", frame, NOMINAL_CAPACITY_OFFSET)[0] * 0.001,
            cycle_count=struct.unpack_from("<I", frame, CYCLE_COUNT_OFFSET)[0],
            cycle_capacity=struct.unpack_from("<I", frame, CYCLE_CAPACITY_OFFSET)[0] * 0.001,
            up_time=struct.unpack_from("<I", frame, CELL_UP_TIME_OFFSET)[0],
        )
    except ValidationError as e:
        raise DecodeError(f"Invalid cell data: {e.error_count()} field error(s)") from e


def parse_device_info(frame: bytes) -> DeviceInfo:
    """Parse a device info frame into DeviceInfo.

    Raises:
        DecodeError: If the frame is malformed or of another record type.
    """
    _check_frame(frame)
    if frame[RECORD_TYPE_OFFSET] != RecordType.DEVICE_INFO:
        raise DecodeError(f"Bad record type 0x{frame[RECORD_TYPE_OFFSET]:02X} for device info")

    fields = {name: _decode_string(frame, off, size) for name, (off, size) in DEVICE_INFO_STRINGS.items()}
    return DeviceInfo(
        up_time=struct.unpack_from("<I", frame, DEVICE_UP_TIME_OFFSET)[0],
        poweron_times=struct.unpack_from("<I", frame, POWERON_TIMES_OFFSET)[0],
        **fields,
    )


class JK02Codec:
    """Default codec for JK BMS devices speaking the JK02 protocol."""

    def decode(self, frame: bytes) -> Record:
        """Decode a frame according to its record type.

        Raises:
            DecodeError: On malformed frames or record types without a decoder.
        """
        if len(frame) <= RECORD_TYPE_OFFSET:
            raise DecodeError(f"Not enough data: {len(frame)} bytes")

        record_type = frame[RECORD_TYPE_OFFSET]
        if record_type == RecordType.CELL_TELEMETRY:
            return parse_cell_data(frame)
        if record_type == RecordType.DEVICE_INFO:
            return parse_device_info(frame)
        raise DecodeError(f"Bad record type 0x{record_type:02X}")

    def encode_cell_telemetry_request(self) -> bytes:
        return build_request(Command.CELL_DATA)

    def encode_device_info_request(self) -> bytes:
        return build_request(Command.DEVICE_INFO)
