"""Protocol constants for JK BMS communication."""

from enum import IntEnum

# ============================================================================
# Frame Structure
# ============================================================================

RESPONSE_HEADER = b"\x55\xaa\xeb\x90"
REQUEST_HEADER = b"\xaa\x55\x90\xeb"
FRAME_SIZE = 300  # All record types, including device info
RECORD_TYPE_OFFSET = 4
CHECKSUM_OFFSET = FRAME_SIZE - 1
REQUEST_SIZE = 20

# Assembler buffer limits
HEADER_TAIL_KEEP = len(RESPONSE_HEADER) - 1  # Enough to catch a split header
BUFFER_OVERFLOW_LIMIT = FRAME_SIZE * 4
BUFFER_TRIM_SIZE = FRAME_SIZE * 2

# ============================================================================
# Record Types and Commands
# ============================================================================


class RecordType(IntEnum):
    """Record type tags found at byte 4 of a response frame."""

    SETTINGS = 0x01
    CELL_TELEMETRY = 0x02
    DEVICE_INFO = 0x03


# Record types forwarded past the dispatcher
DECODED_RECORD_TYPES = (RecordType.CELL_TELEMETRY, RecordType.DEVICE_INFO)


class Command(IntEnum):
    """Request command codes."""

    CELL_DATA = 0x96
    DEVICE_INFO = 0x97


# ============================================================================
# BLE GATT
# ============================================================================

SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
CHARACTERISTIC_UUID = "0000ffe1-0000-1000-8000-00805f9b34fb"

# ============================================================================
# Communication Settings
# ============================================================================

CONNECT_TIMEOUT = 10.0  # BLE connect + notify setup (seconds)
REQUEST_TIMEOUT = 10.0  # Single request/response (seconds)
CYCLE_TIMEOUT = 30.0  # Full connect-request-disconnect cycle (seconds)
MAX_ATTEMPTS = 3  # Refresh attempts per cycle
BACKOFF_BASE = 2.0  # Linear backoff: base * attempt (seconds)
REFRESH_INTERVAL = 900.0  # Periodic refresh (seconds)
NOTIFY_SETTLE_DELAY = 0.2  # Pause after enabling notifications (seconds)
