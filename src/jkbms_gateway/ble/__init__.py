"""BLE transport layer."""

from jkbms_gateway.ble.connection import BleakTransport
from jkbms_gateway.ble.transport import Transport

__all__ = ["BleakTransport", "Transport"]
