"""Core application functionality."""

from jkbms_gateway.core.cache import SnapshotCache
from jkbms_gateway.core.config import Settings, setup_logging
from jkbms_gateway.core.errors import (
    BmsError,
    DecodeError,
    NoDeviceConfigured,
    RequestTimeout,
    RetryExhausted,
    TransportError,
)
from jkbms_gateway.core.models import CellTelemetry, DeviceInfo, SelectedDevice, Snapshot

__all__ = [
    "BmsError",
    "CellTelemetry",
    "DecodeError",
    "DeviceInfo",
    "NoDeviceConfigured",
    "RequestTimeout",
    "RetryExhausted",
    "SelectedDevice",
    "Settings",
    "Snapshot",
    "SnapshotCache",
    "TransportError",
    "setup_logging",
]
