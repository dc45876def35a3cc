"""JK BMS Gateway: BLE telemetry driver and refresh service for JK battery management systems."""

__version__ = "0.1.0"
