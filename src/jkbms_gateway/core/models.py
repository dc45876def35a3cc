"""Data models for JK BMS gateway."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CellTelemetry(BaseModel):
    """Decoded cell data record (record type 0x02)."""

    cell_voltage: list[float] = Field(default_factory=list, description="Cell voltages in V")
    average_cell_voltage: float = Field(0.0, description="Average cell voltage in V")
    delta_cell_voltage: float = Field(0.0, description="Max voltage difference between cells in V")
    balance_current: float = Field(0.0, description="Balance current in A")
    cell_resistance: list[float] = Field(default_factory=list, description="Cell resistances in Ohm")
    battery_voltage: float = Field(0.0, description="Battery voltage between terminals in V")
    battery_power: float = Field(0.0, description="Battery power in W")
    battery_current: float = Field(0.0, description="Battery current in A")
    battery_temperature: list[float] = Field(default_factory=list, description="Battery temperatures in C")
    mosfet_temperature: float = Field(0.0, description="Power MOSFET temperature in C")
    remain_percent: int = Field(0, ge=0, le=100, description="Remaining capacity in %")
    remain_capacity: float = Field(0.0, description="Remaining capacity in Ah")
    nominal_capacity: float = Field(0.0, description="Nominal capacity in Ah")
    cycle_count: int = Field(0, ge=0, description="Number of battery cycles")
    cycle_capacity: float = Field(0.0, description="Cycle capacity in Ah")
    up_time: int = Field(0, ge=0, description="Seconds since last power on")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cell_voltage": [3.312, 3.314, 3.311, 3.313],
                "average_cell_voltage": 3.312,
                "delta_cell_voltage": 0.003,
                "balance_current": 0.0,
                "cell_resistance": [0.052, 0.051, 0.053, 0.052],
                "battery_voltage": 13.25,
                "battery_power": 66.25,
                "battery_current": 5.0,
                "battery_temperature": [21.5, 21.8],
                "mosfet_temperature": 24.1,
                "remain_percent": 78,
                "remain_capacity": 218.4,
                "nominal_capacity": 280.0,
                "cycle_count": 41,
                "cycle_capacity": 11890.2,
                "up_time": 3_456_000,
            }
        }
    )


class DeviceInfo(BaseModel):
    """Decoded device information record (record type 0x03)."""

    device_model: str = Field("", description="Model name")
    hardware_version: str = Field("", description="Hardware version")
    software_version: str = Field("", description="Firmware version")
    up_time: int = Field(0, ge=0, description="Seconds since power on")
    poweron_times: int = Field(0, ge=0, description="Number of power ons")
    device_name: str = Field("", description="Device name")
    device_passcode: str = Field("", description="Device passcode")
    manufacturing_date: str = Field("", description="Manufacturing date")
    serial_number: str = Field("", description="Serial number")
    passcode: str = Field("", description="Passcode")
    userdata: str = Field("", description="User data")
    setup_passcode: str = Field("", description="Passcode to change settings")
    userdata2: str = Field("", description="Second user data")


class Snapshot(BaseModel):
    """Last known-good telemetry plus capture time."""

    cell_data: CellTelemetry = Field(..., description="Last decoded cell telemetry")
    device_info: DeviceInfo | None = Field(None, description="Last decoded device info, if any")
    captured_at: datetime = Field(default_factory=datetime.now, description="Capture timestamp")


class SelectedDevice(BaseModel):
    """Device identity chosen for refreshes."""

    address: str = Field(..., min_length=1, description="BLE address of the BMS")
    name: str = Field("", description="Display name")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Normalize address and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError("Device address cannot be empty")
        return v.upper()

    model_config = ConfigDict(json_schema_extra={"example": {"address": "C8:47:80:37:02:E8", "name": "JK_B2A24S15P"}})


class RefreshStatus(str, Enum):
    """Outcome of a refresh cycle."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# ============================================================================
# API Request/Response Models
# ============================================================================


class RefreshResponse(BaseModel):
    """Response model for POST /api/refresh."""

    status: RefreshStatus = Field(..., description="Cycle outcome")
    attempts: int = Field(..., ge=0, description="Attempts used by the cycle")
    snapshot: Snapshot | None = Field(None, description="Snapshot saved on success")
    error: str | None = Field(None, description="Failure detail")
    timestamp: datetime = Field(default_factory=datetime.now, description="Completion timestamp")


class ErrorResponse(BaseModel):
    """Response model for errors."""

    success: bool = Field(False, description="Operation success status")
    error: str = Field(..., description="Error message")
    detail: str | None = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status (healthy/degraded/unhealthy)")
    device_configured: bool = Field(..., description="Whether a device identity is configured")
    refresh_in_progress: bool = Field(False, description="Whether a refresh cycle is running")
    last_update: datetime | None = Field(None, description="Capture time of the cached snapshot")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "device_configured": True,
                "refresh_in_progress": False,
                "last_update": "2026-01-13T10:30:00",
            }
        }
    )
