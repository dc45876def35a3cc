"""Unit tests for the JK02 payload codec."""

import struct

import pytest

from jkbms_gateway.core.errors import DecodeError
from jkbms_gateway.core.models import CellTelemetry, DeviceInfo
from jkbms_gateway.protocol.checksum import calculate_checksum
from jkbms_gateway.protocol.codec import JK02Codec, parse_cell_data, parse_device_info
from jkbms_gateway.protocol.constants import CHECKSUM_OFFSET
from jkbms_gateway.protocol.frames import build_frame
from tests.fakes import make_cell_frame, make_device_info_frame, make_settings_frame


def refresh_checksum(frame: bytearray) -> bytes:
    frame[CHECKSUM_OFFSET] = calculate_checksum(frame[:CHECKSUM_OFFSET])
    return bytes(frame)


class TestParseCellData:
    """Tests for cell data decoding."""

    def test_cell_values(self):
        """Test per-cell voltages and resistances."""
        cell = parse_cell_data(make_cell_frame())

        assert cell.cell_voltage == pytest.approx([3.312, 3.314, 3.311, 3.313])
        assert cell.cell_resistance == pytest.approx([0.052] * 4)
        assert cell.average_cell_voltage == pytest.approx(3.312)
        assert cell.delta_cell_voltage == pytest.approx(0.003)

    def test_battery_values(self):
        """Test pack level measurements."""
        cell = parse_cell_data(make_cell_frame())

        assert cell.battery_voltage == pytest.approx(13.25)
        assert cell.battery_current == pytest.approx(5.0)
        assert cell.battery_power == pytest.approx(66.25)
        assert cell.battery_temperature == pytest.approx([21.5, -1.8])
        assert cell.mosfet_temperature == pytest.approx(24.1)
        assert cell.balance_current == pytest.approx(0.0)

    def test_capacity_values(self):
        """Test state of charge, capacities and counters."""
        cell = parse_cell_data(make_cell_frame(soc=64))

        assert cell.remain_percent == 64
        assert cell.remain_capacity == pytest.approx(218.4)
        assert cell.nominal_capacity == pytest.approx(280.0)
        assert cell.cycle_count == 41
        assert cell.cycle_capacity == pytest.approx(11890.2)
        assert cell.up_time == 3_456_000

    def test_discharge_current_is_negative(self):
        """Test signed current decoding."""
        cell = parse_cell_data(make_cell_frame(current_ma=-2500))
        assert cell.battery_current == pytest.approx(-2.5)

    def test_sixteen_cells(self):
        """Test cell count follows the enabled-cell mask."""
        cell = parse_cell_data(make_cell_frame(cells_mv=tuple([3300] * 16)))
        assert len(cell.cell_voltage) == 16

    def test_zero_mask_falls_back_to_voltages(self):
        """Test cells are counted up to the last non-zero voltage without a mask."""
        frame = bytearray(make_cell_frame())
        struct.pack_into("<I", frame, 54, 0)

        cell = parse_cell_data(refresh_checksum(frame))
        assert len(cell.cell_voltage) == 4

    def test_bad_checksum(self):
        """Test checksum mismatch raises DecodeError."""
        frame = bytearray(make_cell_frame())
        frame[CHECKSUM_OFFSET] ^= 0x01

        with pytest.raises(DecodeError, match="checksum"):
            parse_cell_data(bytes(frame))

    def test_short_frame(self):
        """Test truncated frames raise DecodeError."""
        with pytest.raises(DecodeError):
            parse_cell_data(make_cell_frame()[:200])

    def test_wrong_record_type(self):
        """Test a device info frame is not parsed as cell data."""
        with pytest.raises(DecodeError):
            parse_cell_data(make_device_info_frame())

    def test_out_of_range_soc(self):
        """Test model validation failures surface as DecodeError."""
        with pytest.raises(DecodeError):
            parse_cell_data(make_cell_frame(soc=150))


class TestParseDeviceInfo:
    """Tests for device info decoding."""

    def test_strings(self):
        """Test NUL-terminated string fields."""
        info = parse_device_info(make_device_info_frame())

        assert info.device_model == "BK-BLE-1.0"
        assert info.hardware_version == "11.A"
        assert info.software_version == "11.XW"
        assert info.device_name == "JK_B2A24S15P"
        assert info.serial_number == "3050213227"
        assert info.passcode == ""

    def test_counters(self):
        """Test uptime and power-on counter."""
        info = parse_device_info(make_device_info_frame())

        assert info.up_time == 1_234_567
        assert info.poweron_times == 7

    def test_wrong_record_type(self):
        """Test a cell frame is not parsed as device info."""
        with pytest.raises(DecodeError):
            parse_device_info(make_cell_frame())


class TestJK02Codec:
    """Tests for the codec facade."""

    def test_decode_dispatches_on_type(self):
        """Test decode picks the parser by record type."""
        codec = JK02Codec()

        assert isinstance(codec.decode(make_cell_frame()), CellTelemetry)
        assert isinstance(codec.decode(make_device_info_frame()), DeviceInfo)

    def test_decode_settings_unsupported(self):
        """Test settings frames have no decoder."""
        with pytest.raises(DecodeError):
            JK02Codec().decode(make_settings_frame())

    def test_decode_unknown_type(self):
        """Test unknown record types raise DecodeError."""
        with pytest.raises(DecodeError):
            JK02Codec().decode(build_frame(0x42))

    def test_decode_tiny_input(self):
        """Test input too short to carry a type."""
        with pytest.raises(DecodeError):
            JK02Codec().decode(b"\x55\xaa")

    def test_encode_requests(self):
        """Test request commands carry the right command byte."""
        codec = JK02Codec()

        assert codec.encode_cell_telemetry_request()[4] == 0x96
        assert codec.encode_device_info_request()[4] == 0x97
        assert len(codec.encode_cell_telemetry_request()) == 20
