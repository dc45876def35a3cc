#!/usr/bin/env python3
"""Decode and print frames from a captured BLE notification dump."""

import argparse
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from jkbms_gateway.core.errors import DecodeError
from jkbms_gateway.core.models import CellTelemetry
from jkbms_gateway.protocol.assembler import StreamAssembler
from jkbms_gateway.protocol.codec import JK02Codec
from jkbms_gateway.protocol.constants import RecordType
from jkbms_gateway.protocol.frames import Frame


def get_type_name(record_type: int) -> str:
    """Get human-readable record type name."""
    try:
        return RecordType(record_type).name
    except ValueError:
        return f"UNKNOWN(0x{record_type:02X})"


def parse_type(value: str) -> int:
    """Parse a record type given by name or number (e.g. CELL_TELEMETRY, 0x02)."""
    try:
        return RecordType[value.upper()]
    except KeyError:
        return int(value, 0)


def format_data_hex(data: bytes, max_len: int = 64) -> str:
    """Format data as hex string, truncating if needed."""
    if len(data) <= max_len:
        return data.hex(" ")
    return data[:max_len].hex(" ") + f"... (+{len(data) - max_len} bytes)"


def extract_frames(data: bytes, chunk_size: int = 20) -> tuple[list[Frame], dict]:
    """Run captured bytes through the assembler in BLE-sized chunks."""
    assembler = StreamAssembler()
    frames: list[Frame] = []
    for offset in range(0, len(data), chunk_size):
        frames.extend(assembler.feed(data[offset : offset + chunk_size]))
    return frames, assembler.stats


def summarize(record) -> str:
    """One-line summary of a decoded record."""
    if isinstance(record, CellTelemetry):
        cells = " ".join(f"{v:.3f}" for v in record.cell_voltage)
        return (
            f"{record.battery_voltage:.2f}V {record.battery_current:+.2f}A "
            f"SoC={record.remain_percent}% cells=[{cells}]"
        )
    return f"{record.device_model} hw={record.hardware_version} sw={record.software_version} sn={record.serial_number}"


def print_frame(idx: int, frame: Frame, codec: JK02Codec, verbose: bool = False):
    """Print a single frame."""
    status = "ok" if frame.checksum_valid else "BAD CHECKSUM"
    print(f"[{idx:4d}] {get_type_name(frame.record_type)} counter={frame.data[5]} checksum={status}")

    if frame.kind in (RecordType.CELL_TELEMETRY, RecordType.DEVICE_INFO):
        try:
            record = codec.decode(frame.data)
        except DecodeError as e:
            print(f"       decode failed: {e}")
        else:
            print(f"       {summarize(record)}")
            if verbose:
                for name, value in record.model_dump().items():
                    print(f"       {name}: {value}")
    elif verbose:
        print(f"       data: {format_data_hex(frame.data[6:])}")

    print()


def main():
    parser = argparse.ArgumentParser(description="Decode frames from a captured JK BMS notification dump")
    parser.add_argument("input", help="Input binary file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show every decoded field")
    parser.add_argument("--limit", "-n", type=int, default=0, help="Limit number of frames to show (0=all)")
    parser.add_argument("--type", "-t", type=parse_type, help="Filter by record type (e.g., CELL_TELEMETRY, 0x02)")
    parser.add_argument("--stats", "-s", action="store_true", help="Show statistics only")
    parser.add_argument("--json", "-j", action="store_true", help="Print decoded records as JSON lines")
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}")
        sys.exit(1)

    data = input_path.read_bytes()
    frames, stats = extract_frames(data)
    codec = JK02Codec()

    if args.type is not None:
        frames = [f for f in frames if f.record_type == args.type]
    if args.limit:
        frames = frames[: args.limit]

    if args.json:
        for frame in frames:
            try:
                print(codec.decode(frame.data).model_dump_json())
            except DecodeError:
                continue
        return

    print(f"Loaded {len(data):,} bytes from {input_path}")
    print(f"Extracted {stats['frames_read']} frames, discarded {stats['bytes_discarded']} bytes")
    print()

    if args.stats:
        type_counts: dict[int, int] = {}
        bad_checksums = 0
        for frame in frames:
            type_counts[frame.record_type] = type_counts.get(frame.record_type, 0) + 1
            if not frame.checksum_valid:
                bad_checksums += 1

        print("Record types:")
        for record_type, count in sorted(type_counts.items()):
            print(f"  {get_type_name(record_type):20s} {count:6d}")
        print(f"Bad checksums: {bad_checksums}")
        return

    for idx, frame in enumerate(frames):
        print_frame(idx, frame, codec, args.verbose)


if __name__ == "__main__":
    main()
