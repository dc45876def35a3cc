"""Unit tests for the stream assembler."""

import pytest

from jkbms_gateway.protocol.assembler import StreamAssembler
from jkbms_gateway.protocol.constants import FRAME_SIZE, HEADER_TAIL_KEEP, RESPONSE_HEADER, RecordType
from tests.fakes import make_cell_frame, make_device_info_frame, make_settings_frame, split

GARBAGE = b"AT\r\nOK\r\n\x00\x13heartbeat"


def feed_all(assembler: StreamAssembler, chunks: list[bytes]) -> list[bytes]:
    frames = []
    for chunk in chunks:
        frames.extend(frame.data for frame in assembler.feed(chunk))
    return frames


def chunked(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


class TestStreamAssembler:
    """Tests for frame reassembly."""

    def test_single_frame(self):
        """Test one frame delivered in one chunk."""
        assembler = StreamAssembler()
        frames = list(assembler.feed(make_cell_frame()))

        assert len(frames) == 1
        assert frames[0].kind == RecordType.CELL_TELEMETRY
        assert assembler.buffered == 0

    def test_frame_in_three_chunks(self):
        """Test a frame split into three arbitrary chunks yields exactly once."""
        assembler = StreamAssembler()
        first, second, third = split(make_cell_frame(), 17, 211)

        assert list(assembler.feed(first)) == []
        assert list(assembler.feed(second)) == []
        frames = list(assembler.feed(third))

        assert len(frames) == 1
        assert frames[0].data == make_cell_frame()

    @pytest.mark.parametrize("size", [1, 3, 7, 20, 128, 299, 300, 301, 1000])
    def test_chunk_boundaries_do_not_matter(self, size):
        """Test the same stream yields the same frames regardless of chunking."""
        expected = [
            make_cell_frame(counter=1),
            make_device_info_frame(),
            make_settings_frame(),
            make_cell_frame(counter=2),
        ]
        stream = GARBAGE + expected[0] + expected[1] + GARBAGE + expected[2] + expected[3] + GARBAGE

        frames = feed_all(StreamAssembler(), chunked(stream, size))

        assert frames == expected

    def test_several_frames_in_one_chunk(self):
        """Test back-to-back frames in a single chunk."""
        data = make_cell_frame(counter=1) + make_cell_frame(counter=2) + make_device_info_frame()
        frames = list(StreamAssembler().feed(data))

        assert [f.record_type for f in frames] == [0x02, 0x02, 0x03]

    def test_garbage_before_header_is_discarded(self):
        """Test leading junk, including a partial header, is skipped."""
        assembler = StreamAssembler()
        frames = feed_all(assembler, [GARBAGE + RESPONSE_HEADER[:3] + GARBAGE, make_cell_frame()])

        assert frames == [make_cell_frame()]
        assert assembler.stats["bytes_discarded"] > 0

    def test_header_split_across_chunks(self):
        """Test a header straddling a chunk boundary is recognized."""
        frame = make_cell_frame()
        assembler = StreamAssembler()

        assert list(assembler.feed(GARBAGE + frame[:2])) == []
        assert [f.data for f in assembler.feed(frame[2:])] == [frame]
        assert assembler.stats["frames_read"] == 1

    def test_header_split_after_three_bytes(self):
        """Test the last three bytes survive when no header is present."""
        frame = make_cell_frame()
        assembler = StreamAssembler()

        assert list(assembler.feed(GARBAGE * 10 + frame[:3])) == []
        assert assembler.buffered == HEADER_TAIL_KEEP

        frames = list(assembler.feed(frame[3:]))
        assert [f.data for f in frames] == [frame]

    def test_garbage_only_keeps_bounded_tail(self):
        """Test pure garbage never accumulates."""
        assembler = StreamAssembler()
        for _ in range(100):
            assert list(assembler.feed(GARBAGE * 20)) == []
            assert assembler.buffered <= HEADER_TAIL_KEEP

    def test_buffer_stays_bounded(self):
        """Test memory stays bounded with frames and garbage interleaved."""
        assembler = StreamAssembler()
        stream = (GARBAGE + make_cell_frame() + GARBAGE * 3 + make_device_info_frame()[:150]) * 20

        for chunk in chunked(stream, 97):
            list(assembler.feed(chunk))
            assert assembler.buffered < 2 * FRAME_SIZE

    def test_unconsumed_frames_stay_buffered(self):
        """Test frames left in a partially consumed iterator come out next time."""
        first, second = make_cell_frame(counter=1), make_cell_frame(counter=2)
        assembler = StreamAssembler()

        frames = assembler.feed(first + second)
        assert next(frames).data == first

        assert [f.data for f in assembler.feed(b"")] == [second]

    def test_undrained_garbage_stays_bounded(self):
        """Test headerless input is trimmed even when the iterator is never consumed."""
        assembler = StreamAssembler()
        for _ in range(50):
            assembler.feed(b"\x00" * 1000)

        assert assembler.buffered <= HEADER_TAIL_KEEP
        assert assembler.stats["bytes_discarded"] == 50 * 1000 - HEADER_TAIL_KEEP

    def test_overflow_valve_trims_undrained_frames(self):
        """Test a backlog of undrained frames is cut back to the trailing two frames."""
        frames = [make_cell_frame(counter=i) for i in range(5)]
        assembler = StreamAssembler()

        assembler.feed(b"".join(frames))

        assert assembler.stats["overflows"] == 1
        assert assembler.buffered <= 2 * FRAME_SIZE
        assert [f.data for f in assembler.feed(b"")] == frames[-2:]

    def test_overflow_valve_idle_when_drained(self):
        """Test a consumer that drains every chunk never trips the valve."""
        assembler = StreamAssembler()
        stream = (make_cell_frame() + GARBAGE) * 10

        frames = feed_all(assembler, chunked(stream, 20))

        assert len(frames) == 10
        assert assembler.stats["overflows"] == 0

    def test_stats(self):
        """Test byte and frame counters."""
        assembler = StreamAssembler()
        list(assembler.feed(b"xx" + make_cell_frame()))

        stats = assembler.stats
        assert stats["bytes_read"] == FRAME_SIZE + 2
        assert stats["frames_read"] == 1
        assert stats["bytes_discarded"] == 2
        assert stats["overflows"] == 0

    def test_reset(self):
        """Test reset drops partial data."""
        assembler = StreamAssembler()
        list(assembler.feed(make_cell_frame()[:100]))
        assert assembler.buffered == 100

        assembler.reset()
        assert assembler.buffered == 0
