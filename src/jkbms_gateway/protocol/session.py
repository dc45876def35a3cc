"""Session: one transport connection plus its frame pipeline.

Owns the reader task that feeds the stream assembler, dispatches frames
and fills the per-type sinks, and correlates requests with the next
decoded record of the requested type.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from jkbms_gateway.ble.transport import Transport
from jkbms_gateway.core.errors import TransportError
from jkbms_gateway.core.models import CellTelemetry, DeviceInfo
from jkbms_gateway.protocol.assembler import StreamAssembler
from jkbms_gateway.protocol.codec import Codec, JK02Codec, Record
from jkbms_gateway.protocol.constants import CONNECT_TIMEOUT, DECODED_RECORD_TYPES, REQUEST_TIMEOUT, RecordType
from jkbms_gateway.protocol.dispatcher import FrameDispatcher
from jkbms_gateway.protocol.sink import Sink

logger = logging.getLogger(__name__)

RecordHook = Callable[[RecordType, Record], Awaitable[None]]


class Session:
    """Request/response session against one BMS.

    Correlation is "next value of that type": a request writes its command
    and then takes from the type's sink, so unsolicited frames emitted by
    the device also satisfy waiting requests. Sinks, assembler and
    dispatcher are recreated on every ``open()``.
    """

    def __init__(
        self,
        transport: Transport,
        codec: Codec | None = None,
        request_timeout: float = REQUEST_TIMEOUT,
        connect_timeout: float = CONNECT_TIMEOUT,
        on_record: RecordHook | None = None,
    ):
        """
        Initialize session.

        Args:
            transport: Link to the device.
            codec: Frame codec (JK02Codec by default).
            request_timeout: Default seconds to wait for a response.
            connect_timeout: Seconds allowed for transport connect.
            on_record: Async hook awaited by the reader after each decoded record.
        """
        self._transport = transport
        self._codec = codec if codec is not None else JK02Codec()
        self._request_timeout = request_timeout
        self._connect_timeout = connect_timeout
        self._on_record = on_record

        self._identity: str | None = None
        self._assembler: StreamAssembler | None = None
        self._dispatcher: FrameDispatcher | None = None
        self._sinks: dict[RecordType, Sink] = {}
        self._reader_task: asyncio.Task | None = None
        self._open = False

    @property
    def identity(self) -> str | None:
        """Identity passed to the last ``open()``."""
        return self._identity

    @property
    def is_open(self) -> bool:
        """Whether the session is open and its transport connected."""
        return self._open and self._transport.connected

    @property
    def paused(self) -> bool:
        """Whether the session is open but not consuming chunks."""
        return self._open and self._reader_task is None

    @property
    def assembler(self) -> StreamAssembler | None:
        return self._assembler

    @property
    def dispatcher(self) -> FrameDispatcher | None:
        return self._dispatcher

    async def open(self, identity: str) -> None:
        """Connect to identity and start consuming its chunk stream.

        Raises:
            TransportError: If the transport cannot connect.
        """
        await self.close()

        await self._transport.connect(identity, timeout=self._connect_timeout)

        self._identity = identity
        self._sinks = {kind: Sink(kind.name) for kind in DECODED_RECORD_TYPES}
        self._assembler = StreamAssembler()
        self._dispatcher = FrameDispatcher(self._codec, self._sinks)
        self._open = True
        self._start_reader()
        logger.info("Session opened to %s", identity)

    async def close(self) -> None:
        """Stop the reader, fail pending requests and disconnect."""
        was_open = self._open
        self._open = False
        await self._stop_reader()

        for sink in self._sinks.values():
            sink.close(TransportError("Session closed"))

        try:
            await self._transport.disconnect()
        except TransportError as e:
            logger.warning("Error disconnecting transport: %s", e)

        if was_open:
            logger.info("Session to %s closed", self._identity)

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def pause(self) -> None:
        """Stop consuming chunks without disconnecting."""
        if not self._open:
            return
        await self._stop_reader()
        logger.info("Session paused")

    def resume(self) -> None:
        """Resume consuming chunks after ``pause()``."""
        if not self._open:
            raise TransportError("Session not open")
        if self._reader_task is None:
            self._start_reader()
            logger.info("Session resumed")

    def peek(self, record_type: RecordType) -> Record | None:
        """Latest decoded record of record_type without consuming it."""
        sink = self._sinks.get(record_type)
        return sink.peek() if sink is not None else None

    async def send_request(self, record_type: RecordType) -> None:
        """Send the command for record_type without waiting for the reply.

        The device keeps streaming cell telemetry after a cell request, so
        this is enough to start a subscription feed.

        Raises:
            ValueError: If record_type has no request command.
            TransportError: If the session is not open or the write fails.
        """
        if record_type == RecordType.CELL_TELEMETRY:
            command = self._codec.encode_cell_telemetry_request()
        elif record_type == RecordType.DEVICE_INFO:
            command = self._codec.encode_device_info_request()
        else:
            raise ValueError(f"No request command for {record_type!r}")

        if not self.is_open:
            raise TransportError("Session not open")

        await self._transport.send(command)

    async def request(self, record_type: RecordType, timeout: float | None = None) -> Record:
        """Send the command for record_type and await the next record of that type.

        Args:
            record_type: CELL_TELEMETRY or DEVICE_INFO.
            timeout: Seconds to wait (session default if None).

        Returns:
            Decoded record.

        Raises:
            ValueError: If record_type has no request command.
            TransportError: If the session is not open or the link drops.
            RequestTimeout: If no record arrives in time.
        """
        await self.send_request(record_type)
        return await self._sinks[record_type].take(self._request_timeout if timeout is None else timeout)

    async def request_cell_telemetry(self, timeout: float | None = None) -> CellTelemetry:
        return await self.request(RecordType.CELL_TELEMETRY, timeout)  # type: ignore[return-value]

    async def request_device_info(self, timeout: float | None = None) -> DeviceInfo:
        return await self.request(RecordType.DEVICE_INFO, timeout)  # type: ignore[return-value]

    async def telemetry(self) -> AsyncIterator[CellTelemetry]:
        """Subscription feed of cell telemetry records.

        Yields every record consumed from the cell telemetry sink until the
        session closes or the link drops. Requests and subscribers share the
        sink, so a record consumed by a request while the subscriber is busy
        is not seen by it.
        """
        sink = self._sinks.get(RecordType.CELL_TELEMETRY)
        if sink is None or not self._open:
            raise TransportError("Session not open")

        while True:
            try:
                yield await sink.take()
            except TransportError:
                return

    # -- reader task ---------------------------------------------------------

    def _start_reader(self) -> None:
        self._reader_task = asyncio.create_task(self._read_loop())

    async def _stop_reader(self) -> None:
        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

    async def _read_loop(self) -> None:
        """Feed chunks through assembler and dispatcher, one at a time."""
        assert self._assembler is not None and self._dispatcher is not None

        try:
            async for chunk in self._transport.chunks():
                for frame in self._assembler.feed(chunk):
                    record = self._dispatcher.dispatch(frame)
                    if record is not None and self._on_record is not None and frame.kind is not None:
                        try:
                            await self._on_record(frame.kind, record)
                        except Exception as e:
                            logger.error("Record hook failed: %s", e)
        except TransportError as e:
            logger.warning("Transport error in reader: %s", e)

        # Stream ended without cancellation: the link went down
        if self._open:
            logger.warning("Connection to %s lost", self._identity)
            for sink in self._sinks.values():
                sink.close(TransportError("Disconnected"))
