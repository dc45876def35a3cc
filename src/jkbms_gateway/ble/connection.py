"""BLE transport for JK BMS devices using bleak.

The BMS exposes a single characteristic (0xFFE1) used both for
notifications and for write-without-response commands.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.exc import BleakError

from jkbms_gateway.core.errors import TransportError
from jkbms_gateway.protocol.constants import CHARACTERISTIC_UUID, CONNECT_TIMEOUT, NOTIFY_SETTLE_DELAY

logger = logging.getLogger(__name__)

_QUEUE_MAXSIZE = 256


class BleakTransport:
    """Notification-driven BLE link to one BMS.

    Notifications are pushed onto an asyncio.Queue from the bleak callback
    and consumed through ``chunks()``. A ``None`` sentinel marks the end of
    the connection.
    """

    def __init__(self, characteristic: str = CHARACTERISTIC_UUID) -> None:
        self._characteristic = characteristic
        self._client: BleakClient | None = None
        self._connecting: BleakClient | None = None
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=_QUEUE_MAXSIZE)
        self._stats = {
            "chunks_read": 0,
            "chunks_dropped": 0,
            "bytes_read": 0,
            "bytes_written": 0,
        }

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    @property
    def stats(self) -> dict:
        return self._stats.copy()

    # -- bleak callbacks -------------------------------------------------------

    def _on_notify(self, _sender: BleakGATTCharacteristic, data: bytearray) -> None:
        self._stats["chunks_read"] += 1
        self._stats["bytes_read"] += len(data)
        if self._queue.full():
            # Only happens while the reader is paused; drop oldest.
            try:
                self._queue.get_nowait()
                self._stats["chunks_dropped"] += 1
            except asyncio.QueueEmpty:
                pass
        try:
            self._queue.put_nowait(bytes(data))
        except asyncio.QueueFull:
            pass

    def _on_disconnect(self, client: BleakClient) -> None:
        if client is not self._client and client is not self._connecting:
            logger.debug("Ignoring disconnect from a previous connection")
            return
        logger.warning("BLE device disconnected")
        self._push_sentinel()

    def _push_sentinel(self) -> None:
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(None)

    # -- Transport API ---------------------------------------------------------

    async def connect(self, identity: str, timeout: float = CONNECT_TIMEOUT) -> None:
        """Connect to the BMS at BLE address identity and enable notifications.

        Raises:
            TransportError: On timeout or any BLE failure.
        """
        await self.disconnect()

        # Fresh queue per connection so stale chunks never leak across sessions
        self._queue = asyncio.Queue(maxsize=_QUEUE_MAXSIZE)
        client = BleakClient(identity, disconnected_callback=self._on_disconnect, timeout=timeout)

        logger.info("Connecting to %s", identity)
        self._connecting = client
        try:
            await asyncio.wait_for(client.connect(), timeout=timeout)
            await client.start_notify(self._characteristic, self._on_notify)
            await asyncio.sleep(NOTIFY_SETTLE_DELAY)
        except (TimeoutError, BleakError, OSError) as e:
            logger.error("Failed to connect to %s: %r", identity, e)
            try:
                await client.disconnect()
            except (BleakError, OSError) as disconnect_error:
                logger.debug("Cleanup disconnect failed: %r", disconnect_error)
            raise TransportError(f"Failed to connect to {identity}: {e!r}") from e
        finally:
            self._connecting = None

        self._client = client
        logger.info("Connected to %s, notifications enabled", identity)

    async def send(self, data: bytes) -> None:
        if not self.connected or self._client is None:
            raise TransportError("Not connected")

        try:
            await self._client.write_gatt_char(self._characteristic, data, response=False)
        except (BleakError, OSError) as e:
            logger.error("Write error: %r", e)
            raise TransportError(f"Write failed: {e!r}") from e

        self._stats["bytes_written"] += len(data)
        logger.debug("Command written: %s", data.hex())

    async def disconnect(self) -> None:
        client = self._client
        if client is None:
            return

        self._client = None
        logger.info("Disconnecting")
        try:
            if client.is_connected:
                await client.stop_notify(self._characteristic)
            await client.disconnect()
        except (BleakError, OSError) as e:
            logger.warning("Error during disconnect: %r", e)
        finally:
            self._push_sentinel()

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk
