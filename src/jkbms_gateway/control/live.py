"""Live monitoring over one long-lived session."""

import asyncio
import logging

from jkbms_gateway.control.refresh import SessionFactory
from jkbms_gateway.core.errors import DeviceBusy, RequestTimeout, TransportError
from jkbms_gateway.protocol.constants import RecordType
from jkbms_gateway.protocol.session import Session

logger = logging.getLogger(__name__)


class LiveMonitor:
    """Keeps a session open while a client follows the telemetry feed.

    At most one live session exists at a time. While it is active the
    device link is taken, so periodic refreshes are held off.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        """Whether a live session holds the device link."""
        return self._session is not None

    @property
    def paused(self) -> bool:
        return self._session is not None and self._session.paused

    async def start(self, identity: str) -> Session:
        """Open a live session to identity and start the device streaming.

        Device info is requested first, best effort; the cell request that
        follows makes the device emit telemetry continuously.

        Raises:
            DeviceBusy: If a live session is already active.
            TransportError: If the session cannot be opened.
        """
        async with self._lock:
            if self._session is not None:
                raise DeviceBusy("Live session already active")

            session = self._session_factory()
            try:
                await session.open(identity)
                try:
                    await session.request_device_info()
                except (TransportError, RequestTimeout) as e:
                    logger.debug("Device info unavailable: %s", e)
                await session.send_request(RecordType.CELL_TELEMETRY)
            except BaseException:
                await session.close()
                raise

            self._session = session
            logger.info("Live session started for %s", identity)
            return session

    async def stop(self) -> None:
        """Close the live session, if any."""
        async with self._lock:
            session, self._session = self._session, None
            if session is not None:
                await session.close()
                logger.info("Live session stopped")

    async def pause(self) -> None:
        """Stop consuming telemetry, keeping the device connected."""
        if self._session is None:
            raise TransportError("No live session")
        await self._session.pause()

    def resume(self) -> None:
        if self._session is None:
            raise TransportError("No live session")
        self._session.resume()
