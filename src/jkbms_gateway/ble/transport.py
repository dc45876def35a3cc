"""Transport interface consumed by sessions."""

from collections.abc import AsyncIterator
from typing import Protocol


class Transport(Protocol):
    """Byte-stream link to one BMS device.

    Chunks arrive in order and without loss for the lifetime of one
    connection, but carry no message boundaries.
    """

    @property
    def connected(self) -> bool:
        """Whether the link is currently up."""
        ...

    async def connect(self, identity: str, timeout: float) -> None:
        """Open the link to the device identified by identity.

        Raises:
            TransportError: If the link cannot be established in time.
        """
        ...

    async def send(self, data: bytes) -> None:
        """Write an outbound payload without waiting for a reply.

        Raises:
            TransportError: If the link is down or the write fails.
        """
        ...

    async def disconnect(self) -> None:
        """Tear down the link. Safe to call when already disconnected."""
        ...

    def chunks(self) -> AsyncIterator[bytes]:
        """Iterate over inbound chunks until the link goes down."""
        ...
