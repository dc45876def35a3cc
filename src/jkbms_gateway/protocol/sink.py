"""Single-slot, latest-wins holding cell for decoded records."""

import asyncio
import logging
from typing import Generic, TypeVar

from jkbms_gateway.core.errors import RequestTimeout, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Sink(Generic[T]):
    """Holds at most one pending value of one record type.

    Delivery policy:
    - ``put()`` with waiters present resolves every waiter with the same
      value, which is then consumed.
    - ``put()`` with no waiters stores the value as pending, replacing any
      unconsumed one.
    - ``take()`` consumes a pending value immediately, otherwise waits for
      the next ``put()``.
    - ``peek()`` returns the latest value ever put, without consuming.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._pending: T | None = None
        self._has_pending = False
        self._latest: T | None = None
        self._waiters: list[asyncio.Future] = []
        self._closed_error: BaseException | None = None

    @property
    def has_pending(self) -> bool:
        """Whether an unconsumed value is held."""
        return self._has_pending

    @property
    def waiting(self) -> int:
        """Number of callers currently awaiting a value."""
        return sum(1 for w in self._waiters if not w.done())

    def peek(self) -> T | None:
        """Latest value put into the sink, consumed or not."""
        return self._latest

    def put(self, value: T) -> None:
        """Publish a value."""
        if self._closed_error is not None:
            return

        self._latest = value
        waiters = [w for w in self._waiters if not w.done()]
        self._waiters.clear()

        if waiters:
            for waiter in waiters:
                waiter.set_result(value)
            self._pending = None
            self._has_pending = False
            return

        if self._has_pending:
            logger.debug("Sink %s: overwriting unconsumed value", self.name)
        self._pending = value
        self._has_pending = True

    async def take(self, timeout: float | None = None) -> T:
        """Consume the pending value, or wait for the next one.

        Args:
            timeout: Seconds to wait (None waits forever).

        Returns:
            The consumed value.

        Raises:
            RequestTimeout: If nothing arrives within timeout.
            TransportError: If the sink is closed, chained from the close error.
        """
        if self._closed_error is not None:
            raise self._closed()

        if self._has_pending:
            value = self._pending
            self._pending = None
            self._has_pending = False
            return value  # type: ignore[return-value]

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=timeout)
        except TimeoutError:
            raise RequestTimeout(f"No {self.name or 'record'} within {timeout}s") from None
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def close(self, error: BaseException) -> None:
        """Fail current and future waiters with a TransportError caused by error."""
        self._closed_error = error
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_exception(self._closed())
        self._waiters.clear()
        self._pending = None
        self._has_pending = False

    def _closed(self) -> TransportError:
        error = TransportError(f"{self.name or 'Sink'} closed: {self._closed_error}")
        error.__cause__ = self._closed_error
        return error
