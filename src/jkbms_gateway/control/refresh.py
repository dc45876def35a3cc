"""Refresh orchestrator.

Runs one refresh cycle against the configured BMS: connect, best-effort
device info, cell telemetry, cache, disconnect. Failed attempts are
retried with a linear backoff (base * attempt). The session is closed
after every attempt, whatever its outcome.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from jkbms_gateway.core.cache import SnapshotCache
from jkbms_gateway.core.errors import BmsError, NoDeviceConfigured, RequestTimeout, RetryExhausted, TransportError
from jkbms_gateway.core.models import RefreshStatus, Snapshot
from jkbms_gateway.protocol.constants import BACKOFF_BASE, CYCLE_TIMEOUT, MAX_ATTEMPTS
from jkbms_gateway.protocol.session import Session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class RefreshState(str, Enum):
    """Orchestrator state machine positions."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AUX_FETCH = "aux_fetch"
    PRIMARY_FETCH = "primary_fetch"
    CACHING = "caching"
    BACKOFF = "backoff"
    CLOSED = "closed"


@dataclass
class RefreshResult:
    """Outcome of one refresh cycle."""

    status: RefreshStatus
    attempts: int = 0
    snapshot: Snapshot | None = None
    error: BmsError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == RefreshStatus.SUCCESS


class RefreshOrchestrator:
    """Connects, fetches, caches and disconnects, with bounded retries."""

    def __init__(
        self,
        session_factory: SessionFactory,
        cache: SnapshotCache,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE,
        cycle_timeout: float = CYCLE_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            session_factory: Creates a fresh, unopened Session per attempt.
            cache: Cache receiving the snapshot on success.
            max_attempts: Attempts per cycle before giving up.
            backoff_base: Backoff after attempt n is backoff_base * n seconds.
            cycle_timeout: Upper bound for one connect-request-disconnect attempt.
            sleep: Sleep coroutine used for backoff (injectable for tests).
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self._session_factory = session_factory
        self._cache = cache
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._cycle_timeout = cycle_timeout
        self._sleep = sleep
        self._state = RefreshState.IDLE
        self._last_result: RefreshResult | None = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def last_result(self) -> RefreshResult | None:
        return self._last_result

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number attempt."""
        return self._backoff_base * attempt

    async def run_cycle(self, identity: str | None) -> RefreshResult:
        """Run one refresh cycle against identity.

        Args:
            identity: Device address; None or empty skips the cycle.

        Returns:
            RefreshResult with status success, failed (RetryExhausted) or
            skipped (NoDeviceConfigured).
        """
        if not identity:
            logger.debug("No device selected, skipping refresh")
            return self._finish(RefreshResult(RefreshStatus.SKIPPED, error=NoDeviceConfigured("No device selected")))

        last_error: BmsError | None = None

        for attempt in range(1, self._max_attempts + 1):
            session = self._session_factory()
            logger.debug("Refresh attempt %d/%d for %s", attempt, self._max_attempts, identity)
            try:
                snapshot = await asyncio.wait_for(self._attempt(session, identity), timeout=self._cycle_timeout)
            except (TransportError, RequestTimeout) as e:
                last_error = e
                logger.warning("Refresh attempt %d/%d failed: %s", attempt, self._max_attempts, e)
            except TimeoutError:
                last_error = RequestTimeout(f"Refresh attempt exceeded {self._cycle_timeout}s")
                logger.warning("Refresh attempt %d/%d timed out", attempt, self._max_attempts)
            else:
                logger.info("Refresh complete after %d attempt(s)", attempt)
                return self._finish(RefreshResult(RefreshStatus.SUCCESS, attempts=attempt, snapshot=snapshot))
            finally:
                await session.close()
                self._state = RefreshState.CLOSED

            if attempt < self._max_attempts:
                delay = self.backoff_delay(attempt)
                self._state = RefreshState.BACKOFF
                logger.info("Retrying refresh in %.1fs", delay)
                await self._sleep(delay)

        error = RetryExhausted(self._max_attempts, last_error)
        logger.error("%s", error)
        return self._finish(RefreshResult(RefreshStatus.FAILED, attempts=self._max_attempts, error=error))

    async def _attempt(self, session: Session, identity: str) -> Snapshot:
        self._state = RefreshState.CONNECTING
        await session.open(identity)

        self._state = RefreshState.AUX_FETCH
        device_info = None
        try:
            device_info = await session.request_device_info()
        except (TransportError, RequestTimeout) as e:
            logger.debug("Device info unavailable: %s", e)

        self._state = RefreshState.PRIMARY_FETCH
        cell_data = await session.request_cell_telemetry()

        self._state = RefreshState.CACHING
        snapshot = Snapshot(cell_data=cell_data, device_info=device_info)
        await self._cache.save(snapshot)
        return snapshot

    def _finish(self, result: RefreshResult) -> RefreshResult:
        self._last_result = result
        self._state = RefreshState.IDLE
        return result
