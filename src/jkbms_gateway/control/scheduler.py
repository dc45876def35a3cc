"""Periodic and on-demand refresh triggering."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from jkbms_gateway.control.refresh import RefreshOrchestrator, RefreshResult
from jkbms_gateway.protocol.constants import REFRESH_INTERVAL

logger = logging.getLogger(__name__)

IdentityResolver = Callable[[], Awaitable[str | None]]


class RefreshScheduler:
    """Runs refresh cycles periodically and on demand.

    Only one cycle is ever in flight: a trigger arriving while a cycle runs
    joins that cycle instead of opening a second connection.
    """

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        resolve_identity: IdentityResolver,
        interval: float = REFRESH_INTERVAL,
        can_run: Callable[[], bool] | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            orchestrator: Orchestrator running the cycles.
            resolve_identity: Returns the device identity at trigger time.
            interval: Seconds between periodic cycles.
            can_run: Precondition checked before each periodic cycle
                (e.g. host battery not low). Always true if None.
        """
        self._orchestrator = orchestrator
        self._resolve_identity = resolve_identity
        self._interval = interval
        self._can_run = can_run
        self._periodic_task: asyncio.Task | None = None
        self._current: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        """Whether periodic refresh is active."""
        return self._periodic_task is not None and not self._periodic_task.done()

    @property
    def in_progress(self) -> bool:
        """Whether a refresh cycle is in flight."""
        return self._current is not None and not self._current.done()

    async def start(self, run_immediately: bool = True) -> None:
        """Start periodic refresh."""
        if self.running:
            logger.warning("Periodic refresh already running")
            return

        self._periodic_task = asyncio.create_task(self._periodic_loop(run_immediately))
        logger.info("Periodic refresh scheduled every %.0fs", self._interval)

    async def stop(self) -> None:
        """Cancel periodic refresh and any in-flight cycle."""
        for task in (self._periodic_task, self._current):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._periodic_task = None
        self._current = None
        logger.info("Refresh scheduling cancelled")

    async def trigger_now(self) -> RefreshResult:
        """Run a refresh now, or join the one already running."""
        if self.in_progress:
            logger.info("Refresh already in progress, joining it")
        else:
            self._current = asyncio.create_task(self._run_cycle())

        assert self._current is not None
        # Shielded so a cancelled caller does not abort the shared cycle
        return await asyncio.shield(self._current)

    async def _run_cycle(self) -> RefreshResult:
        identity = await self._resolve_identity()
        return await self._orchestrator.run_cycle(identity)

    async def _periodic_loop(self, run_immediately: bool) -> None:
        if not run_immediately:
            await asyncio.sleep(self._interval)

        while True:
            try:
                if self._can_run is None or self._can_run():
                    result = await self.trigger_now()
                    logger.info("Periodic refresh finished: %s", result.status.value)
                else:
                    logger.info("Refresh precondition not met, skipping this interval")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Periodic refresh error: %s", e)

            await asyncio.sleep(self._interval)
