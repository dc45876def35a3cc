"""Tests for periodic and on-demand refresh scheduling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from jkbms_gateway.control.refresh import RefreshOrchestrator, RefreshResult
from jkbms_gateway.control.scheduler import RefreshScheduler
from jkbms_gateway.core.models import RefreshStatus
from tests.fakes import TEST_ADDRESS, wait_until


def make_orchestrator(run_cycle=None) -> MagicMock:
    orchestrator = MagicMock(spec=RefreshOrchestrator)
    orchestrator.run_cycle = run_cycle or AsyncMock(return_value=RefreshResult(RefreshStatus.SUCCESS, attempts=1))
    return orchestrator


class TestTriggerNow:
    """Tests for on-demand refreshes."""

    @pytest.mark.asyncio
    async def test_trigger_runs_cycle_with_identity(self):
        """Test the identity is resolved when the refresh starts."""
        orchestrator = make_orchestrator()
        scheduler = RefreshScheduler(orchestrator, AsyncMock(return_value=TEST_ADDRESS))

        result = await scheduler.trigger_now()

        assert result.succeeded
        orchestrator.run_cycle.assert_awaited_once_with(TEST_ADDRESS)
        assert not scheduler.in_progress

    @pytest.mark.asyncio
    async def test_concurrent_triggers_share_one_cycle(self):
        """Test a trigger during a running cycle joins it."""
        release = asyncio.Event()
        expected = RefreshResult(RefreshStatus.SUCCESS, attempts=1)

        async def slow_cycle(_identity):
            await release.wait()
            return expected

        orchestrator = make_orchestrator(AsyncMock(side_effect=slow_cycle))
        scheduler = RefreshScheduler(orchestrator, AsyncMock(return_value=TEST_ADDRESS))

        first = asyncio.create_task(scheduler.trigger_now())
        await wait_until(lambda: scheduler.in_progress)
        second = asyncio.create_task(scheduler.trigger_now())
        await asyncio.sleep(0.01)

        release.set()
        results = await asyncio.gather(first, second)

        assert results == [expected, expected]
        assert orchestrator.run_cycle.await_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_abort_cycle(self):
        """Test cancelling one waiter leaves the shared cycle running."""
        release = asyncio.Event()

        async def slow_cycle(_identity):
            await release.wait()
            return RefreshResult(RefreshStatus.SUCCESS, attempts=1)

        scheduler = RefreshScheduler(
            make_orchestrator(AsyncMock(side_effect=slow_cycle)), AsyncMock(return_value=TEST_ADDRESS)
        )

        caller = asyncio.create_task(scheduler.trigger_now())
        await wait_until(lambda: scheduler.in_progress)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        assert scheduler.in_progress
        release.set()
        result = await scheduler.trigger_now()
        assert result.succeeded


class TestPeriodicRefresh:
    """Tests for the periodic loop."""

    @pytest.mark.asyncio
    async def test_start_runs_immediately(self):
        """Test the first cycle runs on start."""
        orchestrator = make_orchestrator()
        scheduler = RefreshScheduler(orchestrator, AsyncMock(return_value=TEST_ADDRESS), interval=60)

        await scheduler.start()
        await wait_until(lambda: orchestrator.run_cycle.await_count == 1)
        assert scheduler.running

        await scheduler.stop()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_start_delayed(self):
        """Test no cycle runs before the first interval when not immediate."""
        orchestrator = make_orchestrator()
        scheduler = RefreshScheduler(orchestrator, AsyncMock(return_value=TEST_ADDRESS), interval=60)

        await scheduler.start(run_immediately=False)
        await asyncio.sleep(0.02)

        orchestrator.run_cycle.assert_not_called()
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_repeats_every_interval(self):
        """Test cycles repeat and errors do not stop the loop."""
        orchestrator = make_orchestrator(AsyncMock(side_effect=RuntimeError("radio busy")))
        scheduler = RefreshScheduler(orchestrator, AsyncMock(return_value=TEST_ADDRESS), interval=0.01)

        await scheduler.start()
        await wait_until(lambda: orchestrator.run_cycle.await_count >= 3)

        assert scheduler.running
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_precondition_blocks_cycle(self):
        """Test cycles are skipped while the precondition is false."""
        orchestrator = make_orchestrator()
        can_run = MagicMock(return_value=False)
        scheduler = RefreshScheduler(
            orchestrator, AsyncMock(return_value=TEST_ADDRESS), interval=0.01, can_run=can_run
        )

        await scheduler.start()
        await wait_until(lambda: can_run.call_count >= 2)

        orchestrator.run_cycle.assert_not_called()
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_running_cycle(self):
        """Test stop cancels a cycle in flight."""
        started = asyncio.Event()

        async def hang(_identity):
            started.set()
            await asyncio.sleep(10)

        scheduler = RefreshScheduler(
            make_orchestrator(AsyncMock(side_effect=hang)), AsyncMock(return_value=TEST_ADDRESS)
        )

        await scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=1.0)
        await scheduler.stop()

        assert not scheduler.running
        assert not scheduler.in_progress
