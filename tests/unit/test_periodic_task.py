"""
Periodic Task Tests
===================

Completion-relative scheduling, error containment and clean shutdown.
"""

import asyncio

import pytest

from feedo.scheduler.periodic_task import PeriodicTask, TaskState


class TestPeriodicTask:
    """Test suite for PeriodicTask."""

    def test_rejects_non_positive_interval(self):
        async def work():
            return None

        with pytest.raises(ValueError):
            PeriodicTask("bad", work, 0)

    @pytest.mark.asyncio
    async def test_first_cycle_runs_immediately(self):
        ran = asyncio.Event()

        async def work():
            ran.set()

        task = PeriodicTask("immediate", work, interval_seconds=60)
        task.start()

        await asyncio.wait_for(ran.wait(), timeout=1)
        assert task.is_running
        assert task.state in (TaskState.SUCCESS, TaskState.SCHEDULED)

        await task.stop()
        assert task.state == TaskState.STOPPED
        assert task.cycles_run == 1

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self):
        active = 0
        max_active = 0

        async def work():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.03)
            active -= 1

        task = PeriodicTask("overlap", work, interval_seconds=0.01)
        task.start()
        await asyncio.sleep(0.2)
        await task.stop()

        assert task.cycles_run >= 2
        assert max_active == 1

    @pytest.mark.asyncio
    async def test_interval_counts_from_completion(self):
        starts = []
        finishes = []
        loop = asyncio.get_running_loop()

        async def work():
            starts.append(loop.time())
            await asyncio.sleep(0.05)
            finishes.append(loop.time())

        task = PeriodicTask("relative", work, interval_seconds=0.05)
        task.start()
        await asyncio.sleep(0.3)
        await task.stop()

        assert len(starts) >= 2
        for previous_finish, next_start in zip(finishes, starts[1:]):
            assert next_start - previous_finish >= 0.045

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_loop_continues(self):
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("first cycle fails")
            return "ok"

        task = PeriodicTask("flaky", work, interval_seconds=0.01)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()

        assert task.cycles_failed == 1
        assert isinstance(task.last_error, RuntimeError)
        assert task.cycles_run >= 2
        assert task.last_result == "ok"

    @pytest.mark.asyncio
    async def test_destroy_lets_running_cycle_finish(self):
        started = asyncio.Event()
        finished = []

        async def work():
            started.set()
            await asyncio.sleep(0.05)
            finished.append(True)

        task = PeriodicTask("graceful", work, interval_seconds=60)
        task.start()
        await started.wait()

        task.destroy()
        await task.stop()

        assert finished == [True]
        assert task.cycles_run == 1
        assert not task.is_running

    @pytest.mark.asyncio
    async def test_stop_timeout_cancels_cycle(self):
        started = asyncio.Event()

        async def work():
            started.set()
            await asyncio.sleep(10)

        task = PeriodicTask("stuck", work, interval_seconds=60)
        task.start()
        await started.wait()

        await task.stop(timeout=0.05)

        assert not task.is_running
        assert task.state == TaskState.STOPPED

    @pytest.mark.asyncio
    async def test_run_once(self):
        async def work():
            return 42

        task = PeriodicTask("single", work, interval_seconds=60)

        assert await task.run_once() == 42
        assert task.state == TaskState.SUCCESS
        assert task.cycles_run == 1

    @pytest.mark.asyncio
    async def test_stop_before_start(self):
        async def work():
            return None

        task = PeriodicTask("idle", work, interval_seconds=60)
        await task.stop()

        assert task.state == TaskState.STOPPED
