"""
Tests for SweepScheduler.
"""

import asyncio

import pytest

from syro_bot.utils.scheduler import SweepScheduler


class TestSweepScheduler:
    """Tests for job registration and execution."""

    @pytest.mark.asyncio
    async def test_run_pending_sync_and_async(self):
        """Test sync and async callbacks both run."""
        scheduler = SweepScheduler()
        calls = []

        async def async_job():
            calls.append("async")

        scheduler.add_job("sync", 1000, lambda: calls.append("sync"))
        scheduler.add_job("async", 1000, async_job)

        assert await scheduler.run_pending() == 2
        assert calls == ["sync", "async"]
        assert [job["runs"] for job in scheduler.jobs()] == [1, 1]

    @pytest.mark.asyncio
    async def test_run_single_job(self):
        """Test a named job runs alone."""
        scheduler = SweepScheduler()
        calls = []
        scheduler.add_job("a", 1000, lambda: calls.append("a"))
        scheduler.add_job("b", 1000, lambda: calls.append("b"))

        assert await scheduler.run_pending("b") == 1
        assert calls == ["b"]

        with pytest.raises(KeyError):
            await scheduler.run_pending("missing")

    @pytest.mark.asyncio
    async def test_failing_job_is_counted(self):
        """Test a raising callback is logged and counted, not propagated."""
        scheduler = SweepScheduler()

        def broken():
            raise RuntimeError("sweep failed")

        scheduler.add_job("broken", 1000, broken)
        await scheduler.run_pending()

        job = scheduler.jobs()[0]
        assert job["failures"] == 1
        assert job["runs"] == 0
        assert job["lastRun"] is not None

    def test_invalid_interval(self):
        """Test non-positive intervals are rejected."""
        with pytest.raises(ValueError):
            SweepScheduler().add_job("bad", 0, lambda: None)

    def test_replace_and_remove(self):
        """Test re-adding a name replaces the job."""
        scheduler = SweepScheduler()
        scheduler.add_job("a", 1000, lambda: None)
        scheduler.add_job("a", 2000, lambda: None)

        assert [job["intervalMs"] for job in scheduler.jobs()] == [2000]
        assert scheduler.remove_job("a") is True
        assert scheduler.remove_job("a") is False

    @pytest.mark.asyncio
    async def test_timer_runs_job(self):
        """Test started jobs fire on their interval and stop cleanly."""
        scheduler = SweepScheduler()
        fired = asyncio.Event()
        scheduler.add_job("tick", 10, fired.set)

        scheduler.start()
        assert scheduler.jobs()[0]["running"] is True
        await asyncio.wait_for(fired.wait(), timeout=1)

        await scheduler.stop()
        assert scheduler.started is False
        assert scheduler.jobs()[0]["running"] is False

    @pytest.mark.asyncio
    async def test_job_added_after_start(self):
        """Test jobs added to a started scheduler get a task."""
        scheduler = SweepScheduler()
        scheduler.start()
        scheduler.add_job("late", 1000, lambda: None)

        assert scheduler.jobs()[0]["running"] is True
        await scheduler.stop()
