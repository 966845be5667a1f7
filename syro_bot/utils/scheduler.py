"""
Sweep Scheduler
Named repeating jobs for cache clears and expired-record eviction
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from syro_bot.utils.logger import LoggerMixin


class SweepJob:
    """A named callback run every interval_ms."""

    def __init__(self, name: str, interval_ms: int, callback: Callable[[], Any]):
        self.name = name
        self.interval_ms = interval_ms
        self.callback = callback
        self.runs = 0
        self.failures = 0
        self.last_run: Optional[float] = None
        self.task: Optional[asyncio.Task] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "intervalMs": self.interval_ms,
            "runs": self.runs,
            "failures": self.failures,
            "lastRun": self.last_run,
            "running": self.task is not None and not self.task.done(),
        }


class SweepScheduler(LoggerMixin):
    """Owns every periodic sweep of the command system."""

    def __init__(self):
        super().__init__("SweepScheduler")
        self._jobs: Dict[str, SweepJob] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def add_job(self, name: str, interval_ms: int, callback: Callable[[], Any]) -> SweepJob:
        """
        Register a repeating job, replacing any job with the same name.

        Args:
            name: Job name
            interval_ms: Interval between runs in milliseconds
            callback: Sync or async callable

        Returns:
            The registered job
        """
        if interval_ms <= 0:
            raise ValueError(f"Sweep interval must be positive: {name}")

        self.remove_job(name)
        job = SweepJob(name, interval_ms, callback)
        self._jobs[name] = job

        if self._started:
            job.task = asyncio.create_task(self._job_loop(job))

        self.debug(f"Sweep registered: {name} every {interval_ms}ms")
        return job

    def remove_job(self, name: str) -> bool:
        job = self._jobs.pop(name, None)
        if job is None:
            return False
        if job.task and not job.task.done():
            job.task.cancel()
        return True

    def jobs(self) -> List[Dict[str, Any]]:
        """Jobs in registration order."""
        return [job.to_dict() for job in self._jobs.values()]

    def start(self) -> None:
        """Start a task per job. Must be called from a running loop."""
        if self._started:
            return
        self._started = True
        for job in self._jobs.values():
            job.task = asyncio.create_task(self._job_loop(job))
        self.info(f"Sweep scheduler started ({len(self._jobs)} jobs)")

    async def stop(self) -> None:
        """Cancel every job task and wait for them to exit."""
        self._started = False
        tasks = [job.task for job in self._jobs.values() if job.task and not job.task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        for job in self._jobs.values():
            job.task = None
        self.info("Sweep scheduler stopped")

    async def run_pending(self, name: Optional[str] = None) -> int:
        """
        Run jobs immediately, outside their timers.

        Args:
            name: Run only this job (all jobs when omitted)

        Returns:
            Number of jobs run
        """
        if name is not None:
            job = self._jobs.get(name)
            if job is None:
                raise KeyError(name)
            await self._run_job(job)
            return 1

        for job in list(self._jobs.values()):
            await self._run_job(job)
        return len(self._jobs)

    async def _job_loop(self, job: SweepJob) -> None:
        while True:
            try:
                await asyncio.sleep(job.interval_ms / 1000)
                await self._run_job(job)
            except asyncio.CancelledError:
                break

    async def _run_job(self, job: SweepJob) -> None:
        loop = asyncio.get_running_loop()
        try:
            result = job.callback()
            if asyncio.iscoroutine(result):
                await result
            job.runs += 1
        except Exception as e:
            job.failures += 1
            self.error(f"Sweep {job.name} error: {e}")
        finally:
            job.last_run = loop.time()
