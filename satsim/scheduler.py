"""Process-wide scheduler for the simulation loops.

Recurring jobs are installed by ``start`` and removed by ``stop``; calling
``start`` again cancels whatever was installed before, so repeated starts
never stack timers. One-shot jobs from ``call_later`` are not cancelled by
``stop`` or a restart: once scheduled they always run. ``drain`` waits for
the ones still outstanding.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Set, Tuple

logger = logging.getLogger(__name__)

Job = Callable[[], Any]

def _run(name: str, fn: Job) -> None:
    try:
        fn()
    except Exception:
        logger.exception("Scheduled job %s failed", name)

class Scheduler:
    def __init__(self) -> None:
        self._jobs: Dict[str, Tuple[float, Job]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._oneshots: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return len(self._oneshots)

    def add_job(self, name: str, period: float, fn: Job) -> None:
        """Register a recurring job; a second job with the same name replaces the first."""
        self._jobs[name] = (period, fn)

    async def start(self) -> None:
        """Install every recurring job, replacing any running ones."""
        if self._tasks:
            logger.info("Scheduler restarting; cancelling %d job(s)", len(self._tasks))
            await self.stop()
        for name, (period, fn) in self._jobs.items():
            self._tasks[name] = asyncio.create_task(self._loop(name, period, fn))
        logger.info("Scheduler started: %s", ", ".join(f"{n}={p}s" for n, (p, _) in self._jobs.items()))

    async def stop(self) -> None:
        """Cancel recurring jobs. Idempotent; one-shot jobs keep running."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Scheduler stopped")

    async def _loop(self, name: str, period: float, fn: Job) -> None:
        while True:
            await asyncio.sleep(period)
            _run(name, fn)

    def call_later(self, delay: float, fn: Job) -> asyncio.Task:
        """Run ``fn`` once after ``delay`` seconds. Must be called on the loop."""
        task = asyncio.get_running_loop().create_task(self._later(delay, fn))
        self._oneshots.add(task)
        task.add_done_callback(self._oneshots.discard)
        return task

    async def _later(self, delay: float, fn: Job) -> None:
        await asyncio.sleep(delay)
        _run("oneshot", fn)

    async def drain(self) -> None:
        while self._oneshots:
            await asyncio.gather(*list(self._oneshots), return_exceptions=True)
